"""
Shared pytest fixtures: in-memory SQLite, sample records, FastAPI TestClient.
"""
import os

# Keep the app's own engine off disk and the model path off the network.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LLM_ENABLED", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from bookkeeper.auditor import OllamaClient  # noqa: E402
from bookkeeper.database import Base, enable_sqlite_savepoints, get_db  # noqa: E402
from bookkeeper.deps import get_llm  # noqa: E402
import bookkeeper.models  # noqa: E402,F401  register models
from bookkeeper.main import app  # noqa: E402
from bookkeeper.store import ReceiptStore  # noqa: E402

# StaticPool ensures all connections share the same in-memory database
_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_savepoints(_ENGINE)
_Session = sessionmaker(autocommit=False, autoflush=False, bind=_ENGINE)

OLLAMA_URL = "http://ollama.test"


@pytest.fixture(autouse=True)
def _reset_tables():
    Base.metadata.create_all(bind=_ENGINE)
    yield
    Base.metadata.drop_all(bind=_ENGINE)


@pytest.fixture()
def db():
    session = _Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def store(db):
    return ReceiptStore(db)


@pytest.fixture()
def llm():
    """Model client pointed at a mocked endpoint (use with respx)."""
    return OllamaClient(base_url=OLLAMA_URL, model="test-model", timeout=2, enabled=True)


@pytest.fixture()
def client(db):
    def _override():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = _override
    app.dependency_overrides[get_llm] = lambda: OllamaClient(enabled=False)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ── sample records ───────────────────────────────────────────────────────

@pytest.fixture()
def ground_truth_record():
    """CORD-style record: string amounts, one sub-item, cash payment."""
    return {
        "meta": {"image_id": 7},
        "gt_parse": {
            "menu": [
                {"nm": "Es Kopi Susu", "cnt": "2", "unitprice": "18,000", "price": "36,000"},
                {
                    "nm": "Roti Bakar",
                    "cnt": "1",
                    "price": "20,000",
                    "sub": {"nm": "Extra Keju", "price": "5,000"},
                },
            ],
            "sub_total": {"subtotal_price": "56,000", "tax_price": "5,600"},
            "total": {"total_price": "61,600", "cashprice": "100,000", "changeprice": "38,400"},
            "store_info": {"name": "Kopi Kenangan", "addr": "Jl. Sudirman 1"},
        },
    }


@pytest.fixture()
def mismatched_record():
    """Canonical record whose items fall far short of the subtotal."""
    return {
        "vendor": {"name": "Cafe Latte"},
        "receipt": {"subtotal": 45.5, "totalAmount": 50.05, "cardPaid": 50.05},
        "items": [
            {"name": "Latte", "quantity": 2, "unitPrice": 5.5, "totalPrice": 11},
            {"name": "Croissant", "quantity": 1, "totalPrice": 4.5},
        ],
    }


def _make_record(vendor, total, method="cash", tax=None, name="Item"):
    """Canonical record that reconciles cleanly."""
    header = {"totalAmount": total, "paymentMethod": method}
    if tax is not None:
        header["taxAmount"] = tax
    return {
        "vendor": {"name": vendor} if vendor else None,
        "receipt": header,
        "items": [{"name": name, "totalPrice": total}],
    }


@pytest.fixture()
def make_record():
    return _make_record


@pytest.fixture()
def seeded(store, ground_truth_record, mismatched_record):
    """Store holding five receipts: four verified, one flagged."""
    from bookkeeper.pipeline.ingest import ingest_batch

    records = [
        ground_truth_record,
        mismatched_record,
        _make_record("Warung Padang", 120000, "cash", tax=12000, name="Rendang"),
        _make_record("Toko Buku", 250000, "card", tax=25000, name="Novel"),
        _make_record(None, 15000, "cash", name="Parkir"),
    ]
    report = ingest_batch(store, records, auto_verify=True)
    assert report.errors == []
    return report
