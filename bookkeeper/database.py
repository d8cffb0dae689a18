"""
Database connection setup.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from bookkeeper.config import settings


def enable_sqlite_savepoints(bind: Engine) -> None:
    """Let pysqlite honour SAVEPOINT by taking over BEGIN from the driver.

    Ingestion rolls back a single failed record to its savepoint while the
    rest of the batch stays in the outer transaction.
    """

    @event.listens_for(bind, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(bind, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


# SQLite needs check_same_thread=False
connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=connect_args,
    echo=settings.DEBUG,
)
if settings.DATABASE_URL.startswith("sqlite"):
    enable_sqlite_savepoints(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
