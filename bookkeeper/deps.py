"""
FastAPI dependencies wiring the store, model client and auditor.
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from bookkeeper.auditor import Auditor, OllamaClient
from bookkeeper.database import get_db
from bookkeeper.store import ReceiptStore


def get_store(db: Session = Depends(get_db)) -> ReceiptStore:
    return ReceiptStore(db)


def get_llm() -> OllamaClient:
    return OllamaClient()


def get_auditor(
    store: ReceiptStore = Depends(get_store),
    llm: OllamaClient = Depends(get_llm),
) -> Auditor:
    return Auditor(store, llm)
