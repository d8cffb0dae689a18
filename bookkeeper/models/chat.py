"""
Chat history model (append-only auditor conversation log).
"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from bookkeeper.database import Base


class ChatMessageModel(Base):
    __tablename__ = "chat_history"

    # autoincrement key doubles as insertion order within a session
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True)
    session_id = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False)  # user | assistant
    content = Column(Text, nullable=False)
    referenced_receipts = Column(JSON)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
