"""
Application settings for the bookkeeper service.
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./data/bookkeeper.db"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Files
    DATA_DIR: str = "./data"
    SEED_FILE: str = "./data/cord_receipts.json"

    # Reconciliation
    CURRENCY_LABEL: str = "IDR"
    RECONCILIATION_TOLERANCE: float = 0.05
    AUTO_VERIFY_EXTRACTIONS: bool = False

    # LLM (optional, Ollama)
    LLM_ENABLED: bool = True
    OLLAMA_URL: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "qwen2.5:3b"
    LLM_TIMEOUT_SECONDS: float = 30.0

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
