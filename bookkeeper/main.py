"""
Bookkeeper backend: FastAPI application entry-point.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bookkeeper.config import settings
from bookkeeper.database import Base, engine

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s  %(name)-30s  %(levelname)-5s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: ensure data dir + tables exist
    os.makedirs(settings.DATA_DIR, exist_ok=True)
    # Import models so Base.metadata knows about them
    import bookkeeper.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready (%s)", settings.DATABASE_URL)
    if settings.LLM_ENABLED:
        logger.info("Model answers via %s (%s)", settings.OLLAMA_URL, settings.OLLAMA_MODEL)
    else:
        logger.info("Model path disabled; rule-based answers only")
    yield
    logger.info("Shutting down")


app = FastAPI(
    title="Bookkeeper",
    description="Receipt ingestion → reconciliation → natural-language audit queries",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {"service": "Bookkeeper", "version": "0.1.0", "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# ── Register API routers ─────────────────────────────────────────────────
from bookkeeper.routers.analytics import router as analytics_router  # noqa: E402
from bookkeeper.routers.auditor import router as auditor_router  # noqa: E402
from bookkeeper.routers.ingest import router as ingest_router  # noqa: E402
from bookkeeper.routers.receipts import router as receipts_router  # noqa: E402

app.include_router(ingest_router, prefix="/api", tags=["Ingestion"])
app.include_router(receipts_router, prefix="/api", tags=["Receipts"])
app.include_router(analytics_router, prefix="/api", tags=["Analytics"])
app.include_router(auditor_router, prefix="/api", tags=["Auditor"])
