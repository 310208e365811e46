"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import assets, brokers, snaptrade
from config import settings
from database import Base, get_engine, get_session_local
from logging_config import setup_logging
from services.asset_category_service import AssetCategoryService

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and seed asset categories on startup."""
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        Base.metadata.create_all(bind=get_engine())
        AssetCategoryService().seed_default_categories(db)
    except Exception:
        logger.warning("Asset category seeding failed on startup", exc_info=True)
    finally:
        db.close()

    logger.info(
        "SnapTrade linking %s",
        "configured" if settings.SNAPTRADE_CLIENT_ID and settings.SNAPTRADE_CONSUMER_KEY
        else "NOT configured (set SNAPTRADE_CLIENT_ID and SNAPTRADE_CONSUMER_KEY)",
    )
    yield


app = FastAPI(
    title="Asset Dashboard",
    description="Personal asset tracking with brokerage account linking",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(assets.router)
app.include_router(brokers.router)
app.include_router(snaptrade.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
