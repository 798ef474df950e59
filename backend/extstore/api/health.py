"""Health check endpoint."""

import logging

from fastapi import APIRouter, Depends
from pymongo.database import Database
from pymongo.errors import PyMongoError

from extstore.config import settings
from extstore.database.mongo import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health_check(db: Database = Depends(get_db)):
    """Liveness plus a MongoDB ping."""
    try:
        db.command("ping")
        database = "ok"
    except PyMongoError as e:
        logger.warning(f"Health check: MongoDB ping failed: {e}")
        database = "unavailable"

    return {
        "status": "ok" if database == "ok" else "degraded",
        "version": settings.APP_VERSION,
        "database": database,
    }
