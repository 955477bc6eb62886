"""Health probes (unauthenticated)."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicroute.core.config import settings
from clinicroute.core.deps import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


def _database_ok(db: Session) -> bool:
    try:
        db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        return False


@router.get("")
def health(db: Session = Depends(get_db)):
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    database_ok = _database_ok(db)
    return {
        "status": "healthy" if database_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.VERSION,
        "environment": settings.ENV,
        "checks": {"database": "ok" if database_ok else "error"},
    }


@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    if not _database_ok(db):
        return JSONResponse(status_code=503, content={"ready": False, "detail": "Database unavailable"})
    return {"ready": True}


@router.get("/live")
def live():
    return {"alive": True}
