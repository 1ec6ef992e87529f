from typing import Any, Dict
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/app-health")
def app_health():
    """Liveness check that doesn't touch the database."""
    return {"status": "healthy"}


@router.get("", response_model=Dict[str, Any])
def health_check(db: Session = Depends(get_db)):
    """
    Basic health check endpoint.

    Returns:
        dict: Service and database status
    """
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")

    return {
        "status": "healthy",
        "database": "connected",
        "service": "inkwell-backend"
    }
