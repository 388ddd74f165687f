"""
==============================================================================
Health Check Endpoints
==============================================================================

Probes for the verification service.

    /health        database status and how many products can be verified
    /health/ready  503 until the database answers
    /health/live   process is up, with uptime

==============================================================================
"""

import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from productscan import __version__
from productscan.db.database import get_db
from productscan.services.product_service import ProductService


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

STARTED_AT = time.monotonic()


class HealthController:
    """Runs the database probes behind the health endpoints."""

    def __init__(self, db: Session):
        self._db = db

    def database_reachable(self) -> bool:
        try:
            self._db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.warning(f"Database probe failed: {e}")
            return False
        return True

    def report(self) -> Dict[str, Any]:
        reachable = self.database_reachable()
        catalogue = ProductService(self._db).count() if reachable else 0

        return {
            "status": "healthy" if reachable else "degraded",
            "version": __version__,
            "components": {
                "api": "healthy",
                "database": "healthy" if reachable else "unhealthy",
            },
            "details": {
                "products_loaded": catalogue
            }
        }


@router.get("")
async def health_check(db: Session = Depends(get_db)):
    """API and database status plus the number of verifiable products."""
    return HealthController(db).report()


@router.get("/ready")
async def readiness_check(db: Session = Depends(get_db)):
    """Ready once lookups can reach the database."""
    if not HealthController(db).database_reachable():
        return JSONResponse(status_code=503, content={"ready": False})
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    return {
        "alive": True,
        "uptime_seconds": round(time.monotonic() - STARTED_AT, 1)
    }
