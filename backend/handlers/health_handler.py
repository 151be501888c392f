import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database.base import get_db
from models.api_models import HealthResponse


router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health", response_model=HealthResponse)
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database_ok = True
    except SQLAlchemyError:
        logger.warning("Health check could not reach the database", exc_info=True)
        database_ok = False
    return HealthResponse(status="ok" if database_ok else "degraded", database=database_ok)
