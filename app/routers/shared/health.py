from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.db.session import get_sync_session
from app.utils.logging import get_logger
from app.utils.responses import ResponseBuilder

health_router = APIRouter()
logger = get_logger()


@health_router.get("/")
async def health_check(request: Request, db: Session = Depends(get_sync_session)):
    """Liveness plus a database round trip. Open to unauthenticated callers."""
    database = "ok"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check database query failed", error=str(e))
        database = "unavailable"

    return ResponseBuilder.success(
        request=request,
        data={
            "status": "healthy" if database == "ok" else "degraded",
            "service": settings.NAME,
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
            "database": database,
        },
        message="Service is running",
    )
