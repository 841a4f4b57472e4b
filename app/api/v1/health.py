"""Health check endpoint with database connectivity check."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import check_db_connected, get_db
from app.schemas.health import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def get_health(db: Session = Depends(get_db)) -> HealthResponse:
    """
    Return service health status and database connectivity.
    Used by load balancers and monitoring.
    """
    db_ok = check_db_connected(db)

    return HealthResponse(
        status="ok" if db_ok else "degraded",
        environment=settings.APP_ENV,
        database="healthy" if db_ok else "unhealthy",
        timestamp=datetime.now(UTC),
    )
