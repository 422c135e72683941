from fastapi import APIRouter, Depends
from datetime import datetime

from app.core.config import settings
from app.services.lightweight_db_service import get_lightweight_db, LightweightDBService
from app.services.survey_chat_service import get_survey_chat_service, SurveyChatService
from app.models.schemas import HealthCheck, ErrorResponse
from app.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/",
           response_model=HealthCheck,
           responses={
               500: {"model": ErrorResponse, "description": "Internal server error"}
           })
async def health_check():
    """
    Basic health check endpoint

    Returns service status, version, and timestamp
    """
    return HealthCheck(
        status="healthy",
        version=settings.app_version,
        timestamp=datetime.utcnow(),
        database="not_checked",
        services={}
    )


@router.get("/detailed", response_model=HealthCheck)
async def detailed_health_check(
    db: LightweightDBService = Depends(get_lightweight_db),
    chat_service: SurveyChatService = Depends(get_survey_chat_service)
):
    """
    Health check with response store connectivity and chat configuration
    """
    status = "healthy"
    try:
        if not await db.ping():
            raise RuntimeError("SELECT 1 returned no row")
        database = {"status": "healthy", **db.get_pool_stats()}
    except Exception as db_error:
        logger.error(f"Database health check failed: {str(db_error)}")
        database = {"status": "error", "error": str(db_error)}
        status = "degraded"

    chat_configured = bool(chat_service.config.api_key)
    if not chat_configured:
        status = "degraded"

    return HealthCheck(
        status=status,
        version=settings.app_version,
        timestamp=datetime.utcnow(),
        database=database,
        services={
            "survey_chat": {
                "configured": chat_configured,
                "model": chat_service.config.model
            }
        }
    )
