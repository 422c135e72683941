from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
import time

from app.core.config import settings
from app.api.v1.api import api_router
from app.exceptions.survey_exceptions import SurveyAnalysisError
from app.utils.cors import preflight_response
from app.utils.error_handlers import StandardErrorHandler
from app.utils.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    from app.services.lightweight_db_service import lightweight_db
    from app.services.survey_chat_service import survey_chat_service
    from app.services.survey_report_service import survey_report_service

    try:
        await lightweight_db.initialize()
        pool_stats = lightweight_db.get_pool_stats()
        logger.info(f"DB initialized: {pool_stats['current_size']}/{pool_stats['max_size']} connections ready")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")

    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Database: {settings.database_host}:{settings.database_port}/{settings.database_name}")

    if not survey_chat_service.config.api_key:
        logger.warning("OPENAI_API_KEY is not set, survey chat and analysis report requests will fail")
    else:
        logger.info(f"Survey chat model: {survey_chat_service.config.model}")

    yield

    # Shutdown
    await survey_chat_service.close()
    await survey_report_service.close()
    await lightweight_db.close()
    logger.info(f"Shutting down {settings.app_name}")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Survey response aggregation and AI-assisted analysis chat",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

# Exception handlers
app.add_exception_handler(HTTPException, StandardErrorHandler.handle_http_exception)
app.add_exception_handler(RequestValidationError, StandardErrorHandler.handle_validation_error)
app.add_exception_handler(SurveyAnalysisError, StandardErrorHandler.handle_survey_error)


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check():
    """
    Health check endpoint for monitoring and load balancers.
    """
    return {
        "status": "healthy",
        "version": settings.app_version,
        "timestamp": time.time(),
        "environment": "development" if settings.debug else "production"
    }


# Include API routes (single versioned prefix)
app.include_router(api_router, prefix="/api/v1")


@app.get("/api/v1/info", tags=["info"])
async def api_info():
    """
    Get API information and capabilities.
    """
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "features": [
            "survey_response_aggregation",
            "legacy_response_mapping",
            "survey_chat_streaming",
            "filtered_analysis_report",
            "leadership_report"
        ],
        "endpoints": {
            "survey_responses": "/api/v1/survey-responses",
            "legacy_responses": "/api/v1/survey-responses/legacy",
            "survey_chat": "/api/v1/chat-with-survey-data",
            "filtered_analysis": "/api/v1/generate-filtered-analysis",
            "survey_analysis": "/api/v1/generate-survey-analysis",
            "health": "/api/v1/health"
        }
    }


# Preflight for every path; registered last so explicit OPTIONS routes win
@app.options("/{path:path}", include_in_schema=False)
async def cors_preflight(path: str):
    return preflight_response()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
