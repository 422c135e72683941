"""
Standard Error Handlers
=======================
App-level exception handlers. Every error leaves the API as the same JSON
envelope `{detail, error_code, timestamp, error_id}` with the CORS headers
attached, so the browser client can read it.
"""

from typing import Dict, Any, Optional
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import time
import uuid

from app.exceptions.survey_exceptions import SurveyAnalysisError
from app.utils.cors import CORS_HEADERS
from app.utils.logging import get_logger

logger = get_logger(__name__)

# Survey errors that are the caller's doing; everything else is a server fault
CLIENT_ERROR_STATUS = {
    "EmptyInputError": 404,
}


def _error_code(name: str) -> str:
    """StoreQueryError -> store_query_error"""
    chars = []
    for i, char in enumerate(name):
        if char.isupper() and i:
            chars.append("_")
        chars.append(char.lower())
    return "".join(chars)


class StandardErrorHandler:
    """Builds the error envelope and hosts the registered handlers"""

    @staticmethod
    def create_error_response(
        status_code: int,
        detail: Any,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> JSONResponse:
        content = {
            "detail": detail,
            "error_code": error_code or f"http_{status_code}",
            "timestamp": time.time(),
            "error_id": str(uuid.uuid4())
        }
        if details:
            content["details"] = details

        return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)

    @staticmethod
    async def handle_survey_error(request: Request, exc: SurveyAnalysisError) -> JSONResponse:
        """Map the survey error hierarchy onto status codes"""
        status_code = CLIENT_ERROR_STATUS.get(exc.error_type, 500)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed ({exc.error_type}): {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected ({exc.error_type}): {exc.message}")

        return StandardErrorHandler.create_error_response(
            status_code=status_code,
            detail=exc.message,
            error_code=_error_code(exc.error_type),
        )

    @staticmethod
    async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
        return StandardErrorHandler.create_error_response(exc.status_code, str(exc.detail))

    @staticmethod
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
            for error in exc.errors()
        ]
        return StandardErrorHandler.create_error_response(422, errors, error_code="validation_error")
