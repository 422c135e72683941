"""
Survey Analysis Endpoints
=========================
One-shot AI reports over survey submissions posted by the client.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.models.schemas import AnalysisErrorResponse, FilteredAnalysisRequest, SurveyDataRequest
from app.services.survey_report_service import SurveyReportService, get_survey_report_service
from app.utils.cors import CORS_HEADERS
from app.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _failure(operation: str, error: Exception) -> JSONResponse:
    logger.error(f"Error in {operation}: {str(error)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": str(error) or "Unknown error"},
        headers=CORS_HEADERS
    )


@router.post(
    "/generate-filtered-analysis",
    summary="Structured AI analysis of a region/division slice",
    responses={500: {"model": AnalysisErrorResponse, "description": "Analysis failed"}}
)
async def generate_filtered_analysis(
    request: FilteredAnalysisRequest,
    report_service: SurveyReportService = Depends(get_survey_report_service)
):
    """
    Body: `{"surveyData": [...], "region": "...", "division": "..."}`.

    Returns `{"success": true, "analysis": {...}, "metadata": {...}}` where the
    metadata carries the per-question rating statistics of the slice.
    """
    try:
        result = await report_service.generate_filtered_analysis(
            request.survey_data, request.region, request.division
        )
    except Exception as e:
        return _failure("generate-filtered-analysis", e)

    return {"success": True, **result}


@router.post(
    "/generate-survey-analysis",
    summary="Markdown leadership report over all submissions",
    responses={500: {"model": AnalysisErrorResponse, "description": "Analysis failed"}}
)
async def generate_survey_analysis(
    request: SurveyDataRequest,
    report_service: SurveyReportService = Depends(get_survey_report_service)
):
    """Body: `{"surveyData": [...]}`. Returns `{"success": true, "analysis": "<markdown>", "metadata": {...}}`."""
    try:
        result = await report_service.generate_leadership_report(request.survey_data)
    except Exception as e:
        return _failure("generate-survey-analysis", e)

    return {"success": True, **result}
