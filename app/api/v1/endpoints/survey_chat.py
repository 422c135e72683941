"""
Survey Chat Endpoint
====================
Streams a language-model analysis of filtered survey responses.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from app.models.schemas import ChatRequest, ChatErrorResponse
from app.services.stream_relay import relay_stream
from app.services.survey_chat_service import SurveyChatService, get_survey_chat_service
from app.utils.cors import CORS_HEADERS, preflight_response
from app.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

STREAM_HEADERS = {
    **CORS_HEADERS,
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


@router.options("/chat-with-survey-data", include_in_schema=False)
async def chat_with_survey_data_preflight():
    """CORS preflight"""
    return preflight_response()


@router.post(
    "/chat-with-survey-data",
    summary="Chat with survey data - streamed AI analysis with citations",
    responses={500: {"model": ChatErrorResponse, "description": "Setup or upstream failure"}}
)
async def chat_with_survey_data(
    request: Request,
    chat_service: SurveyChatService = Depends(get_survey_chat_service)
):
    """
    Body: `{"messages": [{"role", "content"}, ...], "filters": {"continent", "division", "role"}}`.

    Responds with the completion service's event stream as-is, or a 500 JSON
    `{"error": ...}` if anything fails before streaming starts.
    """
    try:
        chat_request = ChatRequest.model_validate(await request.json())
        filters = chat_request.filters.model_dump(exclude_none=True) if chat_request.filters else {}
        messages = [message.model_dump() for message in chat_request.messages]

        upstream = await chat_service.analyze(messages, filters)

    except Exception as e:
        logger.error(f"Error in chat-with-survey-data: {str(e)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": str(e) or "Unknown error occurred"},
            headers=CORS_HEADERS
        )

    return StreamingResponse(
        relay_stream(upstream),
        media_type="text/event-stream",
        headers=STREAM_HEADERS
    )
