from fastapi import APIRouter, Depends

from app.api.v1.endpoints import (
    survey_analysis,
    survey_chat,
    survey_responses,
    health
)
from app.utils.cors import apply_cors_headers

api_router = APIRouter(dependencies=[Depends(apply_cors_headers)])

# Aggregated survey responses (normalized + legacy tables)
api_router.include_router(survey_responses.router, prefix="/survey-responses", tags=["survey-responses"])

# AI analysis chat over survey data (streaming)
api_router.include_router(survey_chat.router, tags=["survey-chat", "ai-chat"])

# One-shot AI analysis reports
api_router.include_router(survey_analysis.router, tags=["survey-analysis", "ai-reports"])

# System Management
api_router.include_router(health.router, prefix="/health", tags=["health"])
