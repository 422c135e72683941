# Pydantic schemas for API request/response models (DTOs)
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Literal, Union
from datetime import datetime
from enum import Enum


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


# Base schema for all Pydantic models
class BaseSchema(BaseModel):
    class Config:
        from_attributes = True
        use_enum_values = True


# Chat with survey data
class ChatMessage(BaseSchema):
    role: MessageRole
    content: str


class ChatFilters(BaseSchema):
    continent: Optional[str] = None
    division: Optional[str] = None
    role: Optional[str] = None


class ChatRequest(BaseSchema):
    messages: List[ChatMessage] = Field(default_factory=list)
    filters: Optional[ChatFilters] = None


class ChatErrorResponse(BaseSchema):
    error: str


# Analysis reports
class SurveyDataRequest(BaseSchema):
    survey_data: List[Dict[str, Any]] = Field(default_factory=list, alias="surveyData")

    class Config:
        populate_by_name = True


class FilteredAnalysisRequest(SurveyDataRequest):
    region: Optional[str] = None
    division: Optional[str] = None


class AnalysisReport(BaseSchema):
    executive_summary: str = ""
    key_strengths: List[str] = Field(default_factory=list)
    areas_for_improvement: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    detailed_analysis: str = ""


class AnalysisErrorResponse(BaseSchema):
    success: bool = False
    error: str


# Aggregated survey responses
class AggregatedResponseSchema(BaseSchema):
    response_id: str
    session_id: str
    continent: str
    division: str
    role: str
    submitted_at: Optional[datetime] = None
    completion_time_seconds: int = 0
    is_draft: bool = False
    configuration_id: Optional[str] = None
    ratings: Dict[str, Union[int, float]] = Field(default_factory=dict)
    multiselect: Dict[str, List[str]] = Field(default_factory=dict)
    text_responses: Dict[str, str] = Field(default_factory=dict)
    na_responses: Dict[str, bool] = Field(default_factory=dict)


class LegacyResponseSchema(BaseSchema):
    id: str
    session_id: Optional[str] = None
    continent: Optional[str] = None
    division: Optional[str] = None
    role: Optional[str] = None
    submitted_at: Optional[datetime] = None
    configuration_id: Optional[str] = None
    answers: Dict[str, Any] = Field(default_factory=dict)
    raw: Dict[str, Any] = Field(default_factory=dict)


# Standard error envelope
class ErrorResponse(BaseSchema):
    detail: Union[str, List[Dict[str, Any]]]
    error_code: str
    timestamp: float
    error_id: Optional[str] = None


class HealthCheck(BaseSchema):
    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    timestamp: datetime
    database: Any = None
    services: Dict[str, Any] = Field(default_factory=dict)
