# In-process survey records shared by the reconciler and the chat service
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Union


@dataclass
class SubmissionMetadata:
    """One survey attempt as stored in the legacy response table"""
    id: str
    session_id: Optional[str] = None
    continent: Optional[str] = None
    division: Optional[str] = None
    role: Optional[str] = None
    submitted_at: Optional[datetime] = None
    completion_time_seconds: Optional[int] = None
    is_draft: bool = False
    configuration_id: Optional[str] = None
    follow_up_responses: Optional[Dict[str, Any]] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "SubmissionMetadata":
        return cls(
            id=str(row["id"]),
            session_id=str(row["session_id"]) if row.get("session_id") else None,
            continent=row.get("continent"),
            division=row.get("division"),
            role=row.get("role"),
            submitted_at=row.get("submitted_at"),
            completion_time_seconds=row.get("completion_time_seconds"),
            is_draft=bool(row.get("is_draft", False)),
            configuration_id=str(row["configuration_id"]) if row.get("configuration_id") else None,
            follow_up_responses=row.get("follow_up_responses"),
        )

    @property
    def na_responses(self) -> Dict[str, bool]:
        follow_up = self.follow_up_responses
        if isinstance(follow_up, dict) and isinstance(follow_up.get("na_responses"), dict):
            return dict(follow_up["na_responses"])
        return {}


@dataclass
class QuestionAnswer:
    """One answer row from the normalized table, joined with its question"""
    response_id: str
    question_id: Optional[str] = None
    question_type: Optional[str] = None
    question_key: Optional[str] = None
    section: Optional[str] = None
    answer_value: Any = None
    configuration_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "QuestionAnswer":
        # Joined question columns win over the answer row's own copies
        question_id = row.get("config_question_id") or row.get("question_id")
        return cls(
            response_id=str(row["response_id"]),
            question_id=str(question_id) if question_id else None,
            question_type=row.get("config_question_type") or row.get("question_type"),
            question_key=row.get("question_key"),
            section=row.get("section"),
            answer_value=row.get("answer_value"),
            configuration_id=str(row["configuration_id"]) if row.get("configuration_id") else None,
            created_at=row.get("created_at"),
        )

    @property
    def key(self) -> Optional[str]:
        return self.question_key or self.question_id


@dataclass
class AggregatedResponse:
    """Unified per-submission projection over both response tables"""
    response_id: str
    session_id: str
    continent: str = ""
    division: str = ""
    role: str = ""
    submitted_at: Optional[datetime] = None
    completion_time_seconds: int = 0
    is_draft: bool = False
    configuration_id: Optional[str] = None
    ratings: Dict[str, Union[int, float]] = field(default_factory=dict)
    multiselect: Dict[str, List[str]] = field(default_factory=dict)
    text_responses: Dict[str, str] = field(default_factory=dict)
    na_responses: Dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CitedEvidenceRecord:
    citation_id: str
    response_id: str
    continent: str
    division: str
    role: str
    responses: Dict[str, Any] = field(default_factory=dict)


@dataclass
class QuestionStats:
    """Rating statistics for one question on the 1-5 scale"""
    n: int
    mean: float
    median: float
    distribution: Dict[int, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ReportComment:
    text: str
    rating: Optional[int] = None
