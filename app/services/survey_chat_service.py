"""
Survey Analysis Chat Service
============================
Answers questions about survey responses with a language model.

Retrieves finalized submissions matching the caller's demographic filters,
labels each one with a citation id (R-001, R-002, ...), packs a bounded
sample into the system prompt and opens a streaming chat completion.
"""

import json
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx
from pydantic import BaseModel

from app.core.config import Settings, settings
from app.exceptions.survey_exceptions import (
    CompletionServiceError,
    ConfigurationError,
    EmptyInputError,
)
from app.models.records import CitedEvidenceRecord
from app.services.lightweight_db_service import LightweightDBService, lightweight_db
from app.services.stream_relay import CompletionStream
from app.utils.logging import get_logger

logger = get_logger(__name__)

UNKNOWN = "Unknown"


class ChatServiceConfig(BaseModel):
    api_key: Optional[str] = None
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 2000
    record_limit: int = 200
    sample_size: int = 50
    payload_chars: int = 300
    history_messages: int = 10
    report_max_tokens: int = 2500
    leadership_report_max_tokens: int = 8000
    report_comment_questions: int = 8
    report_comments_per_question: int = 3

    @classmethod
    def from_settings(cls, source: Settings) -> "ChatServiceConfig":
        return cls(
            api_key=source.openai_api_key,
            base_url=source.openai_base_url,
            model=source.chat_model,
            temperature=source.chat_temperature,
            max_tokens=source.chat_max_tokens,
            record_limit=source.chat_record_limit,
            sample_size=source.chat_sample_size,
            payload_chars=source.chat_payload_chars,
            history_messages=source.chat_history_messages,
            report_max_tokens=source.report_max_tokens,
            leadership_report_max_tokens=source.leadership_report_max_tokens,
            report_comment_questions=source.report_comment_questions,
            report_comments_per_question=source.report_comments_per_question,
        )

    @property
    def completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"


def citation_id(index: int) -> str:
    """1-based retrieval position -> R-001 style label"""
    return f"R-{index:03d}"


def build_cited_records(rows: Sequence[Mapping[str, Any]]) -> List[CitedEvidenceRecord]:
    """Label retrieved rows in retrieval order"""
    records = []
    for index, row in enumerate(rows, start=1):
        responses = row.get("responses_jsonb")
        records.append(CitedEvidenceRecord(
            citation_id=citation_id(index),
            response_id=str(row.get("id")),
            continent=row.get("continent") or UNKNOWN,
            division=row.get("division") or UNKNOWN,
            role=row.get("role") or UNKNOWN,
            responses=responses if isinstance(responses, dict) else {},
        ))
    return records


def breakdown(records: Sequence[CitedEvidenceRecord], attribute: str) -> Dict[str, int]:
    """Frequency of an attribute across all retrieved records, first-seen order"""
    return dict(Counter(getattr(record, attribute) for record in records))


def format_breakdown(counts: Mapping[str, int]) -> str:
    return ", ".join(f"{name} ({count})" for name, count in counts.items())


def serialize_payload(responses: Mapping[str, Any], max_chars: int) -> str:
    payload = json.dumps(responses, ensure_ascii=False, separators=(",", ":"), default=str)
    if len(payload) > max_chars:
        return payload[:max_chars] + "..."
    return payload


def build_evidence_sample(
    records: Sequence[CitedEvidenceRecord],
    sample_size: int = 50,
    payload_chars: int = 300,
) -> List[str]:
    """One prompt line per record for the first sample_size records"""
    return [
        f"[{record.citation_id}] [{record.continent}, {record.division}, {record.role}]: "
        f"{serialize_payload(record.responses, payload_chars)}"
        for record in records[:sample_size]
    ]


def build_system_prompt(
    records: Sequence[CitedEvidenceRecord],
    sample_size: int = 50,
    payload_chars: int = 300,
) -> str:
    sample = "\n".join(build_evidence_sample(records, sample_size, payload_chars))
    return f"""You are an expert survey data analyst. You have access to employee survey data and must provide insights based ONLY on this data.

CRITICAL RULES:
1. ALWAYS cite specific response IDs when making claims (format: [R-001])
2. Provide statistics, percentages, and trends
3. Be objective and data-driven
4. If asked about something not in the data, say so clearly
5. Use multiple citations to support important claims

DATA OVERVIEW:
- Total Responses: {len(records)}
- Continents: {format_breakdown(breakdown(records, 'continent'))}
- Divisions: {format_breakdown(breakdown(records, 'division'))}

SAMPLE RESPONSES (with IDs for citation):
{sample}

When answering questions:
- Start with an overview/summary
- Provide specific examples with citations
- Include relevant statistics
- Suggest follow-up questions if appropriate"""


def build_outbound_messages(
    system_prompt: str,
    conversation: Sequence[Mapping[str, Any]],
    history_messages: int = 10,
) -> List[Dict[str, str]]:
    """System instruction followed by the most recent conversation turns"""
    recent = list(conversation)[-history_messages:] if history_messages > 0 else []
    return [{"role": "system", "content": system_prompt}] + [
        {"role": str(message["role"]), "content": str(message["content"])}
        for message in recent
    ]


class SurveyChatService:
    """
    Retrieval-augmented chat over finalized survey responses
    """

    def __init__(
        self,
        config: ChatServiceConfig,
        store: LightweightDBService,
        http_client: httpx.AsyncClient = None,
    ):
        self.config = config
        self.store = store
        self.http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=5.0,
                read=60.0,       # Gap allowed between streamed chunks
                write=10.0,
                pool=20.0
            ),
            limits=httpx.Limits(
                max_keepalive_connections=10,
                max_connections=20,
                keepalive_expiry=30.0
            ),
            follow_redirects=True
        )

    async def close(self):
        await self.http_client.aclose()

    async def retrieve_records(self, filters: Mapping[str, Optional[str]] = None) -> List[CitedEvidenceRecord]:
        filters = filters or {}
        rows = await self.store.list_filtered_submissions(
            continent=filters.get("continent"),
            division=filters.get("division"),
            role=filters.get("role"),
            limit=self.config.record_limit,
        )
        if not rows:
            raise EmptyInputError(
                "No survey responses found with the applied filters",
                details={"filters": dict(filters)}
            )
        return build_cited_records(rows)

    async def analyze(
        self,
        messages: Sequence[Mapping[str, Any]],
        filters: Mapping[str, Optional[str]] = None,
    ) -> CompletionStream:
        """
        Open a streaming completion answering the conversation from survey data.

        Everything that can fail before the first token fails here, so the
        caller can still answer with an error instead of a broken stream.
        """
        if not messages:
            raise EmptyInputError("No messages provided")
        if not self.config.api_key:
            raise ConfigurationError("OpenAI API key not configured", setting="OPENAI_API_KEY")

        logger.info(f"Survey chat request: {len(messages)} messages, filters={dict(filters or {})}")

        records = await self.retrieve_records(filters)
        system_prompt = build_system_prompt(records, self.config.sample_size, self.config.payload_chars)
        outbound = build_outbound_messages(system_prompt, messages, self.config.history_messages)

        logger.info(
            f"Retrieved {len(records)} responses, sending {len(outbound)} messages to {self.config.model}"
        )
        return await self.open_completion_stream(outbound)

    async def open_completion_stream(self, outbound: List[Dict[str, str]]) -> CompletionStream:
        payload = {
            "model": self.config.model,
            "messages": outbound,
            "stream": True,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        request = self.http_client.build_request(
            "POST", self.config.completions_url, headers=headers, json=payload
        )

        try:
            response = await self.http_client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error(f"Completion service request failed: {str(e)}")
            raise CompletionServiceError(f"OpenAI API request failed: {str(e)}") from e

        if response.is_error:
            try:
                error_body = (await response.aread()).decode("utf-8", errors="replace")
            finally:
                await response.aclose()
            logger.error(f"OpenAI API error: {response.status_code} {error_body}")
            raise CompletionServiceError(
                f"OpenAI API error: {response.status_code}",
                status_code=response.status_code,
                details={"body": error_body}
            )

        return CompletionStream(response)


# Global instance
survey_chat_service = SurveyChatService(ChatServiceConfig.from_settings(settings), lightweight_db)


async def get_survey_chat_service() -> SurveyChatService:
    """Dependency injection for FastAPI"""
    return survey_chat_service
