"""
Response Reconciler
===================
Merges the two survey response tables into one projection per submission:

- survey_question_responses: one row per answered question (normalized system)
- employee_survey_responses: one row per submission (legacy system, also the
  source of identity and demographic metadata)

The merge is a fold in a fixed order. Normalized answers are folded first, so
their values win over anything seeded later; legacy submissions without any
normalized answer are absorbed second with empty answer maps.
"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.models.records import AggregatedResponse, QuestionAnswer, SubmissionMetadata
from app.services.lightweight_db_service import LightweightDBService, lightweight_db
from app.utils.logging import get_logger

logger = get_logger(__name__)

RATING_TYPES = {"rating"}
MULTISELECT_TYPES = {"multiselect"}
TEXT_TYPES = {"text", "demographic"}


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return int(number) if number.is_integer() else number
    return None


def _as_string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return [str(value)]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def response_from_metadata(meta: SubmissionMetadata) -> AggregatedResponse:
    """Legacy -> canonical: identity and demographics only, empty answer maps"""
    return AggregatedResponse(
        response_id=meta.id,
        session_id=meta.session_id or meta.id,
        continent=meta.continent or "",
        division=meta.division or "",
        role=meta.role or "",
        submitted_at=meta.submitted_at,
        completion_time_seconds=meta.completion_time_seconds or 0,
        is_draft=meta.is_draft,
        configuration_id=meta.configuration_id,
        na_responses=meta.na_responses,
    )


def response_from_answer(answer: QuestionAnswer, meta: Optional[SubmissionMetadata]) -> AggregatedResponse:
    """Normalized -> canonical: seed a projection from the first answer of a submission"""
    if meta is not None:
        response = response_from_metadata(meta)
        if not response.configuration_id:
            response.configuration_id = answer.configuration_id
        return response

    # No finalized legacy row, fall back to what the answer itself knows
    return AggregatedResponse(
        response_id=answer.response_id,
        session_id=answer.response_id,
        submitted_at=answer.created_at,
        configuration_id=answer.configuration_id,
    )


def classify_answer(answer: QuestionAnswer) -> Optional[Tuple[str, str, Any]]:
    """
    Route an answer to exactly one typed map.

    Returns (map_name, key, value), or None when the answer cannot be placed.
    """
    key = answer.key
    if not key:
        return None

    question_type = answer.question_type
    if question_type in RATING_TYPES:
        number = _as_number(answer.answer_value)
        if number is None:
            logger.warning(
                f"Skipping non-numeric rating answer for {key} in response {answer.response_id}"
            )
            return None
        return "ratings", key, number
    if question_type in MULTISELECT_TYPES:
        return "multiselect", key, _as_string_list(answer.answer_value)
    if question_type in TEXT_TYPES:
        return "text_responses", key, _as_text(answer.answer_value)

    # TODO: confirm with product whether unknown question types should be rejected instead
    logger.warning(
        f"Skipping answer with unsupported question type {question_type!r} for {key} in response {answer.response_id}"
    )
    return None


def aggregate_from_answers(
    answers: Iterable[QuestionAnswer],
    metadata_by_id: Dict[str, SubmissionMetadata],
    aggregated: Optional[Dict[str, AggregatedResponse]] = None,
) -> Dict[str, AggregatedResponse]:
    """Step 1 of the fold: build projections from normalized answers"""
    aggregated = {} if aggregated is None else aggregated

    for answer in answers:
        response = aggregated.get(answer.response_id)
        if response is None:
            response = response_from_answer(answer, metadata_by_id.get(answer.response_id))
            aggregated[answer.response_id] = response

        routed = classify_answer(answer)
        if routed is None:
            continue
        map_name, key, value = routed
        # Answers arrive newest first, a later (older) answer for the same key overwrites
        getattr(response, map_name)[key] = value

    return aggregated


def absorb_legacy_submissions(
    metadata: Iterable[SubmissionMetadata],
    aggregated: Dict[str, AggregatedResponse],
) -> Dict[str, AggregatedResponse]:
    """Step 2 of the fold: add submissions that have no normalized answers"""
    for meta in metadata:
        if meta.id not in aggregated:
            aggregated[meta.id] = response_from_metadata(meta)
    return aggregated


def reconcile(
    answer_rows: Iterable[Dict[str, Any]],
    metadata_rows: Iterable[Dict[str, Any]],
) -> List[AggregatedResponse]:
    """Merge raw rows from both tables into one projection per finalized submission"""
    metadata = [SubmissionMetadata.from_row(row) for row in metadata_rows]
    answers = [QuestionAnswer.from_row(row) for row in answer_rows]

    metadata_by_id: Dict[str, SubmissionMetadata] = {}
    for meta in metadata:
        metadata_by_id.setdefault(meta.id, meta)

    aggregated = aggregate_from_answers(answers, metadata_by_id)
    aggregated = absorb_legacy_submissions(metadata, aggregated)

    return [response for response in aggregated.values() if not response.is_draft]


class ResponseReconciler:
    """
    Reads both response tables and serves the merged projection.

    Every call reads the store again and builds new records; nothing is
    kept between calls.
    """

    def __init__(self, store: LightweightDBService):
        self.store = store

    async def aggregate(self, configuration_id: str = None) -> List[AggregatedResponse]:
        """Aggregated responses for all finalized submissions in the given scope"""
        # Independent reads, both must succeed before merging
        answer_rows, metadata_rows = await asyncio.gather(
            self.store.list_question_answers(configuration_id),
            self.store.list_submission_metadata(configuration_id),
        )

        responses = reconcile(answer_rows, metadata_rows)
        logger.info(
            f"Aggregated {len(responses)} responses from {len(answer_rows)} answers "
            f"and {len(metadata_rows)} submissions (configuration={configuration_id or 'all'})"
        )
        return responses


# Global instance
response_reconciler = ResponseReconciler(lightweight_db)


async def get_response_reconciler() -> ResponseReconciler:
    """Dependency injection for FastAPI"""
    return response_reconciler
