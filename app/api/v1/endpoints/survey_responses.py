from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from app.models.schemas import AggregatedResponseSchema, LegacyResponseSchema, ErrorResponse
from app.services.legacy_columns import legacy_answers
from app.services.lightweight_db_service import LightweightDBService, get_lightweight_db
from app.services.response_reconciler import ResponseReconciler, get_response_reconciler
from app.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

# StoreQueryError propagates to the app-level survey error handler (500 envelope)


@router.get(
    "",
    response_model=List[AggregatedResponseSchema],
    responses={500: {"model": ErrorResponse, "description": "Response store query failed"}}
)
async def list_aggregated_responses(
    configuration_id: Optional[str] = Query(default=None),
    reconciler: ResponseReconciler = Depends(get_response_reconciler)
):
    """
    One aggregated record per finalized submission, merged from the
    question/answer table and the legacy response table
    """
    responses = await reconciler.aggregate(configuration_id)
    return [response.to_dict() for response in responses]


@router.get(
    "/legacy",
    response_model=List[LegacyResponseSchema],
    responses={500: {"model": ErrorResponse, "description": "Response store query failed"}}
)
async def list_legacy_responses(
    configuration_id: Optional[str] = Query(default=None),
    db: LightweightDBService = Depends(get_lightweight_db)
):
    """Raw legacy submissions with their answers keyed by question id"""
    rows = await db.list_legacy_responses(configuration_id)
    logger.debug(f"Listing {len(rows)} legacy responses (configuration={configuration_id or 'all'})")

    return [
        {
            "id": str(row["id"]),
            "session_id": str(row["session_id"]) if row.get("session_id") else None,
            "continent": row.get("continent"),
            "division": row.get("division"),
            "role": row.get("role"),
            "submitted_at": row.get("submitted_at"),
            "configuration_id": str(row["configuration_id"]) if row.get("configuration_id") else None,
            "answers": legacy_answers(row),
            "raw": row,
        }
        for row in rows
    ]
