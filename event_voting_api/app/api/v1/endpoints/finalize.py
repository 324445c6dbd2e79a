"""
Finalization endpoints for API v1.

Only the event owner may finalize or preview; anyone authenticated may
read the outcome once it exists.
"""

from fastapi import APIRouter, Depends, status

from event_voting_api.app.core.errors import AppError
from event_voting_api.app.core.security import get_current_user
from event_voting_api.app.schemas.finalize import FinalizedEvent, FinalizePreview, FinalizeSelections
from event_voting_api.app.services.finalize_service import FinalizeService


router = APIRouter()


@router.post(
    "/{event_id}/finalize",
    response_model=FinalizedEvent,
    status_code=status.HTTP_201_CREATED,
)
async def finalize_event(
    event_id: int,
    selections: FinalizeSelections,
    current_user: dict = Depends(get_current_user),
) -> FinalizedEvent:
    """Record the final date, place and custom field values.

    A second call for the same event fails with 409 and leaves the
    first outcome untouched.
    """
    try:
        return await FinalizeService.finalize_event(event_id, current_user, selections)
    except AppError as e:
        raise e.to_http() from e


@router.post("/{event_id}/finalize/preview", response_model=FinalizePreview)
async def preview_finalization(
    event_id: int,
    selections: FinalizeSelections,
    current_user: dict = Depends(get_current_user),
) -> FinalizePreview:
    """Validate selections without saving; lists optional fields left empty."""
    try:
        return await FinalizeService.preview_finalization(event_id, current_user, selections)
    except AppError as e:
        raise e.to_http() from e


@router.get("/{event_id}/finalized", response_model=FinalizedEvent)
async def get_finalized_event(
    event_id: int,
    current_user: dict = Depends(get_current_user),
) -> FinalizedEvent:
    try:
        return await FinalizeService.get_finalized_event(event_id)
    except AppError as e:
        raise e.to_http() from e
