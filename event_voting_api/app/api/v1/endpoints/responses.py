"""
Participant endpoints for API v1: submitting a response, reading one's
own response and browsing what other participants suggested.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from event_voting_api.app.core.errors import AppError
from event_voting_api.app.core.security import get_current_user
from event_voting_api.app.schemas.aggregate import SuggestionsPage
from event_voting_api.app.schemas.response import ResponseSubmission, SubmitResult, UserEventResponse
from event_voting_api.app.services.response_service import ResponseService


router = APIRouter()


@router.post(
    "/{event_id}/responses",
    response_model=SubmitResult,
    status_code=status.HTTP_201_CREATED,
)
async def submit_response(
    event_id: int,
    submission: ResponseSubmission,
    current_user: dict = Depends(get_current_user),
) -> SubmitResult:
    """Submit or replace the caller's response to an event.

    Returns the stored response and the event's updated voting
    categories.  Rule violations are reported with 422, a closed or
    finalized event with 409.
    """
    try:
        return await ResponseService.submit_response(event_id, current_user, submission)
    except AppError as e:
        raise e.to_http() from e


@router.get("/{event_id}/responses/me", response_model=UserEventResponse)
async def get_my_response(
    event_id: int,
    current_user: dict = Depends(get_current_user),
) -> UserEventResponse:
    try:
        return await ResponseService.get_user_response(event_id, current_user["user_id"])
    except AppError as e:
        raise e.to_http() from e


@router.get("/{event_id}/suggestions", response_model=SuggestionsPage)
async def get_other_user_suggestions(
    event_id: int,
    page: int = Query(0, ge=0, description="0-based page number"),
    limit: Optional[int] = Query(None, ge=1, description="Items per field per page"),
    max_suggestions: Optional[int] = Query(
        None, ge=1, alias="maxSuggestions", description="Cap on items per field across all pages"
    ),
    current_user: dict = Depends(get_current_user),
) -> SuggestionsPage:
    """Values other participants suggested, without voter identities."""
    try:
        return await ResponseService.get_other_user_suggestions(
            event_id,
            current_user["user_id"],
            page=page,
            limit=limit,
            max_suggestions=max_suggestions,
        )
    except AppError as e:
        raise e.to_http() from e
