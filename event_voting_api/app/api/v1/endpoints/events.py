"""
Event endpoints for API v1.

Creating and reading events is open to any authenticated user; the
aggregate view, closing, option removal and the audit trail are
restricted to the event owner by the service layer.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from event_voting_api.app.core.errors import AppError
from event_voting_api.app.core.security import get_current_user
from event_voting_api.app.schemas.aggregate import EventAggregates
from event_voting_api.app.schemas.audit import AuditEntry
from event_voting_api.app.schemas.event import EventCreate, EventRead, OptionRemoval
from event_voting_api.app.services.audit_service import AuditService
from event_voting_api.app.services.event_service import EventService, ensure_owner


router = APIRouter()


@router.post("/", response_model=EventRead, status_code=status.HTTP_201_CREATED)
async def create_event(
    event: EventCreate,
    current_user: dict = Depends(get_current_user),
) -> EventRead:
    """Create a new event owned by the caller.

    Custom field definitions are validated per field type; invalid
    definitions are rejected with 422.
    """
    try:
        return await EventService.create_event(event, current_user)
    except AppError as e:
        raise e.to_http() from e


@router.get("/code/{event_code}", response_model=EventRead)
async def get_event_by_code(
    event_code: str = Path(..., description="Share code of the event"),
    current_user: dict = Depends(get_current_user),
) -> EventRead:
    try:
        return await EventService.get_event_by_code(event_code)
    except AppError as e:
        raise e.to_http() from e


@router.get("/{event_id}", response_model=EventRead)
async def get_event(
    event_id: int,
    current_user: dict = Depends(get_current_user),
) -> EventRead:
    """Retrieve a single event by its ID.  Raises 404 if it does not exist."""
    try:
        return await EventService.get_event(event_id)
    except AppError as e:
        raise e.to_http() from e


@router.get("/{event_id}/aggregates", response_model=EventAggregates)
async def get_event_aggregates(
    event_id: int,
    current_user: dict = Depends(get_current_user),
) -> EventAggregates:
    """Vote counts, voters and free-text answers.  Owner only."""
    try:
        return await EventService.get_event_with_aggregates(event_id, current_user)
    except AppError as e:
        raise e.to_http() from e


@router.post("/{event_id}/close", response_model=EventRead)
async def close_event(
    event_id: int,
    current_user: dict = Depends(get_current_user),
) -> EventRead:
    try:
        return await EventService.close_event(event_id, current_user)
    except AppError as e:
        raise e.to_http() from e


@router.delete("/{event_id}/options", response_model=EventRead)
async def remove_event_option(
    removal: OptionRemoval,
    event_id: int,
    current_user: dict = Depends(get_current_user),
) -> EventRead:
    """Remove an option participants added, together with its votes."""
    try:
        return await EventService.remove_option(event_id, current_user, removal)
    except AppError as e:
        raise e.to_http() from e


@router.get("/{event_id}/audit", response_model=List[AuditEntry])
async def list_event_audit(
    event_id: int,
    action: Optional[str] = Query(None, description="Filter by action (submit_response, finalize, close...)"),
    limit: int = Query(100, ge=1, le=500, description="Maximum number of entries to return"),
    offset: int = Query(0, ge=0, description="Number of entries to skip"),
    current_user: dict = Depends(get_current_user),
) -> List[AuditEntry]:
    """Audit entries for the event, newest first.  Owner only."""
    try:
        event = await EventService.get_event(event_id)
        ensure_owner(event, current_user)
    except AppError as e:
        raise e.to_http() from e
    return await AuditService.list_logs(
        object_type="event",
        object_id=event_id,
        action=action,
        limit=limit,
        offset=offset,
    )
