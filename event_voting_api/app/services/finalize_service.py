"""
Business logic for finalizing events.

Finalization happens once per event.  The ``finalized_events`` table
is keyed by event id, so the insert itself rejects a second attempt
even when two organizer requests race.
"""

import json
import logging
import sqlite3

from ..core.errors import ConflictError, NotFoundError, ValidationError
from ..schemas.base import utc_now
from ..schemas.event import EventRead
from ..schemas.finalize import FinalizedEvent, FinalizePreview, FinalizeSelections
from .consolidation import Consolidated, consolidate, empty_optional_fields
from .event_service import ensure_owner, load_event
from .response_service import load_responses

logger = logging.getLogger(__name__)


def row_to_finalized(row: sqlite3.Row) -> FinalizedEvent:
    return FinalizedEvent.model_validate(
        {
            "event_id": row["event_id"],
            "finalized_date": row["finalized_date"],
            "finalized_place": row["finalized_place"],
            "custom_field_selections": json.loads(row["custom_field_selections"]),
            "finalized_by": row["finalized_by"],
            "finalized_at": row["finalized_at"],
        }
    )


class FinalizeService:
    """Service for the organizer's one-time finalize action."""

    @classmethod
    async def _consolidate(
        cls, conn: sqlite3.Connection, event: EventRead, selections: FinalizeSelections
    ) -> Consolidated:
        from event_voting_api.app.services.user_service import UserService
        responses = load_responses(conn, event.id)
        user_ids = [r.user_id for r in responses]
        for category in event.voting_categories:
            for option in category.options:
                user_ids.extend(option.votes)
        users = await UserService.get_voter_details(user_ids)
        return consolidate(event, selections, responses, users)

    @classmethod
    async def finalize_event(
        cls, event_id: int, current_user: dict, selections: FinalizeSelections
    ) -> FinalizedEvent:
        """Validate the selections and write the event's final outcome.

        Raises ``ForbiddenError`` for anyone but the owner,
        ``ConflictError`` if the event was already finalized and a
        ``ValidationError`` subclass carrying the first failing rule.
        """
        from event_voting_api.app.core.db import get_connection
        conn = get_connection()
        try:
            event = load_event(conn, event_id)
            ensure_owner(event, current_user)
            if event.status == "finalized":
                raise ConflictError("Event has already been finalized")
            result = await cls._consolidate(conn, event, selections)
            finalized_at = utc_now()
            cursor = conn.cursor()
            try:
                cursor.execute(
                    """
                    INSERT INTO finalized_events (event_id, finalized_date, finalized_place,
                                                  custom_field_selections, finalized_by, finalized_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        event_id,
                        result.finalized_date,
                        result.finalized_place,
                        json.dumps(
                            {k: s.model_dump(by_alias=True) for k, s in result.custom_field_selections.items()}
                        ),
                        current_user["user_id"],
                        finalized_at,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                raise ConflictError("Event has already been finalized") from exc
            cursor.execute(
                "UPDATE events SET status = 'finalized', event_date = ?, place = ?, version = version + 1, "
                "updated_at = ? WHERE id = ?",
                (result.finalized_date, result.finalized_place, finalized_at, event_id),
            )
            conn.commit()
            row = cursor.execute(
                "SELECT * FROM finalized_events WHERE event_id = ?", (event_id,)
            ).fetchone()
            finalized = row_to_finalized(row)
        finally:
            conn.close()
        logger.info(
            "Event %s finalized by user %s (date=%s, place=%s)",
            event_id, current_user.get("user_id"), finalized.finalized_date, finalized.finalized_place,
        )
        from event_voting_api.app.services.audit_service import AuditService
        await AuditService.log(
            user_id=current_user.get("user_id"),
            action="finalize",
            object_type="event",
            object_id=event_id,
            details={"finalizedDate": finalized.finalized_date, "finalizedPlace": finalized.finalized_place},
        )
        return finalized

    @classmethod
    async def preview_finalization(
        cls, event_id: int, current_user: dict, selections: FinalizeSelections
    ) -> FinalizePreview:
        """Run the finalize validation without writing anything."""
        from event_voting_api.app.core.db import get_connection
        conn = get_connection()
        try:
            event = load_event(conn, event_id)
            ensure_owner(event, current_user)
            try:
                result = await cls._consolidate(conn, event, selections)
            except ValidationError as exc:
                return FinalizePreview(valid=False, message=exc.message)
        finally:
            conn.close()
        return FinalizePreview(valid=True, empty_optional_fields=empty_optional_fields(event, result))

    @classmethod
    async def get_finalized_event(cls, event_id: int) -> FinalizedEvent:
        from event_voting_api.app.core.db import get_connection
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM finalized_events WHERE event_id = ?", (event_id,)
            ).fetchone()
            if not row:
                raise NotFoundError(f"Event {event_id} has not been finalized")
            return row_to_finalized(row)
        finally:
            conn.close()
