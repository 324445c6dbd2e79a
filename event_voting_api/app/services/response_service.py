"""
Business logic for participant responses.

A submission merges the user's selections into the event's voting
categories and stores the user's response, in one transaction.  The
event write is conditional on the ``version`` that was read; when
another submission got there first, the event is re-read and the merge
redone, up to ``settings.vote_update_retries`` times.
"""

import json
import logging
import sqlite3
from typing import List, Optional

from ..core.config import settings
from ..core.errors import ConflictError
from ..schemas.aggregate import SuggestionsPage
from ..schemas.base import utc_now
from ..schemas.response import EventResponse, ResponseSubmission, SubmitResult, UserEventResponse
from .event_service import dump_categories, load_event
from .merge import merge_response
from .suggestions import paginate_suggestions
from .voting_store import VotingCategoryStore

logger = logging.getLogger(__name__)

RESPONSE_COLUMNS = (
    "id, event_id, user_id, user_email, field_responses, suggested_dates, suggested_places, "
    "suggested_options, created_at, updated_at"
)


def row_to_response(row: sqlite3.Row) -> EventResponse:
    return EventResponse.model_validate(
        {
            "id": row["id"],
            "event_id": row["event_id"],
            "user_id": row["user_id"],
            "user_email": row["user_email"],
            "field_responses": json.loads(row["field_responses"]),
            "suggested_dates": json.loads(row["suggested_dates"]),
            "suggested_places": json.loads(row["suggested_places"]),
            "suggested_options": json.loads(row["suggested_options"]),
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }
    )


def load_user_response(conn: sqlite3.Connection, event_id: int, user_id: int) -> Optional[EventResponse]:
    row = conn.execute(
        f"SELECT {RESPONSE_COLUMNS} FROM event_responses WHERE event_id = ? AND user_id = ?",
        (event_id, user_id),
    ).fetchone()
    return row_to_response(row) if row else None


def load_responses(conn: sqlite3.Connection, event_id: int) -> List[EventResponse]:
    rows = conn.execute(
        f"SELECT {RESPONSE_COLUMNS} FROM event_responses WHERE event_id = ? ORDER BY created_at, id",
        (event_id,),
    ).fetchall()
    return [row_to_response(row) for row in rows]


class ResponseService:
    """Service for submitting and reading responses."""

    @classmethod
    async def submit_response(
        cls, event_id: int, current_user: dict, submission: ResponseSubmission
    ) -> SubmitResult:
        """Merge ``submission`` into the event and upsert the user's response.

        Raises ``NotFoundError`` for a missing event, ``ConflictError``
        when the event no longer accepts responses or the optimistic
        update keeps losing, and a ``ValidationError`` subclass when the
        submission breaks a rule.  Nothing is written on error.
        """
        from event_voting_api.app.core.db import get_connection
        user_id = current_user["user_id"]
        user_email = current_user.get("email") or current_user.get("sub")
        attempts = max(1, settings.vote_update_retries)
        for attempt in range(1, attempts + 1):
            conn = get_connection()
            try:
                event = load_event(conn, event_id)
                if event.status != "open":
                    raise ConflictError("This event is no longer accepting responses")
                previous = load_user_response(conn, event_id, user_id)
                outcome = merge_response(event, user_id, submission, previous)

                now = utc_now()
                cursor = conn.cursor()
                cursor.execute(
                    "UPDATE events SET voting_categories = ?, version = version + 1, updated_at = ? "
                    "WHERE id = ? AND version = ? AND status = 'open'",
                    (dump_categories(outcome.categories), now, event_id, event.version),
                )
                if cursor.rowcount == 0:
                    conn.rollback()
                    logger.warning(
                        "Event %s changed while merging response of user %s (attempt %d/%d)",
                        event_id, user_id, attempt, attempts,
                    )
                    continue
                cursor.execute(
                    """
                    INSERT INTO event_responses (event_id, user_id, user_email, field_responses,
                                                 suggested_dates, suggested_places, suggested_options,
                                                 created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(event_id, user_id) DO UPDATE SET
                        user_email = excluded.user_email,
                        field_responses = excluded.field_responses,
                        suggested_dates = excluded.suggested_dates,
                        suggested_places = excluded.suggested_places,
                        suggested_options = excluded.suggested_options,
                        updated_at = excluded.updated_at
                    """,
                    (
                        event_id,
                        user_id,
                        user_email,
                        json.dumps([r.model_dump(by_alias=True) for r in outcome.field_responses]),
                        json.dumps(outcome.suggested_dates),
                        json.dumps(outcome.suggested_places),
                        json.dumps(outcome.suggested_options),
                        now,
                        now,
                    ),
                )
                conn.commit()
                response = load_user_response(conn, event_id, user_id)
            finally:
                conn.close()
            logger.info(
                "User %s submitted a response to event %s (%d categories)",
                user_id, event_id, len(outcome.categories),
            )
            from event_voting_api.app.services.audit_service import AuditService
            await AuditService.log(
                user_id=user_id,
                action="update_response" if previous else "submit_response",
                object_type="event",
                object_id=event_id,
                details={"responseId": response.id},
            )
            return SubmitResult(response=response, voting_categories=outcome.categories)
        raise ConflictError("The event is being updated by other participants, please retry")

    @classmethod
    async def list_responses(cls, event_id: int) -> List[EventResponse]:
        """All responses of an event in submission order."""
        from event_voting_api.app.core.db import get_connection
        conn = get_connection()
        try:
            return load_responses(conn, event_id)
        finally:
            conn.close()

    @classmethod
    async def get_user_response(cls, event_id: int, user_id: int) -> UserEventResponse:
        """The user's own response and current votes, empty if they have not responded."""
        from event_voting_api.app.core.db import get_connection
        conn = get_connection()
        try:
            event = load_event(conn, event_id)
            response = load_user_response(conn, event_id, user_id)
        finally:
            conn.close()
        votes = VotingCategoryStore(event.voting_categories).user_selections(user_id)
        if response is None:
            return UserEventResponse(user_votes=votes, has_response=False)
        return UserEventResponse(
            field_responses=response.field_responses,
            user_votes=votes,
            user_added_options=response.suggested_options,
            user_suggested_dates=response.suggested_dates,
            user_suggested_places=response.suggested_places,
            has_response=True,
        )

    @classmethod
    async def get_other_user_suggestions(
        cls,
        event_id: int,
        user_id: int,
        page: int = 0,
        limit: Optional[int] = None,
        max_suggestions: Optional[int] = None,
    ) -> SuggestionsPage:
        """Suggestions other participants made, ``page`` is 0-based.

        ``limit`` and ``max_suggestions`` fall back to the configured
        defaults and are never allowed above them.
        """
        page_limit = min(limit or settings.suggestions_page_limit, settings.suggestions_page_limit)
        cap = min(max_suggestions or settings.max_suggestions_per_field, settings.max_suggestions_per_field)
        from event_voting_api.app.core.db import get_connection
        conn = get_connection()
        try:
            event = load_event(conn, event_id)
            responses = load_responses(conn, event_id)
        finally:
            conn.close()
        return paginate_suggestions(event, responses, user_id, page, page_limit, cap)

