"""
Audit trail for event activity.

Event creation, response submissions, option removal, closing and
finalization each append one row to ``audit_logs``.  Rows about an
event use ``object_type="event"`` and the event id, so an owner's view
of the trail is a single filtered query.  Timestamps are UTC ISO
strings, which sort chronologically as text.
"""

import json
import logging
from typing import List, Optional

from event_voting_api.app.core.db import get_cursor
from event_voting_api.app.schemas.audit import AuditEntry
from event_voting_api.app.schemas.base import utc_now

logger = logging.getLogger(__name__)


def _decode_details(raw: Optional[str]):
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Audit details are not valid JSON: %r", raw)
        return raw


class AuditService:
    """Service class for writing and reading audit entries."""

    @classmethod
    async def log(
        cls,
        user_id: Optional[int],
        action: str,
        object_type: str,
        object_id: Optional[int] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Append an audit entry.

        Parameters
        ----------
        user_id : Optional[int]
            Acting user, or ``None`` for system actions such as closing
            expired events at startup.
        action : str
            What happened, e.g. ``"submit_response"`` or ``"finalize"``.
        object_type : str
            Kind of object acted on, normally ``"event"``.
        object_id : Optional[int]
            Primary key of that object.
        details : Optional[dict]
            Extra data, stored as JSON.
        """
        with get_cursor() as cursor:
            cursor.execute(
                "INSERT INTO audit_logs (user_id, action, object_type, object_id, timestamp, details) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (user_id, action, object_type, object_id, utc_now(), json.dumps(details) if details else None),
            )

    @classmethod
    async def list_logs(
        cls,
        object_type: Optional[str] = None,
        object_id: Optional[int] = None,
        action: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[AuditEntry]:
        """Entries matching the given filters, newest first."""
        filters = {"object_type": object_type, "object_id": object_id, "action": action}
        where = [f"{column} = ?" for column, value in filters.items() if value is not None]
        params = [value for value in filters.values() if value is not None]
        query = "SELECT id, user_id, action, object_type, object_id, timestamp, details FROM audit_logs"
        if where:
            query += " WHERE " + " AND ".join(where)
        query += " ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?"
        with get_cursor() as cursor:
            rows = cursor.execute(query, (*params, limit, offset)).fetchall()
        return [
            AuditEntry(
                id=row["id"],
                user_id=row["user_id"],
                action=row["action"],
                object_type=row["object_type"],
                object_id=row["object_id"],
                timestamp=row["timestamp"],
                details=_decode_details(row["details"]),
            )
            for row in rows
        ]
