"""
Business logic for events.

Events are stored as one row each.  Scalar columns hold what is looked
up or filtered on; the nested structures (date and place configuration,
custom fields, voting categories) are JSON documents using the same
camelCase shapes as the API.  Every write to ``voting_categories``
bumps ``version`` and is conditional on the version that was read.
"""

import json
import logging
import secrets
import sqlite3
import string
from datetime import datetime, timezone
from typing import List, Optional

from ..core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..schemas.aggregate import EventAggregates
from ..schemas.event import EventCreate, EventRead, OptionRemoval, VotingCategory, VotingOption
from ..schemas.base import utc_now
from ..schemas.fields import CheckboxField, RadioField
from .aggregates import build_aggregates
from .merge import DATE_CATEGORY, PLACE_CATEGORY
from .voting_store import VotingCategoryStore

logger = logging.getLogger(__name__)

EVENT_COLUMNS = (
    "id, event_code, name, description, created_by, status, closes_by, event_date, place, "
    "event_dates, event_places, custom_fields, voting_categories, version, created_at, updated_at"
)
CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8


def dump_categories(categories: List[VotingCategory]) -> str:
    return json.dumps([c.model_dump(by_alias=True) for c in categories])


def row_to_event(row: sqlite3.Row) -> EventRead:
    """Build an ``EventRead`` from an ``events`` row."""
    return EventRead.model_validate(
        {
            "id": row["id"],
            "event_code": row["event_code"],
            "name": row["name"],
            "description": row["description"],
            "created_by": row["created_by"],
            "status": row["status"],
            "closes_by": row["closes_by"],
            "event_date": row["event_date"],
            "place": row["place"],
            "event_dates": json.loads(row["event_dates"]),
            "event_places": json.loads(row["event_places"]),
            "custom_fields": json.loads(row["custom_fields"]),
            "voting_categories": json.loads(row["voting_categories"]),
            "version": row["version"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }
    )


def is_expired(event: EventRead, now: Optional[datetime] = None) -> bool:
    if event.status != "open" or event.closes_by is None:
        return False
    closes_by = event.closes_by
    if closes_by.tzinfo is None:
        closes_by = closes_by.replace(tzinfo=timezone.utc)
    return closes_by <= (now or datetime.now(timezone.utc))


def effective_status(event: EventRead) -> str:
    """Stored status, with an open event past ``closesBy`` reported as closed."""
    return "closed" if is_expired(event) else event.status


def load_event(conn: sqlite3.Connection, event_id: int) -> EventRead:
    row = conn.execute(f"SELECT {EVENT_COLUMNS} FROM events WHERE id = ?", (event_id,)).fetchone()
    if not row:
        raise NotFoundError(f"Event {event_id} not found")
    event = row_to_event(row)
    event.status = effective_status(event)
    return event


def ensure_owner(event: EventRead, current_user: dict) -> None:
    if event.created_by != current_user.get("user_id"):
        raise ForbiddenError("Only the event owner can perform this action")


def initial_categories(data: EventCreate) -> List[VotingCategory]:
    """The "date" and "place" categories plus one per radio/checkbox field."""
    categories = [
        VotingCategory(
            category_name=DATE_CATEGORY,
            options=[VotingOption(option_name=d) for d in data.event_dates.dates],
        ),
        VotingCategory(
            category_name=PLACE_CATEGORY,
            options=[VotingOption(option_name=p) for p in data.event_places.places],
        ),
    ]
    for field_id, f in data.custom_fields.items():
        if isinstance(f, (RadioField, CheckboxField)):
            categories.append(
                VotingCategory(
                    category_name=f.title,
                    field_id=field_id,
                    options=[VotingOption(option_name=label) for label in f.option_labels()],
                )
            )
    return categories


def _new_event_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


class EventService:
    """Service for creating, reading and administering events."""

    @classmethod
    async def create_event(cls, data: EventCreate, current_user: dict) -> EventRead:
        """Create a new event owned by ``current_user`` and return it.

        Custom field definitions have already been validated by the
        schema.  The voting categories are seeded from the configured
        candidates and a unique share code is generated.
        """
        logger.info("User %s is creating event '%s'", current_user.get("sub"), data.name)
        from event_voting_api.app.core.db import get_connection
        now = utc_now()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            for _ in range(5):
                code = _new_event_code()
                try:
                    cursor.execute(
                        """
                        INSERT INTO events (event_code, name, description, created_by, status, closes_by,
                                            event_dates, event_places, custom_fields, voting_categories,
                                            version, created_at, updated_at)
                        VALUES (?, ?, ?, ?, 'open', ?, ?, ?, ?, ?, 0, ?, ?)
                        """,
                        (
                            code,
                            data.name,
                            data.description,
                            current_user["user_id"],
                            data.closes_by.isoformat() if data.closes_by else None,
                            json.dumps(data.event_dates.model_dump(by_alias=True)),
                            json.dumps(data.event_places.model_dump(by_alias=True)),
                            json.dumps({k: f.model_dump(by_alias=True) for k, f in data.custom_fields.items()}),
                            dump_categories(initial_categories(data)),
                            now,
                            now,
                        ),
                    )
                    break
                except sqlite3.IntegrityError:
                    # Share code collision; try another one.
                    continue
            else:
                raise ConflictError("Could not allocate a unique event code")
            event_id = cursor.lastrowid
            conn.commit()
            event = load_event(conn, event_id)
        finally:
            conn.close()
        from event_voting_api.app.services.audit_service import AuditService
        await AuditService.log(
            user_id=current_user.get("user_id"),
            action="create",
            object_type="event",
            object_id=event.id,
            details={"name": event.name, "eventCode": event.event_code},
        )
        return event

    @classmethod
    async def get_event(cls, event_id: int) -> EventRead:
        """Retrieve a single event by ID.  Raises ``NotFoundError``."""
        from event_voting_api.app.core.db import get_connection
        conn = get_connection()
        try:
            return load_event(conn, event_id)
        finally:
            conn.close()

    @classmethod
    async def get_event_by_code(cls, event_code: str) -> EventRead:
        from event_voting_api.app.core.db import get_connection
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT id FROM events WHERE event_code = ?", (event_code.strip().upper(),)
            ).fetchone()
            if not row:
                raise NotFoundError(f"Event with code {event_code} not found")
            return load_event(conn, row["id"])
        finally:
            conn.close()

    @classmethod
    async def get_event_with_aggregates(cls, event_id: int, current_user: dict) -> EventAggregates:
        """Owner view: the event, its raw responses and per-option vote data."""
        from event_voting_api.app.services.response_service import ResponseService
        from event_voting_api.app.services.user_service import UserService
        event = await cls.get_event(event_id)
        ensure_owner(event, current_user)
        responses = await ResponseService.list_responses(event_id)
        user_ids = [r.user_id for r in responses]
        for category in event.voting_categories:
            for option in category.options:
                user_ids.extend(option.votes)
        users = await UserService.get_voter_details(user_ids)
        return build_aggregates(event, responses, users)

    @classmethod
    async def close_event(cls, event_id: int, current_user: dict) -> EventRead:
        """Stop accepting responses.  Closing a closed event is a no-op."""
        from event_voting_api.app.core.db import get_connection
        conn = get_connection()
        try:
            event = load_event(conn, event_id)
            ensure_owner(event, current_user)
            if event.status == "finalized":
                raise ConflictError("Event has already been finalized")
            conn.execute(
                "UPDATE events SET status = 'closed', version = version + 1, updated_at = ? "
                "WHERE id = ? AND status != 'finalized'",
                (utc_now(), event_id),
            )
            conn.commit()
            event = load_event(conn, event_id)
        finally:
            conn.close()
        logger.info("Event %s closed by user %s", event_id, current_user.get("user_id"))
        from event_voting_api.app.services.audit_service import AuditService
        await AuditService.log(
            user_id=current_user.get("user_id"), action="close", object_type="event", object_id=event_id
        )
        return event

    @classmethod
    async def close_expired_events(cls) -> int:
        """Close every open event whose ``closesBy`` has passed.  Returns the count."""
        from event_voting_api.app.core.db import get_connection
        conn = get_connection()
        try:
            rows = conn.execute(
                f"SELECT {EVENT_COLUMNS} FROM events WHERE status = 'open' AND closes_by IS NOT NULL"
            ).fetchall()
            expired = [row["id"] for row in rows if is_expired(row_to_event(row))]
            now = utc_now()
            for event_id in expired:
                conn.execute(
                    "UPDATE events SET status = 'closed', version = version + 1, updated_at = ? "
                    "WHERE id = ? AND status = 'open'",
                    (now, event_id),
                )
            conn.commit()
        finally:
            conn.close()
        if expired:
            logger.info("Closed %d expired event(s): %s", len(expired), expired)
            from event_voting_api.app.services.audit_service import AuditService
            for event_id in expired:
                await AuditService.log(
                    user_id=None, action="close", object_type="event", object_id=event_id,
                    details={"reason": "expired"},
                )
        return len(expired)

    @classmethod
    async def remove_option(cls, event_id: int, current_user: dict, data: OptionRemoval) -> EventRead:
        """Remove a participant-added option together with its votes.

        The option name is also dropped from every response's
        suggestions for that category.  Options that are part of the
        event configuration cannot be removed, because every submission
        re-seeds them.
        """
        from event_voting_api.app.core.db import get_connection
        conn = get_connection()
        try:
            event = load_event(conn, event_id)
            ensure_owner(event, current_user)
            if event.status == "finalized":
                raise ConflictError("Options cannot be removed from a finalized event")

            store = VotingCategoryStore.from_categories(event.voting_categories)
            category = next(
                (c for c in store.categories if c.field_id == data.category_name), None
            ) or store.find_category(data.category_name)
            if category is None:
                category = next(
                    (c for c in store.categories if c.category_name == data.category_name), None
                )
            if category is None or store.find_option(category, data.option_name) is None:
                raise NotFoundError(f'Option "{data.option_name}" not found in "{data.category_name}"')

            key = category.field_id or category.category_name
            if key == DATE_CATEGORY:
                originals = event.event_dates.dates
            elif key == PLACE_CATEGORY:
                originals = event.event_places.places
            else:
                f = event.custom_fields.get(key)
                originals = f.option_labels() if isinstance(f, (RadioField, CheckboxField)) else []
            if data.option_name in originals:
                raise ValidationError("Options from the event configuration cannot be removed")

            store.remove_option(category, data.option_name)
            now = utc_now()
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE events SET voting_categories = ?, version = version + 1, updated_at = ? "
                "WHERE id = ? AND version = ?",
                (dump_categories(store.categories), now, event_id, event.version),
            )
            if cursor.rowcount == 0:
                conn.rollback()
                raise ConflictError("Event was modified concurrently, please retry")

            rows = cursor.execute(
                "SELECT id, suggested_dates, suggested_places, suggested_options FROM event_responses "
                "WHERE event_id = ?",
                (event_id,),
            ).fetchall()
            for row in rows:
                dates = [d for d in json.loads(row["suggested_dates"]) if not (key == DATE_CATEGORY and d == data.option_name)]
                places = [p for p in json.loads(row["suggested_places"]) if not (key == PLACE_CATEGORY and p == data.option_name)]
                options = json.loads(row["suggested_options"])
                if key in options:
                    options[key] = [o for o in options[key] if o != data.option_name]
                    if not options[key]:
                        del options[key]
                cursor.execute(
                    "UPDATE event_responses SET suggested_dates = ?, suggested_places = ?, suggested_options = ? "
                    "WHERE id = ?",
                    (json.dumps(dates), json.dumps(places), json.dumps(options), row["id"]),
                )
            conn.commit()
            event = load_event(conn, event_id)
        finally:
            conn.close()
        logger.info(
            "Option '%s' removed from '%s' of event %s", data.option_name, data.category_name, event_id
        )
        from event_voting_api.app.services.audit_service import AuditService
        await AuditService.log(
            user_id=current_user.get("user_id"),
            action="remove_option",
            object_type="event",
            object_id=event_id,
            details={"categoryName": data.category_name, "optionName": data.option_name},
        )
        return event
