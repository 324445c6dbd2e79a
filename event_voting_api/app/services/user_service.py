"""
Business logic for users.

Users exist here only as voters and organizers: an id, an email and a
display name.  Registration flows, passwords and sessions belong to
the authentication collaborator.
"""

import logging
import sqlite3
from typing import Iterable, List, Optional

from ..core.errors import ConflictError
from ..schemas.aggregate import VoterDetail
from ..schemas.user import UserCreate, UserRead


class UserService:
    """Service for looking up and registering users."""

    @classmethod
    async def create_user(cls, data: UserCreate) -> UserRead:
        """Create a new user and return it.

        Raises ``ConflictError`` if the email is already registered.
        """
        logger = logging.getLogger(__name__)
        logger.info("Registering user %s", data.email)
        from event_voting_api.app.core.db import get_connection
        conn = get_connection()
        try:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    "INSERT INTO users (email, full_name) VALUES (?, ?)",
                    (data.email, data.full_name),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError(f"User {data.email} already exists") from exc
            user_id = cursor.lastrowid
            conn.commit()
            return UserRead(id=user_id, email=data.email, full_name=data.full_name)
        finally:
            conn.close()

    @classmethod
    async def get_user_by_email(cls, email: str) -> Optional[UserRead]:
        from event_voting_api.app.core.db import get_connection
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT id, email, full_name FROM users WHERE email = ?", (email,)
            ).fetchone()
            if not row:
                return None
            return UserRead(id=row["id"], email=row["email"], full_name=row["full_name"])
        finally:
            conn.close()

    @classmethod
    async def get_or_create(cls, email: str, full_name: Optional[str] = None) -> UserRead:
        user = await cls.get_user_by_email(email)
        if user is None:
            user = await cls.create_user(UserCreate(email=email, full_name=full_name))
        return user

    @classmethod
    async def get_voter_details(cls, user_ids: Iterable[int]) -> dict[int, VoterDetail]:
        """Resolve user ids to ``VoterDetail`` records; unknown ids are skipped."""
        ids: List[int] = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        from event_voting_api.app.core.db import get_connection
        conn = get_connection()
        try:
            placeholders = ", ".join("?" for _ in ids)
            rows = conn.execute(
                f"SELECT id, email, full_name FROM users WHERE id IN ({placeholders})",
                tuple(ids),
            ).fetchall()
            return {
                row["id"]: VoterDetail(id=row["id"], email=row["email"], name=row["full_name"])
                for row in rows
            }
        finally:
            conn.close()
