"""Issue a bearer token for a user, registering the user if needed.

Usage:
    python create_token.py organizer@example.com ["Full Name"]
"""
import asyncio
import sys

from event_voting_api.app.core.db import init_db
from event_voting_api.app.core.security import create_access_token
from event_voting_api.app.services.user_service import UserService


async def issue(email: str, full_name: str | None = None) -> str:
    init_db()
    user = await UserService.get_or_create(email, full_name)
    # 365 days, in seconds
    return create_access_token({"sub": user.email, "user_id": user.id}, expires_delta=365 * 24 * 60 * 60)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        sys.exit(__doc__)
    print(asyncio.run(issue(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None)))
