import asyncio
from datetime import datetime, timezone

import pytest

from event_voting_api.app.core.config import settings
from event_voting_api.app.core.db import init_db
from event_voting_api.app.core.security import create_access_token
from event_voting_api.app.schemas.event import EventCreate, EventRead
from event_voting_api.app.schemas.user import UserCreate
from event_voting_api.app.services.event_service import initial_categories
from event_voting_api.app.services.user_service import UserService


@pytest.fixture
def make_event():
    """Build an in-memory ``EventRead`` from camelCase config, as created."""

    def _make(event_dates=None, event_places=None, custom_fields=None, created_by=1):
        data = EventCreate.model_validate(
            {
                "name": "Team dinner",
                "description": "Pick a date",
                "eventDates": event_dates or {},
                "eventPlaces": event_places or {},
                "customFields": custom_fields or {},
            }
        )
        now = datetime.now(timezone.utc)
        return EventRead(
            id=1,
            event_code="TESTCODE",
            name=data.name,
            description=data.description,
            created_by=created_by,
            event_dates=data.event_dates,
            event_places=data.event_places,
            custom_fields=data.custom_fields,
            voting_categories=initial_categories(data),
            created_at=now,
            updated_at=now,
        )

    return _make


@pytest.fixture
def db(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "database_url", str(tmp_path / "test.db"))
    init_db()
    return tmp_path / "test.db"


@pytest.fixture
def make_user(db):
    """Register a user and return the dict ``get_current_user`` would produce."""

    def _make(email, full_name=None):
        user = asyncio.run(UserService.create_user(UserCreate(email=email, full_name=full_name)))
        return {"sub": user.email, "email": user.email, "user_id": user.id}

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token({"sub": user["sub"], "user_id": user["user_id"]})
        return {"Authorization": f"Bearer {token}"}

    return _headers
