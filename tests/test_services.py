import asyncio
import threading
from datetime import datetime, timedelta, timezone

import pytest

from event_voting_api.app.core.config import settings
from event_voting_api.app.core.db import get_connection
from event_voting_api.app.core.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from event_voting_api.app.schemas.event import EventCreate, OptionRemoval
from event_voting_api.app.schemas.finalize import FinalizeSelections
from event_voting_api.app.schemas.response import ResponseSubmission
from event_voting_api.app.services import response_service
from event_voting_api.app.services.audit_service import AuditService
from event_voting_api.app.services.event_service import EventService
from event_voting_api.app.services.finalize_service import FinalizeService
from event_voting_api.app.services.response_service import ResponseService

D1 = "2024-01-01T10:00:00.000Z"
D2 = "2024-01-02T10:00:00.000Z"


def run(coro):
    return asyncio.run(coro)


def create_event(owner, **extra):
    data = {
        "name": "Team dinner",
        "description": "Pick a date and some food",
        "eventDates": {"dates": [D1, D2], "allowUserAdd": True},
        "eventPlaces": {"places": ["Hall"]},
        "customFields": {
            "food": {
                "type": "checkbox",
                "id": "food",
                "title": "Food",
                "options": [{"id": 1, "label": "Sushi"}, {"id": 2, "label": "Tacos"}],
                "allowUserAddOptions": True,
            }
        },
    }
    data.update(extra)
    return run(EventService.create_event(EventCreate.model_validate(data), owner))


def submission(**payload):
    base = {"selectedDates": [D1], "selectedPlaces": ["Hall"]}
    base.update(payload)
    return ResponseSubmission.model_validate(base)


def test_create_event_seeds_categories(make_user):
    owner = make_user("owner@example.com")
    event = create_event(owner)
    assert len(event.event_code) == 8
    assert event.status == "open"
    names = [(c.category_name, c.field_id) for c in event.voting_categories]
    assert names == [("date", None), ("place", None), ("Food", "food")]
    assert [o.option_name for o in event.voting_categories[0].options] == [D1, D2]
    assert run(EventService.get_event_by_code(event.event_code.lower())).id == event.id
    with pytest.raises(NotFoundError):
        run(EventService.get_event(event.id + 100))


def test_one_response_per_user(make_user):
    owner = make_user("owner@example.com")
    alice = make_user("alice@example.com")
    event = create_event(owner)

    run(ResponseService.submit_response(event.id, alice, submission()))
    result = run(ResponseService.submit_response(event.id, alice, submission(selectedDates=[D2])))

    responses = run(ResponseService.list_responses(event.id))
    assert len(responses) == 1
    assert responses[0].id == result.response.id
    date = next(c for c in result.voting_categories if c.category_name == "date")
    assert {o.option_name: o.votes for o in date.options} == {D1: [], D2: [alice["user_id"]]}

    mine = run(ResponseService.get_user_response(event.id, alice["user_id"]))
    assert mine.has_response
    assert mine.user_votes == {"date": [D2], "place": ["Hall"]}
    assert not run(ResponseService.get_user_response(event.id, owner["user_id"])).has_response


def test_concurrent_update_is_retried(make_user, monkeypatch):
    owner = make_user("owner@example.com")
    alice = make_user("alice@example.com")
    event = create_event(owner)
    calls = []
    real_merge = response_service.merge_response

    def racing_merge(*args, **kwargs):
        calls.append(1)
        if len(calls) == 1:
            conn = get_connection()
            try:
                conn.execute("UPDATE events SET version = version + 1 WHERE id = ?", (event.id,))
                conn.commit()
            finally:
                conn.close()
        return real_merge(*args, **kwargs)

    monkeypatch.setattr(response_service, "merge_response", racing_merge)
    run(ResponseService.submit_response(event.id, alice, submission()))
    assert len(calls) == 2
    assert run(EventService.get_event(event.id)).version == 2


def test_retries_are_bounded(make_user, monkeypatch):
    owner = make_user("owner@example.com")
    alice = make_user("alice@example.com")
    event = create_event(owner)
    monkeypatch.setattr(settings, "vote_update_retries", 2)
    real_merge = response_service.merge_response

    def always_racing(*args, **kwargs):
        conn = get_connection()
        try:
            conn.execute("UPDATE events SET version = version + 1 WHERE id = ?", (event.id,))
            conn.commit()
        finally:
            conn.close()
        return real_merge(*args, **kwargs)

    monkeypatch.setattr(response_service, "merge_response", always_racing)
    with pytest.raises(ConflictError):
        run(ResponseService.submit_response(event.id, alice, submission()))
    assert run(ResponseService.list_responses(event.id)) == []


def test_invalid_submission_writes_nothing(make_user):
    owner = make_user("owner@example.com")
    alice = make_user("alice@example.com")
    event = create_event(owner)
    with pytest.raises(ValidationError):
        run(ResponseService.submit_response(event.id, alice, submission(selectedPlaces=["Nowhere"])))
    assert run(ResponseService.list_responses(event.id)) == []
    assert run(EventService.get_event(event.id)).version == 0


def test_second_finalize_conflicts_and_keeps_first(make_user):
    owner = make_user("owner@example.com")
    alice = make_user("alice@example.com")
    event = create_event(owner)
    run(ResponseService.submit_response(event.id, alice, submission()))

    first = run(
        FinalizeService.finalize_event(
            event.id,
            owner,
            FinalizeSelections.model_validate({"categorySelections": {"category-date-0": D1, "category-place-0": "Hall"}}),
        )
    )
    assert first.finalized_date == D1
    with pytest.raises(ConflictError):
        run(FinalizeService.finalize_event(event.id, owner, FinalizeSelections(date=D2, place="Hall")))

    stored = run(FinalizeService.get_finalized_event(event.id))
    assert stored.finalized_date == D1
    assert stored.finalized_at == first.finalized_at
    finalized = run(EventService.get_event(event.id))
    assert (finalized.status, finalized.event_date, finalized.place) == ("finalized", D1, "Hall")
    with pytest.raises(ConflictError):
        run(ResponseService.submit_response(event.id, alice, submission()))


def test_only_owner_finalizes_and_preview_reports(make_user):
    owner = make_user("owner@example.com")
    alice = make_user("alice@example.com")
    event = create_event(owner)
    with pytest.raises(ForbiddenError):
        run(FinalizeService.finalize_event(event.id, alice, FinalizeSelections(date=D1, place="Hall")))

    bad = run(FinalizeService.preview_finalization(event.id, owner, FinalizeSelections(place="Hall")))
    assert not bad.valid
    assert bad.message == "Please select a date"
    good = run(FinalizeService.preview_finalization(event.id, owner, FinalizeSelections(date=D1, place="Hall")))
    assert good.valid
    assert good.empty_optional_fields == ["Food"]
    with pytest.raises(NotFoundError):
        run(FinalizeService.get_finalized_event(event.id))


def test_closed_events_reject_responses(make_user):
    owner = make_user("owner@example.com")
    alice = make_user("alice@example.com")
    event = create_event(owner)
    with pytest.raises(ForbiddenError):
        run(EventService.close_event(event.id, alice))
    assert run(EventService.close_event(event.id, owner)).status == "closed"
    with pytest.raises(ConflictError):
        run(ResponseService.submit_response(event.id, alice, submission()))


def test_expired_events_are_closed(make_user):
    owner = make_user("owner@example.com")
    alice = make_user("alice@example.com")
    closes = datetime.now(timezone.utc) + timedelta(days=1)
    event = create_event(owner, closesBy=closes.isoformat())
    past = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
    conn = get_connection()
    try:
        conn.execute("UPDATE events SET closes_by = ? WHERE id = ?", (past, event.id))
        conn.commit()
    finally:
        conn.close()

    assert run(EventService.get_event(event.id)).status == "closed"
    with pytest.raises(ConflictError):
        run(ResponseService.submit_response(event.id, alice, submission()))
    assert run(EventService.close_expired_events()) == 1
    assert run(EventService.close_expired_events()) == 0


def test_remove_user_option_scrubs_suggestions(make_user):
    owner = make_user("owner@example.com")
    alice = make_user("alice@example.com")
    event = create_event(owner)
    food = {"user_pizza": True, "userAddedOptions": ["Pizza"]}
    run(ResponseService.submit_response(event.id, alice, submission(customFields={"food": food})))

    with pytest.raises(ValidationError):
        run(EventService.remove_option(event.id, owner, OptionRemoval(category_name="Food", option_name="Sushi")))
    with pytest.raises(NotFoundError):
        run(EventService.remove_option(event.id, owner, OptionRemoval(category_name="Food", option_name="Curry")))

    updated = run(EventService.remove_option(event.id, owner, OptionRemoval(category_name="Food", option_name="Pizza")))
    category = next(c for c in updated.voting_categories if c.field_id == "food")
    assert [o.option_name for o in category.options] == ["Sushi", "Tacos"]
    mine = run(ResponseService.get_user_response(event.id, alice["user_id"]))
    assert mine.user_added_options == {}

    actions = [entry.action for entry in run(AuditService.list_logs(object_type="event", object_id=event.id))]
    assert actions[0] == "remove_option"
    assert "submit_response" in actions
    assert "create" in actions


def test_aggregates_are_owner_only(make_user):
    owner = make_user("owner@example.com", "Olivia Owner")
    alice = make_user("alice@example.com", "Alice")
    event = create_event(owner)
    food = {"1": True, "user_pizza": True, "userAddedOptions": ["Pizza"]}
    run(ResponseService.submit_response(event.id, alice, submission(customFields={"food": food})))

    with pytest.raises(ForbiddenError):
        run(EventService.get_event_with_aggregates(event.id, alice))
    aggregates = run(EventService.get_event_with_aggregates(event.id, owner))
    charts = {c.category_name: c for c in aggregates.charts_data}
    pizza = next(o for o in charts["Food"].options if o.option_name == "Pizza")
    assert pizza.vote_count == 1
    assert pizza.voter_details[0].name == "Alice"
    assert pizza.added_by.email == "alice@example.com"
    assert not pizza.is_original
    sushi = next(o for o in charts["Food"].options if o.option_name == "Sushi")
    assert sushi.is_original and sushi.added_by is None
    assert len(aggregates.responses) == 1


def test_other_user_suggestions_respect_configured_limits(make_user, monkeypatch):
    owner = make_user("owner@example.com")
    alice = make_user("alice@example.com")
    bob = make_user("bob@example.com")
    event = create_event(owner)
    run(
        ResponseService.submit_response(
            event.id, alice, submission(selectedDates=["2024-01-05T10:00Z"], suggestedDates=["2024-01-05T10:00Z"])
        )
    )
    monkeypatch.setattr(settings, "suggestions_page_limit", 1)

    page = run(ResponseService.get_other_user_suggestions(event.id, bob["user_id"], limit=20))
    assert page.suggestions.dates == ["2024-01-05T10:00:00.000Z"]
    assert page.pagination.limit == 1
    assert page.event.name == "Team dinner"
    assert run(ResponseService.get_other_user_suggestions(event.id, alice["user_id"])).suggestions.dates == []


def test_submission_racing_finalize_is_rejected(make_user, monkeypatch):
    owner = make_user("owner@example.com")
    alice = make_user("alice@example.com")
    event = create_event(owner)
    finalized = []
    real_merge = response_service.merge_response

    def finalize_now():
        selections = FinalizeSelections(date=D1, place="Hall")
        finalized.append(asyncio.run(FinalizeService.finalize_event(event.id, owner, selections)))

    def merge_then_finalize(*args, **kwargs):
        outcome = real_merge(*args, **kwargs)
        if not finalized:
            worker = threading.Thread(target=finalize_now)
            worker.start()
            worker.join()
        return outcome

    monkeypatch.setattr(response_service, "merge_response", merge_then_finalize)
    with pytest.raises(ConflictError):
        run(ResponseService.submit_response(event.id, alice, submission()))

    assert len(finalized) == 1
    assert run(ResponseService.list_responses(event.id)) == []
    stored = run(EventService.get_event(event.id))
    assert stored.status == "finalized"
    date = next(c for c in stored.voting_categories if c.category_name == "date")
    assert all(o.votes == [] for o in date.options)


def test_closing_bumps_version(make_user):
    owner = make_user("owner@example.com")
    event = create_event(owner)
    assert run(EventService.close_event(event.id, owner)).version == event.version + 1
