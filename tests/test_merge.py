import pytest

from event_voting_api.app.core.errors import (
    DuplicateOption,
    InvalidSelection,
    MaxEntriesExceeded,
    ReadonlyViolation,
    SuggestionNotAllowed,
    TooManyVotes,
    ValidationError,
)
from event_voting_api.app.schemas.response import EventResponse, ResponseSubmission
from event_voting_api.app.services.merge import merge_response

D1 = "2024-01-01T10:00:00.000Z"
D2 = "2024-01-02T10:00:00.000Z"
D3 = "2024-01-03T10:00:00.000Z"

FOOD = {
    "food": {
        "type": "checkbox",
        "id": "food",
        "title": "Food",
        "options": [{"id": 1, "label": "Sushi"}, {"id": 2, "label": "Tacos"}],
        "maxOptions": 3,
        "allowUserAddOptions": True,
    }
}
VENUE = {
    "venue": {
        "type": "radio",
        "id": "venue",
        "title": "Venue",
        "options": [{"id": 1, "label": "Indoor"}, {"id": 2, "label": "Outdoor"}],
    }
}


def submit(event, user_id, previous=None, **payload):
    return merge_response(event, user_id, ResponseSubmission.model_validate(payload), previous)


def apply(event, outcome):
    return event.model_copy(update={"voting_categories": outcome.categories})


def as_response(user_id, outcome):
    return EventResponse(
        id=user_id,
        event_id=1,
        user_id=user_id,
        user_email=f"user{user_id}@example.com",
        field_responses=outcome.field_responses,
        suggested_dates=outcome.suggested_dates,
        suggested_places=outcome.suggested_places,
        suggested_options=outcome.suggested_options,
        created_at="2024-01-01T00:00:00+00:00",
        updated_at="2024-01-01T00:00:00+00:00",
    )


def category(event, name):
    return next(c for c in event.voting_categories if c.category_name == name)


def votes(event, name):
    return {o.option_name: list(o.votes) for o in category(event, name).options}


def test_too_many_date_votes_rejected_before_any_change(make_event):
    event = make_event(
        event_dates={"dates": ["2024-01-01T10:00Z", "2024-01-02T10:00Z"], "maxVotes": 1, "allowUserAdd": True}
    )
    event = apply(event, submit(event, 1, selectedDates=["2024-01-01T10:00Z"]))
    before = [c.model_dump() for c in event.voting_categories]

    with pytest.raises(TooManyVotes):
        submit(
            event,
            2,
            selectedDates=["2024-01-02T10:00Z", "2024-01-03T10:00Z"],
            suggestedDates=["2024-01-03T10:00Z"],
        )

    assert [c.model_dump() for c in event.voting_categories] == before
    assert votes(event, "date") == {D1: [1], D2: []}


def test_suggested_date_is_added_and_votable(make_event):
    event = make_event(event_dates={"dates": ["2024-01-01T10:00Z"], "maxVotes": 2, "allowUserAdd": True})
    outcome = submit(event, 1, selectedDates=[D1, "2024-01-03T12:00+02:00"], suggestedDates=["2024-01-03T12:00+02:00"])
    event = apply(event, outcome)
    assert votes(event, "date") == {D1: [1], D3: [1]}
    assert outcome.suggested_dates == [D3]
    assert outcome.suggested_options == {"date": [D3]}


def test_suggesting_existing_option_is_not_a_contribution(make_event):
    event = make_event(event_dates={"dates": [D1], "allowUserAdd": True})
    outcome = submit(event, 1, selectedDates=[D1], suggestedDates=[D1])
    assert outcome.suggested_dates == []
    assert outcome.suggested_options == {}


def test_date_rules(make_event):
    closed = make_event(event_dates={"dates": [D1]})
    with pytest.raises(SuggestionNotAllowed):
        submit(closed, 1, selectedDates=[D1], suggestedDates=[D2])
    with pytest.raises(InvalidSelection):
        submit(closed, 1, selectedDates=[D2])
    with pytest.raises(ValidationError, match="at least one date"):
        submit(closed, 1)
    with pytest.raises(ValidationError):
        submit(closed, 1, selectedDates=["not a date"])

    capped = make_event(event_dates={"dates": [D1], "maxDates": 2, "allowUserAdd": True})
    with pytest.raises(MaxEntriesExceeded):
        submit(capped, 1, selectedDates=[D1], suggestedDates=[D2, D3])


def test_places_use_their_own_vote_cap(make_event):
    event = make_event(event_places={"places": ["Hall", "Park"], "maxVotes": 1})
    with pytest.raises(TooManyVotes):
        submit(event, 1, selectedPlaces=["Hall", "Park"])
    event = apply(event, submit(event, 1, selectedPlaces=["Park"]))
    assert votes(event, "place") == {"Hall": [], "Park": [1]}


def test_checkbox_user_option_then_case_duplicate(make_event):
    event = make_event(custom_fields=FOOD)
    outcome = submit(event, 1, customFields={"food": {"1": False, "user_pizza": True, "userAddedOptions": ["Pizza"]}})
    event = apply(event, outcome)
    assert votes(event, "Food") == {"Sushi": [], "Tacos": [], "Pizza": [1]}
    assert outcome.suggested_options == {"food": ["Pizza"]}

    before = [c.model_dump() for c in event.voting_categories]
    with pytest.raises(DuplicateOption):
        submit(event, 2, customFields={"food": {"user_pizza": True, "userAddedOptions": ["pizza"]}})
    assert [c.model_dump() for c in event.voting_categories] == before


def test_checkbox_labels_sharing_a_key_are_duplicates(make_event):
    food = {"food": dict(FOOD["food"], maxOptions=0)}
    event = make_event(custom_fields=food)
    payload = {"food": {"user_pizza_hut": True, "userAddedOptions": ["Pizza Hut"]}}
    first = submit(event, 1, customFields=payload)
    event = apply(event, first)

    with pytest.raises(DuplicateOption, match='too similar to "Pizza Hut"'):
        submit(event, 2, customFields={"food": {"user_pizza_hut": True, "userAddedOptions": ["Pizza-Hut"]}})
    with pytest.raises(ValidationError, match="at least one letter or digit"):
        submit(event, 2, customFields={"food": {"userAddedOptions": ["!!!"]}})

    again = apply(event, submit(event, 1, previous=as_response(1, first), customFields=payload))
    assert votes(again, "Food") == votes(event, "Food") == {"Sushi": [], "Tacos": [], "Pizza Hut": [1]}


def test_checkbox_combined_option_cap(make_event):
    event = make_event(custom_fields=FOOD)
    event = apply(event, submit(event, 1, customFields={"food": {"userAddedOptions": ["Pizza"]}}))
    with pytest.raises(MaxEntriesExceeded):
        submit(event, 2, customFields={"food": {"userAddedOptions": ["Curry"]}})


def test_checkbox_votes_other_users_option_by_key(make_event):
    event = make_event(custom_fields=FOOD)
    event = apply(event, submit(event, 1, customFields={"food": {"user_pizza": True, "userAddedOptions": ["Pizza"]}}))
    outcome = submit(event, 2, customFields={"food": {"2": True, "user_pizza": True}})
    event = apply(event, outcome)
    assert votes(event, "Food") == {"Sushi": [], "Tacos": [2], "Pizza": [1, 2]}
    assert outcome.suggested_options == {}
    with pytest.raises(InvalidSelection):
        submit(event, 3, customFields={"food": {"user_curry": True}})


def test_resubmitting_identical_payload_is_idempotent(make_event):
    event = make_event(
        event_dates={"dates": [D1], "allowUserAdd": True, "maxVotes": 2},
        custom_fields=FOOD,
    )
    payload = {
        "selectedDates": [D1, D2],
        "suggestedDates": [D2],
        "customFields": {"food": {"1": True, "user_pizza": True, "userAddedOptions": ["Pizza"]}},
    }
    first = submit(event, 1, **payload)
    once = apply(event, first)
    second = submit(once, 1, previous=as_response(1, first), **payload)
    twice = apply(once, second)

    assert [c.model_dump() for c in twice.voting_categories] == [c.model_dump() for c in once.voting_categories]
    assert second.suggested_options == first.suggested_options
    assert second.suggested_dates == [D2]


def test_single_select_users_do_not_disturb_each_other(make_event):
    event = make_event(custom_fields=VENUE)
    event = apply(event, submit(event, 1, customFields={"venue": "Indoor"}))
    event = apply(event, submit(event, 2, customFields={"venue": "Outdoor"}))
    event = apply(event, submit(event, 1, customFields={"venue": {"value": "Outdoor"}}))
    assert votes(event, "Venue") == {"Indoor": [], "Outdoor": [2, 1]}
    event = apply(event, submit(event, 2, customFields={"venue": "indoor"}))
    assert votes(event, "Venue") == {"Indoor": [2], "Outdoor": [1]}


def test_radio_rejects_unknown_option(make_event):
    event = make_event(custom_fields=VENUE)
    with pytest.raises(InvalidSelection):
        submit(event, 1, customFields={"venue": "Rooftop"})


def test_text_and_list_fields_become_field_responses(make_event):
    fields = {
        "notes": {"type": "text", "id": "notes", "title": "Notes"},
        "dress": {"type": "text", "id": "dress", "title": "Dress code", "readonly": True, "value": "Casual"},
        "bring": {
            "type": "list", "id": "bring", "title": "Bring", "values": ["Chips"], "maxEntries": 3, "allowUserAdd": True,
        },
    }
    event = make_event(custom_fields=fields)
    outcome = submit(
        event, 1, customFields={"notes": "Vegan", "dress": "Casual", "bring": ["Chips", "Soda"]}
    )
    responses = {r.field_id: r.response for r in outcome.field_responses}
    assert responses == {"notes": "Vegan", "bring": ["Soda"]}
    assert outcome.categories == event.voting_categories

    with pytest.raises(ReadonlyViolation):
        submit(event, 1, customFields={"dress": "Black tie"})
    with pytest.raises(MaxEntriesExceeded):
        submit(event, 1, customFields={"bring": ["Chips", "a", "b", "c"]})


def test_list_must_keep_the_organizer_entries(make_event):
    fields = {
        "bring": {
            "type": "list", "id": "bring", "title": "Bring", "values": ["Chips"], "maxEntries": 3, "allowUserAdd": True,
        },
    }
    event = make_event(custom_fields=fields)
    with pytest.raises(ValidationError, match='existing entries of "Bring"'):
        submit(event, 1, customFields={"bring": ["Soda"]})
    with pytest.raises(ValidationError, match='existing entries of "Bring"'):
        submit(event, 1, customFields={"bring": ["Pretzels", "Soda"]})
    assert submit(event, 1, customFields={"bring": []}).field_responses == []


def test_unknown_custom_field_is_rejected(make_event):
    event = make_event(custom_fields=VENUE)
    with pytest.raises(ValidationError, match="Unknown custom field"):
        submit(event, 1, customFields={"nope": "x"})


def test_validation_failure_in_later_field_leaves_earlier_ones_untouched(make_event):
    fields = dict(VENUE)
    fields["dress"] = {"type": "text", "id": "dress", "title": "Dress code", "readonly": True, "value": "Casual"}
    event = make_event(custom_fields=fields)
    with pytest.raises(ReadonlyViolation):
        submit(event, 1, customFields={"venue": "Indoor", "dress": "Formal"})
    assert votes(event, "Venue") == {"Indoor": [], "Outdoor": []}
