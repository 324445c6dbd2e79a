"""
Organizer view of an event: vote counts with voter identities.

This is the one place where voter ids are resolved to people; the
participant-facing suggestions view never goes through here.
"""

from typing import Optional

from ..schemas.aggregate import (
    ChartCategory,
    ChartOption,
    EventAggregates,
    ListFieldData,
    TextFieldData,
    TextResponseEntry,
    VoterDetail,
)
from ..schemas.event import EventRead, VotingCategory
from ..schemas.fields import ListField, TextField
from ..schemas.response import EventResponse
from .merge import DATE_CATEGORY, PLACE_CATEGORY


def _detail(users: dict[int, VoterDetail], user_id: int) -> VoterDetail:
    return users.get(user_id, VoterDetail(id=user_id))


def _suggestion_key(event: EventRead, category: VotingCategory) -> Optional[str]:
    if category.field_id is not None:
        return category.field_id
    if category.category_name in (DATE_CATEGORY, PLACE_CATEGORY):
        return category.category_name
    for field_id, f in event.custom_fields.items():
        if f.title == category.category_name:
            return field_id
    return None


def _original_names(event: EventRead, key: Optional[str]) -> list[str]:
    if key == DATE_CATEGORY:
        return event.event_dates.dates
    if key == PLACE_CATEGORY:
        return event.event_places.places
    f = event.custom_fields.get(key) if key else None
    if f is None or isinstance(f, (TextField, ListField)):
        return []
    return f.option_labels()


def _first_contributor(responses: list[EventResponse], key: Optional[str], name: str) -> Optional[int]:
    if key is None:
        return None
    for response in responses:
        values = list(response.suggested_options.get(key, []))
        if key == DATE_CATEGORY:
            values += response.suggested_dates
        elif key == PLACE_CATEGORY:
            values += response.suggested_places
        if name in values:
            return response.user_id
    return None


def build_chart(
    event: EventRead, category: VotingCategory, responses: list[EventResponse], users: dict[int, VoterDetail]
) -> ChartCategory:
    key = _suggestion_key(event, category)
    originals = _original_names(event, key)
    options = []
    for option in category.options:
        is_original = option.option_name in originals
        added_by = None if is_original else _first_contributor(responses, key, option.option_name)
        options.append(
            ChartOption(
                option_name=option.option_name,
                vote_count=len(option.votes),
                voters=list(option.votes),
                voter_details=[_detail(users, uid) for uid in option.votes],
                is_original=is_original,
                added_by=_detail(users, added_by) if added_by is not None else None,
            )
        )
    return ChartCategory(category_name=category.category_name, field_id=category.field_id, options=options)


def build_list_data(
    field_id: str, f: ListField, responses: list[EventResponse], users: dict[int, VoterDetail]
) -> ListFieldData:
    options = [ChartOption(option_name=value, vote_count=0, is_original=True) for value in f.values]
    added: dict[str, list[int]] = {}
    for response in responses:
        for entry in response.field_responses:
            if entry.field_id != field_id or not isinstance(entry.response, list):
                continue
            for value in entry.response:
                voters = added.setdefault(value, [])
                if response.user_id not in voters:
                    voters.append(response.user_id)
    for value, voters in added.items():
        options.append(
            ChartOption(
                option_name=value,
                vote_count=len(voters),
                voters=voters,
                voter_details=[_detail(users, uid) for uid in voters],
                added_by=_detail(users, voters[0]),
            )
        )
    return ListFieldData(field_id=field_id, category_name=f.title, options=options)


def build_text_data(
    field_id: str, f: TextField, responses: list[EventResponse], users: dict[int, VoterDetail]
) -> TextFieldData:
    entries = []
    for response in responses:
        for entry in response.field_responses:
            if entry.field_id == field_id and isinstance(entry.response, str):
                entries.append(
                    TextResponseEntry(
                        user_id=response.user_id,
                        user_email=response.user_email,
                        user_name=_detail(users, response.user_id).name,
                        response=entry.response,
                    )
                )
    return TextFieldData(field_id=field_id, category_name=f.title, responses=entries)


def build_aggregates(
    event: EventRead, responses: list[EventResponse], users: dict[int, VoterDetail]
) -> EventAggregates:
    """Assemble charts, list and text data.  ``responses`` must be in submission order."""
    charts = [build_chart(event, c, responses, users) for c in event.voting_categories]
    list_data = []
    text_data = []
    for field_id, f in event.custom_fields.items():
        if isinstance(f, ListField):
            list_data.append(build_list_data(field_id, f, responses, users))
        elif isinstance(f, TextField):
            text_data.append(build_text_data(field_id, f, responses, users))
    return EventAggregates(
        event=event,
        responses=responses,
        charts_data=charts,
        list_fields_data=list_data,
        text_fields_data=text_data,
    )
