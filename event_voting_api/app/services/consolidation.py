"""
Turn the organizer's finalize selections into one value per field.

The UI sends dropdown picks as ``category-<name>-<groupIndex>`` keys,
because ties for a category can be spread over several dropdowns.  The
name part is matched against custom field ids first and titles second.
For "date" and "place" an explicit ``date``/``place`` value wins;
otherwise the pick with the lowest group index is used.

Validation is fail-fast: date, place, then custom fields in definition
order.  The first problem is raised as a ``ValidationError`` subclass
whose message is shown to the organizer verbatim.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from ..core.errors import InvalidSelection, RequiredFieldMissing, ValidationError
from ..schemas.aggregate import VoterDetail
from ..schemas.base import canonical_instant
from ..schemas.event import EventRead, VotingCategory
from ..schemas.fields import CheckboxField, ListField, RadioField, TextField
from ..schemas.finalize import READONLY_DEFAULT, CustomFieldSelection, FinalizeSelections
from ..schemas.response import EventResponse
from . import field_model
from .merge import DATE_CATEGORY, PLACE_CATEGORY
from .voting_store import VotingCategoryStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "category-"


@dataclass
class Consolidated:
    finalized_date: Optional[str] = None
    finalized_place: Optional[str] = None
    custom_field_selections: dict[str, CustomFieldSelection] = field(default_factory=dict)
    # Field id -> resolved value, including empty ones.
    values: dict[str, Any] = field(default_factory=dict)


def text_placeholder(user_id: str) -> str:
    return f"Selected response from user {user_id}"


def group_category_selections(selections: dict[str, str]) -> dict[str, list[str]]:
    """Group ``category-<name>-<index>`` picks by name, ordered by index."""
    grouped: dict[str, list[tuple[int, str]]] = {}
    for key, value in selections.items():
        if not key.startswith(KEY_PREFIX):
            raise ValidationError(f'Malformed selection key "{key}"')
        name, _, index = key[len(KEY_PREFIX):].rpartition("-")
        if not name or not index.isdigit():
            raise ValidationError(f'Malformed selection key "{key}"')
        if value is None or not str(value).strip():
            continue
        grouped.setdefault(name, []).append((int(index), str(value).strip()))
    return {name: [v for _, v in sorted(picks)] for name, picks in grouped.items()}


def _voters(category: Optional[VotingCategory], names: list[str], users: dict[int, VoterDetail]) -> list[VoterDetail]:
    if category is None:
        return []
    ids: list[int] = []
    for option in category.options:
        if option.option_name in names:
            ids.extend(uid for uid in option.votes if uid not in ids)
    return [users.get(uid, VoterDetail(id=uid)) for uid in ids]


def _resolve_bounded(
    store: VotingCategoryStore, kind: str, explicit: Optional[str], picks: list[str]
) -> Optional[str]:
    category = store.find_category(kind)
    options = [o.option_name for o in category.options] if category else []
    value = explicit.strip() if explicit and explicit.strip() else (picks[0] if picks else None)
    if value is None:
        if options:
            raise RequiredFieldMissing(f"Please select a {kind}")
        return None
    if kind == DATE_CATEGORY:
        try:
            value = canonical_instant(value)
        except ValueError as exc:
            raise ValidationError(f'"{value}" is not a valid ISO-8601 date') from exc
    if value not in options:
        raise InvalidSelection(f"Selected {kind} is not one of the event's options")
    return value


def _owning_field(event: EventRead, name: str) -> Optional[str]:
    if name in event.custom_fields:
        return name
    for field_id, f in event.custom_fields.items():
        if f.title == name and isinstance(f, (RadioField, CheckboxField)):
            return field_id
    return None


def _configured_choice(f: Union[RadioField, CheckboxField]) -> list[str]:
    if isinstance(f, RadioField):
        return [o.label for o in f.options if str(o.id) == str(f.selected_option)]
    return [o.label for o in f.options if o.checked]


def _text_answer(field_id: str, respondent: str, responses: list[EventResponse]) -> Optional[str]:
    for response in responses:
        if str(response.user_id) != respondent:
            continue
        for entry in response.field_responses:
            if entry.field_id == field_id and isinstance(entry.response, str):
                return entry.response
    return None


def _list_authors(field_id: str, entries: list[str], responses: list[EventResponse]) -> list[int]:
    authors: list[int] = []
    for response in responses:
        for entry in response.field_responses:
            if entry.field_id != field_id or not isinstance(entry.response, list):
                continue
            if any(value in entries for value in entry.response) and response.user_id not in authors:
                authors.append(response.user_id)
    return authors


def consolidate(
    event: EventRead,
    selections: FinalizeSelections,
    responses: list[EventResponse],
    users: Optional[dict[int, VoterDetail]] = None,
) -> Consolidated:
    """Resolve and validate the final value of every category and field."""
    users = users or {}
    store = VotingCategoryStore(event.voting_categories)
    grouped = group_category_selections(selections.category_selections)
    result = Consolidated()

    result.finalized_date = _resolve_bounded(
        store, DATE_CATEGORY, selections.date, grouped.pop(DATE_CATEGORY, [])
    )
    result.finalized_place = _resolve_bounded(
        store, PLACE_CATEGORY, selections.place, grouped.pop(PLACE_CATEGORY, [])
    )

    picks_by_field: dict[str, list[str]] = {}
    for name, picks in grouped.items():
        field_id = _owning_field(event, name)
        if field_id is None:
            raise ValidationError(f'Unknown selection category "{name}"')
        bucket = picks_by_field.setdefault(field_id, [])
        for pick in picks:
            if pick not in bucket:
                bucket.append(pick)
    for field_id in list(selections.list_selections) + list(selections.text_selections):
        if field_id not in event.custom_fields:
            raise ValidationError(f"Unknown custom field: {field_id}")

    for field_id, f in event.custom_fields.items():
        value: Any = None
        voters: list[VoterDetail] = []
        if isinstance(f, (RadioField, CheckboxField)):
            category = store.find_category(f.title, field_id)
            available = [o.option_name for o in category.options] if category else f.option_labels()
            picks = _configured_choice(f) if f.readonly else picks_by_field.get(field_id, [])
            for pick in picks:
                if pick not in available:
                    raise InvalidSelection(f'Selected invalid option for "{f.title}"')
            if isinstance(f, RadioField):
                if len(picks) > 1:
                    raise ValidationError(f'Select only one option for "{f.title}"')
                value = picks[0] if picks else None
            else:
                value = picks
            voters = _voters(category, picks, users)
        elif isinstance(f, ListField):
            value = list(f.values) if f.readonly else [
                v for v in selections.list_selections.get(field_id, []) if v.strip()
            ]
            voters = [
                users.get(uid, VoterDetail(id=uid)) for uid in _list_authors(field_id, value, responses)
            ]
        elif isinstance(f, TextField):
            respondent = selections.text_selections.get(field_id)
            if f.readonly or respondent == READONLY_DEFAULT:
                value = f.value
            elif respondent:
                value = _text_answer(field_id, respondent, responses)
                if value is None:
                    logger.warning(
                        "No text response from user %s for field %s of event %s",
                        respondent, field_id, event.id,
                    )
                    value = text_placeholder(respondent)
                elif respondent.isdigit():
                    uid = int(respondent)
                    voters = [users.get(uid, VoterDetail(id=uid))]

        field_model.check_final_value(f, value)
        result.values[field_id] = value
        if value:
            result.custom_field_selections[field_id] = CustomFieldSelection(
                field_id=field_id,
                field_type=f.type,
                field_title=f.title,
                selection=value,
                voter_details=voters,
            )
    return result


def empty_optional_fields(event: EventRead, consolidated: Consolidated) -> list[str]:
    """Titles of optional, editable fields left without a final value."""
    return [
        f.title
        for field_id, f in event.custom_fields.items()
        if not f.required and not f.readonly and not consolidated.values.get(field_id)
    ]
