"""
Merge one participant's submission into an event's voting categories.

``merge_response`` runs in two phases.  The first validates the whole
submission against the event configuration and the current categories
and produces a list of ``CategoryPlan`` entries; it raises before
anything changes.  The second applies the plans to a copy of the
categories through ``VotingCategoryStore``.  The caller persists the
copy together with the user's response, or nothing at all.

Only names the user personally introduced end up in the returned
``suggested_options``.  Names the same user introduced in an earlier
submission still count as theirs, which keeps a resubmission of an
identical payload a no-op.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from ..core.errors import (
    DuplicateOption,
    InvalidSelection,
    MaxEntriesExceeded,
    SuggestionNotAllowed,
    TooManyVotes,
    ValidationError,
)
from ..schemas.base import canonical_instant
from ..schemas.event import EventDates, EventPlaces, EventRead, VotingCategory
from ..schemas.fields import CheckboxField, RadioField
from ..schemas.response import EventResponse, FieldResponse, ResponseSubmission
from . import field_model
from .voting_store import VotingCategoryStore

logger = logging.getLogger(__name__)

DATE_CATEGORY = "date"
PLACE_CATEGORY = "place"


@dataclass
class CategoryPlan:
    name: str
    field_id: Optional[str]
    seed_options: list[str]
    selection: list[str]
    single: bool = False


@dataclass
class MergeOutcome:
    categories: list[VotingCategory]
    field_responses: list[FieldResponse] = field(default_factory=list)
    suggested_dates: list[str] = field(default_factory=list)
    suggested_places: list[str] = field(default_factory=list)
    suggested_options: dict[str, list[str]] = field(default_factory=dict)


def _previous_contributions(previous: Optional[EventResponse], key: str) -> list[str]:
    if previous is None:
        return []
    return previous.suggested_options.get(key, [])


def _normalise(values: list[str], noun: str, is_date: bool) -> list[str]:
    result: list[str] = []
    for value in values:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"All {noun} must be valid strings")
        if is_date:
            try:
                value = canonical_instant(value)
            except ValueError as exc:
                raise ValidationError(f'"{value}" is not a valid ISO-8601 date') from exc
        else:
            value = value.strip()
        if value not in result:
            result.append(value)
    return result


def _plan_bounded(
    store: VotingCategoryStore,
    kind: str,
    config: Union[EventDates, EventPlaces],
    selected_raw: list[str],
    suggested_raw: list[str],
    previous: list[str],
) -> tuple[CategoryPlan, list[str]]:
    """Plan the date or place category: multi-select capped by ``maxVotes``."""
    is_date = kind == DATE_CATEGORY
    plural = "dates" if is_date else "places"
    configured = config.dates if isinstance(config, EventDates) else config.places
    cap = config.max_dates if isinstance(config, EventDates) else config.max_places

    category = store.find_category(kind)
    existing = [o.option_name for o in category.options] if category else []
    for name in configured:
        if name not in existing:
            existing.append(name)

    suggested = _normalise(suggested_raw, f"suggested {plural}", is_date)
    selected = _normalise(selected_raw, f"selected {plural}", is_date)

    new_names = [name for name in suggested if name not in existing]
    if new_names and not config.allow_user_add:
        raise SuggestionNotAllowed(f"New {plural} cannot be added for this event")
    if cap and len(existing) + len(new_names) > cap:
        raise MaxEntriesExceeded(f"Too many {plural}. Maximum allowed is {cap}")
    if config.max_votes and len(selected) > config.max_votes:
        raise TooManyVotes(f"You can only vote for {config.max_votes} {plural}")

    available = existing + new_names
    if available and not selected:
        raise ValidationError(f"You must vote for at least one {kind}")
    for name in selected:
        if name not in available:
            raise InvalidSelection(f"Selected a {kind} that doesn't exist in options")

    contributions = [name for name in suggested if name in new_names or name in previous]
    plan = CategoryPlan(name=kind, field_id=None, seed_options=configured + new_names, selection=selected)
    return plan, contributions


def _check_option_key(f: CheckboxField, label: str, participant_options: list[str]) -> None:
    """Checkbox payloads address added options by ``user_<slug>``, so slugs must be unique."""
    if not field_model.option_slug(label):
        raise ValidationError(f'Option "{label}" of "{f.title}" needs at least one letter or digit')
    key = field_model.user_option_key(label)
    clash = next((o for o in participant_options if o != label and field_model.user_option_key(o) == key), None)
    if clash is not None:
        raise DuplicateOption(f'Option "{label}" is too similar to "{clash}" in "{f.title}"')


def _plan_choice(
    store: VotingCategoryStore,
    field_id: str,
    f: Union[RadioField, CheckboxField],
    value: field_model.ChoiceValue,
    previous: list[str],
) -> tuple[CategoryPlan, list[str]]:
    """Plan a radio/checkbox category, including options the user adds."""
    category = store.find_category(f.title, field_id)
    original = f.option_labels()
    existing = [o.option_name for o in category.options] if category else []
    for label in original:
        if label not in existing and not any(e.lower() == label.lower() for e in existing):
            existing.append(label)

    new_labels: list[str] = []
    contributions: list[str] = []
    for label in value.user_added_options:
        lowered = label.lower()
        if any(c.lower() == lowered for c in contributions):
            raise DuplicateOption(f'Option "{label}" was added twice to "{f.title}"')
        match = next((e for e in existing if e.lower() == lowered), None)
        if match is None:
            new_labels.append(label)
        elif not (match == label and label in previous):
            raise DuplicateOption(f'Option "{label}" already exists in "{f.title}"')
        if isinstance(f, CheckboxField):
            _check_option_key(f, label, [a for a in existing + new_labels if a not in original])
        contributions.append(label)

    if f.max_options and len(existing) + len(new_labels) > f.max_options:
        raise MaxEntriesExceeded(f'Field "{f.title}" allows at most {f.max_options} options')

    available = existing + new_labels
    selection: list[str] = []
    if isinstance(f, RadioField):
        for wanted in value.selected:
            resolved = next((a for a in available if a == wanted), None)
            if resolved is None:
                resolved = next((a for a in available if a.lower() == wanted.lower()), None)
            if resolved is None:
                raise InvalidSelection(f'Selected invalid option for "{f.title}"')
            selection.append(resolved)
    else:
        ids = {str(o.id): o.label for o in f.options}
        user_keys = {field_model.user_option_key(a): a for a in available if a not in original}
        for key in value.selected:
            resolved = ids.get(key) or user_keys.get(key)
            if resolved is None:
                raise InvalidSelection(f'Selected invalid option for "{f.title}"')
            if resolved not in selection:
                selection.append(resolved)
        # Keep the category's display order.
        selection.sort(key=available.index)

    plan = CategoryPlan(
        name=f.title,
        field_id=field_id,
        seed_options=original + new_labels,
        selection=selection,
        single=isinstance(f, RadioField),
    )
    return plan, contributions


def plan_response(
    event: EventRead,
    submission: ResponseSubmission,
    previous: Optional[EventResponse] = None,
    store: Optional[VotingCategoryStore] = None,
) -> tuple[list[CategoryPlan], MergeOutcome]:
    """Validate a submission and return the plans plus the per-user record.

    Raises one of the ``ValidationError`` subclasses on the first
    problem found.  Nothing is mutated.
    """
    store = store or VotingCategoryStore(event.voting_categories)
    outcome = MergeOutcome(categories=[])
    plans: list[CategoryPlan] = []

    for key in submission.custom_fields:
        if key not in event.custom_fields:
            raise ValidationError(f"Unknown custom field: {key}")

    date_plan, date_contrib = _plan_bounded(
        store,
        DATE_CATEGORY,
        event.event_dates,
        submission.selected_dates,
        submission.suggested_dates,
        _previous_contributions(previous, DATE_CATEGORY),
    )
    place_plan, place_contrib = _plan_bounded(
        store,
        PLACE_CATEGORY,
        event.event_places,
        submission.selected_places,
        submission.suggested_places,
        _previous_contributions(previous, PLACE_CATEGORY),
    )
    plans.extend([date_plan, place_plan])
    outcome.suggested_dates = date_contrib
    outcome.suggested_places = place_contrib
    if date_contrib:
        outcome.suggested_options[DATE_CATEGORY] = date_contrib
    if place_contrib:
        outcome.suggested_options[PLACE_CATEGORY] = place_contrib

    for field_id, f in event.custom_fields.items():
        parsed = field_model.parse_submission(f, submission.custom_fields.get(field_id))
        field_model.check_submission(f, parsed)
        if f.readonly:
            continue
        if isinstance(parsed, field_model.TextValue):
            if not field_model.is_empty_value(f, parsed):
                outcome.field_responses.append(FieldResponse(field_id=field_id, type="text", response=parsed.text))
        elif isinstance(parsed, field_model.ListValue):
            if parsed.user_added:
                outcome.field_responses.append(
                    FieldResponse(field_id=field_id, type="list", response=parsed.user_added)
                )
        else:
            plan, contributions = _plan_choice(
                store, field_id, f, parsed, _previous_contributions(previous, field_id)
            )
            plans.append(plan)
            if contributions:
                outcome.suggested_options[field_id] = contributions

    return plans, outcome


def apply_plans(store: VotingCategoryStore, user_id: int, plans: list[CategoryPlan]) -> None:
    single_select: list[VotingCategory] = []
    for plan in plans:
        category = store.ensure_category(plan.name, plan.field_id)
        for name in plan.seed_options:
            if store.find_option_ci(category, name) is None:
                store.ensure_option(category, name)
        if plan.single:
            store.set_user_single_selection(category, user_id, plan.selection[0] if plan.selection else None)
            single_select.append(category)
        else:
            store.set_user_multi_selection(category, user_id, plan.selection)
    store.check_invariants(single_select)


def merge_response(
    event: EventRead,
    user_id: int,
    submission: ResponseSubmission,
    previous: Optional[EventResponse] = None,
) -> MergeOutcome:
    """Validate ``submission`` and return the merged categories and response data.

    ``event.voting_categories`` is left untouched; the merged copy is
    returned in ``MergeOutcome.categories``.
    """
    store = VotingCategoryStore.from_categories(event.voting_categories)
    plans, outcome = plan_response(event, submission, previous, store)
    apply_plans(store, user_id, plans)
    outcome.categories = store.categories
    logger.debug(
        "Merged response of user %s into event %s (%d categories)", user_id, event.id, len(plans)
    )
    return outcome
