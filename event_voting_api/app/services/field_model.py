"""
Participant-side rules for the four custom field variants.

Every variant answers the same questions about a submitted payload:
is it structurally valid (``parse_submission``), does it count as
empty (``is_empty_value``), and does it respect the field's
configuration (``check_submission``).  Finalized values go through
``check_final_value``.  Each question is dispatched on the field type
through a small registry, one function per variant.

Nothing here touches the voting categories.  Rules that depend on the
options other participants added (duplicates, the combined option cap)
are applied by ``services.merge``.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Union

from ..core.errors import (
    MaxEntriesExceeded,
    ReadonlyViolation,
    RequiredFieldMissing,
    SuggestionNotAllowed,
    ValidationError,
)
from ..schemas.fields import CheckboxField, ListField, RadioField, TextField

AnyField = Union[TextField, ListField, RadioField, CheckboxField]

USER_OPTIONS_KEY = "userAddedOptions"


@dataclass
class TextValue:
    text: str
    submitted: bool = True


@dataclass
class ListValue:
    entries: list[str]
    # Non-blank entries past the organizer's values, in submission order.
    user_added: list[str] = field(default_factory=list)
    submitted: bool = True


@dataclass
class ChoiceValue:
    # radio: the selected label (zero or one item)
    # checkbox: the checked option ids, including ``user_<slug>`` ids
    selected: list[str] = field(default_factory=list)
    user_added_options: list[str] = field(default_factory=list)
    submitted: bool = True


ParsedValue = Union[TextValue, ListValue, ChoiceValue]


def option_slug(label: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", label.strip().lower()).strip("_")


def user_option_key(label: str) -> str:
    """Checkbox payload key used for an option a participant added."""
    return f"user_{option_slug(label)}"


def _clean_labels(raw: Any, title: str) -> list[str]:
    if raw is None:
        return []
    if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
        raise ValidationError(f'Added options for "{title}" must be a list of strings')
    return [item.strip() for item in raw if item.strip()]


def _parse_text(f: TextField, raw: Any) -> TextValue:
    if raw is None:
        return TextValue(text="", submitted=False)
    if not isinstance(raw, str):
        raise ValidationError(f'Field "{f.title}" expects text')
    return TextValue(text=raw)


def _parse_list(f: ListField, raw: Any) -> ListValue:
    if raw is None:
        return ListValue(entries=[], submitted=False)
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
        raise ValidationError(f'Field "{f.title}" expects a list of strings')
    suffix = raw[len(f.values):]
    return ListValue(entries=list(raw), user_added=[v.strip() for v in suffix if v.strip()])


def _parse_radio(f: RadioField, raw: Any) -> ChoiceValue:
    if raw is None:
        return ChoiceValue(submitted=False)
    if isinstance(raw, str):
        return ChoiceValue(selected=[raw.strip()] if raw.strip() else [])
    if not isinstance(raw, dict):
        raise ValidationError(f'Field "{f.title}" expects a selected option')
    value = raw.get("value")
    if value is not None and not isinstance(value, str):
        raise ValidationError(f'Field "{f.title}" expects a selected option')
    selected = [value.strip()] if value and value.strip() else []
    return ChoiceValue(selected=selected, user_added_options=_clean_labels(raw.get(USER_OPTIONS_KEY), f.title))


def _parse_checkbox(f: CheckboxField, raw: Any) -> ChoiceValue:
    if raw is None:
        return ChoiceValue(submitted=False)
    if not isinstance(raw, dict):
        raise ValidationError(f'Field "{f.title}" expects a map of option ids to booleans')
    selected: list[str] = []
    for key, checked in raw.items():
        if key == USER_OPTIONS_KEY:
            continue
        if not isinstance(checked, bool):
            raise ValidationError(f'Option "{key}" of "{f.title}" must be true or false')
        if checked:
            selected.append(str(key))
    return ChoiceValue(selected=selected, user_added_options=_clean_labels(raw.get(USER_OPTIONS_KEY), f.title))


_PARSERS: dict[str, Callable[[Any, Any], ParsedValue]] = {
    "text": _parse_text,
    "list": _parse_list,
    "radio": _parse_radio,
    "checkbox": _parse_checkbox,
}


def parse_submission(f: AnyField, raw: Any) -> ParsedValue:
    """Parse a raw payload for ``f``; raises ``ValidationError`` if malformed."""
    return _PARSERS[f.type](f, raw)


def is_valid_value(f: AnyField, raw: Any) -> bool:
    try:
        parse_submission(f, raw)
    except ValidationError:
        return False
    return True


def is_empty_value(f: AnyField, parsed: ParsedValue) -> bool:
    if isinstance(parsed, TextValue):
        return parsed.text == ""
    if isinstance(parsed, ListValue):
        return not parsed.user_added
    return not parsed.selected


def _check_text(f: TextField, value: TextValue) -> None:
    if f.readonly:
        if value.submitted and value.text != f.value:
            raise ReadonlyViolation(f'Field "{f.title}" is read-only and cannot be modified')
        return
    if f.required and is_empty_value(f, value):
        raise RequiredFieldMissing(f'Field "{f.title}" is required')


def _check_list(f: ListField, value: ListValue) -> None:
    if f.readonly:
        if value.submitted and value.entries != f.values:
            raise ReadonlyViolation(f'Field "{f.title}" is read-only and cannot be modified')
        return
    # An empty list submits nothing; otherwise the organizer's entries lead, unchanged.
    if value.entries and [e.strip() for e in value.entries[:len(f.values)]] != f.values:
        raise ValidationError(f'The existing entries of "{f.title}" cannot be changed or removed')
    if f.required and is_empty_value(f, value):
        raise RequiredFieldMissing(f'Field "{f.title}" requires you to add at least one value')
    if value.user_added and not f.allow_user_add:
        raise SuggestionNotAllowed(f'Field "{f.title}" doesn\'t allow adding new entries')
    if f.max_entries and len(f.values) + len(value.user_added) > f.max_entries:
        raise MaxEntriesExceeded(f'Field "{f.title}" can have maximum {f.max_entries} entries')


def _configured_selection(f: Union[RadioField, CheckboxField]) -> list[str]:
    if isinstance(f, RadioField):
        return [o.label for o in f.options if str(o.id) == str(f.selected_option)]
    return [str(o.id) for o in f.options if o.checked]


def _check_choice(f: Union[RadioField, CheckboxField], value: ChoiceValue) -> None:
    if f.readonly:
        if value.user_added_options:
            raise ReadonlyViolation(f'Field "{f.title}" is read-only and cannot be modified')
        if value.submitted and value.selected and sorted(value.selected) != sorted(_configured_selection(f)):
            raise ReadonlyViolation(f'Field "{f.title}" is read-only and cannot be modified')
        return
    if f.required and is_empty_value(f, value):
        if isinstance(f, RadioField):
            raise RequiredFieldMissing(f'Field "{f.title}" is required')
        raise RequiredFieldMissing(f'Field "{f.title}" requires at least one selection')
    if isinstance(f, RadioField) and len(value.selected) > 1:
        raise ValidationError(f'Field "{f.title}" accepts a single selection')
    if value.user_added_options:
        if not f.allow_user_add_options:
            raise SuggestionNotAllowed(f'Field "{f.title}" doesn\'t allow adding new options')
        if f.max_options and len(f.options) + len(value.user_added_options) > f.max_options:
            raise MaxEntriesExceeded(f'Field "{f.title}" allows at most {f.max_options} options')


_SUBMISSION_CHECKS: dict[str, Callable[[Any, Any], None]] = {
    "text": _check_text,
    "list": _check_list,
    "radio": _check_choice,
    "checkbox": _check_choice,
}


def check_submission(f: AnyField, value: ParsedValue) -> None:
    """Apply the field's own configuration rules to a parsed payload."""
    _SUBMISSION_CHECKS[f.type](f, value)


def _final_text(f: TextField, value: Any) -> None:
    if f.required and not value:
        raise RequiredFieldMissing(f'Field "{f.title}" requires a response')


def _final_radio(f: RadioField, value: Any) -> None:
    if f.required and not value:
        raise RequiredFieldMissing(f'Please select an option for "{f.title}"')


def _final_checkbox(f: CheckboxField, value: Any) -> None:
    if f.required and not value:
        raise RequiredFieldMissing(f'Please select at least one option for "{f.title}"')


def _final_list(f: ListField, value: Any) -> None:
    entries = value or []
    if f.max_entries and len(entries) > f.max_entries:
        raise MaxEntriesExceeded(f'Field "{f.title}" cannot exceed {f.max_entries} entries')
    if f.required and not entries:
        raise RequiredFieldMissing(f'Please select at least one option for "{f.title}"')


_FINAL_CHECKS: dict[str, Callable[[Any, Any], None]] = {
    "text": _final_text,
    "radio": _final_radio,
    "checkbox": _final_checkbox,
    "list": _final_list,
}


def check_final_value(f: AnyField, value: Any) -> None:
    """Validate the resolved finalization value of one field (``None`` if unset)."""
    _FINAL_CHECKS[f.type](f, value)
