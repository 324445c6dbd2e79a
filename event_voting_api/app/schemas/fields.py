"""
Pydantic models for custom field definitions.

An event may define any number of custom fields, keyed by field id.
Each field is one of four variants selected by its ``type``:

* ``text`` - free text, optionally read-only with a fixed ``value``;
* ``list`` - ordered entries, the organizer's ``values`` followed by
  entries participants add;
* ``radio`` - single choice among ``options``;
* ``checkbox`` - multiple choice among ``options``.

``CustomField`` is a discriminated union over the four models.  The
validators below enforce the organizer-side rules at event creation
time; participant-side rules live in ``services.field_model``.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import Field, model_validator

from .base import CamelModel


class FieldBase(CamelModel):
    id: Union[int, str] = Field(..., examples=[1])
    title: str = Field(..., min_length=1, examples=["Food preference"])
    placeholder: str = ""
    required: bool = False
    readonly: bool = False
    optional: bool = False


class TextField(FieldBase):
    type: Literal["text"] = "text"
    value: str = ""

    @model_validator(mode="after")
    def _readonly_needs_value(self) -> "TextField":
        if self.readonly and not self.value.strip():
            raise ValueError(f'Read-only text field "{self.title}" must have a value')
        return self


class ListField(FieldBase):
    type: Literal["list"] = "list"
    values: list[str] = Field(default_factory=list)
    # 0 means unlimited
    max_entries: int = Field(0, ge=0)
    allow_user_add: bool = False

    @model_validator(mode="after")
    def _check_list_rules(self) -> "ListField":
        if self.readonly:
            if self.allow_user_add:
                raise ValueError(f'Read-only list field "{self.title}" cannot allow users to add entries')
            if any(not v.strip() for v in self.values):
                raise ValueError(f'All entries in read-only list field "{self.title}" must have values')
            if self.max_entries and len(self.values) != self.max_entries:
                raise ValueError(
                    f'Read-only list field "{self.title}" must have exactly {self.max_entries} '
                    f"entries, but has {len(self.values)}"
                )
        else:
            if not self.allow_user_add:
                raise ValueError(f'List field "{self.title}" must allow users to add entries')
            # Blank rows are UI placeholders, not organizer entries.
            self.values = [v for v in self.values if v.strip()]
            if self.max_entries and len(self.values) >= self.max_entries:
                raise ValueError(f'List field "{self.title}" is full and does not allow more entries')
        if self.max_entries and len(self.values) > self.max_entries:
            raise ValueError(
                f'Number of entries in list field "{self.title}" ({len(self.values)}) '
                f"exceeds maximum allowed ({self.max_entries})"
            )
        return self


class FieldOption(CamelModel):
    id: Union[int, str]
    label: str
    # Preset state of a checkbox option; only meaningful for read-only fields.
    checked: Optional[bool] = None


class _ChoiceField(FieldBase):
    options: list[FieldOption] = Field(default_factory=list)
    # 0 means unlimited
    max_options: int = Field(0, ge=0)
    allow_user_add_options: bool = False

    def _check_options(self, minimum: int, kind: str) -> None:
        if len(self.options) < minimum:
            noun = "option" if minimum == 1 else "options"
            raise ValueError(f'{kind} field "{self.title}" must have at least {minimum} {noun}')
        seen: set[str] = set()
        for index, option in enumerate(self.options):
            if not option.label.strip():
                raise ValueError(f'Option {index + 1} in field "{self.title}" must have a label')
            key = option.label.strip().lower()
            if key in seen:
                raise ValueError(f'Option "{option.label}" appears twice in field "{self.title}"')
            seen.add(key)
        if self.max_options and len(self.options) > self.max_options:
            raise ValueError(
                f'Field "{self.title}" has {len(self.options)} options but allows at most {self.max_options}'
            )

    def option_labels(self) -> list[str]:
        return [option.label for option in self.options]


class RadioField(_ChoiceField):
    type: Literal["radio"] = "radio"
    selected_option: Optional[Union[int, str]] = None

    @model_validator(mode="after")
    def _check_radio(self) -> "RadioField":
        self._check_options(2, "Radio")
        if self.readonly and self.selected_option is None:
            raise ValueError(f'Read-only radio field "{self.title}" must have a selected option')
        return self


class CheckboxField(_ChoiceField):
    type: Literal["checkbox"] = "checkbox"

    @model_validator(mode="after")
    def _check_checkbox(self) -> "CheckboxField":
        self._check_options(1, "Checkbox")
        return self


CustomField = Annotated[
    Union[TextField, ListField, RadioField, CheckboxField],
    Field(discriminator="type"),
]
