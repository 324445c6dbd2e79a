"""
Pydantic models for event finalization.

The organizer UI submits ``FinalizeSelections``: dropdown picks keyed
``category-<name>-<groupIndex>``, chosen list entries and, for text
fields, the id of the respondent whose answer was picked (or
``"readonly-default"`` for the field's configured value).  ``date`` and
``place`` may also be sent directly, which takes precedence over the
keyed picks.
"""

from datetime import datetime
from typing import Optional, Union

from pydantic import Field

from .aggregate import VoterDetail
from .base import CamelModel

READONLY_DEFAULT = "readonly-default"


class FinalizeSelections(CamelModel):
    category_selections: dict[str, str] = Field(
        default_factory=dict, examples=[{"category-date-0": "2024-01-01T10:00:00.000Z"}]
    )
    list_selections: dict[str, list[str]] = Field(default_factory=dict)
    text_selections: dict[str, str] = Field(default_factory=dict)
    date: Optional[str] = None
    place: Optional[str] = None


class CustomFieldSelection(CamelModel):
    field_id: str
    field_type: str
    field_title: str
    selection: Union[str, list[str]]
    voter_details: list[VoterDetail] = Field(default_factory=list)


class FinalizedEvent(CamelModel):
    event_id: int
    finalized_date: Optional[str] = None
    finalized_place: Optional[str] = None
    custom_field_selections: dict[str, CustomFieldSelection] = Field(default_factory=dict)
    finalized_by: int
    finalized_at: datetime


class FinalizePreview(CamelModel):
    valid: bool
    message: str = ""
    empty_optional_fields: list[str] = Field(default_factory=list)
