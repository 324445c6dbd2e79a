"""
Pydantic models for participant responses.

``ResponseSubmission`` is what a participant sends; ``EventResponse`` is
what gets stored (one per event and user).  Custom field payloads stay
loosely typed here because their shape depends on the field variant;
``services.field_model`` parses them per variant.
"""

from datetime import datetime
from typing import Any

from pydantic import Field

from .base import CamelModel
from .event import VotingCategory


class ResponseSubmission(CamelModel):
    selected_dates: list[str] = Field(default_factory=list, examples=[["2024-01-01T10:00Z"]])
    selected_places: list[str] = Field(default_factory=list, examples=[["Main hall"]])
    suggested_dates: list[str] = Field(default_factory=list)
    suggested_places: list[str] = Field(default_factory=list)
    # field id -> payload.  text: str; list: [str]; radio: str or
    # {"value", "userAddedOptions"}; checkbox: {optionId: bool, "userAddedOptions"}
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class FieldResponse(CamelModel):
    field_id: str
    type: str
    response: Any = None


class EventResponse(CamelModel):
    id: int
    event_id: int
    user_id: int
    user_email: str
    field_responses: list[FieldResponse] = Field(default_factory=list)
    # Names this user introduced that were not already options.
    suggested_dates: list[str] = Field(default_factory=list)
    suggested_places: list[str] = Field(default_factory=list)
    suggested_options: dict[str, list[str]] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class SubmitResult(CamelModel):
    response: EventResponse
    voting_categories: list[VotingCategory]


class UserEventResponse(CamelModel):
    field_responses: list[FieldResponse] = Field(default_factory=list)
    user_votes: dict[str, list[str]] = Field(default_factory=dict)
    user_added_options: dict[str, list[str]] = Field(default_factory=dict)
    user_suggested_dates: list[str] = Field(default_factory=list)
    user_suggested_places: list[str] = Field(default_factory=list)
    has_response: bool = False
