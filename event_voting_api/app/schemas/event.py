"""
Pydantic models for events and their voting categories.

An event owns its date/place configuration, its custom fields and the
list of voting categories.  Each category holds uniquely named options
and each option the ids of the users currently voting for it.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import Field, field_validator

from .base import CamelModel, canonical_instant
from .fields import CustomField


class VotingOption(CamelModel):
    option_name: str = Field(..., examples=["2024-01-01T10:00:00.000Z"])
    votes: list[int] = Field(default_factory=list)


class VotingCategory(CamelModel):
    category_name: str = Field(..., examples=["date"])
    # Owning custom field for radio/checkbox categories.  ``None`` for
    # the built-in "date" and "place" categories.
    field_id: Optional[str] = None
    options: list[VotingOption] = Field(default_factory=list)


def _unique_nonblank(values: list[str]) -> list[str]:
    result: list[str] = []
    for value in values:
        value = value.strip()
        if value and value not in result:
            result.append(value)
    return result


class EventDates(CamelModel):
    dates: list[str] = Field(default_factory=list, examples=[["2024-01-01T10:00Z"]])
    # 0 means unlimited for both caps
    max_dates: int = Field(0, ge=0)
    allow_user_add: bool = False
    max_votes: int = Field(0, ge=0)

    @field_validator("dates")
    @classmethod
    def _canonical_dates(cls, dates: list[str]) -> list[str]:
        try:
            return _unique_nonblank([canonical_instant(d) for d in dates if d.strip()])
        except ValueError as exc:
            raise ValueError("Dates must be valid ISO-8601 strings") from exc


class EventPlaces(CamelModel):
    places: list[str] = Field(default_factory=list, examples=[["Main hall"]])
    max_places: int = Field(0, ge=0)
    allow_user_add: bool = False
    max_votes: int = Field(0, ge=0)

    @field_validator("places")
    @classmethod
    def _clean_places(cls, places: list[str]) -> list[str]:
        return _unique_nonblank(places)


class EventCreate(CamelModel):
    """Schema for creating an event."""

    name: str = Field(..., min_length=1, examples=["Team dinner"])
    description: str = Field(..., min_length=1, examples=["Pick a date and a place"])
    event_dates: EventDates = Field(default_factory=EventDates)
    event_places: EventPlaces = Field(default_factory=EventPlaces)
    custom_fields: dict[str, CustomField] = Field(default_factory=dict)
    closes_by: Optional[datetime] = None

    @field_validator("closes_by")
    @classmethod
    def _closes_in_future(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        if value <= datetime.now(timezone.utc):
            raise ValueError("Closing date must be a valid future date")
        return value


class EventRead(CamelModel):
    """An event as stored, including its voting categories."""

    id: int
    event_code: str
    name: str
    description: str
    created_by: int
    status: str = "open"
    closes_by: Optional[datetime] = None
    event_date: Optional[str] = None
    place: Optional[str] = None
    event_dates: EventDates
    event_places: EventPlaces
    custom_fields: dict[str, CustomField] = Field(default_factory=dict)
    voting_categories: list[VotingCategory] = Field(default_factory=list)
    version: int = 0
    created_at: datetime
    updated_at: datetime


class EventSummary(CamelModel):
    id: int
    name: str
    description: str


class OptionRemoval(CamelModel):
    category_name: str
    option_name: str
