"""
Pydantic models for aggregated views of an event.

``SuggestionsPage`` is what participants see: other people's suggested
values, without any voter identities.  ``EventAggregates`` is the
organizer view and does expose who voted for what.
"""

from typing import Literal, Optional

from pydantic import Field

from .base import CamelModel
from .event import EventRead, EventSummary
from .response import EventResponse


class SuggestionSet(CamelModel):
    dates: list[str] = Field(default_factory=list)
    places: list[str] = Field(default_factory=list)
    custom_fields: dict[str, list[str]] = Field(default_factory=dict)


class HasMoreByField(CamelModel):
    dates: bool = False
    places: bool = False
    custom_fields: dict[str, bool] = Field(default_factory=dict)


class Pagination(CamelModel):
    page: int
    limit: int
    total: int


class SuggestionsPage(CamelModel):
    event: Optional[EventSummary] = None
    suggestions: SuggestionSet
    has_more: bool
    has_more_by_field: HasMoreByField
    pagination: Pagination


class VoterDetail(CamelModel):
    id: int
    email: Optional[str] = None
    name: Optional[str] = None


class ChartOption(CamelModel):
    option_name: str
    vote_count: int
    voters: list[int] = Field(default_factory=list)
    voter_details: list[VoterDetail] = Field(default_factory=list)
    is_original: bool = False
    added_by: Optional[VoterDetail] = None


class ChartCategory(CamelModel):
    category_name: str
    field_id: Optional[str] = None
    options: list[ChartOption] = Field(default_factory=list)


class ListFieldData(CamelModel):
    field_id: str
    category_name: str
    field_type: Literal["list"] = "list"
    options: list[ChartOption] = Field(default_factory=list)


class TextResponseEntry(CamelModel):
    user_id: int
    user_email: str
    user_name: Optional[str] = None
    response: str


class TextFieldData(CamelModel):
    field_id: str
    category_name: str
    responses: list[TextResponseEntry] = Field(default_factory=list)


class EventAggregates(CamelModel):
    event: EventRead
    responses: list[EventResponse] = Field(default_factory=list)
    charts_data: list[ChartCategory] = Field(default_factory=list)
    list_fields_data: list[ListFieldData] = Field(default_factory=list)
    text_fields_data: list[TextFieldData] = Field(default_factory=list)
