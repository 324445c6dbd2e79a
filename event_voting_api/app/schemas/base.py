"""
Shared pydantic base model and small value helpers.

All payloads exchanged with the UI use camelCase names (``categoryName``,
``maxVotes``...).  ``CamelModel`` generates those aliases from the
snake_case attribute names and still accepts either form on input.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def canonical_instant(value: str) -> str:
    """Normalise an ISO-8601 date/time string to a UTC instant.

    ``"2024-01-01T10:00Z"`` and ``"2024-01-01T12:00+02:00"`` both become
    ``"2024-01-01T10:00:00.000Z"``.  Naive values are taken as UTC.
    Raises ``ValueError`` for anything that is not a valid date.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    parsed = parsed.astimezone(timezone.utc)
    return parsed.strftime("%Y-%m-%dT%H:%M:%S.") + f"{parsed.microsecond // 1000:03d}Z"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()
