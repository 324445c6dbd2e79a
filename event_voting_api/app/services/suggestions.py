"""
Other participants' suggestions, paginated per field.

Only the ``suggested*`` columns of responses are read, so nothing here
can reveal who voted for what.
"""

from typing import Iterable, Optional

from ..schemas.aggregate import HasMoreByField, Pagination, SuggestionSet, SuggestionsPage
from ..schemas.event import EventRead, EventSummary
from ..schemas.response import EventResponse
from .merge import DATE_CATEGORY, PLACE_CATEGORY


def _contributions(response: EventResponse) -> dict[str, list[str]]:
    """Suggestion key -> strings, merging the flattened date/place columns in."""
    result: dict[str, list[str]] = {}
    dates = list(response.suggested_dates) + response.suggested_options.get(DATE_CATEGORY, [])
    places = list(response.suggested_places) + response.suggested_options.get(PLACE_CATEGORY, [])
    result[DATE_CATEGORY] = list(dict.fromkeys(dates))
    result[PLACE_CATEGORY] = list(dict.fromkeys(places))
    for key, values in response.suggested_options.items():
        if key not in (DATE_CATEGORY, PLACE_CATEGORY):
            result[key] = list(dict.fromkeys(values))
    return result


def union_suggestions(
    responses: Iterable[EventResponse], requester_id: Optional[int] = None
) -> dict[str, list[str]]:
    """Case-sensitive first-seen union of suggestions, per key.

    ``responses`` must already be in a stable order (submission time,
    then id).  The requester's responses are skipped, and so is any
    string the requester contributed under the same key.
    """
    ordered = list(responses)
    own: dict[str, set[str]] = {}
    for response in ordered:
        if response.user_id == requester_id:
            for key, values in _contributions(response).items():
                own.setdefault(key, set()).update(values)

    union: dict[str, list[str]] = {DATE_CATEGORY: [], PLACE_CATEGORY: []}
    for response in ordered:
        if response.user_id == requester_id:
            continue
        for key, values in _contributions(response).items():
            bucket = union.setdefault(key, [])
            for value in values:
                if value not in bucket and value not in own.get(key, ()):
                    bucket.append(value)
    return union


def paginate_suggestions(
    event: Optional[EventRead],
    responses: Iterable[EventResponse],
    requester_id: Optional[int],
    page: int = 0,
    limit: int = 50,
    max_suggestions: int = 100,
) -> SuggestionsPage:
    """Return page ``page`` (0-based) of ``limit`` items per field.

    No field ever yields more than ``max_suggestions`` items across all
    pages; once that cap is reached ``hasMoreByField`` is false for the
    field even if more suggestions exist.
    """
    if page < 0:
        page = 0
    if limit < 1:
        limit = 1
    union = union_suggestions(responses, requester_id)

    start = page * limit
    values: dict[str, list[str]] = {}
    more: dict[str, bool] = {}
    total = 0
    for key, items in union.items():
        capped = items[:max_suggestions] if max_suggestions > 0 else items
        delivered = min(len(capped), start + limit)
        values[key] = capped[start:start + limit]
        more[key] = len(capped) > delivered
        total = max(total, len(capped))

    custom_keys = [k for k in union if k not in (DATE_CATEGORY, PLACE_CATEGORY)]
    by_field = HasMoreByField(
        dates=more[DATE_CATEGORY],
        places=more[PLACE_CATEGORY],
        custom_fields={k: more[k] for k in custom_keys},
    )
    return SuggestionsPage(
        event=EventSummary(id=event.id, name=event.name, description=event.description) if event else None,
        suggestions=SuggestionSet(
            dates=values[DATE_CATEGORY],
            places=values[PLACE_CATEGORY],
            custom_fields={k: values[k] for k in custom_keys},
        ),
        has_more=any(more.values()),
        has_more_by_field=by_field,
        pagination=Pagination(page=page, limit=limit, total=total),
    )
