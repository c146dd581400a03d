"""
Query engine — filtering, ordering and grouping over stored records.

Pure functions over a sequence of ``StructuredRecord``; the storage
engine calls them while holding its lock. Filters are conjunctive: a
record matches only if every supplied predicate holds. Unrecognized
filter keys are ignored.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from core.exceptions import ConfigurationError
from events.event_models import StructuredRecord

SORT_TIMESTAMP = "timestamp"

FILTER_SERVICE = "service"
FILTER_LEVEL = "level"
FILTER_USERNAME = "username"
FILTER_BLACKLISTED = "is.blacklisted"


def _wants_true(value: str) -> bool:
    return value.strip().lower() == "true"


_PREDICATES: dict[str, Callable[[StructuredRecord, str], bool]] = {
    FILTER_SERVICE: lambda r, v: r.event_category == v,
    FILTER_LEVEL: lambda r, v: (r.severity or "").casefold() == v.casefold(),
    FILTER_USERNAME: lambda r, v: (r.username or "") == v,
    FILTER_BLACKLISTED: lambda r, v: r.is_blacklisted == _wants_true(v),
}

FILTER_KEYS: tuple[str, ...] = tuple(_PREDICATES)

_GROUP_FIELDS: dict[str, Callable[[StructuredRecord], str]] = {
    "category": lambda r: r.event_category or "",
    "severity": lambda r: r.severity or "",
}


@dataclass(frozen=True)
class RecordQuery:
    """A filter / limit / sort triple.

    Attributes:
        filters: Filter key → expected value (see ``FILTER_KEYS``).
        limit: Max results after sorting; ``<= 0`` means unlimited.
        sort_key: ``"timestamp"`` for ascending chronological order;
            anything else keeps append order.
    """

    filters: Mapping[str, str] = field(default_factory=dict)
    limit: int = 0
    sort_key: str = ""


def matches(record: StructuredRecord, filters: Mapping[str, str]) -> bool:
    """True if ``record`` satisfies every recognized filter."""
    for key, value in filters.items():
        predicate = _PREDICATES.get(key)
        if predicate is not None and not predicate(record, value):
            return False
    return True


def run_query(records: Iterable[StructuredRecord], query: RecordQuery) -> list[StructuredRecord]:
    """Filter, optionally sort (stable), then truncate."""
    results = [r for r in records if matches(r, query.filters)]
    if query.sort_key == SORT_TIMESTAMP:
        results.sort(key=lambda r: r.timestamp)
    if query.limit > 0:
        results = results[: query.limit]
    return results


def group_counts(records: Sequence[StructuredRecord], field_name: str) -> dict[str, int]:
    """Count records per distinct value of ``category`` or ``severity``.

    Absent values are counted under the empty-string key.

    Raises:
        ConfigurationError: If ``field_name`` is not a groupable field.
    """
    getter = _GROUP_FIELDS.get(field_name)
    if getter is None:
        raise ConfigurationError(
            f"Cannot group by '{field_name}'. Valid fields: {sorted(_GROUP_FIELDS)}"
        )
    counts: dict[str, int] = {}
    for record in records:
        key = getter(record)
        counts[key] = counts.get(key, 0) + 1
    return counts
