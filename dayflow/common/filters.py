"""Query helpers: keyword filters and substring search for list endpoints."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from sqlalchemy import Select, String, and_, cast, or_
from sqlalchemy.orm import InstrumentedAttribute

# Suffix → comparison. A key without a suffix is an equality test.
_OPERATORS = {
    "__from": lambda col, v: col >= v,
    "__to": lambda col, v: col <= v,
    "__in": lambda col, v: col.in_(v),
    "__ilike": lambda col, v: col.ilike(f"%{v}%"),
}


def apply_filters(
    query: Select,
    model: Any,
    filters: dict[str, Any],
) -> Select:
    """Add a WHERE clause per non-``None`` entry of *filters*.

    Keys name a mapped attribute of *model*, optionally suffixed with
    ``__from``, ``__to``, ``__in`` or ``__ilike``. Unknown attributes raise
    ``AttributeError`` so typos in callers surface immediately.
    """
    conditions: list = []
    for key, value in filters.items():
        if value is None:
            continue
        name, compare = key, None
        for suffix, op in _OPERATORS.items():
            if key.endswith(suffix):
                name, compare = key.removesuffix(suffix), op
                break
        col = _column(model, name)
        conditions.append(compare(col, value) if compare else col == value)

    if conditions:
        query = query.where(and_(*conditions))
    return query


def apply_search(
    query: Select,
    model: Any,
    search: Optional[str],
    columns: Sequence[str],
) -> Select:
    """Case-insensitive substring match of *search* against any of *columns*."""
    if not search or not search.strip():
        return query
    term = f"%{search.strip()}%"
    return query.where(
        or_(*(cast(_column(model, name), String).ilike(term) for name in columns))
    )


def _column(model: Any, name: str) -> InstrumentedAttribute:
    col = getattr(model, name, None)
    if col is None:
        raise AttributeError(f"{model.__name__} has no attribute '{name}'")
    return col
