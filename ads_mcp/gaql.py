"""Helpers for building GAQL queries and mutate operations."""

from __future__ import annotations

import datetime
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from .errors import ArgumentError

MICROS = 1_000_000

# Tokens GAQL accepts after DURING. Anything else is resolved to explicit dates.
NATIVE_RANGES = frozenset({
    "TODAY", "YESTERDAY", "LAST_7_DAYS", "LAST_14_DAYS", "LAST_30_DAYS", "THIS_MONTH", "LAST_MONTH",
})

E = TypeVar("E", bound=Enum)


def closed_mapping(enum_cls: Type[E], mapping: Mapping[E, str]) -> Mapping[E, str]:
    """Freeze ``mapping`` after checking it covers every member of ``enum_cls``."""
    missing = [m.name for m in enum_cls if m not in mapping]
    if missing:
        raise TypeError(f"{enum_cls.__name__} has no field mapping for: {', '.join(missing)}")
    return MappingProxyType(dict(mapping))


def to_micros(amount) -> int:
    """Currency amount -> integer micros, flooring any fractional micro."""
    return int((Decimal(str(amount)) * MICROS).to_integral_value(rounding=ROUND_FLOOR))


def resource_name(customer_id: str, collection: str, *ids: str) -> str:
    return f"customers/{customer_id}/{collection}/{'~'.join(str(i) for i in ids)}"


def _quarter_start(d: datetime.date) -> datetime.date:
    return datetime.date(d.year, 3 * ((d.month - 1) // 3) + 1, 1)


def resolve_window(token: str, today: Optional[datetime.date] = None) -> Tuple[datetime.date, datetime.date]:
    """Start/end dates for the named windows GAQL has no DURING token for."""
    today = today or datetime.date.today()
    if token == "LAST_90_DAYS":
        # same convention as LAST_30_DAYS: today is excluded
        return today - datetime.timedelta(days=90), today - datetime.timedelta(days=1)
    if token == "THIS_QUARTER":
        return _quarter_start(today), today
    if token == "LAST_QUARTER":
        end = _quarter_start(today) - datetime.timedelta(days=1)
        return _quarter_start(end), end
    if token == "THIS_YEAR":
        return datetime.date(today.year, 1, 1), today
    if token == "LAST_YEAR":
        return datetime.date(today.year - 1, 1, 1), datetime.date(today.year - 1, 12, 31)
    raise ValueError(f"Unsupported date range '{token}'")


def between(start, end) -> str:
    return f"segments.date BETWEEN '{start:%Y-%m-%d}' AND '{end:%Y-%m-%d}'"


def date_condition(date_range: str, custom=None, today: Optional[datetime.date] = None) -> Optional[str]:
    """WHERE condition for a date window, or None for ALL_TIME.

    ``custom`` is any object with ``start_date``/``end_date`` and is only
    consulted for the ``CUSTOM`` sentinel.
    """
    if date_range == "ALL_TIME":
        return None
    if date_range == "CUSTOM":
        if custom is None:
            raise ArgumentError("customDateRange: required when dateRange is CUSTOM")
        return between(custom.start_date, custom.end_date)
    if date_range in NATIVE_RANGES:
        return f"segments.date DURING {date_range}"
    return between(*resolve_window(date_range, today))


def id_equals(field: str, value: Optional[str]) -> Optional[str]:
    return f"{field} = {value}" if value else None


def not_removed(field: str) -> str:
    return f"{field} != 'REMOVED'"


def build_query(
    select: Sequence[str],
    resource: str,
    where: Iterable[Optional[str]] = (),
    order_by: Optional[str] = None,
    direction: str = "DESC",
    limit: Optional[int] = None,
) -> str:
    parts = [f"SELECT {', '.join(select)}", f"FROM {resource}"]
    conditions = [c for c in where if c]
    if conditions:
        parts.append("WHERE " + " AND ".join(conditions))
    if order_by:
        parts.append(f"ORDER BY {order_by} {direction}")
    if limit is not None:
        parts.append(f"LIMIT {int(limit)}")
    return " ".join(parts)
