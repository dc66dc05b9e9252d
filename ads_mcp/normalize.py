"""Readers that turn nested API rows into flat, caller-friendly values.

Rows are read-only here. Absent or null metrics read as zero; ids are always
returned as plain strings.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional

from .gaql import MICROS

Row = Dict[str, Any]


def pick(row: Row, path: str, default: Any = None) -> Any:
    """Follow a dotted proto path (``"campaign_budget.amount_micros"``)."""
    node: Any = row
    for part in path.split("."):
        if not isinstance(node, dict):
            return default
        node = node.get(part)
        if node is None:
            return default
    return node


def ident(row: Row, path: str) -> Optional[str]:
    value = pick(row, path)
    return None if value is None else str(value)


def last_segment(resource: Optional[str], sep: str = "/") -> Optional[str]:
    if not resource:
        return None
    return str(resource).split(sep)[-1]


def from_micros(micros: Any) -> float:
    return round(int(Decimal(str(micros or 0))) / MICROS, 6)


def count(row: Row, path: str) -> int:
    return int(Decimal(str(pick(row, path, 0))))


def number(row: Row, path: str) -> float:
    return float(pick(row, path, 0.0))


def money(row: Row, path: str) -> float:
    return from_micros(pick(row, path))


def money_or_none(row: Row, path: str) -> Optional[float]:
    value = pick(row, path)
    return None if value is None else from_micros(value)


def safe_div(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def texts(items: Optional[Iterable[Any]]) -> List[str]:
    """Asset lists (``[{"text": ...}, ...]``) flattened to their text."""
    out = []
    for item in items or []:
        out.append(item.get("text", "") if isinstance(item, dict) else str(item))
    return out


def exclude_seen(rows: Iterable[Row], seen: Iterable[Row], key: Callable[[Row], Any]) -> List[Row]:
    """``rows`` minus any row whose ``key`` already appears in ``seen``; order kept."""
    seen_keys = {key(r) for r in seen}
    return [r for r in rows if key(r) not in seen_keys]
