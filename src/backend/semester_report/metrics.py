from __future__ import annotations

import math
from collections import Counter
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

T = TypeVar("T")


def safe_ratio(numerator: float, denominator: float) -> float:
    """
    Divide without letting NaN/Infinity leak into a report.

    A zero or non-finite denominator yields 0.0.
    """

    if not denominator or not math.isfinite(denominator):
        return 0.0
    value = numerator / denominator
    return value if math.isfinite(value) else 0.0


def percentage(numerator: float, denominator: float) -> float:
    return safe_ratio(numerator, denominator) * 100


def top_n(
    items: Iterable[T],
    key: Callable[[T], Any],
    n: int,
    descending: bool = True,
    tie_key: Optional[Callable[[T], Any]] = None,
) -> List[T]:
    """
    Return the first ``n`` items ordered by ``key``.

    Equal keys fall back to ``tie_key`` ascending (then input order, as the
    sort is stable), so the selection does not depend on fetch order.
    """

    ordered = sorted(items, key=tie_key) if tie_key is not None else list(items)
    ordered.sort(key=key, reverse=descending)
    return ordered[: max(n, 0)]


def tally(values: Iterable[Any]) -> Dict[str, int]:
    # Empty values are not a bucket; keys keep first-seen order.
    counts: Counter = Counter(str(value) for value in values if value is not None and str(value).strip())
    return dict(counts)
