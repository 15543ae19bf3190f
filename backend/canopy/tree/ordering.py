"""
Canopy Backend: Sibling Ranks
==============================

Items under one folder are ordered by a float `order`. Ranks are spaced by
ORDER_STEP so an item can always be slotted between two neighbours by taking
the midpoint, without renumbering the others. Root items have no rank.
"""

import uuid
from typing import Iterable, List, Optional, Sequence, Tuple

ORDER_STEP = 20.0

Sibling = Tuple[uuid.UUID, Optional[float]]


def _ranked(orders: Iterable[Optional[float]]) -> List[float]:
    return sorted(o for o in orders if o is not None)


def rank_first(orders: Iterable[Optional[float]]) -> float:
    ranked = _ranked(orders)
    if not ranked:
        return ORDER_STEP
    first = ranked[0]
    return first / 2 if first > 0 else first - ORDER_STEP


def rank_last(orders: Iterable[Optional[float]]) -> float:
    ranked = _ranked(orders)
    return ranked[-1] + ORDER_STEP if ranked else ORDER_STEP


def rank_after(siblings: Sequence[Sibling], previous_id: Optional[uuid.UUID]) -> float:
    """
    Rank for an item placed right after sibling `previous_id`.

    No `previous_id` places the item first. A `previous_id` that is not one
    of `siblings` (or has no rank) places it last.
    """
    orders = [order for _, order in siblings]
    if previous_id is None:
        return rank_first(orders)

    previous = next((order for sid, order in siblings if sid == previous_id), None)
    if previous is None:
        return rank_last(orders)

    following = [o for o in _ranked(orders) if o > previous]
    if following:
        return (previous + following[0]) / 2
    return previous + ORDER_STEP
