"""
Deduplication

Two trades are duplicates when both Total and Result differ by less than
DUPLICATE_EPSILON. Trades flagged for correction additionally need the
same pair: this extends the Total/Result rule on purpose, since their
zero-defaulted fields carry no information and two different flagged
trades must both reach the user. The first occurrence wins; running the
pass again changes nothing.
"""

from typing import Iterable, List, Sequence, Tuple

from .config import DUPLICATE_EPSILON
from .models import Trade


def is_duplicate(a: Trade, b: Trade, epsilon: float = DUPLICATE_EPSILON) -> bool:
    if abs(a.total - b.total) >= epsilon or abs(a.result - b.result) >= epsilon:
        return False
    if a.needs_correction or b.needs_correction:
        return a.pair == b.pair
    return True


def deduplicate(trades: Sequence[Trade],
                accepted: Iterable[Trade] = (),
                epsilon: float = DUPLICATE_EPSILON) -> Tuple[List[Trade], List[Trade]]:
    """
    Drop trades that duplicate an accepted trade or an earlier one in `trades`

    Args:
        trades: New trades, in priority order
        accepted: Trades already kept (e.g. from earlier images)
        epsilon: Tolerance for Total and Result

    Returns:
        (kept, dropped)
    """
    seen: List[Trade] = list(accepted)
    kept: List[Trade] = []
    dropped: List[Trade] = []
    for trade in trades:
        if any(is_duplicate(trade, other, epsilon) for other in seen):
            dropped.append(trade)
            continue
        kept.append(trade)
        seen.append(trade)
    return kept, dropped
