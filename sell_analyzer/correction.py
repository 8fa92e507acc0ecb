"""
Correction store

Holds the accepted trades of a session and the human-correction workflow:

    Accepted(needs_correction) --begin_edit--> Editing
    Editing --commit_edit--> Accepted(needs_correction=False)
    Editing --cancel_edit--> Accepted(unchanged)

Single user, single session: at most one edit is in flight. Numeric input
that does not parse becomes 0 instead of being rejected. Aggregate
statistics are recomputed from the current trades on every read.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from .errors import DuplicateTradeId, EditStateError, NotFound
from .events import EditCoerced, EventChannel, StoreChanged
from .models import AggregateStats, Trade, compute_stats
from .patterns import MINUS_GLYPHS

logger = logging.getLogger(__name__)

NumericInput = Union[str, int, float, None]


@dataclass
class EditDraft:
    """Mutable copy of a trade while it is being corrected"""
    trade_id: str
    pair: str
    total: NumericInput
    result: NumericInput


def coerce_number(value: NumericInput) -> Tuple[float, bool]:
    """
    Parse user input as a number

    Accepts numbers and strings like "274,12", "+6.26%", "−6.26" or " 100 ".

    Returns:
        (value, ok) where value is 0.0 when ok is False
    """
    if isinstance(value, bool):
        return 0.0, False
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = (value or "").strip().replace(" ", "").replace(",", ".").rstrip("%")
        for glyph in MINUS_GLYPHS[1:]:
            text = text.replace(glyph, "-")
        try:
            number = float(text)
        except ValueError:
            return 0.0, False
    if not math.isfinite(number):
        return 0.0, False
    return number, True


class CorrectionStore:
    """
    Accepted trades plus edit/delete/add operations

    Args:
        strict: Raise NotFound for unknown ids (otherwise log and ignore)
        channel: Event channel for StoreChanged / EditCoerced
    """

    def __init__(self, *, strict: bool = True, channel: Optional[EventChannel] = None):
        self.strict = strict
        self.channel = channel or EventChannel()
        self._trades: Dict[str, Trade] = {}
        self._used_ids: Set[str] = set()
        self._editing_id: Optional[str] = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def trades(self) -> List[Trade]:
        return list(self._trades.values())

    @property
    def stats(self) -> AggregateStats:
        return compute_stats(self.trades)

    @property
    def editing(self) -> Optional[str]:
        """Id of the trade being edited, if any"""
        return self._editing_id

    def __len__(self) -> int:
        return len(self._trades)

    def __contains__(self, trade_id: object) -> bool:
        return trade_id in self._trades

    def get(self, trade_id: str) -> Trade:
        try:
            return self._trades[trade_id]
        except KeyError:
            raise NotFound(trade_id) from None

    def pending_corrections(self) -> List[Trade]:
        return [t for t in self._trades.values() if t.needs_correction]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, trade: Trade) -> Trade:
        """
        Append a trade

        Raises:
            DuplicateTradeId: id is present or was used earlier in the session
        """
        if trade.id in self._used_ids:
            raise DuplicateTradeId(f"Trade id already used: {trade.id}")
        self._used_ids.add(trade.id)
        self._trades[trade.id] = trade
        self._changed("add", trade.id)
        return trade

    def extend(self, trades: Iterable[Trade]) -> None:
        for trade in trades:
            self.add(trade)

    def begin_edit(self, trade_id: str) -> Optional[EditDraft]:
        """
        Start editing a trade

        Raises:
            NotFound: unknown id (strict mode)
            EditStateError: another edit is in flight
        """
        if self._editing_id is not None:
            raise EditStateError(f"Trade {self._editing_id} is already being edited")
        if not self._exists(trade_id, "begin_edit"):
            return None
        trade = self._trades[trade_id]
        self._editing_id = trade.id
        return EditDraft(trade.id, trade.pair, trade.total, trade.result)

    def commit_edit(self, draft: EditDraft) -> Optional[Trade]:
        """
        Save a draft: parse numbers, recompute profit, clear the correction flag

        Raises:
            EditStateError: no edit in flight, or the draft is for another trade
            NotFound: the trade disappeared (strict mode)
        """
        if self._editing_id is None:
            raise EditStateError("No edit in progress")
        if draft.trade_id != self._editing_id:
            raise EditStateError(
                f"Draft is for {draft.trade_id}, but {self._editing_id} is being edited"
            )
        self._editing_id = None
        if not self._exists(draft.trade_id, "commit_edit"):
            return None

        trade = self._trades[draft.trade_id]
        total = self._coerce(draft.trade_id, "total", draft.total)
        result = self._coerce(draft.trade_id, "result", draft.result)
        pair = (draft.pair or "").strip().upper() or trade.pair

        updated = replace(trade, pair=pair, total=total, result=result, needs_correction=False)
        self._trades[trade.id] = updated
        self._changed("edit", trade.id)
        return updated

    def cancel_edit(self) -> None:
        self._editing_id = None

    def delete(self, trade_id: str) -> bool:
        """
        Remove a trade; its id is never reused

        Raises:
            NotFound: unknown id (strict mode)
        """
        if not self._exists(trade_id, "delete"):
            return False
        del self._trades[trade_id]
        if self._editing_id == trade_id:
            self._editing_id = None
        self._changed("delete", trade_id)
        return True

    def clear_all(self) -> None:
        self._trades.clear()
        self._editing_id = None
        self._changed("clear", None)

    # ------------------------------------------------------------------

    def _exists(self, trade_id: str, operation: str) -> bool:
        if trade_id in self._trades:
            return True
        if self.strict:
            raise NotFound(trade_id)
        logger.warning("%s: unknown trade id %s ignored", operation, trade_id)
        return False

    def _coerce(self, trade_id: str, field_name: str, raw: NumericInput) -> float:
        value, ok = coerce_number(raw)
        if not ok:
            logger.warning("Invalid %s %r for trade %s, using 0", field_name, raw, trade_id)
            self.channel.emit(EditCoerced(trade_id, field_name, str(raw)))
        return value

    def _changed(self, operation: str, trade_id: Optional[str]) -> None:
        self.channel.emit(StoreChanged(operation, trade_id, len(self._trades)))
