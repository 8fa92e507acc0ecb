"""
Data model

Candidate -> Trade is the only path a recognized row takes into the
correction store. `Trade.profit` is derived in __post_init__, so every
constructed or replaced Trade satisfies profit == total * result / 100.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .base import OcrToken


def compute_profit(total: float, result: float) -> float:
    return total * result / 100


def new_trade_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Candidate:
    """Unvalidated extraction result for one anchor"""
    pair: Optional[str] = None
    total: Optional[float] = None
    result: Optional[float] = None
    source_tokens: List[OcrToken] = field(default_factory=list)
    confidence: float = 0.0
    context: str = ""

    @property
    def is_complete(self) -> bool:
        return self.pair is not None and self.total is not None and self.result is not None


@dataclass(frozen=True)
class Trade:
    """A SELL trade as shown to the user"""
    pair: str
    total: float
    result: float
    source_image_ref: str = ""
    confidence: float = 0.0
    needs_correction: bool = False
    debug_context: str = ""
    id: str = field(default_factory=new_trade_id)
    profit: float = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "profit", compute_profit(self.total, self.result))


@dataclass
class RecognitionAttempt:
    """One preprocessing variant x OCR pass for one image"""
    variant_name: str
    pass_name: str = "block"
    text: str = ""
    tokens: List[OcrToken] = field(default_factory=list)
    confidence: float = 0.0
    trades: List[Trade] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.variant_name}/{self.pass_name}"

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def trade_count(self) -> int:
        return len(self.trades)


@dataclass(frozen=True)
class AggregateStats:
    trade_count: int
    total_amount_sum: float
    profit_sum: float
    average_result: float

    def summary(self) -> str:
        """One-line summary: count, amount (2dp), signed profit (4dp), signed average (2dp)"""
        return (
            f"{self.trade_count} trades | total {self.total_amount_sum:.2f} | "
            f"profit {self.profit_sum:+.4f} | avg result {self.average_result:+.2f}%"
        )


def compute_stats(trades: Sequence[Trade]) -> AggregateStats:
    count = len(trades)
    total_sum = sum(t.total for t in trades)
    profit_sum = sum(t.profit for t in trades)
    average = sum(t.result for t in trades) / count if count else 0.0
    return AggregateStats(count, total_sum, profit_sum, average)
