"""
Event channel

Extraction and correction code report what happened through typed events
instead of side effects. Subscribers are observers only: a failing
subscriber is logged and skipped, results are never affected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """Emitted after each image, and after each attempt within an image"""
    images_done: int
    images_total: int
    attempts_done: int
    image_ref: str

    @property
    def percent(self) -> int:
        if self.images_total <= 0:
            return 100
        return round(self.images_done / self.images_total * 100)


@dataclass(frozen=True)
class AttemptCompleted:
    image_ref: str
    variant: str
    trade_count: int
    confidence: float


@dataclass(frozen=True)
class AttemptFailed:
    image_ref: str
    variant: str
    error: str


@dataclass(frozen=True)
class AttemptSelected:
    image_ref: str
    variant: str
    trade_count: int
    confidence: float


@dataclass(frozen=True)
class TradeExtracted:
    image_ref: str
    trade_id: str
    pair: str
    needs_correction: bool


@dataclass(frozen=True)
class IncompleteCandidate:
    """A candidate without a pair; it did not become a trade"""
    image_ref: str
    context: str


@dataclass(frozen=True)
class DuplicateDropped:
    image_ref: str
    pair: str
    total: float
    result: float


@dataclass(frozen=True)
class EditCoerced:
    trade_id: str
    field: str
    raw_value: str


@dataclass(frozen=True)
class StoreChanged:
    operation: str
    trade_id: Optional[str]
    trade_count: int


Subscriber = Callable[[object], None]


class EventChannel:
    """Fan-out of events to subscribers, in subscription order"""

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a subscriber; returns a function that unsubscribes it"""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def emit(self, event: object) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception:
                logger.exception("Event subscriber failed on %s", type(event).__name__)


class EventRecorder:
    """Subscriber that keeps every event, for diagnostics and tests"""

    def __init__(self) -> None:
        self.events: List[object] = []

    def __call__(self, event: object) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> List[object]:
        return [e for e in self.events if isinstance(e, event_type)]
