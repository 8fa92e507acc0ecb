"""
Batch processing

Images are processed one after another with a single OCR engine owned by
the batch. Per-image and per-attempt failures are isolated; only an
engine that cannot start aborts the batch.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from .config import BatchConfig
from .dedup import deduplicate
from .errors import EngineUnavailable
from .events import DuplicateDropped, EventChannel, ProgressEvent, TradeExtracted
from .fusion import ImageReport, StrategyFusion
from .models import AggregateStats, Trade, compute_stats
from .correction import CorrectionStore
from .ocr.session import engine_session
from .ocr.variants import OpenCvPreprocessor, Preprocessor

logger = logging.getLogger(__name__)


@dataclass
class BatchImage:
    """One screenshot: a reference for the user and the image (array or path)"""
    ref: str
    image: Any


@dataclass
class BatchResult:
    trades: List[Trade] = field(default_factory=list)
    images: List[ImageReport] = field(default_factory=list)
    cancelled: bool = False

    @property
    def stats(self) -> AggregateStats:
        return compute_stats(self.trades)

    @property
    def failed_images(self) -> List[str]:
        return [r.image_ref for r in self.images if r.failed]


class CancellationToken:
    """Checked between images; may be cancelled from any thread"""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class _Progress:
    """Monotonic progress counters"""

    def __init__(self, channel: EventChannel, total: int):
        self.channel = channel
        self.total = total
        self.images_done = 0
        self.attempts_done = 0
        self.current_ref = ""

    def attempt_done(self) -> None:
        self.attempts_done += 1
        self._emit()

    def image_done(self) -> None:
        self.images_done += 1
        self._emit()

    def _emit(self) -> None:
        self.channel.emit(ProgressEvent(
            self.images_done, self.total, self.attempts_done, self.current_ref
        ))


async def process_batch(images: Sequence[BatchImage],
                        config: Optional[BatchConfig] = None,
                        *,
                        store: Optional[CorrectionStore] = None,
                        preprocessor: Optional[Preprocessor] = None,
                        channel: Optional[EventChannel] = None,
                        cancel_token: Optional[CancellationToken] = None) -> BatchResult:
    """
    Extract SELL trades from a batch of screenshots

    Args:
        images: Screenshots in processing order
        config: Batch settings (engine, OCR passes, extraction strategies)
        store: If given, kept trades are added to it as each image completes
        preprocessor: Variant generator; defaults to OpenCV variants named in config.variants
        channel: Event channel for progress and diagnostics
        cancel_token: Stops the batch before the next image

    Returns:
        BatchResult with the kept trades and one ImageReport per processed image

    Raises:
        EngineUnavailable: the OCR engine could not be started
    """
    config = config or BatchConfig()
    channel = channel or EventChannel()
    if preprocessor is None and config.variants:
        preprocessor = OpenCvPreprocessor(config.variants)

    result = BatchResult()
    progress = _Progress(channel, len(images))
    logger.info("Batch started: %d images", len(images))

    try:
        async with engine_session(config.engine, config.ocr) as slot:
            fusion = StrategyFusion(slot, config, preprocessor, channel)

            for item in images:
                if cancel_token is not None and cancel_token.cancelled:
                    logger.info("Batch cancelled after %d of %d images",
                                progress.images_done, len(images))
                    result.cancelled = True
                    break

                progress.current_ref = item.ref
                report = await fusion.run(item.ref, item.image, on_attempt=progress.attempt_done)
                result.images.append(report)
                _merge(report, result, store, config, channel)
                progress.image_done()
    except EngineUnavailable as e:
        logger.error("OCR engine unavailable, batch aborted: %s", e)
        raise

    logger.info("Batch finished: %s", result.stats.summary())
    if result.failed_images:
        logger.warning("Images without result: %s", ", ".join(result.failed_images))
    return result


def _merge(report: ImageReport,
           result: BatchResult,
           store: Optional[CorrectionStore],
           config: BatchConfig,
           channel: EventChannel) -> None:
    trades = report.trades
    if config.extraction.dedupe_across_images:
        accepted = store.trades if store is not None else result.trades
        trades, dropped = deduplicate(trades, accepted)
        for trade in dropped:
            logger.debug("Duplicate of an earlier image dropped: %s %.4f %+.2f%%",
                         trade.pair, trade.total, trade.result)
            channel.emit(DuplicateDropped(report.image_ref, trade.pair, trade.total, trade.result))

    for trade in trades:
        result.trades.append(trade)
        if store is not None:
            store.add(trade)
        channel.emit(TradeExtracted(report.image_ref, trade.id, trade.pair, trade.needs_correction))
    logger.info("%s: %d trades kept", report.image_ref, len(trades))
