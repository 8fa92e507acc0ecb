"""
Strategy fusion

Runs extraction once per (preprocessing variant x OCR pass) of one image
and keeps a single attempt: most trades wins, ties go to the higher mean
OCR confidence, remaining ties to the earlier attempt. Losing attempts are
kept for diagnostics only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .assembler import extract_trades
from .config import BatchConfig, OcrPass
from .errors import RecognitionFailed, RecognitionTimeout
from .events import AttemptCompleted, AttemptFailed, AttemptSelected, EventChannel
from .models import RecognitionAttempt, Trade
from .ocr.interface import OcrInput
from .ocr.session import EngineSlot
from .ocr.variants import Preprocessor
from .rows import rows_to_text
from .word_index import WordIndex

logger = logging.getLogger(__name__)

RAW_VARIANT = "raw"


def select_best_attempt(attempts: Sequence[RecognitionAttempt]) -> Optional[RecognitionAttempt]:
    """Attempt with the most trades, then the highest confidence; failed attempts never win"""
    candidates = [a for a in attempts if not a.failed]
    if not candidates:
        return None
    return max(candidates, key=lambda a: (a.trade_count, a.confidence))


@dataclass
class ImageReport:
    image_ref: str
    attempts: List[RecognitionAttempt] = field(default_factory=list)
    selected: Optional[RecognitionAttempt] = None
    timed_out: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.selected is None

    @property
    def trades(self) -> List[Trade]:
        return list(self.selected.trades) if self.selected else []


class StrategyFusion:
    """Per-image attempt loop"""

    def __init__(self,
                 slot: EngineSlot,
                 config: Optional[BatchConfig] = None,
                 preprocessor: Optional[Preprocessor] = None,
                 channel: Optional[EventChannel] = None):
        self.slot = slot
        self.config = config or BatchConfig()
        self.preprocessor = preprocessor
        self.channel = channel or EventChannel()

    def _inputs(self, image: Any) -> List[Tuple[str, Any]]:
        inputs = [(RAW_VARIANT, image)]
        if self.preprocessor is not None:
            inputs.extend(self.preprocessor.variants(image))
        return inputs

    async def _attempt(self, image_ref: str, variant: str, image: Any,
                       ocr_pass: OcrPass) -> RecognitionAttempt:
        output = await self.slot.recognize(
            OcrInput(image=image, image_ref=image_ref, variant=variant,
                     options=ocr_pass.option_dict()),
            timeout=self.config.ocr.timeout_seconds,
        )
        index = WordIndex.from_output(output)
        trades = extract_trades(index, image_ref, self.config.extraction, self.channel)
        return RecognitionAttempt(
            variant_name=variant,
            pass_name=ocr_pass.name,
            text=output.text or rows_to_text(index.tokens),
            tokens=index.tokens,
            confidence=output.confidence if output.confidence else index.mean_confidence(),
            trades=trades,
        )

    async def run(self, image_ref: str, image: Any,
                  on_attempt: Optional[Callable[[], None]] = None) -> ImageReport:
        """
        Try every variant and pass for one image

        A timeout stops the remaining attempts of this image; other
        recognition failures only skip the failing attempt.

        Args:
            image_ref: Image reference for trades and diagnostics
            image: Raw image (array or path)
            on_attempt: Called after every attempt, successful or not

        Returns:
            ImageReport with all attempts and the selected one
        """
        report = ImageReport(image_ref)

        for variant, variant_image in self._inputs(image):
            for ocr_pass in self.config.ocr.passes:
                try:
                    attempt = await self._attempt(image_ref, variant, variant_image, ocr_pass)
                    self.channel.emit(AttemptCompleted(
                        image_ref, attempt.label, attempt.trade_count, attempt.confidence
                    ))
                    logger.debug("%s [%s]: %d trades, confidence %.1f",
                                 image_ref, attempt.label, attempt.trade_count, attempt.confidence)
                except RecognitionFailed as e:
                    attempt = RecognitionAttempt(variant, ocr_pass.name, error=str(e))
                    report.error = str(e)
                    self.channel.emit(AttemptFailed(image_ref, attempt.label, str(e)))
                    logger.warning("%s [%s] failed: %s", image_ref, attempt.label, e)
                    if isinstance(e, RecognitionTimeout):
                        report.timed_out = True

                report.attempts.append(attempt)
                if on_attempt is not None:
                    on_attempt()
                if report.timed_out:
                    break
            if report.timed_out:
                break

        report.selected = select_best_attempt(report.attempts)
        if report.selected is not None:
            best = report.selected
            self.channel.emit(AttemptSelected(image_ref, best.label, best.trade_count, best.confidence))
            logger.info("%s: selected %s with %d trades (confidence %.1f) out of %d attempts",
                        image_ref, best.label, best.trade_count, best.confidence,
                        len(report.attempts))
        else:
            logger.warning("%s: no successful recognition attempt", image_ref)
        return report
