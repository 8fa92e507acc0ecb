"""
Anchor detection

An anchor is the token that seeds one candidate trade. Two strategies
exist and a deployment picks one through ExtractionConfig.anchor_strategy:

- KEYWORD: the token contains a transaction keyword ("sell", "prodej", ...)
- PERCENTAGE: the token is a standalone signed percentage in [0.1, 99]

Anchors are independent of each other; overlapping candidates are left
for deduplication.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Sequence

from .base import OcrToken
from .config import (
    ANCHOR_PERCENT_RANGE,
    DEFAULT_ANCHOR_MIN_CONFIDENCE,
    SELL_KEYWORDS,
    AnchorStrategy,
    ExtractionConfig,
)
from .patterns import parse_percent_token


class AnchorDetector(ABC):

    def __init__(self, min_confidence: float = DEFAULT_ANCHOR_MIN_CONFIDENCE):
        self.min_confidence = min_confidence

    @abstractmethod
    def is_anchor(self, token: OcrToken) -> bool:
        pass

    def detect(self, tokens: Iterable[OcrToken]) -> List[OcrToken]:
        """Anchors above the confidence tier, top to bottom then left to right"""
        found = [
            t for t in tokens
            if t.confidence >= self.min_confidence and self.is_anchor(t)
        ]
        return sorted(found, key=lambda t: (t.bbox.y0, t.bbox.x0))


class KeywordAnchorDetector(AnchorDetector):

    def __init__(self,
                 keywords: Sequence[str] = SELL_KEYWORDS,
                 min_confidence: float = DEFAULT_ANCHOR_MIN_CONFIDENCE):
        super().__init__(min_confidence)
        self.keywords = tuple(k.lower() for k in keywords)

    def is_anchor(self, token: OcrToken) -> bool:
        text = token.text.lower()
        return any(keyword in text for keyword in self.keywords)


class PercentageAnchorDetector(AnchorDetector):

    def is_anchor(self, token: OcrToken) -> bool:
        value = parse_percent_token(token.text)
        if value is None:
            return False
        low, high = ANCHOR_PERCENT_RANGE
        return low <= abs(value) <= high


def make_detector(config: ExtractionConfig) -> AnchorDetector:
    if config.anchor_strategy == AnchorStrategy.KEYWORD:
        return KeywordAnchorDetector(config.keywords, config.anchor_min_confidence)
    if config.anchor_strategy == AnchorStrategy.PERCENTAGE:
        return PercentageAnchorDetector(config.anchor_min_confidence)
    raise ValueError(f"Unknown anchor strategy: {config.anchor_strategy}")


def detect_anchors(tokens: Iterable[OcrToken], config: ExtractionConfig) -> List[OcrToken]:
    return make_detector(config).detect(tokens)
