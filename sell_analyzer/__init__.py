"""sell_analyzer package
=======================

Extracts completed SELL trades (pair, total, result %) from trading-app
screenshots, fuses several OCR attempts per image and keeps the accepted
trades in a correction store with aggregate statistics.

Main submodules
---------------
- ``sell_analyzer.config``: defaults, strategy enums, ``load_config``
- ``sell_analyzer.word_index`` / ``rows`` / ``anchors``: spatial token handling
- ``sell_analyzer.patterns`` / ``fields`` / ``assembler``: field cascades and trade assembly
- ``sell_analyzer.fusion`` / ``batch``: per-image attempt selection and batch runs
- ``sell_analyzer.correction``: edit / delete workflow and statistics
- ``sell_analyzer.ocr``: OCR engine interface, registry and Tesseract plugin
"""

from .base import BBox, Coord, OcrToken
from .batch import BatchImage, BatchResult, CancellationToken, process_batch
from .config import (
    AnchorStrategy,
    BatchConfig,
    ExtractionConfig,
    OcrConfig,
    OcrPass,
    TotalSelection,
    load_config,
)
from .correction import CorrectionStore, EditDraft
from .errors import (
    DuplicateTradeId,
    EditStateError,
    EngineUnavailable,
    NotFound,
    RecognitionFailed,
    RecognitionTimeout,
    SellAnalyzerError,
)
from .events import EventChannel
from .fusion import ImageReport, StrategyFusion, select_best_attempt
from .models import AggregateStats, Candidate, RecognitionAttempt, Trade, compute_stats
from .service import SellAnalyzer
from .word_index import WordIndex

__version__ = "0.1.0"

__all__ = [
    "BBox",
    "Coord",
    "OcrToken",
    "BatchImage",
    "BatchResult",
    "CancellationToken",
    "process_batch",
    "AnchorStrategy",
    "BatchConfig",
    "ExtractionConfig",
    "OcrConfig",
    "OcrPass",
    "TotalSelection",
    "load_config",
    "CorrectionStore",
    "EditDraft",
    "DuplicateTradeId",
    "EditStateError",
    "EngineUnavailable",
    "NotFound",
    "RecognitionFailed",
    "RecognitionTimeout",
    "SellAnalyzerError",
    "EventChannel",
    "ImageReport",
    "StrategyFusion",
    "select_best_attempt",
    "AggregateStats",
    "Candidate",
    "RecognitionAttempt",
    "Trade",
    "compute_stats",
    "SellAnalyzer",
    "WordIndex",
]
