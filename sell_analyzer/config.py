"""Default settings and environment overrides"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union

from dotenv import load_dotenv

# Confidence tiers (0-100). Anchors need more than supporting fields.
DEFAULT_ROW_MIN_CONFIDENCE = 20
DEFAULT_ANCHOR_MIN_CONFIDENCE = 30

# Row tolerance = factor x anchor token height
DEFAULT_ROW_TOLERANCE_FACTOR = 2.0
# Neighborhood used to complete a partial row, relative to the row tolerance
DEFAULT_NEIGHBORHOOD_FACTOR = 1.5
# Text-only output: lines searched after and before the anchor line to
# complete a partial row
DEFAULT_TEXT_LINES_AFTER = 5
DEFAULT_TEXT_LINES_BEFORE = 3

TOTAL_RANGE: Tuple[float, float] = (50, 100000)
RESULT_RANGE: Tuple[float, float] = (-99, 99)
RESULT_MIN_MAGNITUDE = 0.1
ANCHOR_PERCENT_RANGE: Tuple[float, float] = (0.1, 99)

DUPLICATE_EPSILON = 0.01

SELL_KEYWORDS = ("sell", "prodej", "prodat", "sold", "sale")
QUOTE_CURRENCIES = ("USDT", "USDC", "BUSD", "USD", "EUR")
KNOWN_SYMBOLS = (
    "SQR", "ALGO", "BONK", "DOGE", "SHIB", "ETC", "OP",
    "BTC", "ETH", "SOL", "XRP", "ADA",
)
DEFAULT_QUOTE = "USDT"

# Passed through unchanged to the OCR engine
OCR_CHAR_WHITELIST = (
    "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz.-%/+:()[] "
)
OCR_PAGE_SEG_MODE = "6"  # single uniform block
OCR_ENGINE_MODE = "1"    # LSTM only
OCR_LANGUAGE = "eng"

ENV_PREFIX = "SELL_ANALYZER_"


class AnchorStrategy(str, Enum):
    """Which tokens seed a candidate trade"""
    KEYWORD = "keyword"
    PERCENTAGE = "percentage"


class TotalSelection(str, Enum):
    """How to choose among several plausible Total values on one row"""
    NEAREST = "nearest"
    LARGEST = "largest"


@dataclass(frozen=True)
class OcrPass:
    """One OCR configuration pass; `options` are engine-specific overrides"""
    name: str
    options: Tuple[Tuple[str, str], ...] = ()

    def option_dict(self) -> dict:
        return dict(self.options)


DEFAULT_OCR_PASS = OcrPass("block")


@dataclass
class ExtractionConfig:
    anchor_strategy: AnchorStrategy = AnchorStrategy.KEYWORD
    total_selection: TotalSelection = TotalSelection.NEAREST
    row_min_confidence: float = DEFAULT_ROW_MIN_CONFIDENCE
    anchor_min_confidence: float = DEFAULT_ANCHOR_MIN_CONFIDENCE
    row_tolerance_factor: float = DEFAULT_ROW_TOLERANCE_FACTOR
    neighborhood_factor: float = DEFAULT_NEIGHBORHOOD_FACTOR
    text_lines_after: int = DEFAULT_TEXT_LINES_AFTER
    text_lines_before: int = DEFAULT_TEXT_LINES_BEFORE
    keywords: Tuple[str, ...] = SELL_KEYWORDS
    require_pair: bool = True
    dedupe_across_images: bool = True


@dataclass
class OcrConfig:
    language: str = OCR_LANGUAGE
    char_whitelist: str = OCR_CHAR_WHITELIST
    page_seg_mode: str = OCR_PAGE_SEG_MODE
    engine_mode: str = OCR_ENGINE_MODE
    passes: List[OcrPass] = field(default_factory=lambda: [DEFAULT_OCR_PASS])
    timeout_seconds: Optional[float] = None


@dataclass
class BatchConfig:
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    ocr: OcrConfig = field(default_factory=OcrConfig)
    engine: str = "tesseract"
    variants: Tuple[str, ...] = ()
    strict_store: bool = True


def _env(name: str) -> Optional[str]:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def load_config(env_file: Optional[Union[str, Path]] = None) -> BatchConfig:
    """
    Build a BatchConfig from defaults and SELL_ANALYZER_* environment variables

    Recognized variables: ANCHOR_STRATEGY, TOTAL_SELECTION, REQUIRE_PAIR,
    DEDUPE_ACROSS_IMAGES, OCR_LANG, OCR_TIMEOUT, ENGINE, VARIANTS
    (comma separated), STRICT_STORE.

    Args:
        env_file: Optional .env file loaded before reading the environment

    Returns:
        BatchConfig

    Raises:
        ValueError: unknown strategy name or malformed number
    """
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()

    config = BatchConfig()
    extraction = config.extraction
    ocr = config.ocr

    anchor = _env("ANCHOR_STRATEGY")
    if anchor:
        extraction.anchor_strategy = AnchorStrategy(anchor.lower())
    selection = _env("TOTAL_SELECTION")
    if selection:
        extraction.total_selection = TotalSelection(selection.lower())
    extraction.require_pair = _env_bool("REQUIRE_PAIR", extraction.require_pair)
    extraction.dedupe_across_images = _env_bool(
        "DEDUPE_ACROSS_IMAGES", extraction.dedupe_across_images
    )

    lang = _env("OCR_LANG")
    if lang:
        ocr.language = lang
    timeout = _env("OCR_TIMEOUT")
    if timeout:
        ocr.timeout_seconds = float(timeout)

    engine = _env("ENGINE")
    if engine:
        config.engine = engine.lower()
    variants = _env("VARIANTS")
    if variants:
        config.variants = tuple(v.strip() for v in variants.split(",") if v.strip())
    config.strict_store = _env_bool("STRICT_STORE", config.strict_store)

    return config


__all__ = [
    "AnchorStrategy",
    "TotalSelection",
    "OcrPass",
    "ExtractionConfig",
    "OcrConfig",
    "BatchConfig",
    "load_config",
    "DEFAULT_OCR_PASS",
]
