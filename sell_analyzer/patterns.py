"""
Field pattern cascades

Each field has an ordered list of rules. `run_cascade` tries the rules in
order over a row's text and returns every plausible match of the first
rule that produced any; later rules are never consulted after that.

Rules are plain data (name, regex, converter, plausibility predicate) so
each can be tested on its own.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from .base import OcrToken
from .config import (
    DEFAULT_QUOTE,
    KNOWN_SYMBOLS,
    QUOTE_CURRENCIES,
    RESULT_MIN_MAGNITUDE,
    RESULT_RANGE,
    TOTAL_RANGE,
)

MINUS_GLYPHS = ("-", "−")
SIGN_WINDOW = 3

# Words that look like a base symbol but never are one
PAIR_STOPWORDS = {
    "SELL", "BUY", "SOLD", "SALE", "PRODEJ", "PRODAT", "NAKUP",
    "TOTAL", "RESULT", "PROFIT", "PNL", "PRICE", "AMOUNT",
    "MARKET", "LIMIT", "FILLED", "SPOT", "FEE",
}


@dataclass
class FieldMatch:
    value: object
    rule: str
    token: Optional[OcrToken]
    start: int
    end: int


@dataclass
class CascadeRule:
    name: str
    pattern: re.Pattern
    convert: Callable[[re.Match, str], Optional[object]]
    accept: Callable[[object], bool]


def to_float(raw: str) -> Optional[float]:
    try:
        return float(raw.replace(",", ".").strip())
    except (AttributeError, ValueError):
        return None


# -------------------------------------------------------------------------
# Row text <-> token mapping
# -------------------------------------------------------------------------

def join_tokens(tokens: Sequence[OcrToken]) -> Tuple[str, List[Tuple[int, int, OcrToken]]]:
    """Join token texts with single spaces, remembering each token's span"""
    parts: List[str] = []
    spans: List[Tuple[int, int, OcrToken]] = []
    pos = 0
    for token in tokens:
        if parts:
            pos += 1
        spans.append((pos, pos + len(token.text), token))
        parts.append(token.text)
        pos += len(token.text)
    return " ".join(parts), spans


def token_at(spans: List[Tuple[int, int, OcrToken]], index: int) -> Optional[OcrToken]:
    for start, end, token in spans:
        if start <= index < end:
            return token
    return None


def run_cascade(rules: Sequence[CascadeRule], tokens: Sequence[OcrToken]) -> List[FieldMatch]:
    """
    Evaluate a cascade over tokens in reading order

    Args:
        rules: Ordered rules, highest priority first
        tokens: Row tokens sorted left to right

    Returns:
        Plausible matches of the first productive rule, in text order
        (empty if no rule produced a plausible match)
    """
    text, spans = join_tokens(tokens)
    for rule in rules:
        matches: List[FieldMatch] = []
        for m in rule.pattern.finditer(text):
            value = rule.convert(m, text)
            if value is None or not rule.accept(value):
                continue
            matches.append(FieldMatch(
                value=value,
                rule=rule.name,
                token=token_at(spans, m.start(1)),
                start=m.start(1),
                end=m.end(1),
            ))
        if matches:
            return matches
    return []


# -------------------------------------------------------------------------
# Pair
# -------------------------------------------------------------------------

_QUOTES = "|".join(QUOTE_CURRENCIES)
_SYMBOLS = "|".join(KNOWN_SYMBOLS)


def _pair_with_quote(m: re.Match, text: str) -> str:
    return f"{m.group(1).upper()}/{m.group(2).upper()}"


def _pair_default_quote(m: re.Match, text: str) -> str:
    return f"{m.group(1).upper()}/{DEFAULT_QUOTE}"


def plausible_pair(value: object) -> bool:
    base, _, quote = str(value).partition("/")
    return base not in PAIR_STOPWORDS and base != quote and 2 <= len(base) <= 10


PAIR_CASCADE: List[CascadeRule] = [
    CascadeRule(
        "slash",
        re.compile(rf"\b([A-Z]{{2,10}})\s*/\s*({_QUOTES})\b", re.IGNORECASE),
        _pair_with_quote,
        plausible_pair,
    ),
    CascadeRule(
        "dash",
        re.compile(rf"\b([A-Z]{{2,10}})\s*-\s*({_QUOTES})\b", re.IGNORECASE),
        _pair_with_quote,
        plausible_pair,
    ),
    CascadeRule(
        "quote_token",
        re.compile(rf"\b([A-Z]{{2,10}})\s+({_QUOTES})\b", re.IGNORECASE),
        _pair_with_quote,
        plausible_pair,
    ),
    CascadeRule(
        "glued",
        re.compile(r"\b([A-Z]{2,10}?)(USDT|USDC|BUSD)\b", re.IGNORECASE),
        _pair_with_quote,
        plausible_pair,
    ),
    CascadeRule(
        "known_symbol",
        re.compile(rf"\b({_SYMBOLS})\b", re.IGNORECASE),
        _pair_default_quote,
        plausible_pair,
    ),
]


# -------------------------------------------------------------------------
# Total
# -------------------------------------------------------------------------

def _amount(m: re.Match, text: str) -> Optional[float]:
    return to_float(m.group(1))


def plausible_total(value: object) -> bool:
    low, high = TOTAL_RANGE
    return low <= float(value) <= high


TOTAL_CASCADE: List[CascadeRule] = [
    CascadeRule(
        "usdt_suffix",
        re.compile(r"(?<![\d.])(\d{1,6}(?:\.\d{1,8})?)\s*USDT\b", re.IGNORECASE),
        _amount,
        plausible_total,
    ),
    CascadeRule(
        "total_label",
        re.compile(r"total[:\s]*(\d{1,6}(?:\.\d{1,8})?)", re.IGNORECASE),
        _amount,
        plausible_total,
    ),
    CascadeRule(
        "decimal",
        re.compile(r"(?<![\d.+\-])(\d{2,6}\.\d{2,8})(?![\d.%])"),
        _amount,
        plausible_total,
    ),
    CascadeRule(
        "integer",
        re.compile(r"(?<![\d.:/+\-])(\d{3,6})(?![\d.:/%])"),
        _amount,
        plausible_total,
    ),
]


# -------------------------------------------------------------------------
# Result
# -------------------------------------------------------------------------

def has_detached_minus(text: str, start: int) -> bool:
    """A minus glyph just before `start` (within SIGN_WINDOW characters)"""
    window = text[max(0, start - SIGN_WINDOW):start]
    return any(glyph in window for glyph in MINUS_GLYPHS)


def _percent(m: re.Match, text: str) -> Optional[float]:
    raw = m.group(1)
    value = to_float(raw)
    if value is None:
        return None
    if raw[0] not in "+-" and value > 0 and has_detached_minus(text, m.start(1)):
        value = -value
    return value


def plausible_result(value: object) -> bool:
    low, high = RESULT_RANGE
    v = float(value)
    return low <= v <= high and abs(v) > RESULT_MIN_MAGNITUDE


RESULT_CASCADE: List[CascadeRule] = [
    CascadeRule(
        "percent",
        re.compile(r"(?<![\d.])([+-]?\d{1,2}(?:\.\d{1,3})?)\s*%"),
        _percent,
        plausible_result,
    ),
    CascadeRule(
        "result_label",
        re.compile(r"result[:\s]*([+-]?\d{1,2}(?:\.\d{1,3})?)(?![\d.])", re.IGNORECASE),
        _percent,
        plausible_result,
    ),
    CascadeRule(
        "signed_decimal",
        re.compile(r"(?<![\w.])([+-]\d{1,2}\.\d{1,3})(?![\d.%])"),
        _percent,
        plausible_result,
    ),
]


# -------------------------------------------------------------------------
# Percentage anchors
# -------------------------------------------------------------------------

PERCENT_TOKEN_RE = re.compile(r"^[(\[]?([+-]?\d{1,2}(?:\.\d{1,3})?)(%?)[)\]]?$")


def parse_percent_token(text: str) -> Optional[float]:
    """
    Value of a standalone percentage-like token, or None

    The token must carry a decimal point or a percent sign, so bare
    integers (days, counters) never qualify.
    """
    m = PERCENT_TOKEN_RE.match(text.strip())
    if not m:
        return None
    if "." not in m.group(1) and not m.group(2):
        return None
    return to_float(m.group(1))
