"""
Row grouping

A row is every sufficiently confident token whose top edge lies within
`tolerance` of the anchor's top edge, read left to right. The same order
is the scan priority for field patterns.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .base import OcrToken, vertical_distance
from .config import DEFAULT_ROW_MIN_CONFIDENCE, DEFAULT_ROW_TOLERANCE_FACTOR


@dataclass
class Row:
    tokens: List[OcrToken]
    anchor: Optional[OcrToken]
    tolerance: float

    @property
    def text(self) -> str:
        return " ".join(t.text for t in self.tokens)

    def __len__(self) -> int:
        return len(self.tokens)


def row_tolerance(anchor: OcrToken, factor: float = DEFAULT_ROW_TOLERANCE_FACTOR) -> float:
    return factor * anchor.height


def group_row(tokens: Sequence[OcrToken],
              anchor: OcrToken,
              tolerance: Optional[float] = None,
              min_confidence: float = DEFAULT_ROW_MIN_CONFIDENCE) -> Row:
    """
    Collect the row around an anchor

    Args:
        tokens: All tokens of the image
        anchor: Reference token
        tolerance: Max |y0 - anchor.y0|; defaults to 2 x anchor height
        min_confidence: Row membership tier (the anchor itself is always kept)

    Returns:
        Row sorted by x0
    """
    if tolerance is None:
        tolerance = row_tolerance(anchor)

    members = [
        t for t in tokens
        if t is anchor or (
            t.confidence >= min_confidence
            and vertical_distance(t, anchor) <= tolerance
        )
    ]
    if anchor not in members:
        members.append(anchor)
    members.sort(key=lambda t: t.bbox.x0)
    return Row(tokens=members, anchor=anchor, tolerance=tolerance)


def neighborhood(tokens: Sequence[OcrToken],
                 row: Row,
                 factor: float,
                 min_confidence: float = DEFAULT_ROW_MIN_CONFIDENCE) -> Row:
    """Widen a row to factor x its tolerance"""
    return group_row(tokens, row.anchor, row.tolerance * factor, min_confidence)


def line_window(tokens: Sequence[OcrToken],
                anchor: OcrToken,
                pitch: float,
                after: int,
                before: int,
                stops: Sequence[OcrToken] = (),
                min_confidence: float = DEFAULT_ROW_MIN_CONFIDENCE) -> List[Row]:
    """
    Text lines around an anchor, in search order

    For tokens laid out on a fixed line pitch (text-only OCR output). Up
    to `after` lines below the anchor line come first, nearest first, then
    up to `before` lines above it. A line holding one of `stops` (another
    anchor) ends the window in that direction.

    Returns:
        One Row per non-empty line, anchor line excluded
    """
    def line_of(token: OcrToken) -> int:
        return round(token.bbox.y0 / pitch)

    lines: Dict[int, List[OcrToken]] = {}
    for t in tokens:
        if t.confidence >= min_confidence:
            lines.setdefault(line_of(t), []).append(t)

    home = line_of(anchor)
    stop_lines = {line_of(s) for s in stops if s is not anchor} - {home}

    window: List[Row] = []
    for step, count in ((1, after), (-1, before)):
        for k in range(1, count + 1):
            line_no = home + step * k
            if line_no in stop_lines:
                break
            if line_no in lines:
                members = sorted(lines[line_no], key=lambda t: t.bbox.x0)
                window.append(Row(tokens=members, anchor=anchor, tolerance=pitch / 2))
    return window


def group_rows(tokens: Sequence[OcrToken],
               factor: float = DEFAULT_ROW_TOLERANCE_FACTOR,
               min_confidence: float = 0) -> List[Row]:
    """
    Split all tokens into rows without an anchor

    Tokens are swept top to bottom; the first token of each row is its
    reference, and a token farther than factor x the reference height
    starts a new row.
    """
    rows: List[Row] = []
    eligible = sorted(
        (t for t in tokens if t.confidence >= min_confidence),
        key=lambda t: (t.bbox.y0, t.bbox.x0),
    )
    for token in eligible:
        if rows:
            current = rows[-1]
            ref = current.tokens[0]
            if vertical_distance(token, ref) <= current.tolerance:
                current.tokens.append(token)
                continue
        rows.append(Row(tokens=[token], anchor=None, tolerance=factor * token.height))

    for row in rows:
        row.tokens.sort(key=lambda t: t.bbox.x0)
    return rows


def rows_to_text(tokens: Sequence[OcrToken]) -> str:
    """Plain text of the tokens, one line per row"""
    return "\n".join(row.text for row in group_rows(tokens))
