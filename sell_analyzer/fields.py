"""
Field extraction

Turns the row around one anchor into a Candidate. Pair, Total and Result
are each resolved by their pattern cascade (see patterns.py); a field that
is still missing on the row is looked up again in the wider neighborhood,
or for text-only output in the surrounding text lines.
Missing Total/Result stay None here; zero-defaulting happens only when a
Trade is assembled.
"""

import logging
from typing import List, Optional, Sequence

from .base import OcrToken, horizontal_distance, mean_confidence
from .config import ExtractionConfig, TotalSelection
from .models import Candidate
from .patterns import (
    PAIR_CASCADE,
    RESULT_CASCADE,
    TOTAL_CASCADE,
    FieldMatch,
    run_cascade,
)
from .rows import Row, group_row, line_window, neighborhood, row_tolerance
from .word_index import TEXT_LINE_PITCH

logger = logging.getLogger(__name__)


def select_nearest(matches: List[FieldMatch], anchor: OcrToken) -> Optional[FieldMatch]:
    """Match whose token is horizontally closest to the anchor (first on ties)"""
    if not matches:
        return None
    return min(
        matches,
        key=lambda m: horizontal_distance(m.token, anchor) if m.token else float("inf"),
    )


def select_largest(matches: List[FieldMatch]) -> Optional[FieldMatch]:
    """Match with the largest value (first on ties)"""
    if not matches:
        return None
    return max(matches, key=lambda m: m.value)


class FieldExtractor:
    """
    Pair / Total / Result extraction for one anchor

    With `text_mode` (tokens from WordIndex.from_text) a partial row is
    completed line by line from the text lines around the anchor instead
    of the geometric neighborhood; each missing field takes the first line
    of the window that has it.
    """

    def __init__(self, config: Optional[ExtractionConfig] = None, text_mode: bool = False):
        self.config = config or ExtractionConfig()
        self.text_mode = text_mode

    def extract_pair(self, row: Row) -> Optional[FieldMatch]:
        matches = run_cascade(PAIR_CASCADE, row.tokens)
        return matches[0] if matches else None

    def extract_total(self, row: Row) -> Optional[FieldMatch]:
        matches = run_cascade(TOTAL_CASCADE, row.tokens)
        if self.config.total_selection == TotalSelection.LARGEST:
            return select_largest(matches)
        return select_nearest(matches, row.anchor)

    def extract_result(self, row: Row) -> Optional[FieldMatch]:
        matches = run_cascade(RESULT_CASCADE, row.tokens)
        for match in matches:
            if match.token is row.anchor:
                return match
        return matches[0] if matches else None

    def _complete_from_lines(self,
                             tokens: Sequence[OcrToken],
                             row: Row,
                             fields: List[Optional[FieldMatch]],
                             stops: Sequence[OcrToken]) -> str:
        cfg = self.config
        extractors = (self.extract_pair, self.extract_total, self.extract_result)
        used = [row]
        for line in line_window(tokens, row.anchor, TEXT_LINE_PITCH,
                                cfg.text_lines_after, cfg.text_lines_before,
                                stops, cfg.row_min_confidence):
            if all(fields):
                break
            hit = False
            for i, extract in enumerate(extractors):
                if fields[i] is None:
                    fields[i] = extract(line)
                    hit = hit or fields[i] is not None
            if hit:
                used.append(line)

        used.sort(key=lambda r: r.tokens[0].bbox.y0)
        context = " ".join(r.text for r in used)
        if len(used) > 1:
            logger.debug("Row incomplete, completed from %d text lines: %r", len(used) - 1, context)
        return context

    def extract(self,
                tokens: Sequence[OcrToken],
                anchor: OcrToken,
                stops: Sequence[OcrToken] = ()) -> Candidate:
        """
        Build a Candidate from the row around `anchor`

        Args:
            tokens: All tokens of the image
            anchor: Anchor token seeding this candidate
            stops: Other anchors; in text mode their lines bound the search

        Returns:
            Candidate (fields that were not found are None)
        """
        cfg = self.config
        row = group_row(
            tokens,
            anchor,
            row_tolerance(anchor, cfg.row_tolerance_factor),
            cfg.row_min_confidence,
        )
        pair = self.extract_pair(row)
        total = self.extract_total(row)
        result = self.extract_result(row)
        context = row.text

        if pair is None or total is None or result is None:
            if self.text_mode:
                fields = [pair, total, result]
                context = self._complete_from_lines(tokens, row, fields, stops)
                pair, total, result = fields
            else:
                wide = neighborhood(tokens, row, cfg.neighborhood_factor, cfg.row_min_confidence)
                if len(wide) > len(row):
                    pair = pair or self.extract_pair(wide)
                    total = total or self.extract_total(wide)
                    result = result or self.extract_result(wide)
                    context = wide.text
                    logger.debug("Row incomplete, widened to %d tokens: %r", len(wide), context)

        contributing: List[OcrToken] = [anchor]
        for match in (pair, total, result):
            if match is not None and match.token is not None and match.token not in contributing:
                contributing.append(match.token)

        return Candidate(
            pair=pair.value if pair else None,
            total=total.value if total else None,
            result=result.value if result else None,
            source_tokens=contributing,
            confidence=round(mean_confidence(contributing)),
            context=context,
        )
