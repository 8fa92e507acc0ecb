"""
WordIndex: the bag of recognized tokens for one image

Engines that only return plain text are supported through
`WordIndex.from_text`, which lays the words out on a synthetic grid so
the row/anchor pipeline behaves the same on both kinds of output.
"""

from __future__ import annotations

from typing import Iterator, List, Sequence

from .base import BBox, OcrToken, mean_confidence

# Synthetic layout for text-only output. The pitch exceeds the default row
# tolerance (2 x height), so each line is its own row; partial rows are
# completed from the surrounding lines (see rows.line_window).
TEXT_LINE_HEIGHT = 20
TEXT_LINE_PITCH = 50
TEXT_CHAR_WIDTH = 10


class WordIndex:
    """Recognized tokens of one recognition call, in engine order"""

    def __init__(self, tokens: Sequence[OcrToken], *, synthetic: bool = False):
        self._tokens: List[OcrToken] = [t for t in tokens if t.text.strip()]
        self.synthetic = synthetic

    def __iter__(self) -> Iterator[OcrToken]:
        return iter(self._tokens)

    def __len__(self) -> int:
        return len(self._tokens)

    @property
    def tokens(self) -> List[OcrToken]:
        return list(self._tokens)

    def above(self, min_confidence: float) -> List[OcrToken]:
        """Tokens with confidence >= min_confidence"""
        return [t for t in self._tokens if t.confidence >= min_confidence]

    def mean_confidence(self) -> float:
        return mean_confidence(self._tokens)

    @classmethod
    def from_output(cls, output) -> "WordIndex":
        """Tokens of an OcrOutput, or synthetic tokens when the engine gave text only"""
        if output.tokens:
            return cls(output.tokens)
        return cls.from_text(output.text, output.confidence)

    @classmethod
    def from_text(cls, text: str, confidence: float) -> "WordIndex":
        """
        Build synthetic tokens from plain OCR text

        Line i becomes the y band [i * pitch, i * pitch + height]; a word's x
        range follows its character offset in the line. Every token gets
        the page-level confidence.

        Args:
            text: Recognized text, lines separated by newlines
            confidence: Page confidence (0-100)

        Returns:
            WordIndex flagged as synthetic
        """
        tokens: List[OcrToken] = []
        line_no = 0
        for raw_line in text.splitlines():
            line = raw_line.rstrip()
            if len(line.strip()) <= 2:
                continue
            y0 = line_no * TEXT_LINE_PITCH
            offset = 0
            for word in line.split():
                start = line.index(word, offset)
                offset = start + len(word)
                tokens.append(OcrToken(
                    text=word,
                    bbox=BBox(
                        start * TEXT_CHAR_WIDTH,
                        y0,
                        offset * TEXT_CHAR_WIDTH,
                        y0 + TEXT_LINE_HEIGHT,
                    ),
                    confidence=confidence,
                ))
            line_no += 1
        return cls(tokens, synthetic=True)
