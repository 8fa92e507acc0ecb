"""
Base types

Geometry and token primitives shared by every stage of the extraction
pipeline. Coordinates are image pixels with the origin top-left.
"""

from dataclasses import dataclass
from typing import List, Tuple


@dataclass(frozen=True)
class Coord:
    """2D coordinate in image space"""
    x: float
    y: float

    def to_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class BBox:
    """Bounding box defined by its top-left (x0, y0) and bottom-right (x1, y1) corners"""
    x0: float
    y0: float
    x1: float
    y1: float

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    def center(self) -> Coord:
        """Get center coordinate"""
        return Coord((self.x0 + self.x1) / 2, (self.y0 + self.y1) / 2)

    def to_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x0, self.y0, self.x1, self.y1)

    @staticmethod
    def from_rect(x: float, y: float, w: float, h: float) -> 'BBox':
        """Create from (x, y, width, height), the format pytesseract reports"""
        return BBox(x, y, x + w, y + h)


@dataclass(frozen=True)
class OcrToken:
    """
    One recognized word

    Produced by the OCR collaborator and never modified afterwards.
    `confidence` uses the engine's 0-100 scale.
    """
    text: str
    bbox: BBox
    confidence: float

    @property
    def height(self) -> float:
        return self.bbox.height


def vertical_distance(a: OcrToken, b: OcrToken) -> float:
    """Distance between the top edges of two tokens"""
    return abs(a.bbox.y0 - b.bbox.y0)


def horizontal_distance(a: OcrToken, b: OcrToken) -> float:
    """Distance between the horizontal centers of two tokens"""
    return abs(a.bbox.center().x - b.bbox.center().x)


def mean_confidence(tokens: List[OcrToken]) -> float:
    if not tokens:
        return 0.0
    return sum(t.confidence for t in tokens) / len(tokens)
