"""
Preprocessing variants

Alternate renderings of one screenshot fed to strategy fusion as separate
recognition attempts. Each variant is one OpenCV call; the core never
looks at pixels itself.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

CONTRAST_GAIN = 1.8
CONTRAST_BIAS = -40


class Preprocessor(ABC):

    @abstractmethod
    def variants(self, image: Any) -> List[Tuple[str, Any]]:
        """Named alternate images, not including the raw one"""
        pass


def to_gray(image: np.ndarray) -> np.ndarray:
    if len(image.shape) == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return image


def binarize(image: np.ndarray) -> np.ndarray:
    _, binary = cv2.threshold(to_gray(image), 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    return binary


def invert(image: np.ndarray) -> np.ndarray:
    return cv2.bitwise_not(image)


def boost_contrast(image: np.ndarray) -> np.ndarray:
    return cv2.convertScaleAbs(image, alpha=CONTRAST_GAIN, beta=CONTRAST_BIAS)


VARIANT_FUNCTIONS: Dict[str, Callable[[np.ndarray], np.ndarray]] = {
    "binarized": binarize,
    "inverted": invert,
    "contrast": boost_contrast,
}


class OpenCvPreprocessor(Preprocessor):
    """Binarized / inverted / contrast-boosted variants"""

    def __init__(self, names: Optional[Sequence[str]] = None):
        names = tuple(names) if names else tuple(VARIANT_FUNCTIONS)
        unknown = [n for n in names if n not in VARIANT_FUNCTIONS]
        if unknown:
            raise ValueError(f"Unknown preprocessing variants: {unknown}")
        self.names = names

    def variants(self, image: Any) -> List[Tuple[str, Any]]:
        if isinstance(image, Image.Image):
            image = cv2.cvtColor(np.array(image.convert("RGB")), cv2.COLOR_RGB2BGR)
        elif not isinstance(image, np.ndarray):
            image = cv2.imread(str(image))
            if image is None:
                logger.warning("Preprocessing skipped, image could not be read")
                return []

        results: List[Tuple[str, Any]] = []
        for name in self.names:
            try:
                results.append((name, VARIANT_FUNCTIONS[name](image)))
            except cv2.error as e:
                logger.warning("Preprocessing variant '%s' failed: %s", name, e)
        return results
