"""
OCR Engine Interface

Every OCR engine plugs in through OcrEngineInterface. The extraction core
only sees OcrInput / OcrOutput and never talks to an engine library.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..base import OcrToken


# =============================================================================
# OCR Input
# =============================================================================

@dataclass
class OcrInput:
    """
    One recognition request

    `image` is opaque to the core: a numpy array or a path, whatever the
    engine accepts.
    """
    image: Any
    image_ref: str = ""
    variant: str = "raw"
    options: Dict[str, str] = field(default_factory=dict)


# =============================================================================
# OCR Output
# =============================================================================

@dataclass
class OcrOutput:
    """
    Result of one recognition call

    `tokens` may be empty for engines that only return text.
    """
    text: str
    confidence: float
    """Page confidence (0-100)"""

    tokens: List[OcrToken] = field(default_factory=list)
    engine_name: str = ""
    execution_time: float = 0.0


# =============================================================================
# OCR Engine Interface
# =============================================================================

class OcrEngineInterface(ABC):
    """
    Abstract OCR engine

    An engine instance is a shared mutable resource: it is opened once per
    batch, used for one recognition at a time, and closed at the end.
    """

    @abstractmethod
    def name(self) -> str:
        """Engine name"""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """True if the engine library/binary can be used"""
        pass

    @abstractmethod
    def recognize(self, input_data: OcrInput) -> OcrOutput:
        """
        Run OCR on one image

        Args:
            input_data: Image and per-pass options

        Returns:
            OcrOutput
        """
        pass

    def open(self) -> None:
        """Acquire engine resources (worker, model, binary check)"""

    def close(self) -> None:
        """Release engine resources"""
