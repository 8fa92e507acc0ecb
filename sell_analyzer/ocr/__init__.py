"""
OCR collaborator layer

- Engine-independent interface (OcrInput, OcrOutput, OcrEngineInterface)
- Registry of engine factories
- Engine session with a single in-use slot
- Preprocessing variants for strategy fusion
"""

from .interface import OcrEngineInterface, OcrInput, OcrOutput
from .registry import OcrEngineRegistry
from .session import EngineSlot, engine_session
from .tesseract_plugin import TesseractEngine
from .variants import OpenCvPreprocessor, Preprocessor

OcrEngineRegistry.register("tesseract", TesseractEngine)

__all__ = [
    "OcrInput",
    "OcrOutput",
    "OcrEngineInterface",
    "OcrEngineRegistry",
    "EngineSlot",
    "engine_session",
    "TesseractEngine",
    "Preprocessor",
    "OpenCvPreprocessor",
]
