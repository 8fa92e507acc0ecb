"""
Shared fixtures: token builders and a scripted OCR engine
"""

import sys
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sell_analyzer.base import BBox, OcrToken, mean_confidence
from sell_analyzer.ocr.interface import OcrEngineInterface, OcrInput, OcrOutput
from sell_analyzer.ocr.registry import OcrEngineRegistry
from sell_analyzer.ocr.variants import Preprocessor

SCRIPTED_ENGINE = "scripted"


def tok(text: str, x: float, y: float, conf: float = 90, h: float = 20,
        w: Optional[float] = None) -> OcrToken:
    """Token with its top-left corner at (x, y)"""
    if w is None:
        w = 10 * len(text)
    return OcrToken(text=text, bbox=BBox(x, y, x + w, y + h), confidence=conf)


def sell_row(pair: str = "SQR/USDT", total: str = "274.1200", result: str = "+6.26%",
             y: float = 100) -> List[OcrToken]:
    """One trade row laid out like the reference screenshot"""
    tokens = [tok("SELL", 10, y)]
    if pair:
        tokens.append(tok(pair, 50, y))
    if total:
        tokens.append(tok(total, 130, y))
    if result:
        tokens.append(tok(result, 200, y))
    return tokens


def ocr_output(tokens: List[OcrToken], text: Optional[str] = None) -> OcrOutput:
    return OcrOutput(
        text=text if text is not None else " ".join(t.text for t in tokens),
        confidence=mean_confidence(tokens),
        tokens=tokens,
        engine_name=SCRIPTED_ENGINE,
    )


ScriptEntry = Union[OcrOutput, Exception]


class ScriptedEngine(OcrEngineInterface):
    """
    Engine that replays prepared outputs

    `script` is keyed by image_ref or (image_ref, variant); a missing key
    yields an empty output. `delays` makes a call block for some seconds.
    """

    def __init__(self,
                 script: Optional[Dict[object, ScriptEntry]] = None,
                 delays: Optional[Dict[object, float]] = None,
                 fail_open: bool = False,
                 available: bool = True):
        self.script = script or {}
        self.delays = delays or {}
        self.fail_open = fail_open
        self.available = available
        self.calls: List[Tuple[str, str, dict]] = []
        self.opened = False
        self.closed = False

    def name(self) -> str:
        return "Scripted OCR"

    def is_available(self) -> bool:
        return self.available

    def open(self) -> None:
        if self.fail_open:
            raise RuntimeError("model files missing")
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def _lookup(self, table: dict, input_data: OcrInput):
        key = (input_data.image_ref, input_data.variant)
        if key in table:
            return table[key]
        return table.get(input_data.image_ref)

    def recognize(self, input_data: OcrInput) -> OcrOutput:
        self.calls.append((input_data.image_ref, input_data.variant, dict(input_data.options)))
        delay = self._lookup(self.delays, input_data)
        if delay:
            time.sleep(delay)
        entry = self._lookup(self.script, input_data)
        if isinstance(entry, Exception):
            raise entry
        if entry is None:
            return OcrOutput(text="", confidence=0.0, engine_name=SCRIPTED_ENGINE)
        return entry


class StaticPreprocessor(Preprocessor):
    """Returns the raw image under the given variant names"""

    def __init__(self, *names: str):
        self.names = names

    def variants(self, image):
        return [(name, image) for name in self.names]


@pytest.fixture
def install_engine():
    """
    Register a ScriptedEngine as "scripted" for the duration of a test

    Usage: engine = install_engine(ScriptedEngine({...}))
    """
    def install(engine: ScriptedEngine) -> ScriptedEngine:
        OcrEngineRegistry.register(SCRIPTED_ENGINE, lambda config: engine)
        return engine

    yield install
    OcrEngineRegistry.unregister(SCRIPTED_ENGINE)
