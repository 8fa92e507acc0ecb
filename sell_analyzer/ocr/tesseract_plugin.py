"""
Tesseract OCR Plugin

Word boxes and confidences come from pytesseract.image_to_data. The
whitelist, page segmentation mode and engine mode are passed through as
configured.
"""

import time
from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np
import pytesseract
from PIL import Image

from ..base import BBox, OcrToken, mean_confidence
from ..config import OcrConfig
from ..errors import EngineUnavailable, RecognitionFailed
from .interface import OcrEngineInterface, OcrInput, OcrOutput


def load_image(image) -> np.ndarray:
    """Path, PIL image or BGR array -> RGB/grayscale array"""
    if isinstance(image, Image.Image):
        return np.array(image.convert("RGB"))
    if isinstance(image, np.ndarray):
        array = image
    else:
        array = cv2.imread(str(image))
        if array is None:
            raise RecognitionFailed(f"Failed to load image: {image}")

    if len(array.shape) == 3 and array.shape[2] == 3:
        return cv2.cvtColor(array, cv2.COLOR_BGR2RGB)
    return array


def build_tesseract_config(config: OcrConfig, options: Optional[Dict[str, str]] = None) -> str:
    """
    Tesseract command-line config string

    `options` may override "psm" and "oem"; any other key becomes a
    `-c key=value` variable.
    """
    options = dict(options or {})
    psm = options.pop("psm", config.page_seg_mode)
    oem = options.pop("oem", config.engine_mode)
    parts = [f"--oem {oem}", f"--psm {psm}"]
    if config.char_whitelist:
        parts.append(f'-c "tessedit_char_whitelist={config.char_whitelist}"')
    for key, value in options.items():
        parts.append(f"-c {key}={value}")
    return " ".join(parts)


def parse_image_data(data: Dict[str, list]) -> Tuple[List[OcrToken], str]:
    """
    Convert image_to_data output into tokens and line text

    Entries with empty text or negative confidence (layout rows) are skipped.
    """
    tokens: List[OcrToken] = []
    lines: Dict[Tuple[int, int, int], List[str]] = {}

    for i in range(len(data["text"])):
        text = str(data["text"][i]).strip()
        conf = float(data["conf"][i])
        if not text or conf < 0:
            continue

        tokens.append(OcrToken(
            text=text,
            bbox=BBox.from_rect(
                data["left"][i], data["top"][i], data["width"][i], data["height"][i]
            ),
            confidence=min(conf, 100.0),
        ))
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append(text)

    text = "\n".join(" ".join(words) for words in lines.values())
    return tokens, text


class TesseractEngine(OcrEngineInterface):
    """Tesseract OCR plugin"""

    def __init__(self, config: Optional[OcrConfig] = None):
        self.config = config or OcrConfig()

    def name(self) -> str:
        return "Tesseract OCR"

    def is_available(self) -> bool:
        return True

    def open(self) -> None:
        try:
            pytesseract.get_tesseract_version()
        except Exception as e:
            raise EngineUnavailable("Tesseract binary not found", cause=e)

    def recognize(self, input_data: OcrInput) -> OcrOutput:
        start_time = time.time()
        image = load_image(input_data.image)

        data = pytesseract.image_to_data(
            image,
            lang=self.config.language,
            config=build_tesseract_config(self.config, input_data.options),
            output_type=pytesseract.Output.DICT,
        )
        tokens, text = parse_image_data(data)

        return OcrOutput(
            text=text,
            confidence=mean_confidence(tokens),
            tokens=tokens,
            engine_name=self.name(),
            execution_time=time.time() - start_time,
        )
