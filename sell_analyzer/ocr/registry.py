"""
OCR Engine Registry

Maps engine names to factories. A batch creates its own engine instance
from the factory and owns it for the batch's lifetime; the registry never
holds live engines.
"""

import logging
from typing import Callable, Dict, List, Optional

from ..config import OcrConfig
from ..errors import EngineUnavailable
from .interface import OcrEngineInterface

logger = logging.getLogger(__name__)

EngineFactory = Callable[[OcrConfig], OcrEngineInterface]


class OcrEngineRegistry:
    """Engine factories by name"""

    _factories: Dict[str, EngineFactory] = {}

    @classmethod
    def register(cls, name: str, factory: EngineFactory) -> None:
        cls._factories[name] = factory
        logger.debug("OCR engine registered: %s", name)

    @classmethod
    def unregister(cls, name: str) -> None:
        cls._factories.pop(name, None)

    @classmethod
    def get(cls, name: str) -> Optional[EngineFactory]:
        return cls._factories.get(name)

    @classmethod
    def create(cls, name: str, config: Optional[OcrConfig] = None) -> OcrEngineInterface:
        """
        Instantiate an engine

        Raises:
            EngineUnavailable: unknown name, factory failure, or engine not usable
        """
        factory = cls.get(name)
        if factory is None:
            raise EngineUnavailable(f"No OCR engine registered as '{name}'")
        try:
            engine = factory(config or OcrConfig())
        except Exception as e:
            raise EngineUnavailable(f"OCR engine '{name}' could not be created", cause=e)
        if not engine.is_available():
            raise EngineUnavailable(f"OCR engine '{name}' is not available")
        return engine

    @classmethod
    def list_names(cls) -> List[str]:
        return sorted(cls._factories)
