"""
Engine session

The OCR engine is owned by one batch: created and opened on entry, closed
on exit. All recognition calls go through EngineSlot. Each engine runs on
its own single-worker thread pool, so calls on one engine never overlap,
and the timeout clock starts only once that worker is free.

A call abandoned by a timeout keeps running on its worker. Before the next
call the slot either swaps in a freshly opened engine (when it knows how
to open one) or waits for the abandoned call to return. Engines still busy
at exit are left to their worker instead of being closed.
"""

import asyncio
import concurrent.futures
import functools
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, List, Optional

from ..config import OcrConfig
from ..errors import EngineUnavailable, RecognitionFailed, RecognitionTimeout
from .interface import OcrEngineInterface, OcrInput, OcrOutput
from .registry import OcrEngineRegistry

logger = logging.getLogger(__name__)


@dataclass
class _EngineWorker:
    engine: OcrEngineInterface
    executor: concurrent.futures.ThreadPoolExecutor
    last_call: Optional[concurrent.futures.Future] = None

    @classmethod
    def start(cls, engine: OcrEngineInterface) -> "_EngineWorker":
        return cls(engine, concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="ocr-engine"
        ))

    @property
    def busy(self) -> bool:
        return self.last_call is not None and not self.last_call.done()


class EngineSlot:
    """
    Single "in use" slot around one engine instance

    Args:
        engine: Opened engine
        reopen: Returns a new opened engine; used to replace an engine
            that is still busy with a timed-out call
    """

    def __init__(self,
                 engine: OcrEngineInterface,
                 reopen: Optional[Callable[[], OcrEngineInterface]] = None):
        self._worker = _EngineWorker.start(engine)
        self._reopen = reopen
        self._retired: List[_EngineWorker] = []
        self._lock: Optional[asyncio.Lock] = None

    @property
    def engine(self) -> OcrEngineInterface:
        return self._worker.engine

    @property
    def busy(self) -> bool:
        """True while an abandoned call still runs on the current engine"""
        return self._worker.busy

    async def _free_worker(self) -> _EngineWorker:
        worker = self._worker
        if not worker.busy:
            return worker
        if self._reopen is None:
            logger.info("Waiting for a timed-out call on %s to return", worker.engine.name())
            await asyncio.wait([asyncio.wrap_future(worker.last_call)])
            return worker

        logger.warning("OCR engine %s still busy with a timed-out call, opening a new one",
                       worker.engine.name())
        self._retired.append(worker)
        self._worker = _EngineWorker.start(await asyncio.to_thread(self._reopen))
        return self._worker

    async def recognize(self, input_data: OcrInput, timeout: Optional[float] = None) -> OcrOutput:
        """
        Run one recognition off the event loop

        Raises:
            RecognitionTimeout: the call exceeded `timeout` seconds
            RecognitionFailed: the engine raised
            EngineUnavailable: a replacement engine could not be opened
        """
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            worker = await self._free_worker()
            worker.last_call = worker.executor.submit(worker.engine.recognize, input_data)
            call = asyncio.wrap_future(worker.last_call)
            try:
                if timeout is not None:
                    return await asyncio.wait_for(call, timeout)
                return await call
            except asyncio.TimeoutError as e:
                raise RecognitionTimeout(
                    f"Recognition timed out after {timeout}s",
                    image_ref=input_data.image_ref,
                    variant=input_data.variant,
                    cause=e,
                )
            except RecognitionFailed as e:
                e.image_ref = e.image_ref or input_data.image_ref
                e.variant = e.variant or input_data.variant
                raise
            except Exception as e:
                raise RecognitionFailed(
                    f"Recognition failed: {type(e).__name__}",
                    image_ref=input_data.image_ref,
                    variant=input_data.variant,
                    cause=e,
                )

    async def close(self) -> None:
        """Close every idle engine; a busy one is left running, not waited for"""
        workers = self._retired + [self._worker]
        self._retired = []
        for worker in workers:
            if worker.busy:
                logger.warning("OCR engine %s still busy after a timeout, not closed",
                               worker.engine.name())
            else:
                await asyncio.wrap_future(worker.executor.submit(worker.engine.close))
            worker.executor.shutdown(wait=False)


def _start_engine(engine_name: str, config: Optional[OcrConfig]) -> OcrEngineInterface:
    engine = OcrEngineRegistry.create(engine_name, config)
    try:
        engine.open()
    except EngineUnavailable:
        raise
    except Exception as e:
        raise EngineUnavailable(f"OCR engine '{engine_name}' failed to start", cause=e)
    return engine


@asynccontextmanager
async def engine_session(engine_name: str,
                         config: Optional[OcrConfig] = None) -> AsyncIterator[EngineSlot]:
    """
    Create, open and finally close an engine

    Raises:
        EngineUnavailable: engine cannot be created or opened
    """
    engine = await asyncio.to_thread(_start_engine, engine_name, config)
    logger.info("OCR engine started: %s", engine.name())
    slot = EngineSlot(engine, reopen=functools.partial(_start_engine, engine_name, config))
    try:
        yield slot
    finally:
        await slot.close()
        logger.info("OCR engine closed: %s", engine.name())
