"""
Analyzer service

One analysis session: configuration, the correction store and the event
channel shared by batches and edits.
"""

from typing import Callable, List, Optional, Sequence

from .batch import BatchImage, BatchResult, CancellationToken, process_batch
from .config import BatchConfig, load_config
from .correction import CorrectionStore, EditDraft
from .events import EventChannel
from .models import AggregateStats, Trade
from .ocr.variants import Preprocessor


class SellAnalyzer:
    """
    Session service

    Business logic:
    - Batch submission (trades land in the store)
    - Edit / delete / clear of accepted trades
    - Aggregate statistics
    """

    def __init__(self,
                 config: Optional[BatchConfig] = None,
                 preprocessor: Optional[Preprocessor] = None,
                 channel: Optional[EventChannel] = None):
        self.config = config or BatchConfig()
        self.preprocessor = preprocessor
        self.channel = channel or EventChannel()
        self.store = CorrectionStore(strict=self.config.strict_store, channel=self.channel)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, **kwargs) -> "SellAnalyzer":
        """Session configured from SELL_ANALYZER_* environment variables"""
        return cls(load_config(env_file), **kwargs)

    def subscribe(self, listener: Callable[[object], None]) -> Callable[[], None]:
        return self.channel.subscribe(listener)

    async def submit(self,
                     images: Sequence[BatchImage],
                     cancel_token: Optional[CancellationToken] = None) -> BatchResult:
        """Process a batch; kept trades are appended to the store"""
        return await process_batch(
            images,
            self.config,
            store=self.store,
            preprocessor=self.preprocessor,
            channel=self.channel,
            cancel_token=cancel_token,
        )

    @property
    def trades(self) -> List[Trade]:
        return self.store.trades

    @property
    def stats(self) -> AggregateStats:
        return self.store.stats

    def begin_edit(self, trade_id: str) -> Optional[EditDraft]:
        return self.store.begin_edit(trade_id)

    def commit_edit(self, draft: EditDraft) -> Optional[Trade]:
        return self.store.commit_edit(draft)

    def cancel_edit(self) -> None:
        self.store.cancel_edit()

    def delete(self, trade_id: str) -> bool:
        return self.store.delete(trade_id)

    def clear_all(self) -> None:
        self.store.clear_all()
