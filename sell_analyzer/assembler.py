"""
Trade assembly

Candidate -> Trade. Pair is mandatory unless `require_pair` is off; missing
Total/Result become 0 and flag the trade for correction.
"""

import logging
from typing import List, Optional

from .anchors import make_detector
from .config import ExtractionConfig
from .dedup import deduplicate
from .events import DuplicateDropped, EventChannel, IncompleteCandidate
from .fields import FieldExtractor
from .models import Candidate, Trade
from .word_index import WordIndex

logger = logging.getLogger(__name__)

UNKNOWN_PAIR = "UNKNOWN"


class TradeAssembler:

    def __init__(self,
                 config: Optional[ExtractionConfig] = None,
                 channel: Optional[EventChannel] = None):
        self.config = config or ExtractionConfig()
        self.channel = channel or EventChannel()

    def assemble(self, candidate: Candidate, image_ref: str = "") -> Optional[Trade]:
        """
        Create a Trade from a candidate

        Returns:
            Trade, or None when the pair is missing and required
        """
        if candidate.pair is None:
            if self.config.require_pair or (candidate.total is None and candidate.result is None):
                logger.debug("Candidate without pair dropped: %r", candidate.context)
                self.channel.emit(IncompleteCandidate(image_ref, candidate.context))
                return None

        needs_correction = (
            candidate.pair is None
            or candidate.total is None
            or candidate.result is None
        )
        trade = Trade(
            pair=candidate.pair or UNKNOWN_PAIR,
            total=candidate.total if candidate.total is not None else 0.0,
            result=candidate.result if candidate.result is not None else 0.0,
            source_image_ref=image_ref,
            confidence=candidate.confidence,
            needs_correction=needs_correction,
            debug_context=candidate.context,
        )
        logger.debug(
            "Trade %s | %.4f | %+.2f%% | %+.4f%s",
            trade.pair, trade.total, trade.result, trade.profit,
            " (needs correction)" if needs_correction else "",
        )
        return trade


def extract_trades(index: WordIndex,
                   image_ref: str = "",
                   config: Optional[ExtractionConfig] = None,
                   channel: Optional[EventChannel] = None) -> List[Trade]:
    """
    Run anchors -> fields -> assembly -> dedup over one recognition result

    Args:
        index: Tokens of one recognition call
        image_ref: Source image reference copied onto each trade
        config: Extraction settings
        channel: Event channel for incomplete/duplicate notifications

    Returns:
        Deduplicated trades in anchor order
    """
    config = config or ExtractionConfig()
    channel = channel or EventChannel()
    tokens = index.tokens
    extractor = FieldExtractor(config, text_mode=index.synthetic)
    assembler = TradeAssembler(config, channel)

    trades: List[Trade] = []
    anchors = make_detector(config).detect(tokens)
    for anchor in anchors:
        trade = assembler.assemble(extractor.extract(tokens, anchor, anchors), image_ref)
        if trade is not None:
            trades.append(trade)

    kept, dropped = deduplicate(trades)
    for trade in dropped:
        logger.debug("Duplicate dropped in %s: %s %.4f %+.2f%%",
                     image_ref, trade.pair, trade.total, trade.result)
        channel.emit(DuplicateDropped(image_ref, trade.pair, trade.total, trade.result))
    return kept
