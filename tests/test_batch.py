"""
Tests for batch processing and the analyzer service
"""

import asyncio
import time

import pytest

from sell_analyzer.batch import BatchImage, CancellationToken, process_batch
from sell_analyzer.config import BatchConfig
from sell_analyzer.correction import CorrectionStore
from sell_analyzer.errors import EngineUnavailable
from sell_analyzer.events import (
    DuplicateDropped,
    EventChannel,
    EventRecorder,
    ProgressEvent,
    TradeExtracted,
)
from sell_analyzer.service import SellAnalyzer

from conftest import SCRIPTED_ENGINE, ScriptedEngine, StaticPreprocessor, ocr_output, sell_row


def scripted_config(**ocr):
    config = BatchConfig(engine=SCRIPTED_ENGINE)
    for key, value in ocr.items():
        setattr(config.ocr, key, value)
    return config


def images(*refs):
    return [BatchImage(ref, object()) for ref in refs]


def recorder_channel():
    channel = EventChannel()
    recorder = EventRecorder()
    channel.subscribe(recorder)
    return channel, recorder


ALGO_ROW = dict(pair="ALGO/USDT", total="150.00", result="-2.50%")


class TestProcessBatch:
    def test_sequential_images(self, install_engine):
        engine = install_engine(ScriptedEngine({
            "a.png": ocr_output(sell_row()),
            "b.png": ocr_output(sell_row(**ALGO_ROW)),
        }))

        result = asyncio.run(process_batch(images("a.png", "b.png"), scripted_config()))

        assert [t.pair for t in result.trades] == ["SQR/USDT", "ALGO/USDT"]
        assert [t.source_image_ref for t in result.trades] == ["a.png", "b.png"]
        assert [r.image_ref for r in result.images] == ["a.png", "b.png"]
        assert [c[0] for c in engine.calls] == ["a.png", "b.png"]
        assert result.stats.trade_count == 2
        assert not result.cancelled

    def test_engine_scoped_to_batch(self, install_engine):
        engine = install_engine(ScriptedEngine({"a.png": ocr_output(sell_row())}))
        asyncio.run(process_batch(images("a.png"), scripted_config()))
        assert engine.opened
        assert engine.closed

    def test_progress_monotonic(self, install_engine):
        install_engine(ScriptedEngine({
            "a.png": ocr_output(sell_row()),
            "b.png": ocr_output(sell_row(**ALGO_ROW)),
            "c.png": ocr_output([]),
        }))
        channel, recorder = recorder_channel()

        asyncio.run(process_batch(
            images("a.png", "b.png", "c.png"),
            scripted_config(),
            preprocessor=StaticPreprocessor("inverted"),
            channel=channel,
        ))

        progress = recorder.of_type(ProgressEvent)
        images_done = [p.images_done for p in progress]
        attempts_done = [p.attempts_done for p in progress]
        assert images_done == sorted(images_done)
        assert attempts_done == sorted(attempts_done)
        assert progress[-1].images_done == 3
        assert progress[-1].attempts_done == 6
        assert progress[-1].percent == 100
        assert all(p.images_total == 3 for p in progress)

    def test_failed_image_isolated(self, install_engine):
        install_engine(ScriptedEngine({
            "a.png": RuntimeError("decoder crashed"),
            "b.png": ocr_output(sell_row(**ALGO_ROW)),
        }))

        result = asyncio.run(process_batch(images("a.png", "b.png"), scripted_config()))

        assert result.failed_images == ["a.png"]
        assert [t.pair for t in result.trades] == ["ALGO/USDT"]

    def test_engine_unavailable_is_fatal(self, install_engine):
        install_engine(ScriptedEngine(fail_open=True))
        with pytest.raises(EngineUnavailable):
            asyncio.run(process_batch(images("a.png"), scripted_config()))

    def test_engine_not_available(self, install_engine):
        install_engine(ScriptedEngine(available=False))
        with pytest.raises(EngineUnavailable):
            asyncio.run(process_batch(images("a.png"), scripted_config()))

    def test_unknown_engine(self):
        config = BatchConfig(engine="no-such-engine")
        with pytest.raises(EngineUnavailable):
            asyncio.run(process_batch(images("a.png"), config))

    def test_timeout_fails_only_that_image(self, install_engine):
        install_engine(ScriptedEngine(
            {"a.png": ocr_output(sell_row()), "slow.png": ocr_output(sell_row(**ALGO_ROW))},
            delays={"slow.png": 0.3},
        ))

        result = asyncio.run(process_batch(
            images("a.png", "slow.png"),
            scripted_config(timeout_seconds=0.05),
        ))

        assert result.failed_images == ["slow.png"]
        assert result.images[1].timed_out
        assert [t.pair for t in result.trades] == ["SQR/USDT"]

    def test_timeout_does_not_fail_following_images(self, install_engine):
        engine = install_engine(ScriptedEngine(
            {
                "slow.png": ocr_output(sell_row(pair="DOGE/USDT", total="100.00", result="+5.00%")),
                "a.png": ocr_output(sell_row()),
                "b.png": ocr_output(sell_row(**ALGO_ROW)),
            },
            delays={"slow.png": 0.6},
        ))

        result = asyncio.run(process_batch(
            images("slow.png", "a.png", "b.png"),
            scripted_config(timeout_seconds=0.25),
        ))

        assert result.failed_images == ["slow.png"]
        assert [r.timed_out for r in result.images] == [True, False, False]
        assert [t.pair for t in result.trades] == ["SQR/USDT", "ALGO/USDT"]
        assert [c[0] for c in engine.calls] == ["slow.png", "a.png", "b.png"]

    def test_hung_engine_does_not_delay_batch_end(self, install_engine):
        engine = install_engine(ScriptedEngine(
            {"a.png": ocr_output(sell_row())},
            delays={"hung.png": 1.5},
        ))

        start = time.monotonic()
        result = asyncio.run(process_batch(
            images("a.png", "hung.png"),
            scripted_config(timeout_seconds=0.1),
        ))
        elapsed = time.monotonic() - start

        assert result.failed_images == ["hung.png"]
        assert [t.pair for t in result.trades] == ["SQR/USDT"]
        assert elapsed < 1.0
        assert not engine.closed

    def test_cancellation_between_images(self, install_engine):
        install_engine(ScriptedEngine({
            "a.png": ocr_output(sell_row()),
            "b.png": ocr_output(sell_row(**ALGO_ROW)),
        }))
        token = CancellationToken()
        channel = EventChannel()

        def cancel_after_first(event):
            if isinstance(event, ProgressEvent) and event.images_done == 1:
                token.cancel()

        channel.subscribe(cancel_after_first)

        result = asyncio.run(process_batch(
            images("a.png", "b.png"), scripted_config(), channel=channel, cancel_token=token
        ))

        assert result.cancelled
        assert [r.image_ref for r in result.images] == ["a.png"]
        assert [t.pair for t in result.trades] == ["SQR/USDT"]

    def test_duplicates_across_images(self, install_engine):
        row = dict(pair="DOGE/USDT", total="100.00", result="+5.00%")
        install_engine(ScriptedEngine({
            "a.png": ocr_output(sell_row(**row)),
            "b.png": ocr_output(sell_row(**row)),
        }))
        channel, recorder = recorder_channel()

        result = asyncio.run(process_batch(images("a.png", "b.png"), scripted_config(), channel=channel))

        assert len(result.trades) == 1
        assert result.trades[0].source_image_ref == "a.png"
        assert recorder.of_type(DuplicateDropped) == [DuplicateDropped("b.png", "DOGE/USDT", 100.0, 5.0)]

    def test_duplicates_kept_when_disabled(self, install_engine):
        row = dict(pair="DOGE/USDT", total="100.00", result="+5.00%")
        install_engine(ScriptedEngine({
            "a.png": ocr_output(sell_row(**row)),
            "b.png": ocr_output(sell_row(**row)),
        }))
        config = scripted_config()
        config.extraction.dedupe_across_images = False

        result = asyncio.run(process_batch(images("a.png", "b.png"), config))

        assert len(result.trades) == 2

    def test_trades_added_to_store(self, install_engine):
        install_engine(ScriptedEngine({"a.png": ocr_output(sell_row(total=""))}))
        store = CorrectionStore()
        channel, recorder = recorder_channel()

        result = asyncio.run(process_batch(images("a.png"), scripted_config(), store=store, channel=channel))

        assert store.trades == result.trades
        assert store.pending_corrections() == result.trades
        extracted = recorder.of_type(TradeExtracted)
        assert extracted == [TradeExtracted("a.png", result.trades[0].id, "SQR/USDT", True)]

    def test_empty_batch(self, install_engine):
        install_engine(ScriptedEngine())
        result = asyncio.run(process_batch([], scripted_config()))
        assert result.trades == []
        assert result.images == []


class TestSellAnalyzer:
    def test_submit_then_correct(self, install_engine):
        install_engine(ScriptedEngine({
            "a.png": ocr_output(sell_row(total="")),
            "b.png": ocr_output(sell_row(**ALGO_ROW)),
        }))
        analyzer = SellAnalyzer(scripted_config())

        asyncio.run(analyzer.submit(images("a.png", "b.png")))
        assert len(analyzer.trades) == 2

        flagged = analyzer.store.pending_corrections()[0]
        draft = analyzer.begin_edit(flagged.id)
        draft.total = "274.12"
        fixed = analyzer.commit_edit(draft)

        assert fixed.needs_correction is False
        assert fixed.profit == pytest.approx(17.159912)
        assert analyzer.stats.trade_count == 2
        assert analyzer.stats.total_amount_sum == pytest.approx(424.12)

    def test_second_batch_deduplicated_against_store(self, install_engine):
        install_engine(ScriptedEngine({
            "a.png": ocr_output(sell_row()),
            "again.png": ocr_output(sell_row()),
        }))
        analyzer = SellAnalyzer(scripted_config())

        asyncio.run(analyzer.submit(images("a.png")))
        result = asyncio.run(analyzer.submit(images("again.png")))

        assert result.trades == []
        assert len(analyzer.trades) == 1

    def test_delete_and_clear(self, install_engine):
        install_engine(ScriptedEngine({"a.png": ocr_output(sell_row())}))
        analyzer = SellAnalyzer(scripted_config())
        asyncio.run(analyzer.submit(images("a.png")))

        assert analyzer.delete(analyzer.trades[0].id) is True
        assert analyzer.stats.trade_count == 0

        asyncio.run(analyzer.submit(images("a.png")))
        analyzer.clear_all()
        assert analyzer.trades == []

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SELL_ANALYZER_STRICT_STORE", "false")
        analyzer = SellAnalyzer.from_env(tmp_path / "missing.env")
        assert analyzer.store.strict is False
        assert analyzer.delete("missing") is False
