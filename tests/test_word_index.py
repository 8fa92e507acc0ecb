"""
Tests for WordIndex and the text-only fallback
"""

from sell_analyzer.assembler import extract_trades
from sell_analyzer.ocr.interface import OcrOutput
from sell_analyzer.word_index import TEXT_LINE_PITCH, WordIndex

from conftest import tok


class TestWordIndex:
    def test_blank_tokens_dropped(self):
        index = WordIndex([tok("SELL", 0, 0), tok("  ", 50, 0), tok("", 60, 0)])
        assert [t.text for t in index] == ["SELL"]
        assert len(index) == 1

    def test_above(self):
        index = WordIndex([tok("a", 0, 0, conf=10), tok("b", 0, 0, conf=20), tok("c", 0, 0, conf=90)])
        assert [t.text for t in index.above(20)] == ["b", "c"]

    def test_from_output_prefers_tokens(self):
        tokens = [tok("SELL", 10, 100)]
        index = WordIndex.from_output(OcrOutput(text="ignored text", confidence=50, tokens=tokens))
        assert index.tokens == tokens
        assert not index.synthetic


class TestFromText:
    def test_synthetic_grid(self):
        index = WordIndex.from_text("SELL  SQR/USDT\n+6.26%", 75)
        assert index.synthetic
        tokens = index.tokens
        assert [t.text for t in tokens] == ["SELL", "SQR/USDT", "+6.26%"]
        assert tokens[1].bbox.to_tuple() == (60, 0, 140, 20)
        assert tokens[2].bbox.y0 == TEXT_LINE_PITCH
        assert all(t.confidence == 75 for t in tokens)

    def test_short_lines_skipped(self):
        index = WordIndex.from_text("ab\n\nSELL BTC\n  x ", 80)
        assert [t.text for t in index] == ["SELL", "BTC"]
        assert index.tokens[0].bbox.y0 == 0

    def test_text_only_output_yields_trade(self):
        output = OcrOutput(text="Spot history\nSELL SQR/USDT 274.1200 +6.26%\n", confidence=80)
        trades = extract_trades(WordIndex.from_output(output), "text.png")
        assert len(trades) == 1
        assert trades[0].pair == "SQR/USDT"
        assert trades[0].total == 274.12
        assert trades[0].result == 6.26

    def test_text_lines_do_not_mix(self):
        output = OcrOutput(
            text="SELL SQR/USDT 274.1200 +6.26%\nSELL ALGO/USDT 150.00 -2.50%",
            confidence=80,
        )
        trades = extract_trades(WordIndex.from_output(output))
        assert [(t.pair, t.total, t.result) for t in trades] == [
            ("SQR/USDT", 274.12, 6.26),
            ("ALGO/USDT", 150.0, -2.5),
        ]

    def test_next_line_completes_row(self):
        output = OcrOutput(text="SELL SQR/USDT +6.26%\nTotal 274.1200", confidence=80)
        trades = extract_trades(WordIndex.from_output(output))
        assert trades[0].total == 274.12
        assert trades[0].needs_correction is False

    def test_multi_line_card(self):
        index = WordIndex.from_text("SELL SQR/USDT\nFilled\nTotal 274.1200 USDT\nResult +6.26%", 90)
        trades = extract_trades(index, "card.png")
        assert [(t.pair, t.total, t.result, t.needs_correction) for t in trades] == [
            ("SQR/USDT", 274.12, 6.26, False),
        ]
        assert trades[0].confidence == 90

    def test_adjacent_cards_do_not_mix(self):
        text = (
            "SELL SQR/USDT\nFilled\nTotal 274.1200 USDT\nResult +6.26%\n"
            "SELL ALGO/USDT\nFilled\nTotal 150.00 USDT\nResult -2.50%"
        )
        trades = extract_trades(WordIndex.from_text(text, 85))
        assert [(t.pair, t.total, t.result) for t in trades] == [
            ("SQR/USDT", 274.12, 6.26),
            ("ALGO/USDT", 150.0, -2.5),
        ]
        assert not any(t.needs_correction for t in trades)

    def test_pair_found_above_anchor(self):
        text = "Spot history\nSQR/USDT\nSELL Filled\nTotal 274.1200\n+6.26%"
        trades = extract_trades(WordIndex.from_text(text, 80))
        assert [(t.pair, t.total, t.result) for t in trades] == [("SQR/USDT", 274.12, 6.26)]

    def test_window_ends_after_five_lines(self):
        text = "SELL SQR/USDT +6.26%\nA1 x\nA2 x\nA3 x\nA4 x\nA5 x\nTotal 274.1200"
        trades = extract_trades(WordIndex.from_text(text, 80))
        assert trades[0].total == 0.0
        assert trades[0].needs_correction
