"""Tests for performance summaries."""

from signal_relay.signals.models import Direction, ExitType
from signal_relay.state.models import ArchiveRecord, Trade
from signal_relay.sweeps.summary import summarize


def archive(trade_id, direction, exit_type, exit_price, partial=False):
    trade = Trade(
        trade_id=trade_id,
        direction=direction,
        symbol="NQ1!",
        timeframe="3",
        entry=100.0,
        stop=95.0,
        tp1=105.0,
        tp2=110.0,
        start_time=0,
        last_update=0,
    )
    if partial:
        trade = trade.with_partial(ExitType.TP1, 1)
    return ArchiveRecord.close(trade, exit_type, exit_price, 2, "2026-10-19")


class TestSummarize:
    """Test summary statistics."""

    def test_empty(self):
        summary = summarize([])

        assert summary.total == 0
        assert summary.win_rate == 0.0
        assert summary.best is None
        assert summary.worst is None

    def test_mixed_results(self):
        records = [
            archive("1", Direction.LONG, ExitType.TP2, 110.0, partial=True),
            archive("2", Direction.SHORT, ExitType.SL, 104.0),
            archive("3", Direction.LONG, ExitType.SL, 100.0, partial=True),
            archive("4", Direction.SHORT, ExitType.TP2, 90.0),
        ]

        summary = summarize(records)

        assert summary.total == 4
        assert summary.wins == 3
        assert summary.losses == 1
        assert summary.win_rate == 0.75
        assert summary.total_points == 16.0
        assert summary.best.trade.trade_id == "1"
        assert summary.worst.trade.trade_id == "2"

    def test_to_dict(self):
        summary = summarize([archive("1", Direction.LONG, ExitType.SL, 95.0)])

        assert summary.to_dict() == {
            "total": 1,
            "wins": 0,
            "losses": 1,
            "win_rate": 0.0,
            "total_points": -5.0,
            "best": "1",
            "worst": "1",
        }
