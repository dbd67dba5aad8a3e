"""Performance summaries over archived trades."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Optional

from ..state.models import ArchiveRecord


@dataclass(frozen=True)
class PerformanceSummary:
    """Win/loss and points statistics for a set of archive records."""
    total: int
    wins: int
    losses: int
    total_points: float
    best: Optional[ArchiveRecord]
    worst: Optional[ArchiveRecord]
    records: tuple[ArchiveRecord, ...]

    @property
    def win_rate(self) -> float:
        return self.wins / self.total if self.total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "wins": self.wins,
            "losses": self.losses,
            "win_rate": self.win_rate,
            "total_points": self.total_points,
            "best": self.best.trade.trade_id if self.best else None,
            "worst": self.worst.trade.trade_id if self.worst else None,
        }


def summarize(records: Sequence[ArchiveRecord]) -> PerformanceSummary:
    """Compute a performance summary."""
    records = tuple(records)
    wins = sum(1 for record in records if record.win)

    return PerformanceSummary(
        total=len(records),
        wins=wins,
        losses=len(records) - wins,
        total_points=sum(record.points for record in records),
        best=max(records, key=lambda record: record.points, default=None),
        worst=min(records, key=lambda record: record.points, default=None),
        records=records,
    )
