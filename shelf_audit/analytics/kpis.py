from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal

from ..etl.models import (
    MarketCounts,
    PerformanceCounts,
    RecentCounts,
    TaskCounts,
    TeamCounts,
)

_TENTH = Decimal("0.1")


def ratio_pct(numerator: float, denominator: float) -> float:
    """Percentage rounded half-up to one decimal; a zero denominator yields 0."""
    if not denominator:
        return 0.0
    share = Decimal(str(numerator)) / Decimal(str(denominator)) * 100
    return float(share.quantize(_TENTH, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class KPISet:
    tasks: TaskCounts
    performance: PerformanceCounts
    team: TeamCounts
    market: MarketCounts
    recent: RecentCounts
    completion_rate: float
    hour_efficiency: float
    market_coverage: float

    def to_row(self) -> dict[str, object]:
        return {
            "tasks": asdict(self.tasks),
            "performance": asdict(self.performance),
            "team": asdict(self.team),
            "market": asdict(self.market),
            "recent": asdict(self.recent),
            "completion_rate": self.completion_rate,
            "hour_efficiency": self.hour_efficiency,
            "market_coverage": self.market_coverage,
        }


def compose(
    task_counts: TaskCounts,
    performance_counts: PerformanceCounts,
    team_counts: TeamCounts,
    market_counts: MarketCounts,
    recent_counts: RecentCounts,
) -> KPISet:
    return KPISet(
        tasks=task_counts,
        performance=performance_counts,
        team=team_counts,
        market=market_counts,
        recent=recent_counts,
        completion_rate=ratio_pct(task_counts.completed, task_counts.total),
        hour_efficiency=ratio_pct(
            performance_counts.avg_actual_hours,
            performance_counts.avg_estimated_hours,
        ),
        market_coverage=ratio_pct(
            performance_counts.chains_visited, market_counts.chains_available
        ),
    )


__all__ = ["KPISet", "compose", "ratio_pct"]
