from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

_ZERO = Decimal(0)
_CENTS = Decimal("0.01")


def _as_decimal(value: object) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    return Decimal(str(value))


def median(values: Sequence[Decimal]) -> Decimal:
    """Middle element, or mean of the two central elements, of sorted ``values``."""
    if not values:
        return _ZERO
    mid = len(values) // 2
    if len(values) % 2:
        return values[mid]
    return (values[mid - 1] + values[mid]) / 2


def round_money(value: Decimal) -> Decimal:
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class StatSummary:
    count: int
    avg: Decimal
    min: Decimal
    max: Decimal
    median: Decimal

    @classmethod
    def empty(cls) -> "StatSummary":
        return cls(count=0, avg=_ZERO, min=_ZERO, max=_ZERO, median=_ZERO)

    def rounded(self) -> "StatSummary":
        return StatSummary(
            count=self.count,
            avg=round_money(self.avg),
            min=round_money(self.min),
            max=round_money(self.max),
            median=round_money(self.median),
        )

    def to_row(self) -> dict[str, object]:
        shown = self.rounded()
        return {
            "count": shown.count,
            "avg": float(shown.avg),
            "min": float(shown.min),
            "max": float(shown.max),
            "median": float(shown.median),
        }


def summarize(values: Iterable[object]) -> StatSummary:
    normalized = sorted(_as_decimal(value) for value in values)
    if not normalized:
        return StatSummary.empty()
    count = len(normalized)
    return StatSummary(
        count=count,
        avg=sum(normalized, _ZERO) / count,
        min=normalized[0],
        max=normalized[-1],
        median=median(normalized),
    )


__all__ = ["StatSummary", "median", "round_money", "summarize"]
