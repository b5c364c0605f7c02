"""Parse free-text shelf price tokens into decimal values.

Detector output mixes locales: ``"12,50 €"``, ``"€3.99"``, ``"1.234,56"`` and
plain garbage all show up in the same column. Every token is parsed
independently and either yields a positive ``Decimal`` or a typed rejection;
nothing here raises for bad input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Iterable, Sequence

from ..config import constants

_NUMBER_PATTERN = re.compile(r"^\d+(?:[.,]\d+)*$")
_SEPARATORS = ".,"


class PriceRejection(str, Enum):
    EMPTY = "empty"
    MALFORMED = "malformed"
    NON_POSITIVE = "non_positive"


@dataclass(frozen=True)
class PriceParse:
    value: Decimal | None
    reason: PriceRejection | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None and self.value is not None

    @classmethod
    def rejected(cls, reason: PriceRejection) -> "PriceParse":
        return cls(value=None, reason=reason)


def _strip_marker(text: str, markers: Sequence[str]) -> str:
    upper = text.upper()
    for marker in markers:
        token = marker.upper()
        if upper.startswith(token):
            text = text[len(marker):].strip()
            break
    upper = text.upper()
    for marker in markers:
        token = marker.upper()
        if upper.endswith(token):
            text = text[: len(text) - len(marker)].strip()
            break
    return text


def _to_decimal(body: str) -> Decimal:
    separators = [char for char in body if char in _SEPARATORS]
    if not separators:
        return Decimal(body)
    last = separators[-1]
    if len(separators) > 1 and all(sep == last for sep in separators):
        # "1.234.567": repeated identical separators only group thousands.
        return Decimal(body.replace(last, ""))
    integer, _, fraction = body.rpartition(last)
    for sep in _SEPARATORS:
        integer = integer.replace(sep, "")
    return Decimal(f"{integer}.{fraction}")


def normalize_price(
    raw: object,
    markers: Sequence[str] = tuple(constants.DEFAULT_CURRENCY_MARKERS),
) -> PriceParse:
    if raw is None or isinstance(raw, bool):
        return PriceParse.rejected(PriceRejection.EMPTY)
    if isinstance(raw, (int, float, Decimal)):
        raw = str(raw)
    if not isinstance(raw, str):
        return PriceParse.rejected(PriceRejection.MALFORMED)
    text = raw.strip()
    if not text:
        return PriceParse.rejected(PriceRejection.EMPTY)
    body = _strip_marker(text, markers)
    if not body:
        return PriceParse.rejected(PriceRejection.EMPTY)
    if not _NUMBER_PATTERN.match(body):
        return PriceParse.rejected(PriceRejection.MALFORMED)
    try:
        value = _to_decimal(body)
    except InvalidOperation:  # pragma: no cover - guarded by the pattern
        return PriceParse.rejected(PriceRejection.MALFORMED)
    if value <= 0:
        return PriceParse.rejected(PriceRejection.NON_POSITIVE)
    return PriceParse(value=value)


def parse_prices(
    tokens: Iterable[object],
    markers: Sequence[str] = tuple(constants.DEFAULT_CURRENCY_MARKERS),
) -> list[Decimal]:
    """Return the values of every token that parses, skipping the rest."""
    values: list[Decimal] = []
    for token in tokens:
        parsed = normalize_price(token, markers)
        if parsed.ok and parsed.value is not None:
            values.append(parsed.value)
    return values


__all__ = ["PriceParse", "PriceRejection", "normalize_price", "parse_prices"]
