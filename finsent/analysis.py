"""
Axis Domain Calculation
Padded, NaN-free value ranges for the price, trend and sentiment axes
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

import numpy as np

from .data_sources import SeriesSample

PADDING_RATIO = 0.1
SENTIMENT_BOUND = 1.0


class DomainKind(str, Enum):
    UNBOUNDED_POSITIVE = 'unbounded-positive'
    SYMMETRIC_BOUNDED = 'symmetric-bounded'


class SeriesKind(str, Enum):
    """Chart series and the SeriesSample attribute each one reads"""
    PRICE = 'price'
    TREND = 'trend'
    SENTIMENT = 'sentiment'

    @property
    def field(self) -> str:
        return 'trend_score' if self is SeriesKind.TREND else self.value

    @property
    def domain_kind(self) -> DomainKind:
        if self is SeriesKind.SENTIMENT:
            return DomainKind.SYMMETRIC_BOUNDED
        return DomainKind.UNBOUNDED_POSITIVE


@dataclass(frozen=True)
class AxisDomain:
    """Closed interval an axis must cover"""
    min: float
    max: float
    kind: DomainKind

    @property
    def is_degenerate(self) -> bool:
        return self.min == self.max

    def to_list(self) -> list:
        return [self.min, self.max]


FALLBACK_DOMAINS = {
    DomainKind.UNBOUNDED_POSITIVE: AxisDomain(0.0, 100.0, DomainKind.UNBOUNDED_POSITIVE),
    DomainKind.SYMMETRIC_BOUNDED: AxisDomain(-SENTIMENT_BOUND, SENTIMENT_BOUND, DomainKind.SYMMETRIC_BOUNDED),
}


def series_values(samples: Sequence[SeriesSample], kind: SeriesKind) -> np.ndarray:
    """Defined, finite values of one series"""
    values = np.array(
        [v for v in (getattr(s, kind.field) for s in samples) if v is not None],
        dtype=float,
    )
    return values[np.isfinite(values)]


def calculate_domain(samples: Sequence[SeriesSample], kind) -> AxisDomain:
    """
    Axis range for one series.

    Observed [min, max] is padded by 10% of its span on each side and snapped
    outward to integers. Sentiment is then re-centred on zero and never
    tighter than [-1, 1]. A series with no data gets the fixed fallback. A
    constant series comes back as a degenerate [v, v]; widening it for
    display is the renderer's job.
    """
    kind = SeriesKind(kind)
    values = series_values(samples, kind)
    if values.size == 0:
        return FALLBACK_DOMAINS[kind.domain_kind]

    lo, hi = float(values.min()), float(values.max())
    padding = (hi - lo) * PADDING_RATIO
    padded_min = float(math.floor(lo - padding))
    padded_max = float(math.ceil(hi + padding))

    if kind.domain_kind is DomainKind.SYMMETRIC_BOUNDED:
        bound = max(abs(padded_min), abs(padded_max), SENTIMENT_BOUND)
        return AxisDomain(-bound, bound, DomainKind.SYMMETRIC_BOUNDED)
    return AxisDomain(padded_min, padded_max, DomainKind.UNBOUNDED_POSITIVE)


def calculate_domains(samples: Sequence[SeriesSample]) -> dict:
    return {kind: calculate_domain(samples, kind) for kind in SeriesKind}


def price_summary(samples: Sequence[SeriesSample]) -> Optional[Tuple[float, float]]:
    """(low, high) over defined prices, or None without any"""
    prices = series_values(samples, SeriesKind.PRICE)
    if prices.size == 0:
        return None
    return float(prices.min()), float(prices.max())
