"""Market data models — typed OHLCV bars and force samples."""

import math
from dataclasses import dataclass
from typing import Iterable, Mapping


@dataclass(frozen=True)
class Bar:
    """A single OHLCV bar.

    ``date`` is an ISO string: a calendar date for daily/weekly data or a
    date-time for hourly data.
    """

    date: str
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class ForceSample:
    """A bar extended with the demand / supply forces derived from it."""

    date: str
    open: float
    high: float
    low: float
    close: float
    volume: float
    demand: float
    supply: float

    @classmethod
    def from_bar(cls, bar: Bar, demand: float, supply: float) -> "ForceSample":
        return cls(
            date=bar.date,
            open=bar.open,
            high=bar.high,
            low=bar.low,
            close=bar.close,
            volume=bar.volume,
            demand=demand,
            supply=supply,
        )

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "demand": self.demand,
            "supply": self.supply,
        }


def bars_from_records(records: Iterable[Mapping]) -> list[Bar]:
    """Build bars from dict-like records with OHLCV keys."""
    return [
        Bar(
            date=str(r["date"]),
            open=float(r["open"]),
            high=float(r["high"]),
            low=float(r["low"]),
            close=float(r["close"]),
            volume=float(r.get("volume", 0.0) or 0.0),
        )
        for r in records
    ]


def validate_bars(bars: list[Bar]) -> None:
    """Check the OHLCV invariants of a bar sequence.

    Raises ``ValueError`` naming the first offending bar when a price is
    not finite, the high/low envelope is violated, volume is negative, or
    dates are not strictly ascending.
    """
    prev_date = None
    for i, bar in enumerate(bars):
        prices = (bar.open, bar.high, bar.low, bar.close)
        if not all(math.isfinite(p) for p in prices):
            raise ValueError(f"Bar {i} ({bar.date}) has a non-finite price")
        if bar.high < max(bar.open, bar.close, bar.low):
            raise ValueError(f"Bar {i} ({bar.date}): high below open/close/low")
        if bar.low > min(bar.open, bar.close, bar.high):
            raise ValueError(f"Bar {i} ({bar.date}): low above open/close/high")
        if bar.volume < 0:
            raise ValueError(f"Bar {i} ({bar.date}): negative volume")
        if prev_date is not None and bar.date <= prev_date:
            raise ValueError(
                f"Bar {i} ({bar.date}) is not after previous bar ({prev_date})"
            )
        prev_date = bar.date
