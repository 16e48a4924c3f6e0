"""Force KPI summary over a trailing window of samples."""

from dataclasses import dataclass
from typing import Optional

from forcelab.forces.diagram import DEFAULT_THRESHOLD, TradingSignal, classify
from forcelab.models import ForceSample


@dataclass(frozen=True)
class ForceSummary:
    """Counts and averages of the last *window* force samples."""

    start_index: int
    end_index: int
    bullish_count: int
    bearish_count: int
    neutral_count: int
    avg_demand: float
    avg_supply: float
    signal: TradingSignal

    def to_dict(self) -> dict:
        return {
            "start_index": self.start_index,
            "end_index": self.end_index,
            "bullish_count": self.bullish_count,
            "bearish_count": self.bearish_count,
            "neutral_count": self.neutral_count,
            "avg_demand": self.avg_demand,
            "avg_supply": self.avg_supply,
            "signal": self.signal.to_dict(),
        }


def summarize_forces(
    samples: list[ForceSample],
    up_to_index: Optional[int] = None,
    window: int = 20,
    threshold: float = DEFAULT_THRESHOLD,
) -> Optional[ForceSummary]:
    """Summarise the *window* samples ending at *up_to_index* (inclusive).

    Uses the latest sample when *up_to_index* is ``None``.  Returns
    ``None`` for an empty series.

    Raises:
        ValueError: if *window* is less than 1.
    """
    if window < 1:
        raise ValueError(f"window must be at least 1, got {window}")
    if not samples:
        return None

    end = len(samples) if up_to_index is None else min(up_to_index, len(samples) - 1) + 1
    end = max(end, 1)
    start = max(0, end - window)
    recent = samples[start:end]

    bullish = sum(1 for s in recent if s.demand > threshold)
    bearish = sum(1 for s in recent if s.supply > threshold)
    neutral = sum(
        1 for s in recent if abs(s.demand) <= threshold and abs(s.supply) <= threshold
    )
    last = recent[-1]

    return ForceSummary(
        start_index=start,
        end_index=end - 1,
        bullish_count=bullish,
        bearish_count=bearish,
        neutral_count=neutral,
        avg_demand=sum(s.demand for s in recent) / len(recent),
        avg_supply=sum(s.supply for s in recent) / len(recent),
        signal=classify(last.demand, last.supply, threshold),
    )
