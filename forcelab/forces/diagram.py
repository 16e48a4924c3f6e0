"""Hamilton diagram — maps a (demand, supply) pair to a market zone.

The diagram is a 3×3 grid: each force is strong (> threshold), neutral
(within ±threshold) or weak (< −threshold).  Every cell maps to one zone,
one recommended action and, independently, a quality label.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

DEFAULT_THRESHOLD = 30.0


class DiagramZone(str, Enum):
    FREE_RISE = "FREE_RISE"
    WEAK_BULL = "WEAK_BULL"
    BEAR_RALLY = "BEAR_RALLY"
    CONSOLIDATION = "CONSOLIDATION"
    CHAOS = "CHAOS"
    DISTRIBUTION = "DISTRIBUTION"
    BULL_TRAP = "BULL_TRAP"
    WEAK_BEAR = "WEAK_BEAR"
    FREE_FALL = "FREE_FALL"


class Action(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"
    WAIT = "WAIT"
    HOLD_LONG = "HOLD_LONG"
    HOLD_SHORT = "HOLD_SHORT"
    EXIT_LONG = "EXIT_LONG"
    EXIT_SHORT = "EXIT_SHORT"
    ACCUMULATE = "ACCUMULATE"
    REDUCE = "REDUCE"


class Quality(str, Enum):
    HEALTHY = "Healthy"
    SPECULATIVE = "Speculative"
    WARNING = "Warning"


_ZONE_ACTIONS: dict[DiagramZone, Action] = {
    DiagramZone.FREE_RISE: Action.LONG,
    DiagramZone.WEAK_BULL: Action.HOLD_LONG,
    DiagramZone.BEAR_RALLY: Action.EXIT_SHORT,
    DiagramZone.CONSOLIDATION: Action.ACCUMULATE,
    DiagramZone.CHAOS: Action.WAIT,
    DiagramZone.DISTRIBUTION: Action.REDUCE,
    DiagramZone.BULL_TRAP: Action.EXIT_LONG,
    DiagramZone.WEAK_BEAR: Action.HOLD_SHORT,
    DiagramZone.FREE_FALL: Action.SHORT,
}

_ZONE_NAMES: dict[DiagramZone, str] = {
    DiagramZone.FREE_RISE: "Free Rise ↑↑",
    DiagramZone.WEAK_BULL: "Weak Bull ↑→",
    DiagramZone.BEAR_RALLY: "Bear Rally ↑↓",
    DiagramZone.CONSOLIDATION: "Consolidation →↑",
    DiagramZone.CHAOS: "Chaos →→",
    DiagramZone.DISTRIBUTION: "Distribution →↓",
    DiagramZone.BULL_TRAP: "Bull Trap ↓↑",
    DiagramZone.WEAK_BEAR: "Weak Bear ↓→",
    DiagramZone.FREE_FALL: "Free Fall ↓↓",
}


@dataclass(frozen=True)
class TradingSignal:
    """Zone, action and quality for one (demand, supply) reading."""

    zone: DiagramZone
    action: Action
    demand: float
    supply: float
    quality: Quality

    def to_dict(self) -> dict:
        return {
            "zone": self.zone.value,
            "zone_name": zone_name(self.zone),
            "action": self.action.value,
            "demand": self.demand,
            "supply": self.supply,
            "quality": self.quality.value,
        }


def get_thresholds(threshold: Optional[float] = None) -> tuple[float, float]:
    """Return ``(strong, weak)`` cut-offs for *threshold* (default 30)."""
    t = DEFAULT_THRESHOLD if threshold is None else threshold
    return t, -t


def map_to_zone(
    demand: float, supply: float, threshold: Optional[float] = None
) -> DiagramZone:
    """Classify a (demand, supply) pair into one of the nine zones."""
    strong, weak = get_thresholds(threshold)

    demand_strong = demand > strong
    demand_neutral = weak <= demand <= strong
    demand_weak = demand < weak

    supply_strong = supply > strong
    supply_neutral = weak <= supply <= strong
    supply_weak = supply < weak

    if demand_strong and supply_weak:
        return DiagramZone.FREE_RISE
    if demand_strong and supply_neutral:
        return DiagramZone.WEAK_BULL
    if demand_strong and supply_strong:
        return DiagramZone.BEAR_RALLY
    if demand_neutral and supply_weak:
        return DiagramZone.CONSOLIDATION
    if demand_neutral and supply_neutral:
        return DiagramZone.CHAOS
    if demand_neutral and supply_strong:
        return DiagramZone.DISTRIBUTION
    if demand_weak and supply_weak:
        return DiagramZone.BULL_TRAP
    if demand_weak and supply_neutral:
        return DiagramZone.WEAK_BEAR
    if demand_weak and supply_strong:
        return DiagramZone.FREE_FALL

    # Only reachable for NaN inputs.
    return DiagramZone.CHAOS


def zone_action(zone: DiagramZone) -> Action:
    """Recommended action for *zone*."""
    return _ZONE_ACTIONS.get(zone, Action.WAIT)


def zone_name(zone: DiagramZone) -> str:
    """Human-readable zone label with its arrow glyphs."""
    return _ZONE_NAMES[zone]


def assess_quality(demand: float, supply: float) -> Quality:
    """Label the signal quality of a force reading.

    Healthy needs a high average force with a clear gap between the two
    sides; Warning is a very high but conflicting reading.  Everything
    else, low and medium force alike, is Speculative.
    """
    avg_force = (abs(demand) + abs(supply)) / 2
    spread = abs(demand - supply)

    if avg_force > 50 and spread > 40:
        return Quality.HEALTHY
    if avg_force > 60 and spread < 20:
        return Quality.WARNING
    return Quality.SPECULATIVE


def classify(
    demand: float, supply: float, threshold: Optional[float] = None
) -> TradingSignal:
    """Build the full ``TradingSignal`` for a (demand, supply) pair."""
    zone = map_to_zone(demand, supply, threshold)
    return TradingSignal(
        zone=zone,
        action=zone_action(zone),
        demand=demand,
        supply=supply,
        quality=assess_quality(demand, supply),
    )
