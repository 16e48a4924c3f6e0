"""Strategy record and shared result types.

A strategy is plain data: an id, display metadata, a parameter schema
and a pure ``calculate(bars, params)`` function.  There is no class
hierarchy; the registry is a table of these records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Mapping, Optional

from forcelab.forces.calculator import attach_forces
from forcelab.models import Bar


class Signal(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


CATEGORIES = ("trend", "momentum", "mean-reversion", "hybrid")


@dataclass(frozen=True)
class StrategyParameter:
    """One tunable parameter and its discrete search range."""

    id: str
    name: str
    default: float
    min: float
    max: float
    step: float

    def values(self) -> list[float]:
        """Every value from *min* to *max* inclusive in *step* increments."""
        return value_range(self.min, self.max, self.step)


def value_range(low: float, high: float, step: float) -> list[float]:
    """Inclusive stepped range, computed by index to avoid float drift."""
    if step <= 0 or high < low:
        return [low]
    count = int((high - low) / step + 1e-9) + 1
    values: list[float] = []
    for k in range(count):
        v = round(low + k * step, 10)
        values.append(int(v) if float(v).is_integer() else v)
    return values


@dataclass(frozen=True)
class StrategyResult:
    """Per-bar signals plus the indicator series behind them.

    ``indicators`` is for display only; correctness rests on ``signals``.
    """

    signals: list[Signal]
    indicators: dict[str, list[float]] = field(default_factory=dict)


CalculateFn = Callable[[list[Bar], Mapping[str, float]], StrategyResult]


@dataclass(frozen=True)
class Strategy:
    """Immutable registry entry for one trading strategy.

    A strategy with ``uses_forces`` reads demand / supply from its bars;
    plain bars are converted with the requested force method first.
    """

    id: str
    name: str
    description: str
    category: str
    parameters: tuple[StrategyParameter, ...]
    calculate_fn: CalculateFn
    uses_forces: bool = False

    def default_params(self) -> dict[str, float]:
        return {p.id: p.default for p in self.parameters}

    def resolve_params(self, params: Optional[Mapping[str, float]] = None) -> dict[str, float]:
        """Defaults overlaid with the supplied *params*."""
        resolved = self.default_params()
        if params:
            for key, value in params.items():
                if key in resolved and value is not None:
                    resolved[key] = value
        return resolved

    def calculate(
        self,
        bars: list[Bar],
        params: Optional[Mapping[str, float]] = None,
        force_method: str = "B",
    ) -> StrategyResult:
        """Run the strategy; emits exactly one signal per bar."""
        if self.uses_forces:
            bars = attach_forces(bars, force_method)
        return self.calculate_fn(bars, self.resolve_params(params))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "parameters": [
                {
                    "id": p.id,
                    "name": p.name,
                    "default": p.default,
                    "min": p.min,
                    "max": p.max,
                    "step": p.step,
                }
                for p in self.parameters
            ],
        }


def param(
    id: str, name: str, default: float, low: float, high: float, step: float
) -> StrategyParameter:
    """Shorthand used by the strategy modules."""
    return StrategyParameter(id=id, name=name, default=default, min=low, max=high, step=step)


def hold_signals(n: int) -> list[Signal]:
    return [Signal.HOLD] * n


def as_period(value: float) -> int:
    """Parameters arrive as floats from grids and JSON; periods are ints."""
    return int(round(value))
