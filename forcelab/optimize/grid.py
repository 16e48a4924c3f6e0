"""Parameter grid generation for the walk-forward search."""

import itertools
import math
from typing import Mapping, Optional

from forcelab.strategy.base import Strategy, value_range


def parameter_grid(
    strategy: Strategy,
    custom_ranges: Optional[Mapping[str, tuple[float, float, float]]] = None,
) -> list[tuple[str, list[float]]]:
    """``(param_id, values)`` per declared parameter, in declaration order.

    A ``(min, max, step)`` entry in *custom_ranges* replaces the declared
    range of that parameter; ids the strategy does not declare are ignored.
    """
    custom = custom_ranges or {}
    grid = []
    for p in strategy.parameters:
        low, high, step = custom.get(p.id, (p.min, p.max, p.step))
        grid.append((p.id, value_range(low, high, step)))
    return grid


def parameter_combinations(
    strategy: Strategy,
    custom_ranges: Optional[Mapping[str, tuple[float, float, float]]] = None,
) -> list[dict[str, float]]:
    """Cartesian product of the grid, last parameter varying fastest.

    A strategy with no parameters yields a single empty assignment.
    """
    grid = parameter_grid(strategy, custom_ranges)
    ids = [pid for pid, _ in grid]
    return [
        dict(zip(ids, combo))
        for combo in itertools.product(*(values for _, values in grid))
    ]


def count_combinations(
    strategy: Strategy,
    custom_ranges: Optional[Mapping[str, tuple[float, float, float]]] = None,
) -> int:
    """Size of the grid without materialising it."""
    return math.prod(len(values) for _, values in parameter_grid(strategy, custom_ranges))
