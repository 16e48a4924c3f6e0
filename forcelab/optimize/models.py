"""Walk-forward optimisation models: config, windows and results."""

from dataclasses import dataclass, field
from typing import Optional

from forcelab.backtest.models import json_safe
from forcelab.forces.calculator import FORCE_METHODS

METRICS = ("sharpe", "sortino", "calmar", "totalReturn", "profitFactor")

_METRIC_NAMES = {
    "sharpe": "Sharpe Ratio",
    "sortino": "Sortino Ratio",
    "calmar": "Calmar Ratio",
    "totalReturn": "Total Return",
    "profitFactor": "Profit Factor",
}

MIN_WINDOWS = 3
MAX_WINDOWS = 10


def metric_display_name(metric: str) -> str:
    return _METRIC_NAMES.get(metric, metric)


@dataclass(frozen=True)
class OptimizationConfig:
    """Walk-forward run settings.

    ``parameter_ranges`` maps a parameter id to a ``(min, max, step)``
    triple that replaces the strategy's declared range for that id.

    Raises:
        ValueError: if ``num_windows`` is outside 3..10, ``train_ratio`` is
            not strictly between 0 and 1, or ``metric`` or ``force_method``
            is unknown.
    """

    strategy_id: str = "ma_crossover"
    num_windows: int = 5
    train_ratio: float = 0.7
    metric: str = "sharpe"
    initial_capital: float = 10_000.0
    allow_shorts: bool = False
    transaction_cost_pct: float = 0.1
    force_method: str = "B"
    parameter_ranges: dict[str, tuple[float, float, float]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not MIN_WINDOWS <= self.num_windows <= MAX_WINDOWS:
            raise ValueError(
                f"num_windows must be between {MIN_WINDOWS} and {MAX_WINDOWS}, "
                f"got {self.num_windows}"
            )
        if not 0 < self.train_ratio < 1:
            raise ValueError(f"train_ratio must be in (0, 1), got {self.train_ratio}")
        if self.metric not in METRICS:
            raise ValueError(
                f"Unknown metric '{self.metric}'. Available: {', '.join(METRICS)}"
            )
        if self.force_method not in FORCE_METHODS:
            raise ValueError(
                f"Unknown force method '{self.force_method}'. "
                f"Available: {', '.join(FORCE_METHODS)}"
            )


@dataclass(frozen=True)
class Window:
    """Index ranges of one walk-forward window (end-exclusive).

    Training is anchored at bar 0; testing starts where training ends.
    """

    train_start: int
    train_end: int
    test_start: int
    test_end: int


@dataclass(frozen=True)
class WindowResult:
    window_index: int
    train_start: str
    train_end: str
    test_start: str
    test_end: str
    train_periods: int
    test_periods: int
    best_params: dict[str, float]
    train_metric: float
    test_metric: float
    test_return: float
    test_sharpe: float
    test_max_drawdown: float
    test_trades: int
    buy_hold_return: float
    beats_buy_hold: bool

    def to_dict(self) -> dict:
        return {
            "window_index": self.window_index,
            "train_start": self.train_start,
            "train_end": self.train_end,
            "test_start": self.test_start,
            "test_end": self.test_end,
            "train_periods": self.train_periods,
            "test_periods": self.test_periods,
            "best_params": dict(self.best_params),
            "train_metric": json_safe(self.train_metric),
            "test_metric": json_safe(self.test_metric),
            "test_return": json_safe(self.test_return),
            "test_sharpe": json_safe(self.test_sharpe),
            "test_max_drawdown": json_safe(self.test_max_drawdown),
            "test_trades": self.test_trades,
            "buy_hold_return": json_safe(self.buy_hold_return),
            "beats_buy_hold": self.beats_buy_hold,
        }


@dataclass(frozen=True)
class EquitySample:
    """One point of the stitched out-of-sample equity curve."""

    date: str
    equity: float
    window: int


@dataclass(frozen=True)
class OptimizationResult:
    """Aggregate walk-forward outcome for one strategy.

    ``overfit_ratio`` is average train metric over average test metric;
    values above 2 suggest overfitting, and it is ``inf`` when the
    average test metric is exactly 0.
    """

    strategy_id: str
    strategy_name: str
    metric: str

    avg_test_return: float
    avg_test_sharpe: float
    avg_test_drawdown: float
    total_test_trades: int

    avg_train_metric: float
    avg_test_metric: float
    overfit_ratio: float

    recommended_params: dict[str, float]
    window_results: list[WindowResult]
    combined_equity_curve: list[EquitySample]

    is_statistically_significant: bool
    consistency_score: float

    avg_buy_hold_return: float
    total_buy_hold_return: float
    total_strategy_return: float
    win_rate_vs_buy_hold: float
    excess_return: float
    recommendable: bool

    def to_dict(self, include_series: bool = True) -> dict:
        out = {
            "strategy_id": self.strategy_id,
            "strategy_name": self.strategy_name,
            "metric": self.metric,
            "avg_test_return": json_safe(self.avg_test_return),
            "avg_test_sharpe": json_safe(self.avg_test_sharpe),
            "avg_test_drawdown": json_safe(self.avg_test_drawdown),
            "total_test_trades": self.total_test_trades,
            "avg_train_metric": json_safe(self.avg_train_metric),
            "avg_test_metric": json_safe(self.avg_test_metric),
            "overfit_ratio": json_safe(self.overfit_ratio),
            "recommended_params": dict(self.recommended_params),
            "is_statistically_significant": self.is_statistically_significant,
            "consistency_score": json_safe(self.consistency_score),
            "avg_buy_hold_return": json_safe(self.avg_buy_hold_return),
            "total_buy_hold_return": json_safe(self.total_buy_hold_return),
            "total_strategy_return": json_safe(self.total_strategy_return),
            "win_rate_vs_buy_hold": json_safe(self.win_rate_vs_buy_hold),
            "excess_return": json_safe(self.excess_return),
            "recommendable": self.recommendable,
            "window_results": [w.to_dict() for w in self.window_results],
        }
        if include_series:
            out["combined_equity_curve"] = [
                {"date": p.date, "equity": json_safe(p.equity), "window": p.window}
                for p in self.combined_equity_curve
            ]
        return out


@dataclass(frozen=True)
class RankingEntry:
    strategy_id: str
    strategy_name: str
    score: float

    def to_dict(self) -> dict:
        return {
            "strategy_id": self.strategy_id,
            "strategy_name": self.strategy_name,
            "score": json_safe(self.score),
        }


@dataclass(frozen=True)
class MultiStrategyResult:
    """Per-strategy optimisation results plus their composite ranking.

    Strategies the optimizer declined (insufficient data, unknown id) are
    absent from both ``results`` and ``ranking``.
    """

    results: list[OptimizationResult]
    ranking: list[RankingEntry]
    best: Optional[OptimizationResult]

    def to_dict(self) -> dict:
        return {
            "results": [r.to_dict(include_series=False) for r in self.results],
            "ranking": [e.to_dict() for e in self.ranking],
            "best": self.best.strategy_id if self.best else None,
        }
