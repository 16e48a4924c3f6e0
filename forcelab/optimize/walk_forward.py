"""Anchored walk-forward optimisation.

Training always starts at bar 0 and grows window by window; each window
grid-searches the strategy's parameters on its training slice and
replays the winner on the following out-of-sample slice.  Capital
compounds from one test slice to the next.

Cost is ``windows × (combinations + 1)`` backtests, each linear in the
slice length; ``estimate_evaluations`` reports it up front.
"""

import logging
import math
from collections import Counter
from typing import Callable, Optional

from forcelab.backtest.engine import BacktestEngine
from forcelab.backtest.models import BacktestConfig, BacktestResult
from forcelab.models import Bar
from forcelab.optimize.grid import count_combinations, parameter_combinations
from forcelab.optimize.models import (
    EquitySample,
    OptimizationConfig,
    OptimizationResult,
    Window,
    WindowResult,
)
from forcelab.strategy.base import Strategy

logger = logging.getLogger("forcelab.optimize")

MIN_BARS = 200
MIN_TRAIN_BARS = 20
# Stand-in for an infinite profit factor when comparing candidates.
PROFIT_FACTOR_CAP = 100.0

ProgressFn = Callable[[int, int], None]


def metric_value(result: BacktestResult, metric: str) -> float:
    if metric == "sortino":
        return result.sortino_ratio
    if metric == "calmar":
        return result.calmar_ratio
    if metric == "totalReturn":
        return result.total_return
    if metric == "profitFactor":
        return PROFIT_FACTOR_CAP if math.isinf(result.profit_factor) else result.profit_factor
    return result.sharpe_ratio


def create_windows(num_bars: int, num_windows: int, train_ratio: float) -> list[Window]:
    """Split ``num_bars`` into anchored train / test windows.

    Algorithm:
        test_size = num_bars // num_windows
        train_end = floor((w+1) · num_bars · train_ratio / num_windows)
                    + floor(num_bars · (1 − train_ratio))
        test = [train_end, min(train_end + test_size, num_bars))

    Windows with an empty test slice or a training slice of 20 bars or
    fewer are dropped.
    """
    test_size = num_bars // num_windows
    windows: list[Window] = []
    for w in range(num_windows):
        train_end = math.floor((w + 1) * num_bars * train_ratio / num_windows) + math.floor(
            num_bars * (1 - train_ratio)
        )
        test_start = train_end
        test_end = min(test_start + test_size, num_bars)
        if test_end > test_start and train_end > MIN_TRAIN_BARS:
            windows.append(Window(0, train_end, test_start, test_end))
    return windows


def estimate_evaluations(
    strategy: Strategy, num_bars: int, config: OptimizationConfig
) -> tuple[int, int, int]:
    """``(combinations, windows, backtests)`` a run would perform."""
    combinations = count_combinations(strategy, config.parameter_ranges)
    windows = len(create_windows(num_bars, config.num_windows, config.train_ratio))
    return combinations, windows, windows * (combinations + 1)


def _mode(values: list[float]) -> float:
    """Most frequent value; the earliest seen wins a tie."""
    counts = Counter(values)
    best = values[0]
    for v in values:
        if counts[v] > counts[best]:
            best = v
    return best


class WalkForwardOptimizer:
    """Grid-search + out-of-sample validation for one strategy at a time.

    Args:
        engine: Backtest engine used for every evaluation.
        progress: Optional ``(completed, total)`` callback, called after
            each backtest.
    """

    def __init__(
        self,
        engine: Optional[BacktestEngine] = None,
        progress: Optional[ProgressFn] = None,
    ) -> None:
        self._engine = engine or BacktestEngine()
        self._progress = progress

    # ── Public API ───────────────────────────────────────────────────────

    def run(self, bars: list[Bar], config: OptimizationConfig) -> Optional[OptimizationResult]:
        """Optimise ``config.strategy_id`` over *bars*.

        Returns ``None`` when the strategy is unknown, when there are fewer
        than 200 bars, or when no usable window can be formed.
        """
        strategy = self._engine.strategy(config.strategy_id)
        if strategy is None:
            logger.warning("Unknown strategy '%s'; nothing to optimise", config.strategy_id)
            return None
        if len(bars) < MIN_BARS:
            logger.warning(
                "Walk-forward optimization requires at least %d bars, got %d",
                MIN_BARS, len(bars),
            )
            return None

        windows = create_windows(len(bars), config.num_windows, config.train_ratio)
        if not windows:
            logger.warning("No usable walk-forward windows for %d bars", len(bars))
            return None

        combinations = parameter_combinations(strategy, config.parameter_ranges)
        total = len(windows) * (len(combinations) + 1)
        logger.info(
            "Optimising %s: %d windows × %d combinations (%d backtests)",
            strategy.id, len(windows), len(combinations), total,
        )

        completed = 0
        running_capital = config.initial_capital
        window_results: list[WindowResult] = []
        combined: list[EquitySample] = []

        for w, window in enumerate(windows):
            train = bars[window.train_start:window.train_end]
            test = bars[window.test_start:window.test_end]

            best_params = combinations[0]
            best_metric = -math.inf
            for params in combinations:
                result = self._engine.run(train, self._backtest_config(config, params))
                value = metric_value(result, config.metric)
                if value > best_metric:
                    best_metric = value
                    best_params = params
                completed += 1
                self._report(completed, total)

            test_result = self._engine.run(
                test, self._backtest_config(config, best_params, running_capital)
            )
            completed += 1
            self._report(completed, total)

            start_price = test[0].close
            end_price = test[-1].close
            bh_return = (end_price - start_price) / start_price * 100 if start_price else 0.0

            combined.extend(
                EquitySample(p.date, p.strategy_equity, w) for p in test_result.equity_curve
            )
            if test_result.equity_curve:
                running_capital = test_result.equity_curve[-1].strategy_equity

            window_results.append(
                WindowResult(
                    window_index=w,
                    train_start=bars[window.train_start].date,
                    train_end=bars[window.train_end - 1].date,
                    test_start=bars[window.test_start].date,
                    test_end=bars[window.test_end - 1].date,
                    train_periods=len(train),
                    test_periods=len(test),
                    best_params=dict(best_params),
                    train_metric=best_metric,
                    test_metric=metric_value(test_result, config.metric),
                    test_return=test_result.total_return,
                    test_sharpe=test_result.sharpe_ratio,
                    test_max_drawdown=test_result.max_drawdown,
                    test_trades=test_result.total_trades,
                    buy_hold_return=bh_return,
                    beats_buy_hold=test_result.total_return > bh_return,
                )
            )
            logger.debug(
                "Window %d: params=%s train=%.4f test return=%.2f%%",
                w, best_params, best_metric, test_result.total_return,
            )

        result = self._aggregate(strategy, config, window_results, combined)
        logger.info(
            "Optimised %s: avg test return %.2f%%, consistency %.0f%%",
            strategy.id, result.avg_test_return, result.consistency_score,
        )
        return result

    # ── Helpers ──────────────────────────────────────────────────────────

    def _report(self, completed: int, total: int) -> None:
        if self._progress is not None:
            self._progress(completed, total)

    @staticmethod
    def _backtest_config(
        config: OptimizationConfig,
        params: dict[str, float],
        capital: Optional[float] = None,
    ) -> BacktestConfig:
        return BacktestConfig(
            strategy_id=config.strategy_id,
            params=params,
            initial_capital=config.initial_capital if capital is None else capital,
            allow_shorts=config.allow_shorts,
            transaction_cost_pct=config.transaction_cost_pct,
            force_method=config.force_method,
        )

    @staticmethod
    def _aggregate(
        strategy: Strategy,
        config: OptimizationConfig,
        windows: list[WindowResult],
        combined: list[EquitySample],
    ) -> OptimizationResult:
        n = len(windows)

        def avg(values: list[float]) -> float:
            return sum(values) / n

        avg_test_return = avg([w.test_return for w in windows])
        avg_train_metric = avg([w.train_metric for w in windows])
        avg_test_metric = avg([w.test_metric for w in windows])
        overfit_ratio = avg_train_metric / avg_test_metric if avg_test_metric != 0 else math.inf

        selections: dict[str, list[float]] = {}
        for w in windows:
            for pid, value in w.best_params.items():
                selections.setdefault(pid, []).append(value)
        recommended = {pid: _mode(values) for pid, values in selections.items()}

        consistency = sum(1 for w in windows if w.test_return > 0) / n * 100
        significant = consistency >= 60 and avg_test_return > 0
        win_rate_vs_bh = sum(1 for w in windows if w.beats_buy_hold) / n * 100

        strategy_growth = 1.0
        bh_growth = 1.0
        for w in windows:
            strategy_growth *= 1 + w.test_return / 100
            bh_growth *= 1 + w.buy_hold_return / 100
        total_strategy_return = (strategy_growth - 1) * 100
        total_bh_return = (bh_growth - 1) * 100
        excess_return = total_strategy_return - total_bh_return

        return OptimizationResult(
            strategy_id=strategy.id,
            strategy_name=strategy.name,
            metric=config.metric,
            avg_test_return=avg_test_return,
            avg_test_sharpe=avg([w.test_sharpe for w in windows]),
            avg_test_drawdown=avg([w.test_max_drawdown for w in windows]),
            total_test_trades=sum(w.test_trades for w in windows),
            avg_train_metric=avg_train_metric,
            avg_test_metric=avg_test_metric,
            overfit_ratio=overfit_ratio,
            recommended_params=recommended,
            window_results=windows,
            combined_equity_curve=combined,
            is_statistically_significant=significant,
            consistency_score=consistency,
            avg_buy_hold_return=avg([w.buy_hold_return for w in windows]),
            total_buy_hold_return=total_bh_return,
            total_strategy_return=total_strategy_return,
            win_rate_vs_buy_hold=win_rate_vs_bh,
            excess_return=excess_return,
            recommendable=win_rate_vs_bh >= 50 and excess_return > 0 and significant,
        )


def run_walk_forward(
    bars: list[Bar],
    config: Optional[OptimizationConfig] = None,
    progress: Optional[ProgressFn] = None,
) -> Optional[OptimizationResult]:
    """Convenience wrapper around ``WalkForwardOptimizer.run``."""
    return WalkForwardOptimizer(progress=progress).run(bars, config or OptimizationConfig())
