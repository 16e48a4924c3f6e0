"""Backtest engine: replays a strategy's signals over historical bars.

Single instrument, single position, close-to-close fills.  The run starts
already LONG at the first bar's close so that a strategy which never
trades tracks buy-and-hold (less one entry cost).
"""

import logging
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from forcelab.backtest import stats
from forcelab.backtest.models import BacktestConfig, BacktestResult, EquityPoint, Trade
from forcelab.models import Bar
from forcelab.strategy.base import Signal, Strategy
from forcelab.strategy.registry import STRATEGY_REGISTRY

logger = logging.getLogger("forcelab.backtest")

LONG = "LONG"
SHORT = "SHORT"


@dataclass
class _OpenPosition:
    type: str
    entry_price: float
    entry_date: str
    entry_index: int

    def return_pct(self, price: float) -> float:
        if self.entry_price == 0:
            return 0.0
        if self.type == LONG:
            return (price - self.entry_price) / self.entry_price * 100
        return (self.entry_price - price) / self.entry_price * 100

    def close(self, bar: Bar, index: int) -> Trade:
        return Trade(
            entry_date=self.entry_date,
            entry_price=self.entry_price,
            exit_date=bar.date,
            exit_price=bar.close,
            type=self.type,
            return_pct=self.return_pct(bar.close),
            holding_period=index - self.entry_index,
        )


class BacktestEngine:
    """Simulates a strategy on historical bars with virtual capital.

    Args:
        strategies: Strategy lookup table; defaults to the global registry.
    """

    def __init__(self, strategies: Optional[Mapping[str, Strategy]] = None) -> None:
        self._strategies = strategies if strategies is not None else STRATEGY_REGISTRY

    # ── Public API ───────────────────────────────────────────────────────

    def strategy(self, strategy_id: str) -> Optional[Strategy]:
        """The strategy this engine would run for *strategy_id*, if any."""
        return self._strategies.get(strategy_id)

    def run(self, bars: list[Bar], config: BacktestConfig) -> BacktestResult:
        """Execute a full backtest.

        Algorithm:
            1. Compute the strategy's signals once for the whole series.
            2. Open LONG at bar 0's close, paying one entry cost.
            3. For each bar apply the position transition for its signal,
               then mark the open position to market.
            4. Force-close any open position at the last close (no cost).
            5. Derive return, risk and trade metrics from the curve.

        Returns:
            A populated ``BacktestResult``, or ``BacktestResult.empty`` when
            there are fewer than 2 bars or the strategy id is unknown.
        """
        strategy = self._strategies.get(config.strategy_id)
        if strategy is None:
            logger.warning("Unknown strategy '%s'; returning empty result", config.strategy_id)
            return BacktestResult.empty(config.strategy_id)
        if len(bars) < 2:
            logger.warning(
                "Backtest of '%s' needs at least 2 bars, got %d",
                config.strategy_id, len(bars),
            )
            return BacktestResult.empty(config.strategy_id, strategy.name)

        signals = strategy.calculate(bars, config.params, config.force_method).signals
        initial = config.initial_capital
        cost_factor = 1 - config.transaction_cost_pct / 100

        capital = initial * cost_factor
        position: Optional[_OpenPosition] = _OpenPosition(LONG, bars[0].close, bars[0].date, 0)
        trades: list[Trade] = []
        equity_curve: list[EquityPoint] = []

        shares = initial / bars[0].close if bars[0].close else 0.0
        peak: Optional[float] = None

        for i, bar in enumerate(bars):
            signal = signals[i]
            price = bar.close

            if position is None:
                if signal == Signal.BUY:
                    position = _OpenPosition(LONG, price, bar.date, i)
                    capital *= cost_factor
                elif signal == Signal.SELL and config.allow_shorts:
                    position = _OpenPosition(SHORT, price, bar.date, i)
                    capital *= cost_factor
            elif position.type == LONG and signal == Signal.SELL:
                trade = position.close(bar, i)
                trades.append(trade)
                capital *= 1 + trade.return_pct / 100
                capital *= cost_factor
                position = None
                if config.allow_shorts:
                    position = _OpenPosition(SHORT, price, bar.date, i)
                    capital *= cost_factor
            elif position.type == SHORT and signal == Signal.BUY:
                trade = position.close(bar, i)
                trades.append(trade)
                capital *= 1 + trade.return_pct / 100
                capital *= cost_factor
                position = _OpenPosition(LONG, price, bar.date, i)
                capital *= cost_factor

            equity = capital
            if position is not None:
                equity = capital * (1 + position.return_pct(price) / 100)

            peak = equity if peak is None else max(peak, equity)
            drawdown = (peak - equity) / peak * 100 if peak > 0 else 0.0
            equity_curve.append(
                EquityPoint(
                    date=bar.date,
                    strategy_equity=equity,
                    buy_and_hold_equity=shares * price,
                    drawdown_pct=drawdown,
                )
            )

        # Close any remaining position at the last close, without exit cost
        if position is not None:
            trades.append(position.close(bars[-1], len(bars) - 1))

        result = self._summarise(strategy, bars, config, signals, equity_curve, trades)
        logger.debug(
            "Backtest %s: %d bars, %d trades, total return %.2f%%",
            strategy.id, len(bars), result.total_trades, result.total_return,
        )
        return result

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _summarise(
        strategy: Strategy,
        bars: list[Bar],
        config: BacktestConfig,
        signals: list[Signal],
        equity_curve: list[EquityPoint],
        trades: list[Trade],
    ) -> BacktestResult:
        initial = config.initial_capital
        n = len(bars)
        final_equity = equity_curve[-1].strategy_equity
        bh_final = equity_curve[-1].buy_and_hold_equity

        strategy_values = [p.strategy_equity for p in equity_curve]
        total_return = stats.total_return(final_equity, initial)
        bh_return = stats.total_return(bh_final, initial)
        ann_return = stats.annualized_return(final_equity, initial, n)
        max_dd = max(p.drawdown_pct for p in equity_curve)

        returns = stats.period_returns(strategy_values)
        volatility = stats.annualized_volatility(returns)
        downside = stats.downside_deviation(returns)
        ts = stats.trade_stats(trades)

        return BacktestResult(
            strategy_id=strategy.id,
            strategy_name=strategy.name,
            total_return=total_return,
            buy_and_hold_return=bh_return,
            excess_return=total_return - bh_return,
            annualized_return=ann_return,
            annualized_buy_and_hold=stats.annualized_return(bh_final, initial, n),
            max_drawdown=max_dd,
            max_drawdown_buy_and_hold=stats.max_drawdown(
                [p.buy_and_hold_equity for p in equity_curve], initial
            ),
            volatility=volatility,
            sharpe_ratio=stats.safe_ratio(ann_return, volatility),
            sortino_ratio=stats.safe_ratio(ann_return, downside),
            calmar_ratio=stats.safe_ratio(ann_return, max_dd),
            total_trades=ts.total,
            winning_trades=ts.winning,
            losing_trades=ts.losing,
            win_rate=ts.win_rate,
            avg_win=ts.avg_win,
            avg_loss=ts.avg_loss,
            profit_factor=ts.profit_factor,
            avg_holding_period=ts.avg_holding_period,
            max_consecutive_wins=ts.max_consecutive_wins,
            max_consecutive_losses=ts.max_consecutive_losses,
            final_equity=final_equity,
            equity_curve=equity_curve,
            trades=trades,
            signals=list(signals),
            start_date=bars[0].date,
            end_date=bars[-1].date,
            trading_days=n,
        )


_DEFAULT_ENGINE = BacktestEngine()


def run_backtest(bars: list[Bar], config: Optional[BacktestConfig] = None) -> BacktestResult:
    """Backtest against the global registry (default config when omitted)."""
    return _DEFAULT_ENGINE.run(bars, config or BacktestConfig())


def run_multiple_backtests(
    bars: list[Bar],
    strategy_ids: list[str],
    base_config: Optional[BacktestConfig] = None,
    strategy_params: Optional[Mapping[str, Mapping[str, float]]] = None,
) -> list[BacktestResult]:
    """Backtest each strategy with shared capital / cost settings.

    ``strategy_params`` maps strategy id to that strategy's parameters;
    strategies without an entry run with their defaults.
    """
    base = base_config or BacktestConfig()
    per_strategy = strategy_params or {}
    return [
        run_backtest(
            bars,
            replace(base, strategy_id=sid, params=dict(per_strategy.get(sid, {}))),
        )
        for sid in strategy_ids
    ]


def rank_by_total_return(results: list[BacktestResult]) -> list[BacktestResult]:
    """Sort by total return, best first; equal returns keep their order."""
    return sorted(results, key=lambda r: r.total_return, reverse=True)
