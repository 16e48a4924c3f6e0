"""Backtest statistics: pure functions over equity and trade series."""

import math
from dataclasses import dataclass

import numpy as np

from forcelab.backtest.models import Trade

TRADING_DAYS_PER_YEAR = 252


def total_return(final: float, initial: float) -> float:
    """Percent change from *initial* to *final*."""
    if initial == 0:
        return 0.0
    return (final - initial) / initial * 100


def annualized_return(final: float, initial: float, num_bars: int) -> float:
    """Compound annual growth in percent, assuming 252 bars per year.

    Returns 0.0 for an empty period and -100.0 once equity is wiped out.
    Growth too large to represent over a very short period is ``inf``,
    which serialises as ``None``.
    """
    years = num_bars / TRADING_DAYS_PER_YEAR
    if years <= 0 or initial <= 0:
        return 0.0
    if final <= 0:
        return -100.0
    try:
        growth = math.exp(math.log(final / initial) / years)
    except OverflowError:
        return math.inf
    return (growth - 1) * 100


def max_drawdown(values: list[float], start_peak: float) -> float:
    """Largest peak-to-trough decline in percent.

    The running peak starts at *start_peak* (normally initial capital).
    """
    peak = start_peak
    max_dd = 0.0
    for v in values:
        if v > peak:
            peak = v
        if peak > 0:
            dd = (peak - v) / peak * 100
            if dd > max_dd:
                max_dd = dd
    return max_dd


def period_returns(values: list[float]) -> np.ndarray:
    """Bar-to-bar fractional returns; a zero base contributes 0."""
    arr = np.asarray(values, dtype=float)
    if arr.size < 2:
        return np.zeros(0)
    prev = arr[:-1]
    with np.errstate(divide="ignore", invalid="ignore"):
        rets = np.where(prev != 0, (arr[1:] - prev) / prev, 0.0)
    return rets


def annualized_volatility(returns: np.ndarray) -> float:
    """Population std of *returns* × √252, in percent."""
    if returns.size == 0:
        return 0.0
    return float(np.std(returns)) * math.sqrt(TRADING_DAYS_PER_YEAR) * 100


def downside_deviation(returns: np.ndarray) -> float:
    """Root mean square of the negative returns × √252, in percent."""
    negative = returns[returns < 0]
    if negative.size == 0:
        return 0.0
    return math.sqrt(float(np.mean(negative**2))) * math.sqrt(TRADING_DAYS_PER_YEAR) * 100


def safe_ratio(numerator: float, denominator: float) -> float:
    """``numerator / denominator``, or 0.0 when the denominator is not positive."""
    if denominator > 0:
        return numerator / denominator
    return 0.0


@dataclass(frozen=True)
class TradeStats:
    total: int
    winning: int
    losing: int
    win_rate: float
    avg_win: float
    avg_loss: float
    profit_factor: float
    avg_holding_period: float
    max_consecutive_wins: int
    max_consecutive_losses: int


def trade_stats(trades: list[Trade]) -> TradeStats:
    """Summarise closed trades.

    A trade with ``return_pct > 0`` is a win; anything else, including a
    flat trade, is a loss.  ``avg_loss`` is reported as a positive number.
    Profit factor is ``inf`` when there are gains but no losses, and 0
    when there is nothing to compare.
    """
    wins = [t.return_pct for t in trades if t.return_pct > 0]
    losses = [t.return_pct for t in trades if t.return_pct <= 0]

    total_wins = sum(wins)
    total_losses = abs(sum(losses))

    if total_losses > 0:
        profit_factor = total_wins / total_losses
    elif total_wins > 0:
        profit_factor = math.inf
    else:
        profit_factor = 0.0

    max_wins = max_losses = 0
    run_wins = run_losses = 0
    for t in trades:
        if t.return_pct > 0:
            run_wins += 1
            run_losses = 0
            max_wins = max(max_wins, run_wins)
        else:
            run_losses += 1
            run_wins = 0
            max_losses = max(max_losses, run_losses)

    n = len(trades)
    return TradeStats(
        total=n,
        winning=len(wins),
        losing=len(losses),
        win_rate=len(wins) / n * 100 if n else 0.0,
        avg_win=total_wins / len(wins) if wins else 0.0,
        avg_loss=total_losses / len(losses) if losses else 0.0,
        profit_factor=profit_factor,
        avg_holding_period=sum(t.holding_period for t in trades) / n if n else 0.0,
        max_consecutive_wins=max_wins,
        max_consecutive_losses=max_losses,
    )
