"""Momentum and breakout strategies.

MACD crossover, volume-confirmed breakout, dual / time-series momentum
against a cash hurdle, and ATR volatility breakout.
"""

import math
from typing import Mapping

from forcelab.models import Bar
from forcelab.strategy.base import (
    Signal,
    Strategy,
    StrategyResult,
    as_period,
    hold_signals,
    param,
)
from forcelab.strategy.indicators import (
    calculate_atr,
    calculate_donchian,
    calculate_macd,
    calculate_roc,
    calculate_sma,
    closes_of,
)


def _macd_crossover(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    fast_period = as_period(params["fastPeriod"])
    slow_period = as_period(params["slowPeriod"])
    signal_period = as_period(params["signalPeriod"])
    macd, signal, histogram = calculate_macd(
        closes_of(bars), fast_period, slow_period, signal_period
    )
    signals = hold_signals(len(bars))

    for i in range(slow_period + signal_period, len(bars)):
        if math.isnan(macd[i]) or math.isnan(signal[i]):
            continue
        prev_above = macd[i - 1] > signal[i - 1]
        curr_above = macd[i] > signal[i]
        if not prev_above and curr_above:
            signals[i] = Signal.BUY
        elif prev_above and not curr_above:
            signals[i] = Signal.SELL

    return StrategyResult(
        signals=signals,
        indicators={"macd": macd, "signal": signal, "histogram": histogram},
    )


def _volume_breakout(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    period = as_period(params["period"])
    volume_mult = params["volumeMult"]
    upper, lower = calculate_donchian(bars, period)
    volume_sma = calculate_sma([b.volume for b in bars], period)
    # Mean volume of the *period* bars before each bar.
    avg_volume = [float("nan")] * len(bars)
    for i in range(period, len(bars)):
        avg_volume[i] = volume_sma[i - 1]
    signals = hold_signals(len(bars))

    for i in range(period, len(bars)):
        if math.isnan(avg_volume[i]):
            continue
        surge = bars[i].volume > volume_mult * avg_volume[i]
        if not surge:
            continue
        if bars[i].close > upper[i]:
            signals[i] = Signal.BUY
        elif bars[i].close < lower[i]:
            signals[i] = Signal.SELL

    return StrategyResult(
        signals=signals,
        indicators={
            "upperChannel": upper,
            "lowerChannel": lower,
            "avgVolume": avg_volume,
        },
    )


def _dual_momentum(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    lookback = as_period(params["lookback"])
    fast_lookback = as_period(params["fastLookback"])
    hurdle = params["hurdle"]
    closes = closes_of(bars)
    slow_roc = calculate_roc(closes, lookback)
    fast_roc = calculate_roc(closes, fast_lookback)
    signals = hold_signals(len(bars))

    def invested(j: int) -> bool:
        # NaN compares False, so undefined returns never count as "in".
        return slow_roc[j] > hurdle and fast_roc[j] > hurdle

    for i in range(max(lookback, fast_lookback) + 1, len(bars)):
        now, before = invested(i), invested(i - 1)
        if now and not before:
            signals[i] = Signal.BUY
        elif before and not now:
            signals[i] = Signal.SELL

    return StrategyResult(
        signals=signals,
        indicators={"momentum": slow_roc, "fastMomentum": fast_roc},
    )


def _ts_momentum(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    lookback = as_period(params["lookback"])
    hurdle = params["hurdle"]
    roc = calculate_roc(closes_of(bars), lookback)
    signals = hold_signals(len(bars))

    for i in range(lookback + 1, len(bars)):
        if math.isnan(roc[i]) or math.isnan(roc[i - 1]):
            continue
        above = roc[i] > hurdle
        prev_above = roc[i - 1] > hurdle
        if above and not prev_above:
            signals[i] = Signal.BUY
        elif prev_above and not above:
            signals[i] = Signal.SELL

    return StrategyResult(signals=signals, indicators={"momentum": roc})


def _volatility_breakout(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    atr_period = as_period(params["atrPeriod"])
    multiplier = params["multiplier"]
    atr = calculate_atr(bars, atr_period)
    signals = hold_signals(len(bars))

    for i in range(atr_period, len(bars)):
        prev_atr = atr[i - 1]
        if math.isnan(prev_atr):
            continue
        prev_close = bars[i - 1].close
        close = bars[i].close
        if close > prev_close + multiplier * prev_atr:
            signals[i] = Signal.BUY
        elif close < prev_close - multiplier * prev_atr:
            signals[i] = Signal.SELL

    return StrategyResult(signals=signals, indicators={"atr": atr})


MACD_CROSSOVER = Strategy(
    id="macd",
    name="MACD Crossover",
    description="Buy when MACD crosses above signal line, sell when it crosses below",
    category="momentum",
    parameters=(
        param("fastPeriod", "Fast EMA", 12, 5, 20, 1),
        param("slowPeriod", "Slow EMA", 26, 15, 40, 1),
        param("signalPeriod", "Signal Period", 9, 5, 15, 1),
    ),
    calculate_fn=_macd_crossover,
)

VOLUME_BREAKOUT = Strategy(
    id="volume_breakout",
    name="Volume Breakout",
    description=(
        "Channel breakout confirmed by volume above a multiple of its "
        "recent average"
    ),
    category="momentum",
    parameters=(
        param("period", "Lookback Period", 20, 10, 50, 10),
        param("volumeMult", "Volume Multiple", 1.5, 1, 3, 0.5),
    ),
    calculate_fn=_volume_breakout,
)

DUAL_MOMENTUM = Strategy(
    id="dual_momentum",
    name="Dual Momentum",
    description=(
        "Invested while both the long and short lookback returns beat "
        "the cash hurdle"
    ),
    category="momentum",
    parameters=(
        param("lookback", "Lookback", 126, 63, 252, 63),
        param("fastLookback", "Fast Lookback", 63, 21, 126, 21),
        param("hurdle", "Cash Hurdle %", 0, 0, 10, 2.5),
    ),
    calculate_fn=_dual_momentum,
)

TS_MOMENTUM = Strategy(
    id="ts_momentum",
    name="Time-Series Momentum",
    description="Buy when the lookback return rises above the cash hurdle, sell below",
    category="momentum",
    parameters=(
        param("lookback", "Lookback", 60, 20, 200, 20),
        param("hurdle", "Cash Hurdle %", 0, 0, 5, 1),
    ),
    calculate_fn=_ts_momentum,
)

VOLATILITY_BREAKOUT = Strategy(
    id="volatility_breakout",
    name="Volatility Breakout",
    description="Buy when close jumps more than an ATR multiple above the prior close",
    category="momentum",
    parameters=(
        param("atrPeriod", "ATR Period", 14, 7, 28, 7),
        param("multiplier", "ATR Multiple", 1, 0.5, 2.5, 0.5),
    ),
    calculate_fn=_volatility_breakout,
)
