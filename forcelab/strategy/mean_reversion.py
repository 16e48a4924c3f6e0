"""Mean-reversion strategies: RSI bands, Bollinger Bands and an ATR
envelope gated by a low-volatility filter.
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
    calculate_bollinger,
    calculate_rsi,
    calculate_sma,
    closes_of,
)

# Bars before the volatility filter has a baseline.
VOL_FILTER_WARMUP = 70
VOL_BASELINE_PERIOD = 50
VOL_BASELINE_LAG = 20
VOL_TOLERANCE = 1.2


def _rsi_reversion(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    period = as_period(params["period"])
    oversold = params["oversold"]
    overbought = params["overbought"]
    rsi = calculate_rsi(bars, period)
    signals = hold_signals(len(bars))

    for i in range(period, len(bars)):
        if rsi[i] < oversold and rsi[i - 1] >= oversold:
            signals[i] = Signal.BUY
        elif rsi[i] > overbought and rsi[i - 1] <= overbought:
            signals[i] = Signal.SELL

    return StrategyResult(signals=signals, indicators={"rsi": rsi})


def _bollinger(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    period = as_period(params["period"])
    upper, middle, lower = calculate_bollinger(closes_of(bars), period, params["stdDev"])
    signals = hold_signals(len(bars))

    for i in range(period, len(bars)):
        if math.isnan(upper[i]) or math.isnan(lower[i]):
            continue
        price = bars[i].close
        prev_price = bars[i - 1].close
        # Re-entry from outside the band.
        if prev_price <= lower[i - 1] and price > lower[i]:
            signals[i] = Signal.BUY
        elif prev_price >= upper[i - 1] and price < upper[i]:
            signals[i] = Signal.SELL

    return StrategyResult(
        signals=signals,
        indicators={"upper": upper, "middle": middle, "lower": lower},
    )


def _mean_reversion_vol(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    """ATR envelope around an SMA, traded only when volatility is low.

    The volatility baseline is a 50-value SMA over the *defined* ATR
    values, looked up 20 positions back in that compacted series.
    """
    ma_period = as_period(params["maPeriod"])
    atr_period = as_period(params["atrPeriod"])
    deviations = params["deviations"]

    closes = closes_of(bars)
    ma = calculate_sma(closes, ma_period)
    atr = calculate_atr(bars, atr_period)
    baseline = calculate_sma([a for a in atr if not math.isnan(a)], VOL_BASELINE_PERIOD)
    signals = hold_signals(len(bars))

    for i in range(VOL_FILTER_WARMUP, len(bars)):
        if math.isnan(ma[i]) or math.isnan(atr[i]) or not baseline:
            continue
        price = closes[i]
        upper = ma[i] + deviations * atr[i]
        lower = ma[i] - deviations * atr[i]
        ref = baseline[min(len(baseline) - 1, i - VOL_BASELINE_LAG)]
        low_vol = atr[i] < ref * VOL_TOLERANCE

        if low_vol and price < lower and closes[i - 1] >= ma[i - 1] - deviations * atr[i - 1]:
            signals[i] = Signal.BUY
        elif low_vol and price > upper and closes[i - 1] <= ma[i - 1] + deviations * atr[i - 1]:
            signals[i] = Signal.SELL

    return StrategyResult(signals=signals, indicators={"ma": ma, "atr": atr})


RSI_REVERSION = Strategy(
    id="rsi_reversion",
    name="RSI Mean Reversion",
    description="Buy when RSI is oversold (<30), sell when overbought (>70)",
    category="mean-reversion",
    parameters=(
        param("period", "RSI Period", 14, 5, 30, 1),
        param("oversold", "Oversold Level", 30, 10, 40, 5),
        param("overbought", "Overbought Level", 70, 60, 90, 5),
    ),
    calculate_fn=_rsi_reversion,
)

BOLLINGER = Strategy(
    id="bollinger",
    name="Bollinger Bands",
    description="Buy when price touches lower band, sell when it touches upper band",
    category="mean-reversion",
    parameters=(
        param("period", "Period", 20, 10, 50, 5),
        param("stdDev", "Std Deviations", 2, 1, 3, 0.5),
    ),
    calculate_fn=_bollinger,
)

MEAN_REVERSION_VOL = Strategy(
    id="mean_reversion_vol",
    name="Mean Reversion + Vol Filter",
    description="Mean reversion trades only in low volatility environments",
    category="mean-reversion",
    parameters=(
        param("maPeriod", "MA Period", 20, 10, 50, 5),
        param("atrPeriod", "ATR Period", 14, 7, 21, 1),
        param("deviations", "Entry Deviations", 2, 1, 3, 0.5),
    ),
    calculate_fn=_mean_reversion_vol,
)
