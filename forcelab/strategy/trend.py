"""Trend-following strategies.

EMA crossovers, ADX / DI, channel breakouts and Supertrend.  Each rule
reads indicator series computed once for the whole input and emits HOLD
until every series it touches is defined.
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
    calculate_adx,
    calculate_atr,
    calculate_donchian,
    calculate_ema,
    calculate_keltner,
    calculate_supertrend,
    closes_of,
)


def _any_nan(*values: float) -> bool:
    return any(math.isnan(v) for v in values)


def _ma_crossover(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    fast_period = as_period(params["fastPeriod"])
    slow_period = as_period(params["slowPeriod"])
    closes = closes_of(bars)
    fast = calculate_ema(closes, fast_period)
    slow = calculate_ema(closes, slow_period)
    signals = hold_signals(len(bars))

    for i in range(slow_period, len(bars)):
        if _any_nan(fast[i], slow[i]):
            continue
        prev_above = fast[i - 1] > slow[i - 1]
        curr_above = fast[i] > slow[i]
        if not prev_above and curr_above:
            signals[i] = Signal.BUY
        elif prev_above and not curr_above:
            signals[i] = Signal.SELL

    return StrategyResult(signals=signals, indicators={"fastMA": fast, "slowMA": slow})


def _adx_trend(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    period = as_period(params["period"])
    threshold = params["threshold"]
    adx, plus_di, minus_di = calculate_adx(bars, period)
    signals = hold_signals(len(bars))

    for i in range(period * 2, len(bars)):
        if math.isnan(adx[i]):
            continue
        strong = adx[i] > threshold
        bullish = plus_di[i] > minus_di[i]
        prev_bullish = plus_di[i - 1] > minus_di[i - 1]
        if strong and bullish and not prev_bullish:
            signals[i] = Signal.BUY
        elif strong and not bullish and prev_bullish:
            signals[i] = Signal.SELL

    return StrategyResult(
        signals=signals,
        indicators={"adx": adx, "plusDI": plus_di, "minusDI": minus_di},
    )


def _donchian_breakout(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    period = as_period(params["period"])
    upper, lower = calculate_donchian(bars, period)
    signals = hold_signals(len(bars))

    # A breakout needs the previous bar to have been inside its own channel.
    for i in range(period + 1, len(bars)):
        close = bars[i].close
        prev_close = bars[i - 1].close
        if close > upper[i] and prev_close <= upper[i - 1]:
            signals[i] = Signal.BUY
        elif close < lower[i] and prev_close >= lower[i - 1]:
            signals[i] = Signal.SELL

    return StrategyResult(
        signals=signals,
        indicators={"upperChannel": upper, "lowerChannel": lower},
    )


def _triple_ma(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    short_period = as_period(params["shortPeriod"])
    medium_period = as_period(params["mediumPeriod"])
    long_period = as_period(params["longPeriod"])
    closes = closes_of(bars)
    short = calculate_ema(closes, short_period)
    medium = calculate_ema(closes, medium_period)
    long = calculate_ema(closes, long_period)
    signals = hold_signals(len(bars))

    def stacked_up(j: int) -> bool:
        return short[j] > medium[j] and medium[j] > long[j]

    def stacked_down(j: int) -> bool:
        return short[j] < medium[j] and medium[j] < long[j]

    for i in range(long_period, len(bars)):
        if math.isnan(long[i]):
            continue
        if stacked_up(i) and not stacked_up(i - 1):
            signals[i] = Signal.BUY
        elif stacked_down(i) and not stacked_down(i - 1):
            signals[i] = Signal.SELL

    return StrategyResult(
        signals=signals,
        indicators={"shortMA": short, "mediumMA": medium, "longMA": long},
    )


def _keltner_breakout(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    ema_period = as_period(params["emaPeriod"])
    atr_period = as_period(params["atrPeriod"])
    upper, middle, lower = calculate_keltner(
        bars, ema_period, atr_period, params["multiplier"]
    )
    signals = hold_signals(len(bars))

    for i in range(max(ema_period, atr_period), len(bars)):
        if _any_nan(upper[i], middle[i], upper[i - 1], middle[i - 1]):
            continue
        close = bars[i].close
        prev_close = bars[i - 1].close
        if close > upper[i] and prev_close <= upper[i - 1]:
            signals[i] = Signal.BUY
        elif close < middle[i] and prev_close >= middle[i - 1]:
            signals[i] = Signal.SELL

    return StrategyResult(
        signals=signals,
        indicators={"upper": upper, "middle": middle, "lower": lower},
    )


def _supertrend(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    period = as_period(params["period"])
    line, direction = calculate_supertrend(bars, period, params["multiplier"])
    signals = hold_signals(len(bars))

    for i in range(period, len(bars)):
        if direction[i - 1] == -1 and direction[i] == 1:
            signals[i] = Signal.BUY
        elif direction[i - 1] == 1 and direction[i] == -1:
            signals[i] = Signal.SELL

    return StrategyResult(
        signals=signals,
        indicators={"supertrend": line, "direction": [float(d) for d in direction]},
    )


def _trend_strength(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    """ADX-filtered entries with an ATR trailing stop.

    Entry: ADX above threshold, +DI above -DI and close above the EMA.
    Exit: close below ``highest close since entry − atrMult × ATR`` or
    below the EMA.  Position state lives only inside this call.
    """
    adx_period = as_period(params["adxPeriod"])
    ema_period = as_period(params["emaPeriod"])
    atr_period = as_period(params["atrPeriod"])
    threshold = params["threshold"]
    atr_mult = params["atrMult"]

    adx, plus_di, minus_di = calculate_adx(bars, adx_period)
    ema = calculate_ema(closes_of(bars), ema_period)
    atr = calculate_atr(bars, atr_period)
    signals = hold_signals(len(bars))
    stop_line = [float("nan")] * len(bars)

    in_trade = False
    highest = 0.0
    warmup = max(adx_period * 2, ema_period, atr_period)
    for i in range(warmup, len(bars)):
        if _any_nan(adx[i], ema[i], atr[i]):
            continue
        close = bars[i].close
        if not in_trade:
            if adx[i] > threshold and plus_di[i] > minus_di[i] and close > ema[i]:
                signals[i] = Signal.BUY
                in_trade = True
                highest = close
                stop_line[i] = highest - atr_mult * atr[i]
            continue

        highest = max(highest, close)
        stop = highest - atr_mult * atr[i]
        stop_line[i] = stop
        if close < stop or close < ema[i]:
            signals[i] = Signal.SELL
            in_trade = False

    return StrategyResult(
        signals=signals,
        indicators={"adx": adx, "ema": ema, "atr": atr, "trailingStop": stop_line},
    )


MA_CROSSOVER = Strategy(
    id="ma_crossover",
    name="Moving Average Crossover",
    description=(
        "Buy when fast MA crosses above slow MA (golden cross), "
        "sell on death cross"
    ),
    category="trend",
    parameters=(
        param("fastPeriod", "Fast MA Period", 20, 5, 50, 5),
        param("slowPeriod", "Slow MA Period", 50, 20, 200, 10),
    ),
    calculate_fn=_ma_crossover,
)

ADX_TREND = Strategy(
    id="adx_trend",
    name="ADX Trend Following",
    description="Trade in trend direction when ADX shows strong trend (>25)",
    category="trend",
    parameters=(
        param("period", "ADX Period", 14, 7, 28, 1),
        param("threshold", "ADX Threshold", 25, 15, 40, 5),
    ),
    calculate_fn=_adx_trend,
)

DONCHIAN_BREAKOUT = Strategy(
    id="breakout",
    name="Donchian Breakout",
    description="Buy on N-day high breakout, sell on N-day low breakdown",
    category="trend",
    parameters=(param("period", "Lookback Period", 20, 10, 55, 5),),
    calculate_fn=_donchian_breakout,
)

TRIPLE_MA = Strategy(
    id="triple_ma",
    name="Triple Moving Average",
    description="Buy when short > medium > long MA, sell when short < medium < long",
    category="trend",
    parameters=(
        param("shortPeriod", "Short MA", 10, 5, 20, 1),
        param("mediumPeriod", "Medium MA", 20, 15, 50, 5),
        param("longPeriod", "Long MA", 50, 30, 200, 10),
    ),
    calculate_fn=_triple_ma,
)

KELTNER_BREAKOUT = Strategy(
    id="keltner_breakout",
    name="Keltner Breakout",
    description=(
        "Buy when close breaks above the upper Keltner band, "
        "sell when it falls back below the middle line"
    ),
    category="trend",
    parameters=(
        param("emaPeriod", "EMA Period", 20, 10, 50, 5),
        param("atrPeriod", "ATR Period", 10, 5, 20, 5),
        param("multiplier", "ATR Multiplier", 2, 1, 3, 0.5),
    ),
    calculate_fn=_keltner_breakout,
)

SUPERTREND = Strategy(
    id="supertrend",
    name="Supertrend",
    description="Buy when Supertrend flips bullish, sell when it flips bearish",
    category="trend",
    parameters=(
        param("period", "ATR Period", 10, 5, 20, 5),
        param("multiplier", "ATR Multiplier", 3, 1, 4, 0.5),
    ),
    calculate_fn=_supertrend,
)

TREND_STRENGTH = Strategy(
    id="trend_strength",
    name="Trend Strength + ATR Stop",
    description=(
        "Enter strong ADX uptrends above the EMA, exit on an ATR "
        "trailing stop or a close below the EMA"
    ),
    category="trend",
    parameters=(
        param("adxPeriod", "ADX Period", 14, 7, 21, 7),
        param("threshold", "ADX Threshold", 25, 20, 30, 5),
        param("emaPeriod", "EMA Period", 50, 20, 80, 30),
        param("atrPeriod", "ATR Period", 14, 7, 21, 7),
        param("atrMult", "ATR Stop Multiple", 3, 2, 4, 1),
    ),
    calculate_fn=_trend_strength,
)
