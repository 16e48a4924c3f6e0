"""Hybrid strategies: Hamilton diagram and RSI + MACD combo."""

import math
from typing import Mapping

from forcelab.forces.calculator import attach_forces
from forcelab.forces.diagram import Action, classify
from forcelab.models import Bar
from forcelab.strategy.base import (
    Signal,
    Strategy,
    StrategyResult,
    as_period,
    hold_signals,
    param,
)
from forcelab.strategy.indicators import calculate_macd, calculate_rsi, closes_of

_BUY_ACTIONS = {Action.LONG, Action.ACCUMULATE}
_SELL_ACTIONS = {Action.SHORT, Action.EXIT_LONG, Action.REDUCE}


def action_to_signal(action: Action) -> Signal:
    """Collapse a diagram action onto the BUY / SELL / HOLD alphabet."""
    if action in _BUY_ACTIONS:
        return Signal.BUY
    if action in _SELL_ACTIONS:
        return Signal.SELL
    return Signal.HOLD


def _hamilton(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    threshold = params["threshold"]
    # Called directly on plain bars, forces default to method B.
    samples = attach_forces(bars)
    signals = [
        action_to_signal(classify(s.demand, s.supply, threshold).action)
        for s in samples
    ]
    return StrategyResult(
        signals=signals,
        indicators={
            "demand": [s.demand for s in samples],
            "supply": [s.supply for s in samples],
        },
    )


def _rsi_macd_combo(bars: list[Bar], params: Mapping[str, float]) -> StrategyResult:
    rsi_period = as_period(params["rsiPeriod"])
    oversold = params["rsiOversold"]
    overbought = params["rsiOverbought"]

    rsi = calculate_rsi(bars, rsi_period)
    macd, macd_signal, _ = calculate_macd(closes_of(bars), 12, 26, 9)
    signals = hold_signals(len(bars))

    for i in range(35, len(bars)):
        if math.isnan(rsi[i]) or math.isnan(macd[i]) or math.isnan(macd_signal[i]):
            continue

        bullish_cross = macd[i] > macd_signal[i] and macd[i - 1] <= macd_signal[i - 1]
        bearish_cross = macd[i] < macd_signal[i] and macd[i - 1] >= macd_signal[i - 1]
        bullish = macd[i] > macd_signal[i]
        bearish = macd[i] < macd_signal[i]

        if (rsi[i] < oversold or rsi[i - 1] < oversold) and (bullish_cross or bullish):
            signals[i] = Signal.BUY
        elif (rsi[i] > overbought or rsi[i - 1] > overbought) and (
            bearish_cross or bearish
        ):
            signals[i] = Signal.SELL

    return StrategyResult(
        signals=signals,
        indicators={"rsi": rsi, "macd": macd, "macdSignal": macd_signal},
    )


HAMILTON = Strategy(
    id="hamilton",
    name="Hamilton Diagram",
    description=(
        "Uses demand/supply force analysis to identify market states "
        "and generate signals"
    ),
    category="hybrid",
    parameters=(param("threshold", "Threshold", 30, 10, 50, 5),),
    calculate_fn=_hamilton,
    uses_forces=True,
)

RSI_MACD_COMBO = Strategy(
    id="rsi_macd_combo",
    name="RSI + MACD Combo",
    description=(
        "Buy when RSI oversold AND MACD bullish crossover, "
        "high conviction signals only"
    ),
    category="hybrid",
    parameters=(
        param("rsiPeriod", "RSI Period", 14, 7, 21, 1),
        param("rsiOversold", "RSI Oversold", 40, 20, 45, 5),
        param("rsiOverbought", "RSI Overbought", 60, 55, 80, 5),
    ),
    calculate_fn=_rsi_macd_combo,
)
