"""Demand / supply force calculation — pure functions, no I/O.

Four interchangeable methods turn an OHLCV series into a parallel series
of bounded (demand, supply) pairs in [-100, 100]:

    A — Money Flow Index based
    B — Price-volume momentum with rolling normalisation
    C — RSI-volume hybrid
    D — Chaikin Money Flow with momentum boost

Bars before a method's warm-up period get ``demand = supply = 0``.
"""

import logging
import math

from forcelab.models import Bar, ForceSample

logger = logging.getLogger("forcelab.forces")

FORCE_LIMIT = 100.0
FORCE_METHODS = ("A", "B", "C", "D")

MFI_PERIOD = 14
MOMENTUM_LOOKBACK = 20
# Opposite-side weight for method B (residual selling on up bars and
# residual buying on down bars).
RESIDUAL_WEIGHT = 0.3
MIN_NORMALISER = 0.001
RSI_PERIOD = 14
VOLUME_PERIOD = 10
CMF_PERIOD = 21
CMF_SHIFT = 5
CMF_BOOST = 5.0


def clamp(value: float, low: float = -FORCE_LIMIT, high: float = FORCE_LIMIT) -> float:
    """Clamp *value* to [low, high]; NaN and ±inf resolve to 0."""
    if not math.isfinite(value):
        return 0.0
    return max(low, min(high, value))


def calculate_forces(bars: list[Bar], method: str = "B") -> list[ForceSample]:
    """Compute demand / supply forces for every bar.

    Args:
        bars: OHLCV bars, oldest first.
        method: ``"A"``, ``"B"``, ``"C"`` or ``"D"``.  Anything else falls
            back to method B.

    Returns:
        One ``ForceSample`` per input bar.
    """
    calculators = {
        "A": calculate_method_a,
        "B": calculate_method_b,
        "C": calculate_method_c,
        "D": calculate_method_d,
    }
    calc = calculators.get(method)
    if calc is None:
        logger.warning("Unknown force method %r; using method B", method)
        calc = calculate_method_b
    return calc(bars)


def attach_forces(bars: list[Bar], method: str = "B") -> list[ForceSample]:
    """Return *bars* unchanged when they already carry forces, else compute them."""
    if bars and all(isinstance(b, ForceSample) for b in bars):
        return list(bars)
    return calculate_forces(bars, method)


def _zeroed(bar: Bar) -> ForceSample:
    return ForceSample.from_bar(bar, 0.0, 0.0)


# ── Method A: Money Flow Index ───────────────────────────────────────────


def calculate_method_a(bars: list[Bar], period: int = MFI_PERIOD) -> list[ForceSample]:
    """MFI-based forces.

    Raw money flow is ``typical_price × volume``, positive when the
    typical price did not fall versus the previous bar.  MFI over the
    trailing *period* bars maps to ``demand = (MFI − 50) × 2`` and
    ``supply = (50 − MFI) × 2``.
    """
    typical = [(b.high + b.low + b.close) / 3 for b in bars]
    flows: list[float] = []
    for i, bar in enumerate(bars):
        prev_tp = typical[i - 1] if i > 0 else typical[i]
        raw = typical[i] * bar.volume
        flows.append(raw if typical[i] >= prev_tp else -raw)

    result: list[ForceSample] = []
    for i, bar in enumerate(bars):
        if i < period:
            result.append(_zeroed(bar))
            continue

        positive = 0.0
        negative = 0.0
        for flow in flows[i - period + 1 : i + 1]:
            if flow > 0:
                positive += flow
            else:
                negative += abs(flow)

        ratio = 100.0 if negative == 0 else positive / negative
        mfi = 100.0 - 100.0 / (1.0 + ratio)
        result.append(
            ForceSample.from_bar(bar, clamp((mfi - 50) * 2), clamp((50 - mfi) * 2))
        )
    return result


# ── Method B: Price-volume momentum ──────────────────────────────────────


def _raw_momentum(bars: list[Bar]) -> tuple[list[float], list[float]]:
    """First pass of method B: unnormalised demand / supply per bar."""
    raw_demand = [0.0]
    raw_supply = [0.0]
    for i in range(1, len(bars)):
        bar = bars[i]
        prev_close = bars[i - 1].close
        price_range = bar.high - bar.low

        if prev_close == 0 or math.isnan(prev_close):
            raw_demand.append(0.0)
            raw_supply.append(0.0)
            continue
        pct_change = (bar.close - prev_close) / prev_close * 100
        if price_range == 0 or math.isnan(price_range):
            raw_demand.append(0.0)
            raw_supply.append(0.0)
            continue

        clv = ((bar.close - bar.low) - (bar.high - bar.close)) / price_range
        volume_factor = math.log10(bar.volume + 1) if bar.volume > 0 else 1.0
        momentum = clv * abs(pct_change) * volume_factor
        if math.isnan(momentum):
            raw_demand.append(0.0)
            raw_supply.append(0.0)
            continue

        if pct_change >= 0:
            raw_demand.append(momentum)
            raw_supply.append(-momentum * RESIDUAL_WEIGHT)
        else:
            raw_demand.append(momentum * RESIDUAL_WEIGHT)
            raw_supply.append(-momentum)
    return raw_demand, raw_supply


def calculate_method_b(
    bars: list[Bar], lookback: int = MOMENTUM_LOOKBACK
) -> list[ForceSample]:
    """Price-volume momentum forces.

    Close-location value × |% change| × log10 volume, split into a
    dominant side and a 0.3× residual on the opposite side, then each
    series is normalised by its own max |value| over the trailing
    *lookback* bars.
    """
    raw_demand, raw_supply = _raw_momentum(bars)

    result: list[ForceSample] = []
    for i, bar in enumerate(bars):
        if i < lookback:
            result.append(_zeroed(bar))
            continue

        max_demand = MIN_NORMALISER
        max_supply = MIN_NORMALISER
        for j in range(i - lookback + 1, i + 1):
            max_demand = max(max_demand, abs(raw_demand[j]))
            max_supply = max(max_supply, abs(raw_supply[j]))

        demand = raw_demand[i] / max_demand * 100
        supply = raw_supply[i] / max_supply * 100
        result.append(ForceSample.from_bar(bar, clamp(demand), clamp(supply)))
    return result


# ── Method C: RSI-volume hybrid ──────────────────────────────────────────


def calculate_method_c(
    bars: list[Bar],
    rsi_period: int = RSI_PERIOD,
    volume_period: int = VOLUME_PERIOD,
) -> list[ForceSample]:
    """RSI forces weighted by relative volume.

    The dominant side scales with ``(RSI − 50) / 50 × 100`` times a volume
    confirmation in [0.5, 2]; the retreating side moves at half strength
    without volume weighting.
    """
    n = len(bars)
    gains = [0.0] * n
    losses = [0.0] * n
    for i in range(1, n):
        change = bars[i].close - bars[i - 1].close
        gains[i] = max(0.0, change)
        losses[i] = max(0.0, -change)

    avg_gain = [0.0] * n
    avg_loss = [0.0] * n
    for i in range(rsi_period, n):
        if i == rsi_period:
            avg_gain[i] = sum(gains[1 : rsi_period + 1]) / rsi_period
            avg_loss[i] = sum(losses[1 : rsi_period + 1]) / rsi_period
        else:
            avg_gain[i] = (avg_gain[i - 1] * (rsi_period - 1) + gains[i]) / rsi_period
            avg_loss[i] = (avg_loss[i - 1] * (rsi_period - 1) + losses[i]) / rsi_period

    volume_ratio = [1.0] * n
    for i in range(volume_period, n):
        mean_volume = sum(b.volume for b in bars[i - volume_period : i]) / volume_period
        volume_ratio[i] = bars[i].volume / mean_volume if mean_volume > 0 else 1.0

    result: list[ForceSample] = []
    for i, bar in enumerate(bars):
        if i < rsi_period:
            result.append(_zeroed(bar))
            continue

        rs = 100.0 if avg_loss[i] == 0 else avg_gain[i] / avg_loss[i]
        rsi = 100.0 - 100.0 / (1.0 + rs)
        confirm = min(2.0, max(0.5, volume_ratio[i]))
        centered = rsi - 50

        if centered >= 0:
            demand = centered / 50 * 100 * confirm
            supply = -(centered / 50) * 50
        else:
            supply = -centered / 50 * 100 * confirm
            demand = centered / 50 * 50
        result.append(ForceSample.from_bar(bar, clamp(demand), clamp(supply)))
    return result


# ── Method D: Chaikin Money Flow ─────────────────────────────────────────


def _cmf(mf_volumes: list[float], bars: list[Bar], start: int, end: int) -> float:
    """CMF over bars ``start..end`` inclusive; 0 when volume sums to 0."""
    sum_mfv = 0.0
    sum_volume = 0.0
    for j in range(start, end + 1):
        sum_mfv += mf_volumes[j]
        sum_volume += bars[j].volume
    return 0.0 if sum_volume == 0 else sum_mfv / sum_volume


def calculate_method_d(bars: list[Bar], period: int = CMF_PERIOD) -> list[ForceSample]:
    """Chaikin Money Flow forces, boosted by the 5-bar change in CMF.

    ``demand = CMF × 100 × (1 + |ΔCMF| × 5)`` and ``supply = −demand``.
    """
    mf_volumes: list[float] = []
    for bar in bars:
        price_range = bar.high - bar.low
        if price_range == 0:
            mf_volumes.append(0.0)
            continue
        multiplier = ((bar.close - bar.low) - (bar.high - bar.close)) / price_range
        mf_volumes.append(multiplier * bar.volume)

    result: list[ForceSample] = []
    for i, bar in enumerate(bars):
        if i < period:
            result.append(_zeroed(bar))
            continue

        cmf = _cmf(mf_volumes, bars, i - period + 1, i)
        prev_cmf = 0.0
        if i >= period + CMF_SHIFT:
            prev_cmf = _cmf(mf_volumes, bars, i - period - CMF_SHIFT + 1, i - CMF_SHIFT)

        boost = 1 + abs(cmf - prev_cmf) * CMF_BOOST
        force = cmf * 100 * boost
        result.append(ForceSample.from_bar(bar, clamp(force), clamp(-force)))
    return result
