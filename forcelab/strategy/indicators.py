"""Technical indicators — SMA, EMA, RSI, ATR, ADX, MACD, Bollinger, Keltner,
Supertrend, Donchian.  Pure functions, no I/O.

Every function returns full-length series aligned with its input.  Values
that are not yet defined (warm-up) are ``float('nan')`` unless noted.
Short inputs never raise; they simply produce an all-NaN series.
"""

import math

from forcelab.models import Bar

NAN = float("nan")


def closes_of(bars: list[Bar]) -> list[float]:
    return [b.close for b in bars]


def true_ranges(bars: list[Bar]) -> list[float]:
    """True range per bar.

        TR = max(high - low, |high - prev_close|, |low - prev_close|)

    The first bar has no previous close, so its TR is ``high - low``.
    """
    result: list[float] = []
    for i, bar in enumerate(bars):
        if i == 0:
            result.append(bar.high - bar.low)
            continue
        prev_close = bars[i - 1].close
        result.append(
            max(
                bar.high - bar.low,
                abs(bar.high - prev_close),
                abs(bar.low - prev_close),
            )
        )
    return result


# ── Moving averages ──────────────────────────────────────────────────────


def calculate_sma(values: list[float], period: int) -> list[float]:
    """Simple trailing mean; NaN until *period* values are available."""
    result: list[float] = [NAN] * len(values)
    for i in range(period - 1, len(values)):
        window = values[i - period + 1 : i + 1]
        result[i] = sum(window) / period
    return result


def calculate_ema(values: list[float], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series.

    The first EMA value (index ``period - 1``) is seeded with the SMA of
    the first *period* values; thereafter::

        ema[i] = (v[i] - ema[i-1]) × k + ema[i-1],   k = 2 / (period + 1)
    """
    n = len(values)
    ema: list[float] = [NAN] * n
    if period < 1 or n < period:
        return ema

    k = 2.0 / (period + 1)
    ema[period - 1] = sum(values[:period]) / period
    for i in range(period, n):
        ema[i] = (values[i] - ema[i - 1]) * k + ema[i - 1]
    return ema


# ── RSI ──────────────────────────────────────────────────────────────────


def calculate_rsi(bars: list[Bar], period: int = 14) -> list[float]:
    """Calculate Wilder's Relative Strength Index.

    Algorithm:
        1. delta = close[i] - close[i-1]; split into gains and losses.
        2. At index *period*, seed averages with the mean of the first
           *period* gains / losses.
        3. Subsequent: avg = (prev_avg × (period-1) + current) / period
        4. RSI = 100 - 100 / (1 + avg_gain / avg_loss), 100 when
           avg_loss is 0.

    Bars before *period* read a neutral 50 rather than NaN.
    """
    n = len(bars)
    rsi: list[float] = [50.0] * n
    if n <= period:
        return rsi

    gains = [0.0] * n
    losses = [0.0] * n
    for i in range(1, n):
        change = bars[i].close - bars[i - 1].close
        gains[i] = max(0.0, change)
        losses[i] = max(0.0, -change)

    avg_gain = sum(gains[1 : period + 1]) / period
    avg_loss = sum(losses[1 : period + 1]) / period

    for i in range(period, n):
        if i > period:
            avg_gain = (avg_gain * (period - 1) + gains[i]) / period
            avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        if avg_loss == 0:
            rsi[i] = 100.0
        else:
            rsi[i] = 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)
    return rsi


# ── ATR ──────────────────────────────────────────────────────────────────


def calculate_atr(bars: list[Bar], period: int = 14) -> list[float]:
    """Average True Range series.

    Seeded at index ``period - 1`` with the simple mean of the first
    *period* true ranges, then Wilder-smoothed:
    ``atr[i] = (atr[i-1] × (period-1) + tr[i]) / period``.
    """
    n = len(bars)
    atr: list[float] = [NAN] * n
    if period < 1 or n < period:
        return atr

    tr = true_ranges(bars)
    atr[period - 1] = sum(tr[:period]) / period
    for i in range(period, n):
        atr[i] = (atr[i - 1] * (period - 1) + tr[i]) / period
    return atr


# ── ADX ──────────────────────────────────────────────────────────────────


def calculate_adx(
    bars: list[Bar], period: int = 14
) -> tuple[list[float], list[float], list[float]]:
    """Calculate ADX with its directional indicators.

    Algorithm:
        1. +DM / -DM directional movement and TR per bar.
        2. EMA-smooth +DM, -DM and TR over *period*.
        3. ±DI = 100 × smoothed_±DM / smoothed_TR (0 while TR is undefined).
        4. DX = 100 × |+DI − −DI| / (+DI + −DI) (0 when the sum is 0).
        5. ADX = EMA(DX, *period*).

    Returns ``(adx, plus_di, minus_di)``.
    """
    plus_dm: list[float] = []
    minus_dm: list[float] = []
    for i, bar in enumerate(bars):
        if i == 0:
            plus_dm.append(0.0)
            minus_dm.append(0.0)
            continue
        up_move = bar.high - bars[i - 1].high
        down_move = bars[i - 1].low - bar.low
        plus_dm.append(up_move if (up_move > down_move and up_move > 0) else 0.0)
        minus_dm.append(down_move if (down_move > up_move and down_move > 0) else 0.0)

    smoothed_plus = calculate_ema(plus_dm, period)
    smoothed_minus = calculate_ema(minus_dm, period)
    smoothed_tr = calculate_ema(true_ranges(bars), period)

    # NaN comparisons are False, so warm-up bars read 0.
    plus_di = [
        v / tr * 100 if tr > 0 else 0.0 for v, tr in zip(smoothed_plus, smoothed_tr)
    ]
    minus_di = [
        v / tr * 100 if tr > 0 else 0.0 for v, tr in zip(smoothed_minus, smoothed_tr)
    ]

    dx: list[float] = []
    for p, m in zip(plus_di, minus_di):
        di_sum = p + m
        dx.append(abs(p - m) / di_sum * 100 if di_sum > 0 else 0.0)

    return calculate_ema(dx, period), plus_di, minus_di


# ── MACD ─────────────────────────────────────────────────────────────────


def calculate_macd(
    values: list[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> tuple[list[float], list[float], list[float]]:
    """MACD line, signal line and histogram.

    The signal EMA runs over the defined part of the MACD line only and is
    re-aligned by index, so its NaN prefix is ``slow + signal - 2`` long.

    Returns ``(macd, signal, histogram)``.
    """
    fast = calculate_ema(values, fast_period)
    slow = calculate_ema(values, slow_period)
    macd = [f - s for f, s in zip(fast, slow)]

    defined = [m for m in macd if not math.isnan(m)]
    signal_compact = calculate_ema(defined, signal_period)

    signal: list[float] = []
    k = 0
    for m in macd:
        if math.isnan(m) or k >= len(signal_compact):
            signal.append(NAN)
        else:
            signal.append(signal_compact[k])
            k += 1

    histogram = [m - s for m, s in zip(macd, signal)]
    return macd, signal, histogram


# ── Bands and channels ───────────────────────────────────────────────────


def calculate_bollinger(
    values: list[float],
    period: int = 20,
    std_dev: float = 2.0,
) -> tuple[list[float], list[float], list[float]]:
    """Calculate Bollinger Bands.

    Middle = SMA(*period*); Upper / Lower = middle ± *std_dev* × σ, where σ
    is the population standard deviation of the same window.

    Returns ``(upper, middle, lower)``.
    """
    n = len(values)
    middle = calculate_sma(values, period)
    upper: list[float] = [NAN] * n
    lower: list[float] = [NAN] * n

    for i in range(period - 1, n):
        window = values[i - period + 1 : i + 1]
        mean = middle[i]
        sigma = math.sqrt(sum((x - mean) ** 2 for x in window) / period)
        upper[i] = mean + std_dev * sigma
        lower[i] = mean - std_dev * sigma

    return upper, middle, lower


def calculate_keltner(
    bars: list[Bar],
    ema_period: int = 20,
    atr_period: int = 10,
    multiplier: float = 2.0,
) -> tuple[list[float], list[float], list[float]]:
    """Keltner Channel: EMA(close) ± *multiplier* × ATR.

    Returns ``(upper, middle, lower)``.
    """
    middle = calculate_ema(closes_of(bars), ema_period)
    atr = calculate_atr(bars, atr_period)
    upper = [m + multiplier * a for m, a in zip(middle, atr)]
    lower = [m - multiplier * a for m, a in zip(middle, atr)]
    return upper, middle, lower


def calculate_donchian(
    bars: list[Bar], period: int = 20
) -> tuple[list[float], list[float]]:
    """Highest high / lowest low of the *period* bars before each bar.

    The current bar is excluded so a close beyond the channel is a
    breakout.  Returns ``(upper, lower)``.
    """
    n = len(bars)
    upper: list[float] = [NAN] * n
    lower: list[float] = [NAN] * n
    for i in range(period, n):
        window = bars[i - period : i]
        upper[i] = max(b.high for b in window)
        lower[i] = min(b.low for b in window)
    return upper, lower


def calculate_supertrend(
    bars: list[Bar], period: int = 10, multiplier: float = 3.0
) -> tuple[list[float], list[int]]:
    """Classic Supertrend.

    Basic bands are ``hl2 ± multiplier × ATR``.  The final upper band only
    moves down (and the lower only up) unless the previous close broke
    through it.  Direction starts at the seed bar as 1 when the close is
    above the basic upper band, else -1, and flips -1→1 when the close
    exceeds the final upper band, 1→-1 when it drops below the final lower
    band.

    Returns ``(supertrend_line, direction)``; direction is 0 during warm-up.
    """
    n = len(bars)
    line: list[float] = [NAN] * n
    direction: list[int] = [0] * n
    atr = calculate_atr(bars, period)
    seed = period - 1
    if period < 1 or n < period:
        return line, direction

    basic_upper = [(b.high + b.low) / 2 + multiplier * a for b, a in zip(bars, atr)]
    basic_lower = [(b.high + b.low) / 2 - multiplier * a for b, a in zip(bars, atr)]
    final_upper = list(basic_upper)
    final_lower = list(basic_lower)

    direction[seed] = 1 if bars[seed].close > basic_upper[seed] else -1
    for i in range(seed + 1, n):
        prev_close = bars[i - 1].close
        if basic_upper[i] < final_upper[i - 1] or prev_close > final_upper[i - 1]:
            final_upper[i] = basic_upper[i]
        else:
            final_upper[i] = final_upper[i - 1]
        if basic_lower[i] > final_lower[i - 1] or prev_close < final_lower[i - 1]:
            final_lower[i] = basic_lower[i]
        else:
            final_lower[i] = final_lower[i - 1]

        close = bars[i].close
        if direction[i - 1] == -1 and close > final_upper[i]:
            direction[i] = 1
        elif direction[i - 1] == 1 and close < final_lower[i]:
            direction[i] = -1
        else:
            direction[i] = direction[i - 1]

    for i in range(seed, n):
        line[i] = final_lower[i] if direction[i] == 1 else final_upper[i]
    return line, direction


# ── Returns ──────────────────────────────────────────────────────────────


def calculate_roc(values: list[float], lookback: int) -> list[float]:
    """Percent change over *lookback* bars; NaN when undefined or base is 0."""
    result: list[float] = [NAN] * len(values)
    for i in range(lookback, len(values)):
        base = values[i - lookback]
        if base != 0:
            result[i] = (values[i] - base) / base * 100
    return result
