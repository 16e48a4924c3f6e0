"""Tests for the strategy table: parameter schema, registry and signal rules."""

import datetime
import math

import pytest

from forcelab.forces.calculator import calculate_forces
from forcelab.forces.diagram import Action, classify
from forcelab.models import Bar, ForceSample
from forcelab.strategy.base import CATEGORIES, Signal, value_range
from forcelab.strategy.hybrid import HAMILTON, RSI_MACD_COMBO, action_to_signal
from forcelab.strategy.mean_reversion import BOLLINGER, MEAN_REVERSION_VOL, RSI_REVERSION
from forcelab.strategy.momentum import (
    DUAL_MOMENTUM,
    MACD_CROSSOVER,
    TS_MOMENTUM,
    VOLATILITY_BREAKOUT,
    VOLUME_BREAKOUT,
)
from forcelab.strategy.registry import (
    STRATEGY_REGISTRY,
    find_strategy,
    get_strategy,
    list_strategies,
    strategies_by_category,
)
from forcelab.strategy.trend import (
    ADX_TREND,
    DONCHIAN_BREAKOUT,
    KELTNER_BREAKOUT,
    MA_CROSSOVER,
    SUPERTREND,
    TREND_STRENGTH,
    TRIPLE_MA,
)


# ── Helpers ──────────────────────────────────────────────────────────────


def _date(i):
    return (datetime.date(2020, 1, 1) + datetime.timedelta(days=i)).isoformat()


def _make_bar(i, close, volume=1000):
    return Bar(
        date=_date(i),
        open=close,
        high=close + 1,
        low=close - 1,
        close=close,
        volume=volume,
    )


def _bars_from_closes(closes):
    return [_make_bar(i, c) for i, c in enumerate(closes)]


def _sine_bars(n=300, drift=0.0):
    return _bars_from_closes(
        [100 + drift * i + 10 * math.sin(i / 8) for i in range(n)]
    )


def _v_shape_bars():
    down = [200 - 2 * i for i in range(40)]
    up = [124 + 2 * i for i in range(40)]
    return _bars_from_closes(down + up)


def _step_bars():
    return _bars_from_closes([100.0] * 30 + [110.0] * 10)


def _trades(signals):
    return [s for s in signals if s != Signal.HOLD]


def _signal_bars(signals):
    """Index → signal for every non-HOLD bar."""
    return {i: s for i, s in enumerate(signals) if s != Signal.HOLD}


# ── Registry ─────────────────────────────────────────────────────────────


class TestRegistry:
    def test_presentation_order(self):
        ids = list(STRATEGY_REGISTRY)
        assert len(ids) == 17
        assert ids[:4] == ["hamilton", "ma_crossover", "rsi_reversion", "macd"]
        assert ids[-1] == "trend_strength"
        assert [s.id for s in list_strategies()] == ids

    def test_get_strategy(self):
        assert get_strategy("breakout") is DONCHIAN_BREAKOUT

    def test_get_unknown_strategy_raises(self):
        with pytest.raises(KeyError, match="Unknown strategy 'nope'"):
            get_strategy("nope")

    def test_find_strategy(self):
        assert find_strategy("supertrend") is SUPERTREND
        assert find_strategy("nope") is None

    def test_categories(self):
        assert [s.id for s in strategies_by_category("hybrid")] == [
            "hamilton",
            "rsi_macd_combo",
        ]
        assert [s.id for s in strategies_by_category("momentum")] == [
            "macd",
            "volume_breakout",
            "dual_momentum",
            "ts_momentum",
            "volatility_breakout",
        ]
        for strategy in list_strategies():
            assert strategy.category in CATEGORIES

    def test_unknown_category_raises(self):
        with pytest.raises(ValueError):
            strategies_by_category("carry")


# ── Parameter schema ─────────────────────────────────────────────────────


class TestParameters:
    def test_value_range(self):
        assert value_range(1, 3, 0.5) == [1, 1.5, 2, 2.5, 3]
        assert value_range(0.1, 0.3, 0.1) == [0.1, 0.2, 0.3]
        assert value_range(5, 50, 5)[-1] == 50

    def test_value_range_degenerate(self):
        assert value_range(4, 4, 1) == [4]
        assert value_range(4, 2, 1) == [4]
        assert value_range(4, 8, 0) == [4]

    def test_integer_values_are_ints(self):
        assert all(isinstance(v, int) for v in value_range(5, 50, 5))

    @pytest.mark.parametrize("strategy_id", list(STRATEGY_REGISTRY))
    def test_defaults_lie_on_their_grid(self, strategy_id):
        for p in get_strategy(strategy_id).parameters:
            assert p.min <= p.default <= p.max
            assert p.default in p.values()

    def test_resolve_params_overlays_defaults(self):
        resolved = MA_CROSSOVER.resolve_params({"fastPeriod": 10, "bogus": 1})
        assert resolved == {"fastPeriod": 10, "slowPeriod": 50}

    def test_resolve_params_keeps_explicit_zero(self):
        resolved = DUAL_MOMENTUM.resolve_params({"hurdle": 0, "lookback": None})
        assert resolved["hurdle"] == 0
        assert resolved["lookback"] == 126

    def test_to_dict(self):
        d = MA_CROSSOVER.to_dict()
        assert d["id"] == "ma_crossover"
        assert d["category"] == "trend"
        assert d["parameters"][0] == {
            "id": "fastPeriod",
            "name": "Fast MA Period",
            "default": 20,
            "min": 5,
            "max": 50,
            "step": 5,
        }


# ── Signal alignment ─────────────────────────────────────────────────────


class TestSignalAlignment:
    @pytest.mark.parametrize("strategy_id", list(STRATEGY_REGISTRY))
    @pytest.mark.parametrize("n", [0, 5, 300])
    def test_one_signal_per_bar(self, strategy_id, n):
        bars = _sine_bars(n)
        result = get_strategy(strategy_id).calculate(bars)
        assert len(result.signals) == n
        for series in result.indicators.values():
            assert len(series) == n

    @pytest.mark.parametrize("strategy_id", list(STRATEGY_REGISTRY))
    def test_deterministic(self, strategy_id):
        bars = _sine_bars(300, drift=0.2)
        strategy = get_strategy(strategy_id)
        assert strategy.calculate(bars).signals == strategy.calculate(bars).signals


# ── Individual rules ─────────────────────────────────────────────────────


class TestTrendRules:
    def test_ma_crossover_v_shape(self):
        result = MA_CROSSOVER.calculate(
            _v_shape_bars(), {"fastPeriod": 5, "slowPeriod": 20}
        )
        assert result.signals.count(Signal.BUY) == 1
        assert result.signals.count(Signal.SELL) == 0
        assert result.signals.index(Signal.BUY) > 40

    def test_donchian_breakout_on_step(self):
        signals = DONCHIAN_BREAKOUT.calculate(_step_bars()).signals
        assert signals[30] == Signal.BUY
        assert _trades(signals) == [Signal.BUY]

    def test_supertrend_signals_follow_direction_flips(self):
        result = SUPERTREND.calculate(_sine_bars(300))
        direction = result.indicators["direction"]
        for i, signal in enumerate(result.signals):
            if i < 10:
                assert signal == Signal.HOLD
                continue
            flipped_up = direction[i - 1] == -1 and direction[i] == 1
            flipped_down = direction[i - 1] == 1 and direction[i] == -1
            assert (signal == Signal.BUY) == flipped_up
            assert (signal == Signal.SELL) == flipped_down

    def test_adx_trend_on_di_crosses(self):
        # Down 4 bars, up 4, down 2; one point per bar with a constant range.
        bars = _bars_from_closes([20, 19, 18, 17, 16, 17, 18, 19, 20, 19, 18])
        signals = ADX_TREND.calculate(bars, {"period": 2, "threshold": 25}).signals
        assert _signal_bars(signals) == {5: Signal.BUY, 9: Signal.SELL}

    def test_adx_trend_needs_strong_trend(self):
        bars = _bars_from_closes([20, 19, 18, 17, 16, 17, 18, 19, 20, 19, 18])
        signals = ADX_TREND.calculate(bars, {"period": 2, "threshold": 99}).signals
        assert _trades(signals) == []

    def test_triple_ma_stacking(self):
        bars = _bars_from_closes([10, 10, 10, 11, 12, 11, 9, 8])
        signals = TRIPLE_MA.calculate(
            bars, {"shortPeriod": 1, "mediumPeriod": 2, "longPeriod": 3}
        ).signals
        assert _signal_bars(signals) == {3: Signal.BUY, 6: Signal.SELL}

    def test_keltner_breakout_and_middle_exit(self):
        bars = _bars_from_closes([100] * 5 + [110, 110, 100, 100])
        result = KELTNER_BREAKOUT.calculate(
            bars, {"emaPeriod": 3, "atrPeriod": 3, "multiplier": 0.5}
        )
        assert result.indicators["upper"][5] == pytest.approx(107.5)
        assert result.indicators["middle"][7] == pytest.approx(103.75)
        # Bar 6 is still above the band but was already outside on bar 5.
        assert _signal_bars(result.signals) == {5: Signal.BUY, 7: Signal.SELL}

    def test_trend_strength_alternates_from_buy(self):
        trades = _trades(TREND_STRENGTH.calculate(_sine_bars(400, drift=0.5)).signals)
        for k, signal in enumerate(trades):
            assert signal == (Signal.BUY if k % 2 == 0 else Signal.SELL)


class TestMomentumRules:
    def test_volatility_breakout_on_step(self):
        signals = VOLATILITY_BREAKOUT.calculate(_step_bars()).signals
        assert signals[30] == Signal.BUY
        assert _trades(signals) == [Signal.BUY]

    def test_macd_crossovers(self):
        bars = _bars_from_closes([10] * 6 + [8, 6, 4, 6, 8, 10, 10])
        result = MACD_CROSSOVER.calculate(
            bars, {"fastPeriod": 1, "slowPeriod": 3, "signalPeriod": 2}
        )
        assert math.isnan(result.indicators["signal"][2])
        assert result.indicators["signal"][3] == 0.0
        assert _signal_bars(result.signals) == {9: Signal.BUY, 12: Signal.SELL}

    def test_volume_breakout_requires_surge(self):
        closes = [100] * 8 + [105, 110, 80]
        volumes = [1000] * 8 + [2000, 1000, 5000]
        bars = [_make_bar(i, c, volume=v) for i, (c, v) in enumerate(zip(closes, volumes))]
        result = VOLUME_BREAKOUT.calculate(bars, {"period": 5, "volumeMult": 1.5})
        # Bar 9 clears the channel on ordinary volume.
        assert bars[9].close > result.indicators["upperChannel"][9]
        assert result.indicators["avgVolume"][9] == pytest.approx(1200.0)
        assert _signal_bars(result.signals) == {8: Signal.BUY, 10: Signal.SELL}

    def test_ts_momentum_hurdle_crosses(self):
        bars = _bars_from_closes([100] * 5 + [110] * 4 + [100])
        signals = TS_MOMENTUM.calculate(bars, {"lookback": 3, "hurdle": 5}).signals
        assert _signal_bars(signals) == {5: Signal.BUY, 8: Signal.SELL}

    def test_dual_momentum_alternates(self):
        bars = _sine_bars(600, drift=0.05)
        trades = _trades(
            DUAL_MOMENTUM.calculate(bars, {"lookback": 63, "fastLookback": 21}).signals
        )
        for a, b in zip(trades, trades[1:]):
            assert a != b


class TestMeanReversionRules:
    def test_rsi_reversion_fires_on_crosses_only(self):
        result = RSI_REVERSION.calculate(_sine_bars(300))
        rsi = result.indicators["rsi"]
        assert Signal.BUY in result.signals
        for i, signal in enumerate(result.signals):
            if signal == Signal.BUY:
                assert rsi[i] < 30 <= rsi[i - 1]
            elif signal == Signal.SELL:
                assert rsi[i] > 70 >= rsi[i - 1]

    def test_bollinger_reentry_from_outside_band(self):
        bars = _bars_from_closes([10, 11, 12, 13, 14, 13.5, 12, 11, 11.5])
        result = BOLLINGER.calculate(bars, {"period": 3, "stdDev": 1})
        lower = result.indicators["lower"]
        # Bars 6 and 7 close below the lower band without a signal.
        assert bars[6].close < lower[6]
        assert bars[7].close < lower[7]
        assert _signal_bars(result.signals) == {5: Signal.SELL, 8: Signal.BUY}

    @staticmethod
    def _vol_filter_bars(drop_index, drop_close, n=80):
        closes = [100.0] * n
        for i in range(drop_index, n):
            closes[i] = drop_close
        return _bars_from_closes(closes)

    def test_mean_reversion_vol_first_eligible_bar(self):
        # The baseline is read 20 places back in the defined-ATR series,
        # which is already populated at bar 70.
        bars = self._vol_filter_bars(70, 95.0)
        params = {"maPeriod": 20, "atrPeriod": 14, "deviations": 1}
        result = MEAN_REVERSION_VOL.calculate(bars, params)
        assert result.indicators["atr"][70] == pytest.approx(32 / 14)
        assert _signal_bars(result.signals) == {70: Signal.BUY}

    def test_mean_reversion_vol_mirror_sell(self):
        bars = self._vol_filter_bars(70, 105.0)
        params = {"maPeriod": 20, "atrPeriod": 14, "deviations": 1}
        signals = MEAN_REVERSION_VOL.calculate(bars, params).signals
        assert _signal_bars(signals) == {70: Signal.SELL}

    def test_mean_reversion_vol_skips_high_volatility(self):
        bars = self._vol_filter_bars(70, 90.0)
        params = {"maPeriod": 20, "atrPeriod": 14, "deviations": 1}
        assert _trades(MEAN_REVERSION_VOL.calculate(bars, params).signals) == []

    def test_mean_reversion_vol_warmup(self):
        bars = self._vol_filter_bars(69, 95.0)
        params = {"maPeriod": 20, "atrPeriod": 14, "deviations": 1}
        assert _trades(MEAN_REVERSION_VOL.calculate(bars, params).signals) == []


class TestHamilton:
    def test_action_to_signal(self):
        assert action_to_signal(Action.LONG) == Signal.BUY
        assert action_to_signal(Action.ACCUMULATE) == Signal.BUY
        assert action_to_signal(Action.SHORT) == Signal.SELL
        assert action_to_signal(Action.EXIT_LONG) == Signal.SELL
        assert action_to_signal(Action.REDUCE) == Signal.SELL
        for action in (Action.WAIT, Action.HOLD_LONG, Action.HOLD_SHORT, Action.EXIT_SHORT):
            assert action_to_signal(action) == Signal.HOLD

    def test_uses_attached_forces(self):
        samples = [
            ForceSample.from_bar(bar, demand=80.0, supply=-80.0)
            for bar in _sine_bars(10)
        ]
        result = HAMILTON.calculate(samples)
        assert result.signals == [Signal.BUY] * 10
        assert result.indicators["demand"] == [80.0] * 10

    def test_plain_bars_match_classification(self):
        bars = _sine_bars(200)
        samples = calculate_forces(bars, "B")
        expected = [
            action_to_signal(classify(s.demand, s.supply, 25).action) for s in samples
        ]
        assert HAMILTON.calculate(bars, {"threshold": 25}).signals == expected


class TestRsiMacdCombo:
    @staticmethod
    def _flat_decline_jump():
        # Flat to bar 39, one point lower per bar to bar 59, then a jump.
        closes = [100.0] * 40 + [100.0 - k for k in range(1, 21)] + [110.0]
        return _bars_from_closes(closes)

    def test_signals(self):
        result = RSI_MACD_COMBO.calculate(self._flat_decline_jump())
        rsi = result.indicators["rsi"]
        assert rsi[39] == 100.0
        assert rsi[45] == 0.0
        # Bar 40: previous RSI overbought and MACD turning down.
        # Bar 60: previous RSI oversold and MACD back above its signal.
        assert _signal_bars(result.signals) == {40: Signal.SELL, 60: Signal.BUY}

    def test_oversold_alone_is_not_enough(self):
        bars = self._flat_decline_jump()[:60]
        signals = RSI_MACD_COMBO.calculate(bars).signals
        assert _signal_bars(signals) == {40: Signal.SELL}
