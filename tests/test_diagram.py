"""Tests for forcelab.forces.diagram — zone grid, actions and quality labels."""

import pytest

from forcelab.forces.diagram import (
    Action,
    DiagramZone,
    Quality,
    assess_quality,
    classify,
    get_thresholds,
    map_to_zone,
    zone_action,
    zone_name,
)


# ── Helpers ──────────────────────────────────────────────────────────────


def _bucket(value, threshold):
    if value > threshold:
        return "strong"
    if value < -threshold:
        return "weak"
    return "neutral"


_EXPECTED = {
    ("strong", "weak"): DiagramZone.FREE_RISE,
    ("strong", "neutral"): DiagramZone.WEAK_BULL,
    ("strong", "strong"): DiagramZone.BEAR_RALLY,
    ("neutral", "weak"): DiagramZone.CONSOLIDATION,
    ("neutral", "neutral"): DiagramZone.CHAOS,
    ("neutral", "strong"): DiagramZone.DISTRIBUTION,
    ("weak", "weak"): DiagramZone.BULL_TRAP,
    ("weak", "neutral"): DiagramZone.WEAK_BEAR,
    ("weak", "strong"): DiagramZone.FREE_FALL,
}


# ── Zone grid ────────────────────────────────────────────────────────────


class TestMapToZone:
    @pytest.mark.parametrize("threshold", [30, 10, 55.5])
    def test_grid_covers_every_cell_exactly_once(self, threshold):
        seen = set()
        for demand in range(-100, 101):
            for supply in range(-100, 101):
                zone = map_to_zone(demand, supply, threshold)
                expected = _EXPECTED[(_bucket(demand, threshold), _bucket(supply, threshold))]
                assert zone == expected, (demand, supply)
                seen.add(zone)
        assert seen == set(DiagramZone)

    def test_boundaries_are_neutral(self):
        assert map_to_zone(30, 30) == DiagramZone.CHAOS
        assert map_to_zone(-30, -30) == DiagramZone.CHAOS
        assert map_to_zone(30.01, -30.01) == DiagramZone.FREE_RISE

    def test_default_threshold(self):
        assert get_thresholds() == (30.0, -30.0)
        assert get_thresholds(20) == (20, -20)
        assert map_to_zone(25, 0) == DiagramZone.CHAOS
        assert map_to_zone(25, 0, threshold=20) == DiagramZone.WEAK_BULL

    def test_nan_falls_back_to_chaos(self):
        assert map_to_zone(float("nan"), 50) == DiagramZone.CHAOS


class TestZoneAction:
    @pytest.mark.parametrize(
        "zone,action",
        [
            (DiagramZone.FREE_RISE, Action.LONG),
            (DiagramZone.WEAK_BULL, Action.HOLD_LONG),
            (DiagramZone.BEAR_RALLY, Action.EXIT_SHORT),
            (DiagramZone.CONSOLIDATION, Action.ACCUMULATE),
            (DiagramZone.CHAOS, Action.WAIT),
            (DiagramZone.DISTRIBUTION, Action.REDUCE),
            (DiagramZone.BULL_TRAP, Action.EXIT_LONG),
            (DiagramZone.WEAK_BEAR, Action.HOLD_SHORT),
            (DiagramZone.FREE_FALL, Action.SHORT),
        ],
    )
    def test_fixed_table(self, zone, action):
        assert zone_action(zone) == action

    def test_every_zone_has_a_name(self):
        assert zone_name(DiagramZone.FREE_RISE) == "Free Rise ↑↑"
        assert zone_name(DiagramZone.FREE_FALL) == "Free Fall ↓↓"
        assert len({zone_name(z) for z in DiagramZone}) == 9


# ── Quality ──────────────────────────────────────────────────────────────


class TestAssessQuality:
    def test_healthy_needs_strength_and_spread(self):
        assert assess_quality(80, -80) == Quality.HEALTHY

    def test_warning_on_strong_conflict(self):
        assert assess_quality(70, 70) == Quality.WARNING

    def test_low_force_is_speculative(self):
        assert assess_quality(10, -5) == Quality.SPECULATIVE

    def test_medium_conflict_is_also_speculative(self):
        # Known quirk: a strong but ambiguous reading (avg > 50, spread
        # between 20 and 40) shares the "Speculative" label with weak ones.
        assert assess_quality(70, 40) == Quality.SPECULATIVE
        assert assess_quality(55, 50) == Quality.SPECULATIVE


class TestClassify:
    def test_bundles_zone_action_and_quality(self):
        signal = classify(80, -80)
        assert signal.zone == DiagramZone.FREE_RISE
        assert signal.action == Action.LONG
        assert signal.quality == Quality.HEALTHY
        assert (signal.demand, signal.supply) == (80, -80)

    def test_to_dict(self):
        d = classify(-50, 60).to_dict()
        assert d == {
            "zone": "FREE_FALL",
            "zone_name": "Free Fall ↓↓",
            "action": "SHORT",
            "demand": -50,
            "supply": 60,
            "quality": "Healthy",
        }
