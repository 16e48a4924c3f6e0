"""Tests for the CLI text reports and argument handling."""

import math

import pytest

from forcelab.backtest.models import BacktestResult
from forcelab.cli import report
from forcelab.forces.calculator import calculate_forces
from forcelab.forces.summary import summarize_forces
from forcelab.main import _build_parser, _parse_params
from forcelab.models import Bar
from forcelab.optimize.models import MultiStrategyResult, RankingEntry


def _sine_bars(n=60):
    bars = []
    for i in range(n):
        close = 100 + 10 * math.sin(i / 8)
        bars.append(Bar(f"2021-{1 + i // 28:02d}-{1 + i % 28:02d}", close, close + 1, close - 1, close, 500))
    return bars


class TestReports:
    def test_force_summary(self, capsys):
        summary = summarize_forces(calculate_forces(_sine_bars(), "A"))
        output = report.format_force_summary(summary, "A")
        assert "Forces (method A)" in output
        assert "Zone:" in output
        assert capsys.readouterr().out.strip() == output

    def test_force_summary_without_bars(self):
        assert report.format_force_summary(None, "B") == "No bars to summarise."

    def test_backtest_infinite_profit_factor(self):
        result = BacktestResult(
            strategy_id="x",
            strategy_name="Example",
            profit_factor=math.inf,
            trading_days=10,
            start_date="2021-01-01",
            end_date="2021-01-10",
        )
        assert "Profit Factor:   ∞" in report.format_backtest(result)

    def test_empty_backtest(self):
        output = report.format_backtest(BacktestResult.empty("nope"))
        assert "Unknown (nope)" in output

    def test_comparison_rows(self):
        results = [
            BacktestResult(strategy_id="a", strategy_name="Alpha", total_return=5.0),
            BacktestResult(strategy_id="b", strategy_name="Beta", total_return=-2.5),
        ]
        output = report.format_comparison(results)
        assert "+5.00%" in output
        assert "-2.50%" in output

    def test_optimization_not_possible(self):
        assert "not possible" in report.format_optimization(None)

    def test_ranking(self):
        outcome = MultiStrategyResult(
            results=[], ranking=[RankingEntry("macd", "MACD Crossover", 12.5)], best=None
        )
        output = report.format_ranking(outcome)
        assert " 1. MACD Crossover" in output
        assert "12.50" in output


class TestCliArguments:
    def test_parse_params(self):
        assert _parse_params(["fastPeriod=10", " slowPeriod = 30"]) == {
            "fastPeriod": 10.0,
            "slowPeriod": 30.0,
        }

    def test_parse_params_rejects_bare_value(self):
        with pytest.raises(ValueError):
            _parse_params(["10"])

    def test_backtest_arguments(self):
        args = _build_parser().parse_args(
            ["backtest", "--data", "prices.csv", "--strategy", "macd", "--param", "fastPeriod=8"]
        )
        assert args.command == "backtest"
        assert args.strategy == "macd"
        assert args.param == ["fastPeriod=8"]

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args([])

    def test_forces_window_must_be_positive(self):
        args = _build_parser().parse_args(["forces", "--data", "prices.csv", "--window", "5"])
        assert args.window == 5
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["forces", "--data", "prices.csv", "--window", "0"])
