"""CLI reports: plain-text summaries of forces, backtests and optimisations."""

import math
from typing import Optional

from forcelab.backtest.models import BacktestResult
from forcelab.forces.diagram import zone_name
from forcelab.forces.summary import ForceSummary
from forcelab.optimize.models import MultiStrategyResult, OptimizationResult, metric_display_name

_RULE = "──────────────────────────────────────────────────"


def _title(text: str) -> str:
    return f" {text} ".center(len(_RULE), "─")


def _pct(value: float) -> str:
    return f"{value:+.2f}%"


def _ratio(value: float) -> str:
    return "∞" if math.isinf(value) else f"{value:.2f}"


def format_force_summary(summary: Optional[ForceSummary], method: str) -> str:
    """Format and print the trailing-window force summary."""
    if summary is None:
        output = "No bars to summarise."
        print(output)
        return output

    signal = summary.signal
    window = summary.end_index - summary.start_index + 1
    lines = [
        _title(f"Forces (method {method})"),
        f"  Bars:            {summary.start_index}..{summary.end_index} ({window})",
        f"  Bullish:         {summary.bullish_count}",
        f"  Bearish:         {summary.bearish_count}",
        f"  Neutral:         {summary.neutral_count}",
        f"  Avg Demand:      {summary.avg_demand:.1f}",
        f"  Avg Supply:      {summary.avg_supply:.1f}",
        f"  Zone:            {zone_name(signal.zone)}",
        f"  Action:          {signal.action.value}",
        f"  Quality:         {signal.quality.value}",
        _RULE,
    ]
    output = "\n".join(lines)
    print(output)
    return output


def format_backtest(result: BacktestResult) -> str:
    """Format and print one backtest result.

    Returns:
        The formatted string (also printed to stdout).
    """
    if result.is_empty:
        output = f"{result.strategy_name} ({result.strategy_id}): no result (insufficient data or unknown strategy)"
        print(output)
        return output

    lines = [
        _title(result.strategy_name),
        f"  Period:          {result.start_date} → {result.end_date} ({result.trading_days} bars)",
        f"  Final Equity:    ${result.final_equity:,.2f}",
        f"  Total Return:    {_pct(result.total_return)}",
        f"  Buy & Hold:      {_pct(result.buy_and_hold_return)}",
        f"  Excess Return:   {_pct(result.excess_return)}",
        f"  Annualised:      {_pct(result.annualized_return)}",
        f"  Max Drawdown:    {result.max_drawdown:.2f}%",
        f"  Volatility:      {result.volatility:.2f}%",
        f"  Sharpe:          {result.sharpe_ratio:.2f}",
        f"  Sortino:         {result.sortino_ratio:.2f}",
        f"  Calmar:          {result.calmar_ratio:.2f}",
        f"  Trades:          {result.total_trades} ({result.winning_trades}W / {result.losing_trades}L)",
        f"  Win Rate:        {result.win_rate:.1f}%",
        f"  Profit Factor:   {_ratio(result.profit_factor)}",
        f"  Avg Hold:        {result.avg_holding_period:.1f} bars",
        _RULE,
    ]
    output = "\n".join(lines)
    print(output)
    return output


def format_comparison(results: list[BacktestResult]) -> str:
    """Format and print a one-line-per-strategy comparison table."""
    lines = [
        _title("Strategy Comparison"),
        f"  {'Strategy':<28}{'Return':>10}{'Sharpe':>8}{'MaxDD':>8}{'Trades':>8}",
    ]
    for r in results:
        lines.append(
            f"  {r.strategy_name[:27]:<28}{_pct(r.total_return):>10}"
            f"{r.sharpe_ratio:>8.2f}{r.max_drawdown:>7.1f}%{r.total_trades:>8}"
        )
    lines.append(_RULE)
    output = "\n".join(lines)
    print(output)
    return output


def format_optimization(result: Optional[OptimizationResult]) -> str:
    """Format and print a walk-forward result, one line per window."""
    if result is None:
        output = "Optimisation not possible: unknown strategy or fewer than 200 bars."
        print(output)
        return output

    metric = metric_display_name(result.metric)
    params = ", ".join(f"{k}={v}" for k, v in result.recommended_params.items()) or "(none)"
    lines = [
        _title(f"Walk-Forward: {result.strategy_name}"),
        f"  Metric:          {metric}",
        f"  Recommended:     {params}",
        f"  Avg Test Return: {_pct(result.avg_test_return)}",
        f"  Avg Test Sharpe: {result.avg_test_sharpe:.2f}",
        f"  Overfit Ratio:   {_ratio(result.overfit_ratio)}",
        f"  Consistency:     {result.consistency_score:.0f}%",
        f"  Total Return:    {_pct(result.total_strategy_return)} vs B&H {_pct(result.total_buy_hold_return)}",
        f"  Beats B&H:       {result.win_rate_vs_buy_hold:.0f}% of windows",
        f"  Recommendable:   {'yes' if result.recommendable else 'no'}",
    ]
    for w in result.window_results:
        mark = "+" if w.beats_buy_hold else "-"
        lines.append(
            f"  [{w.window_index}] {w.test_start} → {w.test_end}  "
            f"test {_pct(w.test_return)}  B&H {_pct(w.buy_hold_return)} {mark}"
        )
    lines.append(_RULE)
    output = "\n".join(lines)
    print(output)
    return output


def format_ranking(result: MultiStrategyResult) -> str:
    """Format and print the composite-score ranking."""
    lines = [_title("Strategy Ranking")]
    if not result.ranking:
        lines.append("  No strategy could be optimised.")
    for i, entry in enumerate(result.ranking, start=1):
        lines.append(f"  {i:>2}. {entry.strategy_name:<32}{entry.score:>10.2f}")
    lines.append(_RULE)
    output = "\n".join(lines)
    print(output)
    return output
