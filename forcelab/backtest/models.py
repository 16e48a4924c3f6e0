"""Backtest data models: run configuration, trades, equity curve, results."""

import math
from dataclasses import dataclass, field, fields
from typing import Any, Optional

from forcelab.strategy.base import Signal


def json_safe(value: Any) -> Any:
    """Non-finite floats become ``None`` so results serialise as JSON."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


@dataclass(frozen=True)
class BacktestConfig:
    """Per-run settings.  ``transaction_cost_pct`` is a percent per fill.

    ``force_method`` selects how force-driven strategies derive demand /
    supply from plain bars.
    """

    strategy_id: str = "hamilton"
    params: dict[str, float] = field(default_factory=dict)
    initial_capital: float = 10_000.0
    allow_shorts: bool = False
    transaction_cost_pct: float = 0.1
    force_method: str = "B"


@dataclass(frozen=True)
class Trade:
    """A closed position.  ``return_pct`` is the raw price move, before costs."""

    entry_date: str
    entry_price: float
    exit_date: str
    exit_price: float
    type: str  # "LONG" | "SHORT"
    return_pct: float
    holding_period: int

    def to_dict(self) -> dict:
        return {
            "entry_date": self.entry_date,
            "entry_price": self.entry_price,
            "exit_date": self.exit_date,
            "exit_price": self.exit_price,
            "type": self.type,
            "return_pct": json_safe(self.return_pct),
            "holding_period": self.holding_period,
        }


@dataclass(frozen=True)
class EquityPoint:
    date: str
    strategy_equity: float
    buy_and_hold_equity: float
    drawdown_pct: float

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "strategy_equity": json_safe(self.strategy_equity),
            "buy_and_hold_equity": json_safe(self.buy_and_hold_equity),
            "drawdown_pct": json_safe(self.drawdown_pct),
        }


@dataclass(frozen=True)
class BacktestResult:
    """Everything one backtest run produces.

    Percent-valued fields (returns, drawdowns, volatility, win rate,
    average win/loss) are in percent units.  ``profit_factor`` is
    ``inf`` when there are winning trades and no losing ones.
    """

    strategy_id: str
    strategy_name: str

    total_return: float = 0.0
    buy_and_hold_return: float = 0.0
    excess_return: float = 0.0
    annualized_return: float = 0.0
    annualized_buy_and_hold: float = 0.0

    max_drawdown: float = 0.0
    max_drawdown_buy_and_hold: float = 0.0
    volatility: float = 0.0
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    calmar_ratio: float = 0.0

    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    profit_factor: float = 0.0
    avg_holding_period: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0

    final_equity: float = 0.0
    equity_curve: list[EquityPoint] = field(default_factory=list)
    trades: list[Trade] = field(default_factory=list)
    signals: list[Signal] = field(default_factory=list)

    start_date: str = ""
    end_date: str = ""
    trading_days: int = 0

    @classmethod
    def empty(cls, strategy_id: str, strategy_name: Optional[str] = None) -> "BacktestResult":
        """Zeroed result for insufficient data or an unknown strategy."""
        return cls(strategy_id=strategy_id, strategy_name=strategy_name or "Unknown")

    @property
    def is_empty(self) -> bool:
        return self.trading_days == 0

    def to_dict(self, include_series: bool = True) -> dict:
        """JSON-safe dict.  Series are omitted when *include_series* is false."""
        series = {"equity_curve", "trades", "signals"}
        out: dict[str, Any] = {}
        for f in fields(self):
            if f.name in series:
                continue
            out[f.name] = json_safe(getattr(self, f.name))
        if include_series:
            out["equity_curve"] = [p.to_dict() for p in self.equity_curve]
            out["trades"] = [t.to_dict() for t in self.trades]
            out["signals"] = [s.value for s in self.signals]
        return out
