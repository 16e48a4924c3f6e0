"""ForceLab — application configuration.

Loads .env variables into a typed config object.  Nothing is required;
every variable has a default.  Malformed values are rejected on load.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from forcelab.backtest.models import BacktestConfig
from forcelab.forces.calculator import FORCE_METHODS
from forcelab.optimize.models import METRICS, OptimizationConfig


_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    force_method: str
    zone_threshold: float
    initial_capital: float
    transaction_cost_pct: float
    allow_shorts: bool
    num_windows: int
    train_ratio: float
    optimization_metric: str
    log_level: str
    api_port: int

    def backtest_config(
        self,
        strategy_id: str,
        params: Optional[dict[str, float]] = None,
    ) -> BacktestConfig:
        """Explicit per-run backtest settings for *strategy_id*."""
        return BacktestConfig(
            strategy_id=strategy_id,
            params=dict(params or {}),
            initial_capital=self.initial_capital,
            allow_shorts=self.allow_shorts,
            transaction_cost_pct=self.transaction_cost_pct,
            force_method=self.force_method,
        )

    def optimization_config(self, strategy_id: str) -> OptimizationConfig:
        """Explicit per-run walk-forward settings for *strategy_id*."""
        return OptimizationConfig(
            strategy_id=strategy_id,
            num_windows=self.num_windows,
            train_ratio=self.train_ratio,
            metric=self.optimization_metric,
            initial_capital=self.initial_capital,
            allow_shorts=self.allow_shorts,
            transaction_cost_pct=self.transaction_cost_pct,
            force_method=self.force_method,
        )


def _env_float(name: str, default: str) -> float:
    raw = os.environ.get(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: str) -> int:
    raw = os.environ.get(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: str) -> bool:
    raw = os.environ.get(name, default).strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the variable when a value
    cannot be parsed or is out of range.
    """
    load_dotenv(dotenv_path=env_path)

    force_method = os.environ.get("FORCE_METHOD", "B").strip().upper()
    if force_method not in FORCE_METHODS:
        raise ValueError(
            f"FORCE_METHOD must be one of {', '.join(FORCE_METHODS)}, "
            f"got {force_method!r}"
        )

    zone_threshold = _env_float("ZONE_THRESHOLD", "30")
    if zone_threshold <= 0:
        raise ValueError(f"ZONE_THRESHOLD must be positive, got {zone_threshold}")

    initial_capital = _env_float("INITIAL_CAPITAL", "10000")
    if initial_capital <= 0:
        raise ValueError(
            f"INITIAL_CAPITAL must be positive, got {initial_capital}"
        )

    num_windows = _env_int("WF_NUM_WINDOWS", "5")
    if not 3 <= num_windows <= 10:
        raise ValueError(f"WF_NUM_WINDOWS must be in 3..10, got {num_windows}")

    train_ratio = _env_float("WF_TRAIN_RATIO", "0.7")
    if not 0 < train_ratio < 1:
        raise ValueError(f"WF_TRAIN_RATIO must be in (0, 1), got {train_ratio}")

    metric = os.environ.get("WF_METRIC", "sharpe")
    if metric not in METRICS:
        raise ValueError(
            f"WF_METRIC must be one of {', '.join(METRICS)}, got {metric!r}"
        )

    return Config(
        force_method=force_method,
        zone_threshold=zone_threshold,
        initial_capital=initial_capital,
        transaction_cost_pct=_env_float("TRANSACTION_COST_PCT", "0.1"),
        allow_shorts=_env_bool("ALLOW_SHORTS", "false"),
        num_windows=num_windows,
        train_ratio=train_ratio,
        optimization_metric=metric,
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=_env_int("API_PORT", "8080"),
    )


DEFAULT_CONFIG = Config(
    force_method="B",
    zone_threshold=30.0,
    initial_capital=10_000.0,
    transaction_cost_pct=0.1,
    allow_shorts=False,
    num_windows=5,
    train_ratio=0.7,
    optimization_metric="sharpe",
    log_level="INFO",
    api_port=8080,
)
