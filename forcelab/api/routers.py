"""JSON API routers: /strategies, /forces, /classify, /backtest, /compare,
/optimize and /rank.

No business logic here.  Requests are converted to core types, handed to
the force calculator, backtester or optimizer, and the results returned
via their ``to_dict`` forms.  Settings omitted from a request fall back
to the ``Config`` injected at startup.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from forcelab.backtest.engine import (
    rank_by_total_return,
    run_backtest,
    run_multiple_backtests,
)
from forcelab.backtest.models import BacktestConfig
from forcelab.config import DEFAULT_CONFIG, Config
from forcelab.forces.calculator import FORCE_METHODS, calculate_forces
from forcelab.forces.diagram import classify
from forcelab.forces.summary import summarize_forces
from forcelab.models import Bar, validate_bars
from forcelab.optimize.models import OptimizationConfig
from forcelab.optimize.ranker import MultiStrategyRanker
from forcelab.optimize.walk_forward import run_walk_forward
from forcelab.strategy.registry import list_strategies, strategies_by_category

logger = logging.getLogger("forcelab.api")
router = APIRouter()

# Set via configure_routers(); request fields left as None fall back to it.
_config: Config = DEFAULT_CONFIG


def configure_routers(config: Config) -> None:
    """Inject the application configuration at startup."""
    global _config  # noqa: PLW0603
    _config = config


# ── Request models ──────────────────────────────────────────────────────


class BarIn(BaseModel):
    date: str
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


class BarsRequest(BaseModel):
    bars: list[BarIn]


class ForcesRequest(BarsRequest):
    method: Optional[str] = None
    threshold: Optional[float] = Field(default=None, gt=0)
    summary_window: int = Field(default=20, ge=1)


class ClassifyRequest(BaseModel):
    demand: float = Field(ge=-100, le=100)
    supply: float = Field(ge=-100, le=100)
    threshold: Optional[float] = Field(default=None, gt=0)


class RunSettings(BarsRequest):
    initial_capital: Optional[float] = Field(default=None, gt=0)
    allow_shorts: Optional[bool] = None
    transaction_cost_pct: Optional[float] = Field(default=None, ge=0)
    force_method: Optional[str] = None


class BacktestRequest(RunSettings):
    strategy_id: str
    params: dict[str, float] = Field(default_factory=dict)
    include_series: bool = True


class CompareRequest(RunSettings):
    strategy_ids: list[str]
    strategy_params: dict[str, dict[str, float]] = Field(default_factory=dict)


class OptimizeSettings(RunSettings):
    num_windows: Optional[int] = None
    train_ratio: Optional[float] = None
    metric: Optional[str] = None


class OptimizeRequest(OptimizeSettings):
    strategy_id: str
    parameter_ranges: dict[str, tuple[float, float, float]] = Field(default_factory=dict)
    include_series: bool = True


class RankRequest(OptimizeSettings):
    strategy_ids: Optional[list[str]] = None


# ── Helpers ─────────────────────────────────────────────────────────────


def _bars(body: BarsRequest) -> list[Bar]:
    bars = [
        Bar(date=b.date, open=b.open, high=b.high, low=b.low, close=b.close, volume=b.volume)
        for b in body.bars
    ]
    try:
        validate_bars(bars)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return bars


def _pick(value, default):
    return default if value is None else value


def _force_method(value: Optional[str]) -> str:
    method = (value or _config.force_method).strip().upper()
    if method not in FORCE_METHODS:
        raise HTTPException(
            status_code=422,
            detail=f"Unknown force method '{value}'. Available: {', '.join(FORCE_METHODS)}",
        )
    return method


def _backtest_config(body: RunSettings, strategy_id: str, params=None) -> BacktestConfig:
    return BacktestConfig(
        strategy_id=strategy_id,
        params=dict(params or {}),
        initial_capital=_pick(body.initial_capital, _config.initial_capital),
        allow_shorts=_pick(body.allow_shorts, _config.allow_shorts),
        transaction_cost_pct=_pick(body.transaction_cost_pct, _config.transaction_cost_pct),
        force_method=_force_method(body.force_method),
    )


def _optimization_config(
    body: OptimizeSettings, strategy_id: str, parameter_ranges=None
) -> OptimizationConfig:
    try:
        return OptimizationConfig(
            strategy_id=strategy_id,
            num_windows=_pick(body.num_windows, _config.num_windows),
            train_ratio=_pick(body.train_ratio, _config.train_ratio),
            metric=_pick(body.metric, _config.optimization_metric),
            initial_capital=_pick(body.initial_capital, _config.initial_capital),
            allow_shorts=_pick(body.allow_shorts, _config.allow_shorts),
            transaction_cost_pct=_pick(body.transaction_cost_pct, _config.transaction_cost_pct),
            force_method=_force_method(body.force_method),
            parameter_ranges=dict(parameter_ranges or {}),
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


# ── Endpoints ───────────────────────────────────────────────────────────


@router.get("/strategies")
async def get_strategies(category: Optional[str] = Query(default=None)):
    """Registered strategies with their parameter schemas."""
    if category is None:
        strategies = list_strategies()
    else:
        try:
            strategies = strategies_by_category(category)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
    return [s.to_dict() for s in strategies]


@router.post("/classify")
async def post_classify(body: ClassifyRequest):
    """Zone, action and quality for one demand / supply reading."""
    threshold = _pick(body.threshold, _config.zone_threshold)
    return classify(body.demand, body.supply, threshold).to_dict()


@router.post("/forces")
def post_forces(body: ForcesRequest):
    """Demand / supply per bar plus a summary of the trailing window."""
    bars = _bars(body)
    method = _force_method(body.method)
    threshold = _pick(body.threshold, _config.zone_threshold)
    samples = calculate_forces(bars, method)
    summary = summarize_forces(samples, window=body.summary_window, threshold=threshold)
    return {
        "method": method,
        "threshold": threshold,
        "samples": [s.to_dict() for s in samples],
        "summary": summary.to_dict() if summary else None,
    }


@router.post("/backtest")
def post_backtest(body: BacktestRequest):
    """Run one backtest.  Unknown strategies return an empty result."""
    bars = _bars(body)
    result = run_backtest(bars, _backtest_config(body, body.strategy_id, body.params))
    return result.to_dict(include_series=body.include_series)


@router.post("/compare")
def post_compare(body: CompareRequest):
    """Backtest several strategies on the same bars, best total return first."""
    bars = _bars(body)
    results = run_multiple_backtests(
        bars,
        body.strategy_ids,
        _backtest_config(body, body.strategy_ids[0] if body.strategy_ids else "hamilton"),
        body.strategy_params,
    )
    return [r.to_dict(include_series=False) for r in rank_by_total_return(results)]


@router.post("/optimize")
def post_optimize(body: OptimizeRequest):
    """Walk-forward optimise one strategy."""
    bars = _bars(body)
    config = _optimization_config(body, body.strategy_id, body.parameter_ranges)
    result = run_walk_forward(bars, config)
    if result is None:
        raise HTTPException(
            status_code=422,
            detail=(
                f"Cannot optimise '{body.strategy_id}': unknown strategy or "
                f"insufficient data ({len(bars)} bars, at least 200 required)"
            ),
        )
    return result.to_dict(include_series=body.include_series)


@router.post("/rank")
def post_rank(body: RankRequest):
    """Walk-forward optimise several strategies and rank them."""
    bars = _bars(body)
    strategy_ids = body.strategy_ids or [s.id for s in list_strategies()]
    config = _optimization_config(body, strategy_ids[0])
    result = MultiStrategyRanker().run(bars, strategy_ids, config)
    if not result.results:
        raise HTTPException(
            status_code=422,
            detail=f"No strategy could be optimised on {len(bars)} bars (at least 200 required)",
        )
    logger.info("Ranked %d strategies; best=%s", len(result.ranking), result.ranking[0].strategy_id)
    return result.to_dict()
