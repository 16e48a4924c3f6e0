"""ForceLab: application entry point.

Exposes the FastAPI app and the CLI for force analysis, backtesting and
walk-forward optimisation over a local OHLCV file.
"""

import logging

from fastapi import FastAPI

from forcelab.api.routers import router

app = FastAPI(title="ForceLab API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("forcelab")


@app.get("/health")
async def health():
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def _parse_params(pairs: list[str]) -> dict[str, float]:
    """``["fastPeriod=10", "slowPeriod=30"]`` → ``{"fastPeriod": 10.0, ...}``."""
    params: dict[str, float] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise ValueError(f"Parameter must be KEY=VALUE, got {pair!r}")
        params[key.strip()] = float(value)
    return params


def _positive_int(value: str) -> int:
    import argparse

    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def _build_parser():
    import argparse

    parser = argparse.ArgumentParser(description="ForceLab market force analysis and backtesting")
    parser.add_argument("--env", help="Path to a .env file (default: ./.env)")
    sub = parser.add_subparsers(dest="command", required=True)

    def with_data(p):
        p.add_argument("--data", required=True, help="OHLCV file (.csv or .parquet)")
        return p

    forces = with_data(sub.add_parser("forces", help="Summarise demand / supply forces"))
    forces.add_argument("--method", choices=["A", "B", "C", "D"], help="Force method")
    forces.add_argument("--window", type=_positive_int, default=20, help="Summary window (bars)")

    backtest = with_data(sub.add_parser("backtest", help="Backtest one strategy"))
    backtest.add_argument("--strategy", required=True, help="Strategy id")
    backtest.add_argument("--param", action="append", default=[], metavar="KEY=VALUE")

    compare = with_data(sub.add_parser("compare", help="Backtest several strategies"))
    compare.add_argument("--strategies", nargs="+", help="Strategy ids (default: all)")

    optimize = with_data(sub.add_parser("optimize", help="Walk-forward optimise one strategy"))
    optimize.add_argument("--strategy", required=True, help="Strategy id")
    optimize.add_argument("--windows", type=int, help="Number of windows (3-10)")
    optimize.add_argument("--train-ratio", type=float, help="Training share (0-1)")
    optimize.add_argument("--metric", help="Optimisation metric")

    rank = with_data(sub.add_parser("rank", help="Optimise and rank several strategies"))
    rank.add_argument("--strategies", nargs="+", help="Strategy ids (default: all)")
    rank.add_argument("--metric", help="Optimisation metric")

    serve = sub.add_parser("serve", help="Run the JSON API")
    serve.add_argument("--port", type=int, help="Port (default: API_PORT)")
    serve.add_argument("--host", default="127.0.0.1")

    return parser


def _run_cli(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the requested command."""
    from dataclasses import replace

    from forcelab.backtest.engine import rank_by_total_return, run_backtest, run_multiple_backtests
    from forcelab.cli import report
    from forcelab.config import load_config
    from forcelab.data.loader import load_bars
    from forcelab.forces.calculator import calculate_forces
    from forcelab.forces.summary import summarize_forces
    from forcelab.optimize.ranker import MultiStrategyRanker
    from forcelab.optimize.walk_forward import run_walk_forward
    from forcelab.strategy.registry import list_strategies

    args = _build_parser().parse_args(argv)
    config = load_config(args.env)

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "serve":
        import uvicorn

        from forcelab.api.routers import configure_routers

        configure_routers(config)
        port = args.port or config.api_port
        logger.info("ForceLab API listening on http://%s:%d", args.host, port)
        uvicorn.run(app, host=args.host, port=port, log_level=config.log_level.lower())
        return

    bars = load_bars(args.data)
    all_ids = [s.id for s in list_strategies()]

    if args.command == "forces":
        method = args.method or config.force_method
        samples = calculate_forces(bars, method)
        summary = summarize_forces(samples, window=args.window, threshold=config.zone_threshold)
        report.format_force_summary(summary, method)

    elif args.command == "backtest":
        result = run_backtest(bars, config.backtest_config(args.strategy, _parse_params(args.param)))
        report.format_backtest(result)

    elif args.command == "compare":
        ids = args.strategies or all_ids
        results = run_multiple_backtests(bars, ids, config.backtest_config(ids[0]))
        report.format_comparison(rank_by_total_return(results))

    elif args.command == "optimize":
        opt = config.optimization_config(args.strategy)
        opt = replace(
            opt,
            num_windows=args.windows or opt.num_windows,
            train_ratio=args.train_ratio or opt.train_ratio,
            metric=args.metric or opt.metric,
        )

        def progress(done: int, total: int) -> None:
            if done == total or done % 100 == 0:
                logger.info("Optimisation progress: %d/%d backtests", done, total)

        report.format_optimization(run_walk_forward(bars, opt, progress=progress))

    elif args.command == "rank":
        ids = args.strategies or all_ids
        opt = config.optimization_config(ids[0])
        if args.metric:
            opt = replace(opt, metric=args.metric)
        report.format_ranking(MultiStrategyRanker().run(bars, ids, opt))


if __name__ == "__main__":
    _run_cli()
