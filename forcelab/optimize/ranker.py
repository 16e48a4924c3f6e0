"""Multi-strategy walk-forward ranking."""

import logging
import math
from dataclasses import replace
from typing import Optional

from forcelab.models import Bar
from forcelab.optimize.models import (
    MultiStrategyResult,
    OptimizationConfig,
    OptimizationResult,
    RankingEntry,
)
from forcelab.optimize.walk_forward import WalkForwardOptimizer

logger = logging.getLogger("forcelab.optimize")


def composite_score(result: OptimizationResult) -> float:
    """``avg_test_sharpe × consistency / (overfit_ratio + 1)``.

    An infinite or zero denominator scores 0.
    """
    denominator = result.overfit_ratio + 1
    if denominator == 0 or not math.isfinite(denominator):
        return 0.0
    score = result.avg_test_sharpe * result.consistency_score / denominator
    return score if math.isfinite(score) else 0.0


class MultiStrategyRanker:
    """Runs the walk-forward optimizer per strategy and ranks the results."""

    def __init__(self, optimizer: Optional[WalkForwardOptimizer] = None) -> None:
        self._optimizer = optimizer or WalkForwardOptimizer()

    def run(
        self,
        bars: list[Bar],
        strategy_ids: list[str],
        base_config: Optional[OptimizationConfig] = None,
    ) -> MultiStrategyResult:
        """Optimise each strategy in *strategy_ids* and rank by composite score.

        Strategies the optimizer returns ``None`` for are skipped.  Equal
        scores keep the order of *strategy_ids*.
        """
        base = base_config or OptimizationConfig()
        results: list[OptimizationResult] = []
        for sid in strategy_ids:
            result = self._optimizer.run(bars, replace(base, strategy_id=sid))
            if result is None:
                logger.info("Skipping %s: optimizer returned no result", sid)
                continue
            results.append(result)

        ranking = sorted(
            (RankingEntry(r.strategy_id, r.strategy_name, composite_score(r)) for r in results),
            key=lambda e: e.score,
            reverse=True,
        )
        best = None
        if ranking:
            best = next(r for r in results if r.strategy_id == ranking[0].strategy_id)
        return MultiStrategyResult(results=results, ranking=ranking, best=best)
