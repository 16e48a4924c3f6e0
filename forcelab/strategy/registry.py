"""Strategy registry, keyed by strategy id.

Iteration order is the presentation order used by ``/strategies`` and
by multi-strategy runs when no explicit list is given.
"""

from typing import Optional

from forcelab.strategy.base import CATEGORIES, Strategy
from forcelab.strategy.hybrid import HAMILTON, RSI_MACD_COMBO
from forcelab.strategy.mean_reversion import (
    BOLLINGER,
    MEAN_REVERSION_VOL,
    RSI_REVERSION,
)
from forcelab.strategy.momentum import (
    DUAL_MOMENTUM,
    MACD_CROSSOVER,
    TS_MOMENTUM,
    VOLATILITY_BREAKOUT,
    VOLUME_BREAKOUT,
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


STRATEGY_REGISTRY: dict[str, Strategy] = {
    s.id: s
    for s in (
        HAMILTON,
        MA_CROSSOVER,
        RSI_REVERSION,
        MACD_CROSSOVER,
        BOLLINGER,
        ADX_TREND,
        DONCHIAN_BREAKOUT,
        TRIPLE_MA,
        RSI_MACD_COMBO,
        MEAN_REVERSION_VOL,
        VOLUME_BREAKOUT,
        DUAL_MOMENTUM,
        TS_MOMENTUM,
        KELTNER_BREAKOUT,
        SUPERTREND,
        VOLATILITY_BREAKOUT,
        TREND_STRENGTH,
    )
}


def get_strategy(strategy_id: str) -> Strategy:
    """Look up a strategy by registry key.

    Raises ``KeyError`` if the strategy id is not registered.
    """
    if strategy_id not in STRATEGY_REGISTRY:
        raise KeyError(
            f"Unknown strategy '{strategy_id}'. "
            f"Available: {', '.join(STRATEGY_REGISTRY.keys())}"
        )
    return STRATEGY_REGISTRY[strategy_id]


def find_strategy(strategy_id: str) -> Optional[Strategy]:
    return STRATEGY_REGISTRY.get(strategy_id)


def list_strategies() -> list[Strategy]:
    return list(STRATEGY_REGISTRY.values())


def strategies_by_category(category: str) -> list[Strategy]:
    """Registered strategies in *category*, in registry order.

    Raises ``ValueError`` for a category outside ``CATEGORIES``.
    """
    if category not in CATEGORIES:
        raise ValueError(
            f"Unknown category '{category}'. Available: {', '.join(CATEGORIES)}"
        )
    return [s for s in STRATEGY_REGISTRY.values() if s.category == category]
