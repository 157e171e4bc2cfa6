"""Strategy registry for discovering and instantiating backtest strategies.

Usage:
    @register_strategy("my_strategy")
    def my_strategy() -> BacktestStrategy:
        ...

    strategy = create_strategy("my_strategy", stop_loss_percent=3)
    strategies = list_strategies()
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from core.strategy.strategies import BacktestStrategy

logger = logging.getLogger(__name__)

StrategyFactory = Callable[[], "BacktestStrategy"]

# Global registry: strategy_name -> factory
_REGISTRY: dict[str, StrategyFactory] = {}


def register_strategy(name: str):
    """Decorator to register a strategy factory under a given name.

    Args:
        name: Unique strategy name (e.g., 'rsi_oversold_long').

    Returns:
        Decorator that registers the factory and returns it unchanged.

    Raises:
        ValueError: If a strategy with the same name is already registered.
    """

    def decorator(factory: StrategyFactory) -> StrategyFactory:
        if name in _REGISTRY:
            raise ValueError(
                f"Strategy '{name}' is already registered by {_REGISTRY[name].__name__}"
            )
        _REGISTRY[name] = factory
        logger.debug("Registered strategy: %s -> %s", name, factory.__name__)
        return factory

    return decorator


def create_strategy(name: str, **overrides: Any) -> BacktestStrategy:
    """Create a strategy by name, optionally overriding fields.

    Args:
        name: Registered strategy name.
        **overrides: Field values replacing the strategy's defaults
            (e.g. ``stop_loss_percent=3``).

    Raises:
        KeyError: If no strategy is registered under the given name.
    """
    strategy = get_strategy_factory(name)()
    if overrides:
        strategy = replace(strategy, **overrides)
    return strategy


def get_strategy_factory(name: str) -> StrategyFactory:
    """Get the strategy factory by name (without building it).

    Raises:
        KeyError: If no strategy is registered under the given name.
    """
    factory = _REGISTRY.get(name)
    if factory is None:
        available = ", ".join(sorted(_REGISTRY.keys())) or "(none)"
        raise KeyError(
            f"Unknown strategy '{name}'. Available: {available}"
        )
    return factory


def list_strategies() -> list[str]:
    """Return a sorted list of registered strategy names."""
    return sorted(_REGISTRY.keys())
