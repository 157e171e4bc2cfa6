"""Strategy plugin system.

Public API:
- Rule / RULES / evaluate: the live signal rule cascade
- BacktestStrategy: weighted entry-rule strategy used by backtests
- register_strategy: Decorator to register a strategy factory
- create_strategy: Factory function to build strategies by name
- list_strategies: Discover all registered strategies

Importing this package auto-registers all built-in strategies.
"""

from core.strategy.registry import (
    register_strategy,
    create_strategy,
    list_strategies,
    get_strategy_factory,
)
from core.strategy.rules import RULES, Rule, RuleContext, RuleMatch, evaluate
from core.strategy.strategies import (
    BacktestStrategy,
    Condition,
    EntryRule,
    MacdAbove,
    MacdBelow,
    MacdCrossAbove,
    MacdCrossBelow,
    RsiAbove,
    RsiBelow,
    TrendIs,
)

__all__ = [
    "register_strategy",
    "create_strategy",
    "list_strategies",
    "get_strategy_factory",
    "RULES",
    "Rule",
    "RuleContext",
    "RuleMatch",
    "evaluate",
    "BacktestStrategy",
    "Condition",
    "EntryRule",
    "MacdAbove",
    "MacdBelow",
    "MacdCrossAbove",
    "MacdCrossBelow",
    "RsiAbove",
    "RsiBelow",
    "TrendIs",
]
