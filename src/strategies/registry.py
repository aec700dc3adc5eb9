"""
Strategy Registry - Discovery and registration of diff strategies.

This module provides the central registry mapping resource kinds to the
diff strategy that handles them. New kinds register here without any
change to the ensure engine.
"""

import logging
from importlib.metadata import entry_points
from typing import Dict, List, Optional

from strategies.base import DiffStrategy

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "hubsync.diff_strategies"


class StrategyRegistry:
    """
    Central registry for diff strategies.

    Strategies are stateless, so one instance is shared by every kind it
    claims and by every concurrent reconciliation pass.
    """

    def __init__(self):
        self._strategies: Dict[str, DiffStrategy] = {}

    def register(self, strategy: DiffStrategy) -> None:
        """
        Register a strategy instance for all of its kinds.

        Args:
            strategy: The DiffStrategy instance to register
        """
        for kind in strategy.kinds:
            existing = self._strategies.get(kind)
            if existing is not None and existing is not strategy:
                logger.warning(
                    f"Overwriting diff strategy for kind {kind}: "
                    f"{type(existing).__name__} -> {type(strategy).__name__}"
                )
            self._strategies[kind] = strategy

        logger.info(
            f"Registered diff strategy {type(strategy).__name__} "
            f"(kinds: {', '.join(strategy.kinds)})"
        )

    def get(self, kind: str) -> Optional[DiffStrategy]:
        """
        Get the strategy for a kind.

        Returns:
            The DiffStrategy, or None if no strategy handles the kind
        """
        return self._strategies.get(kind)

    def has(self, kind: str) -> bool:
        """Check if a strategy is registered for the kind."""
        return kind in self._strategies

    def list_kinds(self) -> List[str]:
        """List all kinds with a registered strategy."""
        return sorted(self._strategies)


def builtin_strategies() -> List[DiffStrategy]:
    """Return instances of the strategies that ship with hubsync."""
    from strategies.deployment import DeploymentStrategy
    from strategies.presence import PresenceStrategy
    from strategies.subscription import SubscriptionStrategy

    return [DeploymentStrategy(), SubscriptionStrategy(), PresenceStrategy()]


def create_registry(discover: bool = False) -> StrategyRegistry:
    """
    Build a registry holding the built-in strategies.

    Args:
        discover: Also load strategies from installed entry points
    """
    registry = StrategyRegistry()
    for strategy in builtin_strategies():
        registry.register(strategy)
    if discover:
        discover_strategies(registry)
    return registry


def discover_strategies(registry: StrategyRegistry) -> None:
    """Load and register strategies advertised via entry points."""
    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            strategy_class = ep.load()
            registry.register(strategy_class())
        except Exception as e:
            logger.warning(f"Could not load diff strategy {ep.name}: {e}")


# Global registry instance
_registry: Optional[StrategyRegistry] = None


def get_registry() -> StrategyRegistry:
    """Get the global strategy registry singleton."""
    global _registry
    if _registry is None:
        _registry = StrategyRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None


def register_builtin_strategies() -> None:
    """
    Register all built-in strategies and discover third-party strategies
    via entry points.

    This function is called during application startup.
    """
    registry = get_registry()
    for strategy in builtin_strategies():
        registry.register(strategy)
    discover_strategies(registry)
