"""
Diff strategies for the ensure engine.

This package provides the per-kind strategies that decide whether an
observed resource needs an update, and the registry that maps kinds to them.
"""

from strategies.base import DiffResult, DiffStrategy, FieldOwnershipStrategy
from strategies.registry import (
    StrategyRegistry,
    create_registry,
    get_registry,
    register_builtin_strategies,
)

__all__ = [
    "DiffResult",
    "DiffStrategy",
    "FieldOwnershipStrategy",
    "StrategyRegistry",
    "create_registry",
    "get_registry",
    "register_builtin_strategies",
]
