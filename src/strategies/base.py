"""
Diff Strategy Base - Abstract interface for per-kind diff strategies.

A diff strategy decides whether an observed resource has drifted from the
desired one in the fields the engine owns, and if so builds the full
replacement to write back. Strategies never perform I/O.
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from resources import get_path, has_path, set_path

Path = Tuple[str, ...]


@dataclass
class DiffResult:
    """Result from a strategy's diff() call."""

    needs_update: bool = False
    replacement: Optional[Dict[str, Any]] = None
    changed_fields: Optional[List[str]] = None

    @classmethod
    def in_sync(cls) -> "DiffResult":
        return cls(needs_update=False, replacement=None, changed_fields=[])


class DiffStrategy(ABC):
    """
    Abstract base class for diff strategies.

    Strategies are registered by kind and must be deterministic: the same
    desired and observed inputs always produce the same result. They compare
    only the fields they own and carry every other observed field into the
    replacement unchanged.

    Third-party strategies are discovered via Python entry points in the
    'hubsync.diff_strategies' group.
    """

    @property
    @abstractmethod
    def kinds(self) -> List[str]:
        """Resource kinds this strategy handles."""
        pass

    @abstractmethod
    def diff(
        self, desired: Dict[str, Any], observed: Dict[str, Any]
    ) -> DiffResult:
        """
        Compare desired against observed.

        Args:
            desired: The policy-derived desired manifest.
            observed: The manifest as currently stored.

        Returns:
            DiffResult; when needs_update is set, replacement is the full
            manifest to write.
        """
        pass


class FieldOwnershipStrategy(DiffStrategy):
    """
    Strategy driven by a fixed list of owned field paths.

    Every path in ``owned_paths`` is owned outright: the desired value wins,
    and a path missing from the desired manifest is removed from the
    replacement. Labels and annotations are owned key by key: only the keys
    the desired manifest sets are compared.
    """

    owned_paths: Sequence[Path] = ()
    owned_metadata: Sequence[Path] = (("metadata",),)

    def diff(
        self, desired: Dict[str, Any], observed: Dict[str, Any]
    ) -> DiffResult:
        replacement = copy.deepcopy(observed)
        changed: List[str] = []

        for path in self.owned_paths:
            if sync_field(desired, replacement, path):
                changed.append(".".join(path))

        for path in self.owned_metadata:
            changed.extend(sync_metadata_keys(desired, replacement, path))

        changed.extend(self.diff_extra(desired, replacement))

        if not changed:
            return DiffResult.in_sync()
        return DiffResult(
            needs_update=True, replacement=replacement, changed_fields=changed
        )

    def diff_extra(
        self, desired: Dict[str, Any], replacement: Dict[str, Any]
    ) -> List[str]:
        """Hook for kind-specific fields; mutates replacement, returns changes."""
        return []


def sync_field(
    desired: Dict[str, Any], replacement: Dict[str, Any], path: Sequence[str]
) -> bool:
    """Copy one owned field from desired into replacement if it differs."""
    want = get_path(desired, path)
    have = get_path(replacement, path)
    if want == have and has_path(desired, path) == has_path(replacement, path):
        return False
    if want is None and have is None:
        return False
    set_path(replacement, path, copy.deepcopy(want))
    return True


def sync_metadata_keys(
    desired: Dict[str, Any], replacement: Dict[str, Any], meta_path: Sequence[str]
) -> List[str]:
    """
    Copy the desired label/annotation keys under ``meta_path`` into replacement.

    Keys the desired manifest does not set are left alone.
    """
    changed = []
    for section in ("labels", "annotations"):
        wanted = get_path(desired, (*meta_path, section)) or {}
        for key, value in sorted(wanted.items()):
            path = (*meta_path, section)
            current = get_path(replacement, path)
            if not isinstance(current, dict):
                current = {}
            if current.get(key) != value:
                current[key] = value
                set_path(replacement, path, current)
                changed.append(f"{'.'.join(path)}[{key}]")
    return changed
