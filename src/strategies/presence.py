"""Strategy for kinds that are only ever created, never updated."""

from typing import Any, Dict, List, Optional

from strategies.base import DiffResult, DiffStrategy

PRESENCE_ONLY_KINDS = ["Service", "Secret", "Channel", "Namespace"]


class PresenceStrategy(DiffStrategy):
    """An existing object is always considered correct."""

    def __init__(self, kinds: Optional[List[str]] = None):
        self._kinds = list(kinds or PRESENCE_ONLY_KINDS)

    @property
    def kinds(self) -> List[str]:
        return self._kinds

    def diff(
        self, desired: Dict[str, Any], observed: Dict[str, Any]
    ) -> DiffResult:
        return DiffResult.in_sync()
