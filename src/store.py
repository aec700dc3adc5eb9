"""
Resource Store - the remote, versioned resource repository the engine drives.

Defines the store interface consumed by the engine, the store error taxonomy,
and an in-memory implementation used for dry runs and tests.
"""

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from resources import ResourceRef

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base class for store failures. Carries the ref the call was about."""

    def __init__(self, message: str, ref: Optional[ResourceRef] = None):
        self.message = message
        self.ref = ref
        super().__init__(f"{ref}: {message}" if ref is not None else message)


class NotFoundError(StoreError):
    """Raised where absence is fatal (e.g. a missing source secret, or
    updating an object that no longer exists)."""


class TransientStoreError(StoreError):
    """Network, timeout or backend failure. The caller decides when to retry."""


class ConflictError(TransientStoreError):
    """The object changed (or appeared) since it was observed."""


class DiscoveryError(StoreError):
    """The API discovery probe itself failed."""


class ReconcileCancelled(StoreError):
    """The reconcile context was cancelled before the call could run."""


class DeadlineExceeded(ReconcileCancelled):
    """A store call ran past the reconcile context's deadline."""


class ResourceStore(ABC):
    """
    Abstract interface to the resource store.

    Every method is a single bounded call: it either returns or raises a
    StoreError. Implementations never retry internally.
    """

    @abstractmethod
    async def get(self, ref: ResourceRef) -> Optional[Dict[str, Any]]:
        """
        Fetch a resource.

        Returns:
            The stored manifest, or None when it does not exist.

        Raises:
            StoreError: For any failure other than absence
        """
        pass

    @abstractmethod
    async def create(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a resource.

        Returns:
            The stored manifest, with identity fields assigned.

        Raises:
            ConflictError: If the resource already exists
        """
        pass

    @abstractmethod
    async def update(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        """
        Replace a resource.

        If the manifest carries metadata.resourceVersion, the update only
        succeeds when it matches the stored version.

        Raises:
            NotFoundError: If the resource does not exist
            ConflictError: If the stored version moved on
        """
        pass

    @abstractmethod
    async def supports_version(self, group_version: str) -> bool:
        """
        Whether the store currently serves an API group/version.

        Raises:
            DiscoveryError: If the discovery probe fails
        """
        pass


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class InMemoryResourceStore(ResourceStore):
    """Dict-backed store with the same versioning rules as the database store."""

    def __init__(
        self,
        resources: Optional[Iterable[Dict[str, Any]]] = None,
        served: Optional[Iterable[str]] = None,
    ):
        self._objects: Dict[ResourceRef, Dict[str, Any]] = {}
        self._versions: Dict[ResourceRef, int] = {}
        self.served: Set[str] = set(served or [])
        for resource in resources or []:
            self._insert(copy.deepcopy(resource))

    def _insert(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        ref = ResourceRef.from_manifest(resource)
        metadata = resource.setdefault("metadata", {})
        metadata.setdefault("uid", str(uuid.uuid4()))
        metadata.setdefault("creationTimestamp", _now())
        metadata["resourceVersion"] = "1"
        self._objects[ref] = resource
        self._versions[ref] = 1
        return resource

    async def get(self, ref: ResourceRef) -> Optional[Dict[str, Any]]:
        resource = self._objects.get(ref)
        if resource is None:
            return None
        return copy.deepcopy(resource)

    async def create(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        ref = ResourceRef.from_manifest(resource)
        if ref in self._objects:
            raise ConflictError("already exists", ref)

        stored = copy.deepcopy(resource)
        metadata = stored.setdefault("metadata", {})
        metadata.pop("resourceVersion", None)
        metadata.pop("uid", None)
        stored = self._insert(stored)
        logger.debug(f"Created {ref}")
        return copy.deepcopy(stored)

    async def update(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        ref = ResourceRef.from_manifest(resource)
        current = self._objects.get(ref)
        if current is None:
            raise NotFoundError("does not exist", ref)

        expected = (resource.get("metadata") or {}).get("resourceVersion")
        if expected and str(expected) != str(self._versions[ref]):
            raise ConflictError(
                f"resourceVersion {expected} is stale "
                f"(stored: {self._versions[ref]})",
                ref,
            )

        version = self._versions[ref] + 1
        stored = copy.deepcopy(resource)
        metadata = stored.setdefault("metadata", {})
        metadata["uid"] = current["metadata"]["uid"]
        metadata["creationTimestamp"] = current["metadata"].get("creationTimestamp")
        metadata["resourceVersion"] = str(version)
        self._objects[ref] = stored
        self._versions[ref] = version
        logger.debug(f"Updated {ref} to version {version}")
        return copy.deepcopy(stored)

    async def supports_version(self, group_version: str) -> bool:
        return group_version in self.served

    def list_refs(self) -> List[ResourceRef]:
        return sorted(self._objects, key=str)
