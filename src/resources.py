"""
Resource model - identity tuples and manifest helpers.

Managed resources are plain Kubernetes-style manifest dicts
(apiVersion/kind/metadata/spec/status). This module provides the identity
types the engine keys them by, and small helpers for reading and writing
nested manifest fields.
"""

import copy
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

INSTALLER_NAME_LABEL = "installer.name"
INSTALLER_NAMESPACE_LABEL = "installer.namespace"

# Storage-record fields that identify one stored copy of an object.
IDENTITY_FIELDS = (
    "uid",
    "resourceVersion",
    "selfLink",
    "creationTimestamp",
    "generation",
    "managedFields",
)

_MISSING = object()


@dataclass(frozen=True)
class ResourceRef:
    """Identity of a managed resource, unique within the store."""

    kind: str
    namespace: str
    name: str

    @classmethod
    def from_manifest(cls, manifest: Dict[str, Any]) -> "ResourceRef":
        """
        Build a ref from a manifest's kind and metadata.

        Raises:
            ValueError: If kind or metadata.name is missing
        """
        kind = manifest.get("kind")
        metadata = manifest.get("metadata") or {}
        name = metadata.get("name")
        if not kind or not name:
            raise ValueError("Manifest must set kind and metadata.name")
        return cls(kind=kind, namespace=metadata.get("namespace") or "", name=name)

    @classmethod
    def secret(cls, namespace: str, name: str) -> "ResourceRef":
        return cls(kind="Secret", namespace=namespace, name=name)

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"


@dataclass(frozen=True)
class OwnerReference:
    """The higher-level object a desired resource belongs to."""

    api_version: str
    kind: str
    name: str
    uid: str = ""

    @property
    def has_identity(self) -> bool:
        return bool(self.uid)

    def to_manifest(self) -> Dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }


@dataclass(frozen=True)
class Provenance:
    """Records which installer caused a resource to be created."""

    name: str
    namespace: str

    def labels(self) -> Dict[str, str]:
        return {
            INSTALLER_NAME_LABEL: self.name,
            INSTALLER_NAMESPACE_LABEL: self.namespace,
        }


class DesiredResource:
    """
    A fully-specified resource payload produced by the policy layer.

    The manifest is deep-copied on construction and every accessor hands out
    copies, so a desired resource cannot change during a reconciliation pass.
    """

    __slots__ = ("_manifest", "_owner", "_ref")

    def __init__(
        self, manifest: Dict[str, Any], owner: Optional[OwnerReference] = None
    ):
        self._manifest = copy.deepcopy(manifest)
        self._owner = owner
        self._ref = ResourceRef.from_manifest(self._manifest)

    @property
    def manifest(self) -> Dict[str, Any]:
        return copy.deepcopy(self._manifest)

    @property
    def owner(self) -> Optional[OwnerReference]:
        return self._owner

    @property
    def ref(self) -> ResourceRef:
        return self._ref

    @property
    def api_version(self) -> str:
        return self._manifest.get("apiVersion", "")

    def __repr__(self) -> str:
        return f"DesiredResource({self._ref})"


def get_path(obj: Dict[str, Any], path: Sequence[str], default: Any = None) -> Any:
    """Read a nested field; returns default when any segment is missing."""
    current: Any = obj
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def has_path(obj: Dict[str, Any], path: Sequence[str]) -> bool:
    return get_path(obj, path, _MISSING) is not _MISSING


def set_path(obj: Dict[str, Any], path: Sequence[str], value: Any) -> None:
    """
    Write a nested field, creating intermediate dicts.

    Parents that are not dicts (a stored null, for example) are replaced.
    A value of None removes the field instead.
    """
    *parents, leaf = path
    current = obj
    for key in parents:
        if not isinstance(current.get(key), dict):
            if value is None:
                return
            current[key] = {}
        current = current[key]
    if value is None:
        current.pop(leaf, None)
    else:
        current[leaf] = value


def strip_identity(manifest: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of the manifest without storage identity/versioning fields."""
    stripped = copy.deepcopy(manifest)
    metadata = stripped.setdefault("metadata", {})
    for field_name in IDENTITY_FIELDS:
        metadata.pop(field_name, None)
    return stripped


def add_labels(manifest: Dict[str, Any], labels: Dict[str, str]) -> None:
    """Merge labels into a manifest's metadata in place."""
    metadata = manifest.setdefault("metadata", {})
    existing = metadata.get("labels") or {}
    existing.update(labels)
    metadata["labels"] = existing

