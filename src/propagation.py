"""
Secret Propagation - copies a secret from one namespace into another.

Used to make the hub's image pull secret available to components installed
outside the hub namespace. The copy is a new object: storage identity fields
are stripped and the installer's provenance labels are attached so the owning
framework can garbage-collect it later.

Propagation is one-shot. A secret already present in the target namespace is
treated as authoritative and never updated, even if the source has since
changed. Callers that need drift correction should ensure the copy through
the EnsureEngine instead.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from context import ReconcileContext
from engine import (
    REASON_ALREADY_EXISTS,
    REASON_CREATE_FAILED,
    REASON_CREATED,
    REASON_GET_FAILED,
    EnsureResult,
    ObservationState,
    ReconcileOutcome,
    observe,
)
from resources import Provenance, ResourceRef, add_labels, strip_identity
from store import NotFoundError, ResourceStore


@dataclass(frozen=True)
class SecretRecord:
    """One propagation request: which secret goes where, on whose behalf."""

    source_ref: ResourceRef
    target_namespace: str
    provenance: Provenance

    @property
    def target_ref(self) -> ResourceRef:
        return ResourceRef.secret(self.target_namespace, self.source_ref.name)

    def build_copy(self, source: Dict[str, Any]) -> Dict[str, Any]:
        """Build the target secret from the fetched source secret."""
        target = strip_identity(source)
        metadata = target["metadata"]
        metadata["namespace"] = self.target_namespace
        metadata.pop("ownerReferences", None)
        target.pop("status", None)
        add_labels(target, self.provenance.labels())
        return target


class SecretPropagator:
    """Ensures a copy of a source secret exists in a target namespace."""

    def __init__(self, store: ResourceStore, provenance: Provenance):
        self.store = store
        self.provenance = provenance

    async def propagate(
        self,
        source_ref: ResourceRef,
        target_namespace: str,
        ctx: Optional[ReconcileContext] = None,
    ) -> EnsureResult:
        """
        Copy ``source_ref`` into ``target_namespace`` if no copy exists yet.

        Returns:
            CREATED when the copy was written, NOOP when a secret with the
            same name already exists in the target namespace, FAILED when
            the source cannot be read or the copy cannot be written.

        Raises:
            ValueError: If source_ref does not refer to a Secret
        """
        if source_ref.kind != "Secret":
            raise ValueError(f"Can only propagate Secrets, got {source_ref.kind}")

        ctx = ctx or ReconcileContext()
        record = SecretRecord(source_ref, target_namespace, self.provenance)
        target_ref = record.target_ref
        log = ctx.bind(target_ref)

        source = await observe(self.store, source_ref, ctx)
        if source.state is ObservationState.ABSENT:
            error = NotFoundError("source secret does not exist", source_ref)
            log.error(f"Failed to get secret: {error}")
            return EnsureResult(
                ReconcileOutcome.FAILED,
                target_ref,
                reason=REASON_GET_FAILED,
                error=error,
            )
        if source.state is ObservationState.FAILED:
            log.error(f"Failed to get secret: {source.error}")
            return EnsureResult(
                ReconcileOutcome.FAILED,
                target_ref,
                reason=REASON_GET_FAILED,
                error=source.error,
            )

        target = record.build_copy(source.resource)

        existing = await observe(self.store, target_ref, ctx)
        if existing.state is ObservationState.FAILED:
            log.error(f"Failed to check for existing secret: {existing.error}")
            return EnsureResult(
                ReconcileOutcome.FAILED,
                target_ref,
                reason=REASON_GET_FAILED,
                error=existing.error,
            )
        if existing.state is ObservationState.FOUND:
            log.debug("Secret already present in target namespace")
            return EnsureResult(
                ReconcileOutcome.NOOP,
                target_ref,
                reason=REASON_ALREADY_EXISTS,
                resource=existing.resource,
            )

        log.info(f"Creating secret {target_ref.name} in namespace {target_namespace}")
        try:
            created = await ctx.call(target_ref, self.store.create(target))
        except Exception as e:
            log.error(f"Failed to create secret: {e}", exc_info=True)
            return EnsureResult(
                ReconcileOutcome.FAILED,
                target_ref,
                reason=REASON_CREATE_FAILED,
                error=e,
            )

        return EnsureResult(
            ReconcileOutcome.CREATED,
            target_ref,
            reason=REASON_CREATED,
            resource=created,
        )
