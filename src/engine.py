"""
Ensure Engine - converges a single managed resource toward its desired state.

For each desired resource the engine observes the store, then either creates
the resource, updates it with the replacement its kind's diff strategy
computes, or leaves it alone. It holds no state between calls and never
retries: every failure comes back to the caller as a FAILED result.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from context import ReconcileContext
from resources import DesiredResource, ResourceRef
from store import ResourceStore
from strategies.registry import StrategyRegistry, get_registry

REASON_CREATED = "Created"
REASON_UPDATED = "Updated"
REASON_IN_SYNC = "InSync"
REASON_UNSUPPORTED_KIND = "UnsupportedKind"
REASON_IDENTITY_MISSING = "IdentityMissing"
REASON_ALREADY_EXISTS = "AlreadyExists"
REASON_NOT_READY = "ReadinessUnavailable"
REASON_GET_FAILED = "GetFailed"
REASON_CREATE_FAILED = "CreateFailed"
REASON_UPDATE_FAILED = "UpdateFailed"
REASON_DIFF_FAILED = "DiffFailed"


class ReconcileOutcome(Enum):
    """Outcome of one ensure operation."""

    CREATED = "created"
    UPDATED = "updated"
    NOOP = "noop"
    FAILED = "failed"


@dataclass
class RequeueSignal:
    """
    Tells the caller whether and when to reconcile again.

    An error means the pass failed and the caller's own backoff applies;
    should_requeue with ``after`` is an expected wait, not a failure.
    """

    should_requeue: bool = False
    after: float = 0
    error: Optional[Exception] = None

    @classmethod
    def done(cls) -> "RequeueSignal":
        return cls()

    @classmethod
    def requeue_after(cls, seconds: float) -> "RequeueSignal":
        return cls(should_requeue=True, after=seconds)

    @classmethod
    def failed(cls, error: Exception) -> "RequeueSignal":
        return cls(should_requeue=False, after=0, error=error)


@dataclass
class EnsureResult:
    """Result of ensuring (or propagating) one resource."""

    outcome: ReconcileOutcome
    ref: ResourceRef
    reason: str = ""
    error: Optional[Exception] = None
    resource: Optional[Dict[str, Any]] = None

    @property
    def failed(self) -> bool:
        return self.outcome is ReconcileOutcome.FAILED

    @property
    def changed(self) -> bool:
        return self.outcome in (ReconcileOutcome.CREATED, ReconcileOutcome.UPDATED)

    def requeue_signal(self) -> RequeueSignal:
        if self.failed:
            return RequeueSignal.failed(self.error)
        return RequeueSignal.done()


class ObservationState(Enum):
    FOUND = "found"
    ABSENT = "absent"
    FAILED = "failed"


@dataclass
class Observation:
    """Tagged result of fetching a resource: found, absent or failed."""

    state: ObservationState
    resource: Optional[Dict[str, Any]] = None
    error: Optional[Exception] = None

    @classmethod
    def found(cls, resource: Dict[str, Any]) -> "Observation":
        return cls(state=ObservationState.FOUND, resource=resource)

    @classmethod
    def absent(cls) -> "Observation":
        return cls(state=ObservationState.ABSENT)

    @classmethod
    def failed(cls, error: Exception) -> "Observation":
        return cls(state=ObservationState.FAILED, error=error)


async def observe(
    store: ResourceStore, ref: ResourceRef, ctx: ReconcileContext
) -> Observation:
    """Fetch ``ref`` from the store as an explicit Observation."""
    try:
        resource = await ctx.call(ref, store.get(ref))
    except Exception as e:
        return Observation.failed(e)
    if resource is None:
        return Observation.absent()
    return Observation.found(resource)


class EnsureEngine:
    """
    Orchestrates get -> create | diff -> update | no-op for one resource.

    Safe to share between concurrent passes: the only state is the store
    handle and the (read-only) strategy registry.
    """

    def __init__(
        self,
        store: ResourceStore,
        registry: Optional[StrategyRegistry] = None,
    ):
        self.store = store
        self.registry = registry or get_registry()

    async def ensure(
        self, desired: DesiredResource, ctx: Optional[ReconcileContext] = None
    ) -> EnsureResult:
        """
        Ensure the store holds ``desired``.

        Args:
            desired: The desired resource
            ctx: Request context carrying the deadline and logger

        Returns:
            EnsureResult with outcome CREATED, UPDATED, NOOP or FAILED. A
            FAILED result carries the underlying error unmodified.
        """
        ctx = ctx or ReconcileContext()
        ref = desired.ref
        log = ctx.bind(ref)

        observation = await observe(self.store, ref, ctx)

        if observation.state is ObservationState.FAILED:
            log.error(f"Failed to get resource: {observation.error}")
            return EnsureResult(
                ReconcileOutcome.FAILED,
                ref,
                reason=REASON_GET_FAILED,
                error=observation.error,
            )

        if observation.state is ObservationState.ABSENT:
            return await self._create(desired, ctx)

        strategy = self.registry.get(ref.kind)
        if strategy is None:
            log.warning(f"No diff strategy for kind {ref.kind}; leaving it alone")
            return EnsureResult(
                ReconcileOutcome.NOOP,
                ref,
                reason=REASON_UNSUPPORTED_KIND,
                resource=observation.resource,
            )

        try:
            diff = strategy.diff(desired.manifest, observation.resource)
        except Exception as e:
            log.error(f"Failed to diff resource: {e}", exc_info=True)
            return EnsureResult(
                ReconcileOutcome.FAILED, ref, reason=REASON_DIFF_FAILED, error=e
            )

        if not diff.needs_update:
            log.debug("Resource is in sync")
            return EnsureResult(
                ReconcileOutcome.NOOP,
                ref,
                reason=REASON_IN_SYNC,
                resource=observation.resource,
            )

        changed = ", ".join(diff.changed_fields or [])
        log.info(f"Updating resource (changed: {changed})")
        try:
            updated = await ctx.call(ref, self.store.update(diff.replacement))
        except Exception as e:
            log.error(f"Failed to update resource: {e}", exc_info=True)
            return EnsureResult(
                ReconcileOutcome.FAILED, ref, reason=REASON_UPDATE_FAILED, error=e
            )

        return EnsureResult(
            ReconcileOutcome.UPDATED, ref, reason=REASON_UPDATED, resource=updated
        )

    async def _create(
        self, desired: DesiredResource, ctx: ReconcileContext
    ) -> EnsureResult:
        ref = desired.ref
        log = ctx.bind(ref)

        owner = desired.owner
        if owner is not None and not owner.has_identity:
            log.info(
                f"Owner {owner.kind}/{owner.name} has no uid yet; "
                f"deferring creation"
            )
            return EnsureResult(
                ReconcileOutcome.NOOP, ref, reason=REASON_IDENTITY_MISSING
            )

        try:
            created = await ctx.call(ref, self.store.create(desired.manifest))
        except Exception as e:
            log.error(f"Failed to create resource: {e}", exc_info=True)
            return EnsureResult(
                ReconcileOutcome.FAILED, ref, reason=REASON_CREATE_FAILED, error=e
            )

        log.info("Created resource")
        return EnsureResult(
            ReconcileOutcome.CREATED, ref, reason=REASON_CREATED, resource=created
        )
