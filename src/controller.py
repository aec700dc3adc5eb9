"""
Hub Reconciler - one reconciliation pass for a MultiClusterHub.

Runs the per-pass sequence: make the image pull secret available to the
pull-secret namespace, then ensure each desired resource, holding back the
ones whose API group is not served yet. The hosting framework calls
``reconcile`` on every trigger and acts on the returned RequeueSignal; this
module never loops, sleeps or retries on its own.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from config import EngineConfig
from context import ReconcileContext
from engine import (
    REASON_NOT_READY,
    EnsureEngine,
    EnsureResult,
    ReconcileOutcome,
    RequeueSignal,
)
from policy import CacheSpec, HubSpec, desired_resources, namespace_manifest
from propagation import SecretPropagator
from readiness import ReadinessGate
from resources import DesiredResource
from store import ResourceStore
from strategies.registry import StrategyRegistry

logger = logging.getLogger(__name__)


@dataclass
class PassResult:
    """Result of one reconciliation pass."""

    results: List[EnsureResult] = field(default_factory=list)
    requeue: RequeueSignal = field(default_factory=RequeueSignal.done)
    duration_seconds: float = 0.0

    def _count(self, outcome: ReconcileOutcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)

    @property
    def resources_created(self) -> int:
        return self._count(ReconcileOutcome.CREATED)

    @property
    def resources_updated(self) -> int:
        return self._count(ReconcileOutcome.UPDATED)

    @property
    def resources_failed(self) -> int:
        return self._count(ReconcileOutcome.FAILED)

    @property
    def success(self) -> bool:
        return self.requeue.error is None


def merge_signals(signals: List[RequeueSignal]) -> RequeueSignal:
    """
    Combine the signals of a pass into one.

    The first error wins; otherwise the shortest requested delay.
    """
    for signal in signals:
        if signal.error is not None:
            return signal
    delays = [s.after for s in signals if s.should_requeue]
    if delays:
        return RequeueSignal.requeue_after(min(delays))
    return RequeueSignal.done()


class HubReconciler:
    """
    Runs reconciliation passes for hubs.

    Holds no per-hub state, so passes for different hubs may run
    concurrently on one instance.
    """

    def __init__(
        self,
        store: ResourceStore,
        registry: Optional[StrategyRegistry] = None,
        config: Optional[EngineConfig] = None,
        cache: Optional[CacheSpec] = None,
    ):
        self.store = store
        self.config = config or EngineConfig()
        self.cache = cache or CacheSpec()
        self.engine = EnsureEngine(store, registry)
        self.gate = ReadinessGate(store, self.config.readiness_requeue_after)

    def new_context(self) -> ReconcileContext:
        return ReconcileContext.with_timeout(self.config.pass_timeout)

    async def reconcile(
        self, hub: HubSpec, ctx: Optional[ReconcileContext] = None
    ) -> PassResult:
        """
        Run one pass for ``hub``.

        A failed step does not stop later steps; the merged signal reports
        the first error.
        """
        ctx = ctx or self.new_context()
        log = ctx.bind()
        start_time = time.monotonic()
        result = PassResult()
        signals: List[RequeueSignal] = []

        log.info(f"Reconciling hub {hub.namespace}/{hub.name}")

        if hub.pull_secret_ref is not None:
            for step in await self._propagate_pull_secret(hub, ctx):
                result.results.append(step)
                signals.append(step.requeue_signal())

        ready_cache: Dict[str, RequeueSignal] = {}
        for desired in desired_resources(hub, self.cache):
            gate_signal = await self._gate(desired, ctx, ready_cache)
            if gate_signal is not None:
                signals.append(gate_signal)
                outcome = (
                    ReconcileOutcome.FAILED
                    if gate_signal.error is not None
                    else ReconcileOutcome.NOOP
                )
                result.results.append(
                    EnsureResult(
                        outcome,
                        desired.ref,
                        reason=REASON_NOT_READY,
                        error=gate_signal.error,
                    )
                )
                continue

            ensured = await self.engine.ensure(desired, ctx)
            result.results.append(ensured)
            signals.append(ensured.requeue_signal())

        result.requeue = merge_signals(signals)
        result.duration_seconds = time.monotonic() - start_time

        if result.success:
            log.info(
                f"Reconciled hub {hub.name}: {result.resources_created} created, "
                f"{result.resources_updated} updated"
            )
        else:
            log.error(
                f"Reconcile of hub {hub.name} failed "
                f"({result.resources_failed} failures): {result.requeue.error}"
            )
        return result

    async def _propagate_pull_secret(
        self, hub: HubSpec, ctx: ReconcileContext
    ) -> List[EnsureResult]:
        target_namespace = self.config.pull_secret_namespace
        steps = [
            await self.engine.ensure(
                DesiredResource(namespace_manifest(target_namespace)), ctx
            )
        ]
        if steps[0].failed:
            return steps

        propagator = SecretPropagator(self.store, hub.provenance)
        steps.append(
            await propagator.propagate(hub.pull_secret_ref, target_namespace, ctx)
        )
        return steps

    async def _gate(
        self,
        desired: DesiredResource,
        ctx: ReconcileContext,
        ready_cache: Dict[str, RequeueSignal],
    ) -> Optional[RequeueSignal]:
        """Return a signal when ``desired`` must wait, None when it may proceed."""
        group_version = desired.api_version
        if group_version not in self.config.gated_group_versions:
            return None

        if group_version not in ready_cache:
            ready_cache[group_version] = await self.gate.check_ready(group_version, ctx)

        signal = ready_cache[group_version]
        if signal.should_requeue or signal.error is not None:
            return signal
        return None
