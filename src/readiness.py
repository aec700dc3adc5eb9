"""
Readiness Gate - waits for a dependent API group/version to be served.

During bootstrap the API surfaces some resources depend on (channels and
subscriptions, for example) appear some time after the hub itself. The gate
turns "not served yet" into a fixed requeue-after signal rather than an error.
"""

from typing import Optional

from context import ReconcileContext
from engine import RequeueSignal
from store import ResourceStore

DEFAULT_REQUEUE_AFTER = 10


class ReadinessGate:
    """Checks API availability without blocking or retrying."""

    def __init__(
        self, store: ResourceStore, requeue_after: float = DEFAULT_REQUEUE_AFTER
    ):
        self.store = store
        self.requeue_after = requeue_after

    async def check_ready(
        self, group_version: str, ctx: Optional[ReconcileContext] = None
    ) -> RequeueSignal:
        """
        Check whether ``group_version`` is served.

        Returns:
            RequeueSignal.done() when served; should_requeue with
            ``requeue_after`` seconds when not yet served; an error signal
            (should_requeue False) when the discovery probe itself fails.
        """
        ctx = ctx or ReconcileContext()
        log = ctx.bind()

        try:
            served = await ctx.call(None, self.store.supports_version(group_version))
        except Exception as e:
            log.error(f"Discovery check for {group_version} failed: {e}")
            return RequeueSignal.failed(e)

        if not served:
            log.info(f"Waiting for API group {group_version} to be available")
            return RequeueSignal.requeue_after(self.requeue_after)

        return RequeueSignal.done()
