"""
Reconcile Context - request-scoped values threaded through every call.

Carries the pass deadline, a cancellation event, a request id and the logger
the engine components write to. Store calls go through ``ReconcileContext.call``
so that every one of them is bounded by the deadline.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Optional, TypeVar

from resources import ResourceRef
from store import DeadlineExceeded, ReconcileCancelled, TransientStoreError

T = TypeVar("T")


def _new_request_id() -> str:
    return uuid.uuid4().hex[:12]


class ResourceLogAdapter(logging.LoggerAdapter):
    """Prefixes log messages with the request id and the resource ref."""

    def process(self, msg: Any, kwargs: Any):
        prefix = f"[{self.extra['request_id']}]"
        if self.extra.get("ref"):
            prefix += f" {self.extra['ref']}"
        return f"{prefix} {msg}", kwargs


@dataclass
class ReconcileContext:
    """
    Request-scoped state for one reconciliation pass.

    Attributes:
        request_id: Identifier included in every log line of the pass
        deadline: time.monotonic() value after which store calls fail
        cancel_event: When set, subsequent store calls fail without running
        logger: Logger the engine components write to
    """

    request_id: str = field(default_factory=_new_request_id)
    deadline: Optional[float] = None
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("hubsync")
    )

    @classmethod
    def with_timeout(
        cls, seconds: Optional[float], **kwargs: Any
    ) -> "ReconcileContext":
        """Create a context whose deadline is ``seconds`` from now."""
        deadline = time.monotonic() + seconds if seconds is not None else None
        return cls(deadline=deadline, **kwargs)

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without a deadline."""
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def bind(self, ref: Optional[ResourceRef] = None) -> ResourceLogAdapter:
        """Return a logger adapter scoped to this request and resource."""
        return ResourceLogAdapter(
            self.logger,
            {"request_id": self.request_id, "ref": str(ref) if ref else ""},
        )

    async def call(self, ref: Optional[ResourceRef], awaitable: Awaitable[T]) -> T:
        """
        Run one store call under this context.

        Raises:
            ReconcileCancelled: If the context was cancelled before the call
            DeadlineExceeded: If the deadline passed before or during the call
            TransientStoreError: If the call timed out on its own, inside the
                deadline
        """
        if self.cancelled:
            _close(awaitable)
            raise ReconcileCancelled("reconcile context cancelled", ref)

        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            _close(awaitable)
            raise DeadlineExceeded("deadline exceeded before store call", ref)

        try:
            return await asyncio.wait_for(_own_timeouts(ref, awaitable), remaining)
        except asyncio.TimeoutError as e:
            raise DeadlineExceeded("deadline exceeded during store call", ref) from e


async def _own_timeouts(ref: Optional[ResourceRef], awaitable: Awaitable[T]) -> T:
    # Timeouts raised by the store itself are store failures, not the deadline.
    try:
        return await awaitable
    except asyncio.TimeoutError as e:
        raise TransientStoreError("store call timed out", ref) from e


def _close(awaitable: Awaitable[Any]) -> None:
    # Avoid "coroutine was never awaited" warnings for calls we skip.
    close = getattr(awaitable, "close", None)
    if close is not None:
        close()
