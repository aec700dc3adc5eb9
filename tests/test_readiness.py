"""Unit tests for readiness.py - API readiness gate."""

import pytest
from unittest.mock import AsyncMock

from context import ReconcileContext
from readiness import DEFAULT_REQUEUE_AFTER, ReadinessGate
from store import (
    DeadlineExceeded,
    DiscoveryError,
    InMemoryResourceStore,
    ReconcileCancelled,
)

APPS = "apps.open-cluster-management.io/v1"


@pytest.mark.asyncio
class TestReadinessGate:
    """Tests for ReadinessGate.check_ready."""

    async def test_served_is_done(self, ctx):
        gate = ReadinessGate(InMemoryResourceStore(served=[APPS]))

        signal = await gate.check_ready(APPS, ctx)

        assert signal.should_requeue is False
        assert signal.error is None

    async def test_not_served_requeues_after_default(self, ctx):
        gate = ReadinessGate(InMemoryResourceStore())

        signal = await gate.check_ready(APPS, ctx)

        assert signal.should_requeue is True
        assert signal.after == DEFAULT_REQUEUE_AFTER == 10
        assert signal.error is None

    async def test_custom_requeue_after(self, ctx):
        gate = ReadinessGate(InMemoryResourceStore(), requeue_after=3)

        signal = await gate.check_ready(APPS, ctx)

        assert signal.after == 3

    async def test_becomes_ready(self, ctx):
        store = InMemoryResourceStore()
        gate = ReadinessGate(store)

        assert (await gate.check_ready(APPS, ctx)).should_requeue
        store.served.add(APPS)
        assert not (await gate.check_ready(APPS, ctx)).should_requeue

    async def test_discovery_failure_is_error(self, ctx):
        store = AsyncMock()
        error = DiscoveryError("discovery endpoint unavailable")
        store.supports_version.side_effect = error
        gate = ReadinessGate(store)

        signal = await gate.check_ready(APPS, ctx)

        assert signal.should_requeue is False
        assert signal.error is error

    async def test_default_context(self):
        gate = ReadinessGate(InMemoryResourceStore(served=[APPS]))
        assert (await gate.check_ready(APPS)).error is None

    async def test_cancelled_context_is_error(self):
        gate = ReadinessGate(InMemoryResourceStore(served=[APPS]))
        ctx = ReconcileContext()
        ctx.cancel()

        signal = await gate.check_ready(APPS, ctx)

        assert signal.should_requeue is False
        assert isinstance(signal.error, ReconcileCancelled)

    async def test_expired_deadline_is_error(self):
        gate = ReadinessGate(InMemoryResourceStore(served=[APPS]))
        ctx = ReconcileContext.with_timeout(-1)

        signal = await gate.check_ready(APPS, ctx)

        assert signal.should_requeue is False
        assert isinstance(signal.error, DeadlineExceeded)
