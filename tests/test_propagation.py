"""Unit tests for propagation.py - Secret propagation."""

import pytest
from unittest.mock import AsyncMock

from context import ReconcileContext
from engine import (
    REASON_ALREADY_EXISTS,
    REASON_CREATE_FAILED,
    REASON_CREATED,
    REASON_GET_FAILED,
    ReconcileOutcome,
)
from propagation import SecretPropagator, SecretRecord
from resources import (
    INSTALLER_NAME_LABEL,
    INSTALLER_NAMESPACE_LABEL,
    Provenance,
    ResourceRef,
)
from store import (
    DeadlineExceeded,
    InMemoryResourceStore,
    NotFoundError,
    ReconcileCancelled,
    TransientStoreError,
)

SOURCE = ResourceRef.secret("hub", "pull-secret")
PROVENANCE = Provenance("multiclusterhub", "hub")


class TestSecretRecord:
    """Tests for SecretRecord."""

    def test_target_ref(self):
        record = SecretRecord(SOURCE, "cert-manager", PROVENANCE)
        assert record.target_ref == ResourceRef.secret("cert-manager", "pull-secret")

    def test_build_copy(self, sample_secret):
        sample_secret["metadata"].update(
            {
                "uid": "u1",
                "resourceVersion": "9",
                "creationTimestamp": "2024-01-01T00:00:00Z",
                "ownerReferences": [{"kind": "Hub", "name": "x", "uid": "u0"}],
            }
        )
        record = SecretRecord(SOURCE, "cert-manager", PROVENANCE)

        target = record.build_copy(sample_secret)

        metadata = target["metadata"]
        assert metadata["namespace"] == "cert-manager"
        assert metadata["name"] == "pull-secret"
        for field_name in ("uid", "resourceVersion", "ownerReferences"):
            assert field_name not in metadata
        assert "creationTimestamp" not in metadata
        assert metadata["labels"] == {
            "team": "infra",
            INSTALLER_NAME_LABEL: "multiclusterhub",
            INSTALLER_NAMESPACE_LABEL: "hub",
        }
        assert target["data"] == sample_secret["data"]
        assert target["type"] == "kubernetes.io/dockerconfigjson"
        assert sample_secret["metadata"]["namespace"] == "hub"


@pytest.mark.asyncio
class TestSecretPropagator:
    """Tests for SecretPropagator.propagate."""

    async def test_creates_copy(self, sample_secret, ctx):
        store = InMemoryResourceStore(resources=[sample_secret])
        propagator = SecretPropagator(store, PROVENANCE)

        result = await propagator.propagate(SOURCE, "cert-manager", ctx)

        assert result.outcome is ReconcileOutcome.CREATED
        assert result.reason == REASON_CREATED
        assert result.ref == ResourceRef.secret("cert-manager", "pull-secret")

        copy = await store.get(result.ref)
        source = await store.get(SOURCE)
        assert copy["data"] == source["data"]
        assert copy["metadata"]["uid"] != source["metadata"]["uid"]
        assert copy["metadata"]["labels"][INSTALLER_NAME_LABEL] == "multiclusterhub"

    async def test_existing_target_is_left_alone(self, sample_secret, ctx):
        """Test an existing copy is never updated, even if it differs."""
        stale = dict(
            sample_secret,
            metadata={"name": "pull-secret", "namespace": "cert-manager"},
            data={".dockerconfigjson": "b2xk"},
        )
        store = InMemoryResourceStore(resources=[sample_secret, stale])
        propagator = SecretPropagator(store, PROVENANCE)

        result = await propagator.propagate(SOURCE, "cert-manager", ctx)

        assert result.outcome is ReconcileOutcome.NOOP
        assert result.reason == REASON_ALREADY_EXISTS
        target = await store.get(result.ref)
        assert target["data"] == {".dockerconfigjson": "b2xk"}
        assert target["metadata"]["resourceVersion"] == "1"

    async def test_second_propagation_is_noop(self, sample_secret, ctx):
        store = InMemoryResourceStore(resources=[sample_secret])
        propagator = SecretPropagator(store, PROVENANCE)

        first = await propagator.propagate(SOURCE, "cert-manager", ctx)
        second = await propagator.propagate(SOURCE, "cert-manager", ctx)

        assert first.outcome is ReconcileOutcome.CREATED
        assert second.outcome is ReconcileOutcome.NOOP

    async def test_missing_source_fails(self, ctx):
        store = InMemoryResourceStore()
        propagator = SecretPropagator(store, PROVENANCE)

        result = await propagator.propagate(SOURCE, "cert-manager", ctx)

        assert result.outcome is ReconcileOutcome.FAILED
        assert result.reason == REASON_GET_FAILED
        assert isinstance(result.error, NotFoundError)
        assert result.error.ref == SOURCE
        assert store.list_refs() == []

    async def test_source_fetch_error_fails(self, ctx):
        store = AsyncMock()
        error = TransientStoreError("timeout")
        store.get.side_effect = error
        propagator = SecretPropagator(store, PROVENANCE)

        result = await propagator.propagate(SOURCE, "cert-manager", ctx)

        assert result.outcome is ReconcileOutcome.FAILED
        assert result.error is error
        store.create.assert_not_called()

    async def test_target_fetch_error_fails(self, sample_secret, ctx):
        store = AsyncMock()
        error = TransientStoreError("timeout")
        store.get.side_effect = [sample_secret, error]
        propagator = SecretPropagator(store, PROVENANCE)

        result = await propagator.propagate(SOURCE, "cert-manager", ctx)

        assert result.outcome is ReconcileOutcome.FAILED
        assert result.reason == REASON_GET_FAILED
        assert result.error is error
        store.create.assert_not_called()

    async def test_create_error_fails(self, sample_secret, ctx):
        store = AsyncMock()
        error = TransientStoreError("write rejected")
        store.get.side_effect = [sample_secret, None]
        store.create.side_effect = error
        propagator = SecretPropagator(store, PROVENANCE)

        result = await propagator.propagate(SOURCE, "cert-manager", ctx)

        assert result.outcome is ReconcileOutcome.FAILED
        assert result.reason == REASON_CREATE_FAILED
        assert result.error is error

    async def test_cancelled_context_fails(self, sample_secret):
        store = InMemoryResourceStore(resources=[sample_secret])
        propagator = SecretPropagator(store, PROVENANCE)
        ctx = ReconcileContext()
        ctx.cancel()

        result = await propagator.propagate(SOURCE, "cert-manager", ctx)

        assert result.outcome is ReconcileOutcome.FAILED
        assert isinstance(result.error, ReconcileCancelled)
        assert store.list_refs() == [SOURCE]

    async def test_expired_deadline_fails(self, sample_secret):
        store = InMemoryResourceStore(resources=[sample_secret])
        propagator = SecretPropagator(store, PROVENANCE)
        ctx = ReconcileContext.with_timeout(-1)

        result = await propagator.propagate(SOURCE, "cert-manager", ctx)

        assert result.outcome is ReconcileOutcome.FAILED
        assert isinstance(result.error, DeadlineExceeded)
        assert store.list_refs() == [SOURCE]

    async def test_rejects_non_secret(self, ctx):
        propagator = SecretPropagator(InMemoryResourceStore(), PROVENANCE)

        with pytest.raises(ValueError):
            await propagator.propagate(
                ResourceRef("ConfigMap", "hub", "settings"), "cert-manager", ctx
            )
