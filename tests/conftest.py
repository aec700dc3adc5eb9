"""Pytest configuration and fixtures."""

import pytest
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

from context import ReconcileContext
from store import InMemoryResourceStore
from strategies.registry import create_registry


@pytest.fixture
def mock_pool():
    """Create a mock asyncpg pool whose acquire() yields mock_connection."""
    pool = AsyncMock()
    pool.acquire = MagicMock()
    return pool


@pytest.fixture
def mock_connection():
    """Create a mock asyncpg connection."""
    conn = AsyncMock()
    return conn


@pytest.fixture
def pool_with_connection(mock_connection):
    """A mock pool whose acquire() context yields mock_connection."""
    pool = AsyncMock()

    @asynccontextmanager
    async def mock_acquire():
        yield mock_connection

    pool.acquire = mock_acquire
    return pool


@pytest.fixture
def store():
    """An empty in-memory store serving the core and apps groups."""
    return InMemoryResourceStore(served=["v1", "apps/v1"])


@pytest.fixture
def registry():
    """A registry holding only the built-in strategies."""
    return create_registry()


@pytest.fixture
def ctx():
    """A reconcile context without a deadline."""
    return ReconcileContext(request_id="test")


@pytest.fixture
def sample_deployment():
    """Sample Deployment manifest for testing."""
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": "console",
            "namespace": "hub",
            "labels": {"app": "console"},
        },
        "spec": {
            "replicas": 3,
            "selector": {"matchLabels": {"app": "console"}},
            "template": {
                "metadata": {"labels": {"app": "console"}},
                "spec": {
                    "containers": [
                        {
                            "name": "console",
                            "image": "quay.io/hub/console:2.0",
                            "imagePullPolicy": "Always",
                        }
                    ]
                },
            },
        },
    }


@pytest.fixture
def sample_secret():
    """Sample pull secret as stored in the hub namespace."""
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "type": "kubernetes.io/dockerconfigjson",
        "metadata": {
            "name": "pull-secret",
            "namespace": "hub",
            "labels": {"team": "infra"},
        },
        "data": {".dockerconfigjson": "e30="},
    }


@pytest.fixture
def sample_hub():
    """Sample MultiClusterHub custom resource."""
    return {
        "apiVersion": "operator.open-cluster-management.io/v1",
        "kind": "MultiClusterHub",
        "metadata": {"name": "multiclusterhub", "namespace": "hub", "uid": "hub-uid"},
        "spec": {
            "imagePullSecret": "pull-secret",
            "imagePullPolicy": "IfNotPresent",
            "availabilityConfig": "High",
            "nodeSelector": {"role": "infra"},
        },
    }
