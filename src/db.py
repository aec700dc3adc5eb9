"""
Database Store - PostgreSQL-backed resource store.

Stores managed resources as versioned JSON documents keyed by
(kind, namespace, name), and the API group/versions the store serves.
"""

import asyncpg
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from migrate import run_migrations
from resources import ResourceRef
from store import (
    ConflictError,
    DiscoveryError,
    NotFoundError,
    ResourceStore,
    TransientStoreError,
)

logger = logging.getLogger(__name__)


class PostgresResourceStore(ResourceStore):
    """Resource store backed by a PostgreSQL connection pool."""

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        min_pool_size: int = 5,
        max_pool_size: int = 20,
        command_timeout: float = 60,
    ):
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.command_timeout = command_timeout
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self):
        """Establish connection pool to PostgreSQL."""
        self.pool = await asyncpg.create_pool(
            host=self.host,
            port=self.port,
            database=self.database,
            user=self.user,
            password=self.password,
            min_size=self.min_pool_size,
            max_size=self.max_pool_size,
            command_timeout=self.command_timeout,
        )
        logger.info(
            f"Connected to PostgreSQL (pool: {self.min_pool_size}-{self.max_pool_size})"
        )

    async def close(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            logger.info("Closed PostgreSQL connection")

    def _ensure_connected(self) -> None:
        """Ensure the database connection pool is established."""
        if self.pool is None:
            raise RuntimeError(
                "Database not connected. Call connect() before performing operations."
            )

    async def initialize_schema(self) -> None:
        """Apply database migrations to bring schema up to date."""
        self._ensure_connected()
        await run_migrations(self.pool)
        logger.info("Database schema initialized")

    # ==================== Resource Methods ====================

    async def get(self, ref: ResourceRef) -> Optional[Dict[str, Any]]:
        """Get a resource by ref; None when it does not exist."""
        self._ensure_connected()
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT * FROM managed_resources
                    WHERE kind = $1 AND namespace = $2 AND name = $3
                    """,
                    ref.kind,
                    ref.namespace,
                    ref.name,
                )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            raise TransientStoreError(f"get failed: {e}", ref) from e

        if not row:
            return None
        return self._parse_resource_row(row)

    async def create(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a resource, assigning its uid and first resourceVersion.

        Raises:
            ConflictError: If a resource with the same ref already exists
        """
        self._ensure_connected()
        ref = ResourceRef.from_manifest(resource)
        uid = str(uuid.uuid4())
        body = self._prepare_body(resource)

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO managed_resources (
                        kind, namespace, name, uid, resource_version, body
                    )
                    VALUES ($1, $2, $3, $4, 1, $5)
                    ON CONFLICT (kind, namespace, name) DO NOTHING
                    RETURNING *
                    """,
                    ref.kind,
                    ref.namespace,
                    ref.name,
                    uid,
                    json.dumps(body),
                )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            raise TransientStoreError(f"create failed: {e}", ref) from e

        if not row:
            raise ConflictError("already exists", ref)

        logger.info(f"Created resource {ref} with uid {uid}")
        return self._parse_resource_row(row)

    async def update(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        """
        Replace a resource's body and bump its resourceVersion.

        When the manifest carries metadata.resourceVersion the row is only
        updated if it still holds that version.

        Raises:
            NotFoundError: If the resource does not exist
            ConflictError: If the stored version moved on
        """
        self._ensure_connected()
        ref = ResourceRef.from_manifest(resource)
        body = self._prepare_body(resource)
        expected = (resource.get("metadata") or {}).get("resourceVersion")

        query = """
            UPDATE managed_resources
            SET body = $4,
                resource_version = resource_version + 1,
                updated_at = NOW()
            WHERE kind = $1 AND namespace = $2 AND name = $3
        """
        params = [ref.kind, ref.namespace, ref.name, json.dumps(body)]
        if expected:
            query += " AND resource_version = $5"
            params.append(int(expected))
        query += " RETURNING *"

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(query, *params)
                if not row:
                    exists = await conn.fetchval(
                        """
                        SELECT 1 FROM managed_resources
                        WHERE kind = $1 AND namespace = $2 AND name = $3
                        """,
                        ref.kind,
                        ref.namespace,
                        ref.name,
                    )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            raise TransientStoreError(f"update failed: {e}", ref) from e

        if not row:
            if exists:
                raise ConflictError(f"resourceVersion {expected} is stale", ref)
            raise NotFoundError("does not exist", ref)

        logger.info(f"Updated resource {ref} to version {row['resource_version']}")
        return self._parse_resource_row(row)

    async def list_resources(
        self,
        kind: Optional[str] = None,
        namespace: Optional[str] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """List resources with optional filters."""
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            query = "SELECT * FROM managed_resources WHERE 1=1"
            params = []
            param_count = 0

            if kind:
                param_count += 1
                query += f" AND kind = ${param_count}"
                params.append(kind)

            if namespace is not None:
                param_count += 1
                query += f" AND namespace = ${param_count}"
                params.append(namespace)

            param_count += 1
            query += f" ORDER BY kind, namespace, name LIMIT ${param_count}"
            params.append(limit)

            rows = await conn.fetch(query, *params)
            return [self._parse_resource_row(row) for row in rows]

    # ==================== Discovery Methods ====================

    async def supports_version(self, group_version: str) -> bool:
        """Whether ``group_version`` is registered and served."""
        self._ensure_connected()
        try:
            async with self.pool.acquire() as conn:
                served = await conn.fetchval(
                    "SELECT served FROM api_versions WHERE group_version = $1",
                    group_version,
                )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            raise DiscoveryError(f"discovery for {group_version} failed: {e}") from e
        return bool(served)

    async def register_api_version(self, group_version: str, served: bool = True):
        """Record that an API group/version is (or is no longer) served."""
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO api_versions (group_version, served)
                VALUES ($1, $2)
                ON CONFLICT (group_version)
                DO UPDATE SET served = EXCLUDED.served, updated_at = NOW()
                """,
                group_version,
                served,
            )
        logger.info(f"Registered API version {group_version} (served={served})")

    # ==================== Helpers ====================

    def _prepare_body(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        """Drop the fields the row columns own before storing the body."""
        body = dict(resource)
        metadata = dict(body.get("metadata") or {})
        for field_name in ("uid", "resourceVersion", "creationTimestamp"):
            metadata.pop(field_name, None)
        body["metadata"] = metadata
        return body

    def _parse_resource_row(self, row: asyncpg.Record) -> Dict[str, Any]:
        """Rebuild the manifest from a managed_resources row."""
        resource = json.loads(row["body"]) if row.get("body") else {}
        metadata = resource.setdefault("metadata", {})
        metadata["uid"] = row["uid"]
        metadata["resourceVersion"] = str(row["resource_version"])
        created_at = row.get("created_at")
        if isinstance(created_at, datetime):
            metadata["creationTimestamp"] = created_at.astimezone(
                timezone.utc
            ).strftime("%Y-%m-%dT%H:%M:%SZ")
        return resource
