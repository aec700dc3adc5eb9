#!/usr/bin/env python3
"""
CLI tool for hubsync
Runs ensure, readiness and propagation operations against the resource store
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List

import click
import yaml
from tabulate import tabulate

from config import get_config
from context import ReconcileContext
from controller import HubReconciler
from db import PostgresResourceStore
from engine import EnsureEngine, EnsureResult
from policy import CacheSpec, HubSpec
from propagation import SecretPropagator
from readiness import ReadinessGate
from resources import DesiredResource, Provenance, ResourceRef
from strategies.registry import get_registry, register_builtin_strategies
from validation import validate_manifest
from version import read_component_version

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_store():
    """Connect to the configured database and make sure the schema is current."""
    db_config = get_config().database
    store = PostgresResourceStore(
        host=db_config.host,
        port=db_config.port,
        database=db_config.database,
        user=db_config.user,
        password=db_config.password,
        min_pool_size=db_config.min_pool_size,
        max_pool_size=db_config.max_pool_size,
    )
    await store.connect()
    try:
        await store.initialize_schema()
        yield store
    finally:
        await store.close()


def load_documents(filename: str) -> List[Dict[str, Any]]:
    """Read every document from a YAML (multi-document) or JSON file"""
    with open(filename, "r") as f:
        if filename.endswith(".json"):
            data = json.load(f)
            return data if isinstance(data, list) else [data]
        return [doc for doc in yaml.safe_load_all(f) if doc is not None]


def new_context() -> ReconcileContext:
    return ReconcileContext.with_timeout(get_config().engine.pass_timeout)


def results_table(results: List[EnsureResult]) -> str:
    rows = []
    for result in results:
        rows.append(
            [
                result.ref.kind,
                result.ref.namespace or "-",
                result.ref.name,
                result.outcome.value,
                result.reason,
                str(result.error) if result.error else "",
            ]
        )
    headers = ["Kind", "Namespace", "Name", "Outcome", "Reason", "Error"]
    return tabulate(rows, headers=headers, tablefmt="grid")


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def cli(log_level):
    """hubsync CLI - converge a resource store toward desired state"""
    level = log_level or get_config().engine.log_level
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    register_builtin_strategies()


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
def apply(filename):
    """Ensure every resource in a YAML/JSON file"""
    documents = load_documents(filename)

    desired = []
    for index, document in enumerate(documents):
        is_valid, error = validate_manifest(document)
        if not is_valid:
            raise click.ClickException(f"Document {index}: {error}")
        desired.append(DesiredResource(document))

    async def run():
        async with open_store() as store:
            engine = EnsureEngine(store, get_registry())
            ctx = new_context()
            return [await engine.ensure(d, ctx) for d in desired]

    results = asyncio.run(run())
    click.echo(results_table(results))
    if any(r.failed for r in results):
        raise SystemExit(1)


@cli.command()
@click.option("--kind", "-k", default=None, help="Only list this kind")
@click.option("--namespace", "-n", default=None, help="Only list this namespace")
@click.option("--limit", "-l", default=100, help="Maximum number of resources")
@click.option(
    "--output", "-o", type=click.Choice(["table", "json", "yaml"]), default="table"
)
def get(kind, namespace, limit, output):
    """List stored resources"""

    async def run():
        async with open_store() as store:
            return await store.list_resources(
                kind=kind, namespace=namespace, limit=limit
            )

    resources = asyncio.run(run())

    if output == "json":
        click.echo(json.dumps(resources, indent=2))
    elif output == "yaml":
        click.echo(yaml.dump_all(resources, default_flow_style=False))
    else:
        rows = []
        for resource in resources:
            metadata = resource.get("metadata", {})
            rows.append(
                [
                    resource.get("kind"),
                    metadata.get("namespace") or "-",
                    metadata.get("name"),
                    metadata.get("resourceVersion"),
                    metadata.get("creationTimestamp"),
                ]
            )
        headers = ["Kind", "Namespace", "Name", "Version", "Created"]
        click.echo(tabulate(rows, headers=headers, tablefmt="grid"))


@cli.command()
@click.argument("group_version")
def ready(group_version):
    """Check whether an API group/version is served"""

    async def run():
        async with open_store() as store:
            gate = ReadinessGate(store, get_config().engine.readiness_requeue_after)
            return await gate.check_ready(group_version, new_context())

    signal = asyncio.run(run())
    if signal.error is not None:
        raise click.ClickException(f"Discovery failed: {signal.error}")
    if signal.should_requeue:
        click.echo(f"{group_version} is not served yet; retry in {signal.after}s")
        raise SystemExit(2)
    click.echo(f"{group_version} is served")


@cli.command("register-api")
@click.argument("group_version")
@click.option("--unserved", is_flag=True, help="Mark the version as not served")
def register_api(group_version, unserved):
    """Record an API group/version as served (or not)"""

    async def run():
        async with open_store() as store:
            await store.register_api_version(group_version, served=not unserved)

    asyncio.run(run())
    click.echo(f"{group_version}: served={not unserved}")


@cli.command("copy-secret")
@click.argument("name")
@click.option("--from", "source_namespace", required=True, help="Source namespace")
@click.option("--to", "target_namespace", required=True, help="Target namespace")
@click.option("--owner-name", required=True, help="Installer name for provenance")
@click.option(
    "--owner-namespace", default=None, help="Installer namespace (default: --from)"
)
def copy_secret(name, source_namespace, target_namespace, owner_name, owner_namespace):
    """Copy a secret into another namespace if it is not there yet"""
    provenance = Provenance(owner_name, owner_namespace or source_namespace)

    async def run():
        async with open_store() as store:
            propagator = SecretPropagator(store, provenance)
            return await propagator.propagate(
                ResourceRef.secret(source_namespace, name),
                target_namespace,
                new_context(),
            )

    result = asyncio.run(run())
    click.echo(results_table([result]))
    if result.failed:
        raise SystemExit(1)


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
def reconcile(filename):
    """Run one reconciliation pass for a MultiClusterHub resource"""
    documents = load_documents(filename)
    if len(documents) != 1:
        raise click.ClickException("Expected exactly one MultiClusterHub document")

    try:
        hub = HubSpec.from_resource(documents[0])
    except ValueError as e:
        raise click.ClickException(str(e))

    cache = CacheSpec(
        image_overrides=(documents[0].get("spec") or {}).get("imageOverrides", {})
    )
    try:
        cache.component_version = read_component_version()
    except FileNotFoundError:
        logger.warning("No component version available; continuing without it")

    async def run():
        async with open_store() as store:
            reconciler = HubReconciler(
                store, get_registry(), get_config().engine, cache
            )
            return await reconciler.reconcile(hub)

    result = asyncio.run(run())
    click.echo(results_table(result.results))
    click.echo(
        f"\nCreated: {result.resources_created}  "
        f"Updated: {result.resources_updated}  "
        f"Failed: {result.resources_failed}  "
        f"Duration: {result.duration_seconds:.2f}s"
    )
    if result.requeue.error is not None:
        click.echo(f"Requeue: with backoff ({result.requeue.error})")
        raise SystemExit(1)
    if result.requeue.should_requeue:
        click.echo(f"Requeue: after {result.requeue.after}s")


@cli.command()
def version():
    """Show the component version"""
    try:
        click.echo(read_component_version())
    except FileNotFoundError as e:
        raise click.ClickException(str(e))


if __name__ == "__main__":
    cli()
