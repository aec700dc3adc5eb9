"""
Hub Policy - turns a MultiClusterHub resource into desired resources.

The hub custom resource describes the installation (pull secret, scheduling,
availability); this module parses it and builds the channel and chart
subscriptions the engine then ensures. Every built resource carries the
installer provenance labels and names the hub as its owner.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from resources import (
    DesiredResource,
    OwnerReference,
    Provenance,
    ResourceRef,
    add_labels,
)
from validation import validate_hub

HUB_API_VERSION = "operator.open-cluster-management.io/v1"
HUB_KIND = "MultiClusterHub"
APPS_API_VERSION = "apps.open-cluster-management.io/v1"

CHANNEL_NAME = "charts-v1"
HELM_REPO_NAME = "multiclusterhub-repo"
HELM_REPO_PORT = 3000

RELEASE_VERSION_ANNOTATION = "installer.open-cluster-management.io/release-version"

DEFAULT_PULL_POLICY = "Always"
HA_REPLICA_COUNT = 3
BASIC_REPLICA_COUNT = 1


@dataclass
class HubSpec:
    """The parsed hub custom resource."""

    name: str
    namespace: str
    uid: str = ""
    image_pull_secret: str = ""
    image_pull_policy: str = DEFAULT_PULL_POLICY
    high_availability: bool = True
    node_selector: Optional[Dict[str, str]] = None

    @classmethod
    def from_resource(cls, resource: Dict[str, Any]) -> "HubSpec":
        """
        Parse a MultiClusterHub resource.

        Raises:
            ValueError: If the resource fails schema validation
        """
        is_valid, error = validate_hub(resource)
        if not is_valid:
            raise ValueError(f"Invalid MultiClusterHub: {error}")

        metadata = resource["metadata"]
        spec = resource.get("spec") or {}
        return cls(
            name=metadata["name"],
            namespace=metadata["namespace"],
            uid=metadata.get("uid", ""),
            image_pull_secret=spec.get("imagePullSecret", ""),
            image_pull_policy=spec.get("imagePullPolicy", DEFAULT_PULL_POLICY),
            high_availability=spec.get("availabilityConfig", "High") != "Basic",
            node_selector=spec.get("nodeSelector"),
        )

    @property
    def replica_count(self) -> int:
        return HA_REPLICA_COUNT if self.high_availability else BASIC_REPLICA_COUNT

    @property
    def owner(self) -> OwnerReference:
        return OwnerReference(
            api_version=HUB_API_VERSION, kind=HUB_KIND, name=self.name, uid=self.uid
        )

    @property
    def provenance(self) -> Provenance:
        return Provenance(name=self.name, namespace=self.namespace)

    @property
    def pull_secret_ref(self) -> Optional[ResourceRef]:
        if not self.image_pull_secret:
            return None
        return ResourceRef.secret(self.namespace, self.image_pull_secret)


@dataclass
class CacheSpec:
    """Values resolved once per operator start and shared by every pass."""

    image_overrides: Dict[str, str] = field(default_factory=dict)
    component_version: str = ""


def namespace_manifest(name: str) -> Dict[str, Any]:
    return {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}}


def _owned(hub: HubSpec, manifest: Dict[str, Any]) -> DesiredResource:
    add_labels(manifest, hub.provenance.labels())
    if hub.uid:
        manifest["metadata"]["ownerReferences"] = [hub.owner.to_manifest()]
    return DesiredResource(manifest, owner=hub.owner)


def helm_channel(hub: HubSpec) -> DesiredResource:
    """The channel the chart subscriptions pull from."""
    pathname = f"http://{HELM_REPO_NAME}.{hub.namespace}:{HELM_REPO_PORT}/charts"
    return _owned(
        hub,
        {
            "apiVersion": APPS_API_VERSION,
            "kind": "Channel",
            "metadata": {"name": CHANNEL_NAME, "namespace": hub.namespace},
            "spec": {"type": "HelmRepo", "pathname": pathname},
        },
    )


def chart_subscription(
    hub: HubSpec, chart: str, overrides: Dict[str, Any], version: str = ""
) -> DesiredResource:
    """
    A subscription installing ``chart`` from the hub channel with overrides.

    A non-empty ``version`` is recorded as the release-version annotation, so
    an operator upgrade rewrites the subscription.
    """
    manifest = {
        "apiVersion": APPS_API_VERSION,
        "kind": "Subscription",
        "metadata": {"name": f"{chart}-sub", "namespace": hub.namespace},
        "spec": {
            "channel": f"{hub.namespace}/{CHANNEL_NAME}",
            "name": chart,
            "placement": {"local": True},
            "packageOverrides": [
                {
                    "packageName": chart,
                    "packageAlias": chart,
                    "packageOverrides": [{"path": "spec", "value": overrides}],
                }
            ],
        },
    }
    if version:
        manifest["metadata"]["annotations"] = {RELEASE_VERSION_ANNOTATION: version}
    return _owned(hub, manifest)


def application_ui_subscription(hub: HubSpec, cache: CacheSpec) -> DesiredResource:
    """Subscription for the application-chart with the hub's overrides."""
    overrides = {
        "pullSecret": hub.image_pull_secret,
        "hubconfig": {
            "replicaCount": hub.replica_count,
            "nodeSelector": hub.node_selector,
        },
        "global": {
            "imageOverrides": dict(cache.image_overrides),
            "pullPolicy": hub.image_pull_policy,
        },
    }
    return chart_subscription(
        hub, "application-chart", overrides, cache.component_version
    )


def desired_resources(hub: HubSpec, cache: CacheSpec) -> List[DesiredResource]:
    """All resources one pass ensures for the hub, in apply order."""
    return [
        helm_channel(hub),
        application_ui_subscription(hub, cache),
    ]
