"""Diff strategy for apps/v1 Deployments."""

import copy
from typing import Any, Dict, List

from resources import get_path, set_path
from strategies.base import FieldOwnershipStrategy

CONTAINERS_PATH = ("spec", "template", "spec", "containers")

# Per-container fields owned by the engine; containers are matched by name.
CONTAINER_FIELDS = ("image", "imagePullPolicy", "args", "env")


class DeploymentStrategy(FieldOwnershipStrategy):
    """
    Owns replica count, scheduling and image settings of a Deployment.

    Containers present only in the observed object (injected sidecars, for
    example) are kept as they are.
    """

    owned_paths = (
        ("spec", "replicas"),
        ("spec", "template", "spec", "nodeSelector"),
        ("spec", "template", "spec", "imagePullSecrets"),
    )
    owned_metadata = (
        ("metadata",),
        ("spec", "template", "metadata"),
    )

    @property
    def kinds(self) -> List[str]:
        return ["Deployment"]

    def diff_extra(
        self, desired: Dict[str, Any], replacement: Dict[str, Any]
    ) -> List[str]:
        changed = []
        wanted = get_path(desired, CONTAINERS_PATH) or []
        containers = get_path(replacement, CONTAINERS_PATH)
        if not isinstance(containers, list):
            containers = []
        by_name = {c.get("name"): c for c in containers}

        for want in wanted:
            name = want.get("name")
            have = by_name.get(name)
            if have is None:
                containers.append(copy.deepcopy(want))
                changed.append(f"containers[{name}]")
                continue
            for field_name in CONTAINER_FIELDS:
                if have.get(field_name) != want.get(field_name):
                    if want.get(field_name) is None:
                        have.pop(field_name, None)
                    else:
                        have[field_name] = copy.deepcopy(want[field_name])
                    changed.append(f"containers[{name}].{field_name}")

        if changed:
            set_path(replacement, CONTAINERS_PATH, containers)
        return changed
