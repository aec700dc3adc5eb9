"""Diff strategy for apps.open-cluster-management.io Subscriptions."""

from typing import List

from strategies.base import FieldOwnershipStrategy


class SubscriptionStrategy(FieldOwnershipStrategy):
    """
    Owns the chart source and overrides of a Subscription.

    Status and any spec fields other controllers add (time windows,
    hooks) are left untouched.
    """

    owned_paths = (
        ("spec", "channel"),
        ("spec", "name"),
        ("spec", "placement"),
        ("spec", "packageOverrides"),
    )

    @property
    def kinds(self) -> List[str]:
        return ["Subscription"]
