"""
Inspection of the current state of a cluster's resources.
"""

import logging
from typing import Dict, Optional

from .errors import InspectionError, ProviderError
from .names import ResourceNames
from .provider import Provider
from .resources import ResourceKind
from .state import Lifecycle, ResourceRecord, ResourceState

logger = logging.getLogger(__name__)

# Statuses reported by the control plane, grouped by lifecycle
ABSENT_STATUSES = {"INACTIVE"}
ACTIVE_STATUSES = {"ACTIVE", "InService", "available"}
TERMINATING_STATUSES = {"DEPROVISIONING", "Delete in progress", "deleting"}


def classify(record: Optional[ResourceRecord]) -> Lifecycle:
    """
    Map a provider lookup result to a lifecycle.

    Args:
        record: Lookup result, None when the resource was not found

    Returns:
        Lifecycle of the resource
    """
    if record is None:
        return Lifecycle.ABSENT

    status = (record.status or "").strip()
    if not status:
        # Present without a status field: exists and is usable
        return Lifecycle.PENDING
    if status in ABSENT_STATUSES:
        return Lifecycle.ABSENT
    if status in ACTIVE_STATUSES:
        return Lifecycle.ACTIVE
    if status in TERMINATING_STATUSES:
        return Lifecycle.TERMINATING
    return Lifecycle.PENDING


class StateInspector:
    """Reads the state of every resource kind of a cluster from the provider."""

    def __init__(self, provider: Provider):
        self.provider = provider

    def inspect(self, cluster_name: str, names: Optional[ResourceNames] = None) -> Dict[ResourceKind, ResourceState]:
        """
        Inspect all resources of a cluster.

        Reads are never retried: a failed read aborts the reconciliation.

        Args:
            cluster_name: Cluster name
            names: Resource names to inspect (derived from cluster_name if omitted)

        Returns:
            Mapping of resource kind to its current state

        Raises:
            InspectionError: If any provider read fails
        """
        names = names or ResourceNames.for_cluster(cluster_name)
        states = {}

        logger.info(f"Inspecting resources of cluster {names.cluster_name}")
        for kind in ResourceKind:
            states[kind] = self.inspect_kind(kind, names.name_of(kind), names.cluster_name)
            logger.debug(f"{kind.label} [{states[kind].name}]: {states[kind].lifecycle.value}")

        return states

    def inspect_kind(self, kind: ResourceKind, name: str, cluster_name: str) -> ResourceState:
        """Inspect a single resource."""
        try:
            record = self.provider.get_by_name(kind, name)
            lifecycle = classify(record)
            if lifecycle is Lifecycle.ABSENT:
                return ResourceState.absent(kind, name)

            tags = self.provider.list_tags(kind, name)
        except ProviderError as e:
            logger.error(f"Failed to inspect {kind.label} [{name}]: {e}")
            raise InspectionError(kind, cluster_name, cause=e)

        return ResourceState(
            kind=kind,
            name=name,
            exists=True,
            lifecycle=lifecycle,
            tags=dict(tags or {}),
            attributes=dict(record.attributes),
        )
