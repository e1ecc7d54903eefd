"""
Read-only status snapshot of a cluster for display.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .resources import Operation, ResourceKind, topological_order
from .state import Lifecycle, ResourceState


@dataclass
class ResourceStatus:
    """Display view of one resource."""
    kind: ResourceKind
    name: str
    exists: bool
    lifecycle: Lifecycle
    managed: bool

    @property
    def note(self) -> Optional[str]:
        if not self.exists:
            return "not found"
        if self.lifecycle is Lifecycle.TERMINATING:
            return "deleting"
        if self.lifecycle is Lifecycle.PENDING and self.kind in (ResourceKind.COMPUTE_CLUSTER, ResourceKind.SCALING_GROUP):
            return "pending"
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "label": self.kind.label,
            "name": self.name,
            "exists": self.exists,
            "lifecycle": self.lifecycle.value,
            "managed": self.managed,
            "note": self.note,
        }


@dataclass
class ClusterSnapshot:
    """Comprehensive status information for one cluster."""
    cluster_name: str
    resources: List[ResourceStatus] = field(default_factory=list)
    instances: Optional[Dict[str, Any]] = None             # scaling group counts
    compute_cluster: Optional[Dict[str, Any]] = None       # ECS service/task counts
    container_instances: Optional[Dict[str, Any]] = None   # launch template details
    network: Optional[Dict[str, Any]] = None               # region, VPC and subnets

    @property
    def present_count(self) -> int:
        return sum(1 for r in self.resources if r.exists)

    @property
    def complete(self) -> bool:
        return all(r.exists for r in self.resources)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cluster": self.cluster_name,
            "present": self.present_count,
            "total": len(self.resources),
            "resources": [r.to_dict() for r in self.resources],
            "instances": self.instances,
            "compute_cluster": self.compute_cluster,
            "container_instances": self.container_instances,
            "network": self.network,
        }


def report(
    cluster_name: str,
    states: Mapping[ResourceKind, ResourceState],
    network: Optional[Mapping[str, Any]] = None,
) -> ClusterSnapshot:
    """
    Project inspected state into a display snapshot.

    Args:
        cluster_name: Cluster name
        states: Inspected state of every resource kind
        network: Region, VPC and subnets the cluster runs in, if known

    Returns:
        ClusterSnapshot (no provider calls are made)
    """
    snapshot = ClusterSnapshot(cluster_name=cluster_name, network=dict(network) if network else None)

    for kind in topological_order(Operation.CREATE):
        state = states[kind]
        snapshot.resources.append(ResourceStatus(
            kind=kind,
            name=state.name,
            exists=state.exists,
            lifecycle=state.lifecycle,
            managed=state.managed,
        ))

    scaling_group = states[ResourceKind.SCALING_GROUP]
    if scaling_group.exists and scaling_group.lifecycle is not Lifecycle.TERMINATING:
        attrs = scaling_group.attributes
        snapshot.instances = {
            "current": attrs.get("instance_count", 0),
            "desired": attrs.get("desired_capacity", 0),
            "min": attrs.get("min_size", 0),
            "max": attrs.get("max_size", 0),
        }

    cluster = states[ResourceKind.COMPUTE_CLUSTER]
    if cluster.exists:
        attrs = cluster.attributes
        snapshot.compute_cluster = {
            "services": attrs.get("active_services", 0),
            "running_tasks": attrs.get("running_tasks", 0),
            "pending_tasks": attrs.get("pending_tasks", 0),
            "container_instances": attrs.get("container_instances", 0),
        }

    template = states[ResourceKind.LAUNCH_TEMPLATE]
    if template.exists:
        attrs = template.attributes
        snapshot.container_instances = {
            "profile": attrs.get("instance_profile"),
            "instance_type": attrs.get("instance_type"),
            "image": attrs.get("image_id"),
            "key_pair": attrs.get("key_name"),
            "security_groups": list(attrs.get("security_groups", [])),
        }

    return snapshot


def render_text(snapshot: ClusterSnapshot) -> str:
    """Render a snapshot as human-readable lines."""
    lines = ["Cluster", f"  Name  {snapshot.cluster_name}"]

    if snapshot.network is not None:
        n = snapshot.network
        lines.append("AWS")
        lines.append(f"  {'Region':<24} {n.get('region') or '-'}")
        lines.append(f"  {'VPC':<24} {n.get('vpc_id') or '-'}")
        lines.append(f"  {'Subnets':<24} {' '.join(n.get('subnets') or []) or '-'}")

    lines.append("Resources")

    for resource in snapshot.resources:
        line = f"  {resource.kind.label:<24} {resource.name}"
        if resource.note:
            line += f" ({resource.note})"
        lines.append(line)

    if snapshot.instances is not None:
        i = snapshot.instances
        lines.append(
            f"  {'Instances':<24} Current {i['current']} Desired {i['desired']} Min {i['min']} Max {i['max']}"
        )

    if snapshot.compute_cluster is not None:
        c = snapshot.compute_cluster
        lines.append("ECS")
        lines.append(f"  {'Services':<24} {c['services']}")
        lines.append(f"  {'Tasks':<24} Running {c['running_tasks']} Pending {c['pending_tasks']}")
        lines.append(f"  {'Container Instances':<24} {c['container_instances']}")

    if snapshot.container_instances is not None:
        ci = snapshot.container_instances
        lines.append("Container Instances")
        lines.append(f"  {'Profile':<24} {ci['profile'] or '-'}")
        lines.append(f"  {'Type':<24} {ci['instance_type'] or '-'}")
        lines.append(f"  {'Image':<24} {ci['image'] or '-'}")
        lines.append(f"  {'Key Pair':<24} {ci['key_pair'] or '-'}")
        lines.append(f"  {'Security Groups':<24} {' '.join(ci['security_groups']) or '-'}")

    return "\n".join(lines)
