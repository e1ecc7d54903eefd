"""
Static description of the resources that make up a cluster.

A cluster is a fixed topology of six resource kinds. Each kind declares the
kinds it depends on; creation walks the graph dependencies-first and deletion
walks it in reverse.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional

from .errors import ConfigurationError


class ResourceKind(Enum):
    """
    Resource kinds managed for a cluster, in preferred creation order.

    The ECS cluster comes first so that deletion, which walks this order in
    reverse, removes it only after the scaling group's container instances
    have deregistered.
    """
    COMPUTE_CLUSTER = "compute_cluster"
    SERVICE_ROLE = "service_role"
    INSTANCE_PROFILE = "instance_profile"
    INSTANCE_SECURITY_GROUP = "instance_security_group"
    LAUNCH_TEMPLATE = "launch_template"
    SCALING_GROUP = "scaling_group"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    ResourceKind.INSTANCE_PROFILE: "Instance Profile",
    ResourceKind.INSTANCE_SECURITY_GROUP: "Instance Security Group",
    ResourceKind.LAUNCH_TEMPLATE: "Launch Template",
    ResourceKind.SCALING_GROUP: "Auto Scaling Group",
    ResourceKind.COMPUTE_CLUSTER: "ECS Cluster",
    ResourceKind.SERVICE_ROLE: "ECS Service Role",
}


class Operation(Enum):
    """Lifecycle operation requested for a cluster."""
    CREATE = "create"
    DELETE = "delete"


@dataclass(frozen=True)
class ResourceDescriptor:
    """Static definition of one resource kind and its dependency edges."""
    kind: ResourceKind
    depends_on: FrozenSet[ResourceKind] = field(default_factory=frozenset)
    # Delete returns before the resource is gone; wait for absence afterwards.
    settles_on_delete: bool = False


DESCRIPTORS: Dict[ResourceKind, ResourceDescriptor] = {
    ResourceKind.INSTANCE_PROFILE: ResourceDescriptor(ResourceKind.INSTANCE_PROFILE),
    # The security group also needs the cluster network, which is an external input.
    ResourceKind.INSTANCE_SECURITY_GROUP: ResourceDescriptor(ResourceKind.INSTANCE_SECURITY_GROUP),
    ResourceKind.LAUNCH_TEMPLATE: ResourceDescriptor(
        ResourceKind.LAUNCH_TEMPLATE,
        depends_on=frozenset({ResourceKind.INSTANCE_PROFILE, ResourceKind.INSTANCE_SECURITY_GROUP}),
    ),
    ResourceKind.SCALING_GROUP: ResourceDescriptor(
        ResourceKind.SCALING_GROUP,
        depends_on=frozenset({ResourceKind.LAUNCH_TEMPLATE}),
        settles_on_delete=True,
    ),
    ResourceKind.COMPUTE_CLUSTER: ResourceDescriptor(ResourceKind.COMPUTE_CLUSTER),
    ResourceKind.SERVICE_ROLE: ResourceDescriptor(ResourceKind.SERVICE_ROLE),
}


def topological_order(
    operation: Operation,
    descriptors: Optional[Mapping[ResourceKind, ResourceDescriptor]] = None,
) -> List[ResourceKind]:
    """
    Order all resource kinds for the given operation.

    Creation order puts every kind after its dependencies; ties are broken by
    the declaration order of ResourceKind so the result is stable. Deletion
    order is the exact reverse.

    Args:
        operation: Operation.CREATE or Operation.DELETE
        descriptors: Descriptor set to order (defaults to DESCRIPTORS)

    Returns:
        List of resource kinds

    Raises:
        ConfigurationError: If the descriptor set is incomplete or cyclic
    """
    descriptors = DESCRIPTORS if descriptors is None else descriptors
    _validate(descriptors)

    remaining = {kind: set(descriptors[kind].depends_on) for kind in ResourceKind}
    order: List[ResourceKind] = []

    while remaining:
        ready = [kind for kind in ResourceKind if kind in remaining and not remaining[kind]]
        if not ready:
            cycle = ", ".join(sorted(kind.value for kind in remaining))
            raise ConfigurationError(f"Resource dependency graph has a cycle among: {cycle}")

        # Take one kind at a time so declaration order decides ties.
        kind = ready[0]
        order.append(kind)
        del remaining[kind]
        for deps in remaining.values():
            deps.discard(kind)

    if operation is Operation.DELETE:
        order.reverse()
    return order


def dependencies_of(
    kind: ResourceKind,
    descriptors: Optional[Mapping[ResourceKind, ResourceDescriptor]] = None,
) -> FrozenSet[ResourceKind]:
    """Return every kind that `kind` depends on, directly or transitively."""
    descriptors = DESCRIPTORS if descriptors is None else descriptors
    seen = set()
    stack = list(descriptors[kind].depends_on)
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        stack.extend(descriptors[current].depends_on)
    return frozenset(seen)


def dependents_of(
    kind: ResourceKind,
    descriptors: Optional[Mapping[ResourceKind, ResourceDescriptor]] = None,
) -> FrozenSet[ResourceKind]:
    """Return every kind that depends on `kind`, directly or transitively."""
    descriptors = DESCRIPTORS if descriptors is None else descriptors
    return frozenset(
        other for other in ResourceKind
        if other is not kind and kind in dependencies_of(other, descriptors)
    )


def _validate(descriptors: Mapping[ResourceKind, ResourceDescriptor]) -> None:
    for kind in ResourceKind:
        descriptor = descriptors.get(kind)
        if descriptor is None:
            raise ConfigurationError(f"No descriptor defined for resource kind {kind.value}")
        if descriptor.kind is not kind:
            raise ConfigurationError(
                f"Descriptor registered for {kind.value} describes {descriptor.kind.value}"
            )
        if kind in descriptor.depends_on:
            raise ConfigurationError(f"Resource kind {kind.value} depends on itself")
