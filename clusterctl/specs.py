"""
Creation parameters for each resource of a cluster.
"""

from typing import Any, Dict

from .config import ClusterOptions
from .names import ResourceNames
from .resources import ResourceKind
from .tags import base_tags

SSH_PORT = 22
ANYWHERE = "0.0.0.0/0"


def ecs_user_data(ecs_cluster_name: str) -> str:
    """User data that registers container instances with the ECS cluster."""
    return "\n".join([
        "#!/bin/bash",
        f"echo ECS_CLUSTER={ecs_cluster_name} >> /etc/ecs/ecs.config",
        "",
    ])


def build_resource_specs(names: ResourceNames, options: ClusterOptions) -> Dict[ResourceKind, Dict[str, Any]]:
    """
    Build the creation spec of every resource kind for a cluster.
    
    Args:
        names: Resource names of the cluster
        options: Operator choices for the cluster
        
    Returns:
        Mapping of resource kind to creation parameters
    """
    tags = base_tags(names.cluster_name, options.tags)
    capacity = options.initial_capacity

    return {
        ResourceKind.INSTANCE_PROFILE: {
            "tags": dict(tags),
        },
        ResourceKind.INSTANCE_SECURITY_GROUP: {
            "description": f"Container instances of cluster {names.cluster_name}",
            "vpc_id": options.vpc_id,
            "ingress": [{"protocol": "tcp", "from_port": SSH_PORT, "to_port": SSH_PORT, "cidr": ANYWHERE}],
            "tags": dict(tags),
        },
        ResourceKind.LAUNCH_TEMPLATE: {
            "instance_type": options.instance_type,
            "image_id": options.image_id,
            "key_pair": options.key_pair,
            "instance_profile": names.instance_profile,
            "security_group": names.instance_security_group,
            "vpc_id": options.vpc_id,
            "user_data": ecs_user_data(names.compute_cluster),
            "tags": dict(tags),
        },
        ResourceKind.SCALING_GROUP: {
            "launch_template": names.launch_template,
            "vpc_id": options.vpc_id,
            "min_size": 0,
            "max_size": capacity,
            "desired_capacity": capacity,
            "tags": dict(tags),
        },
        ResourceKind.COMPUTE_CLUSTER: {
            "tags": dict(tags),
        },
        ResourceKind.SERVICE_ROLE: {
            "tags": dict(tags),
        },
    }
