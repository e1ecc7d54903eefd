"""
Deterministic resource naming derived from the cluster name.
"""

import re
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError
from .resources import ResourceKind

CLUSTER_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,31}$")


def normalize_cluster_name(cluster_name: str) -> str:
    """
    Trim and validate a cluster name.
    
    Args:
        cluster_name: Raw cluster name from the command line
        
    Returns:
        str: The trimmed cluster name
        
    Raises:
        ConfigurationError: If the name is empty or contains invalid characters
    """
    name = (cluster_name or "").strip()
    if not CLUSTER_NAME_RE.match(name):
        raise ConfigurationError(f"Invalid cluster name [{name}]")
    return name


@dataclass(frozen=True)
class ResourceNames:
    """Names of every resource belonging to one cluster."""
    cluster_name: str
    compute_cluster: str
    service_role: str
    instance_profile: str
    instance_security_group: str
    launch_template: str
    scaling_group: str

    @classmethod
    def for_cluster(cls, cluster_name: str, instance_profile: Optional[str] = None) -> "ResourceNames":
        """
        Derive resource names for a cluster.
        
        Args:
            cluster_name: Cluster name (validated here)
            instance_profile: Operator-supplied instance profile to use instead of the default
            
        Returns:
            ResourceNames for the cluster
        """
        name = normalize_cluster_name(cluster_name)
        profile = (instance_profile or "").strip() or f"{name}-instance-profile"
        return cls(
            cluster_name=name,
            compute_cluster=name,
            service_role=f"{name}-ecs-service-role",
            instance_profile=profile,
            instance_security_group=f"{name}-instance-sg",
            launch_template=f"{name}-lt",
            scaling_group=f"{name}-asg",
        )

    def name_of(self, kind: ResourceKind) -> str:
        return getattr(self, kind.value)
