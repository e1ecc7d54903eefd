"""
Observed state of cluster resources.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .resources import ResourceKind
from .tags import is_managed


class Lifecycle(Enum):
    """Lifecycle of a resource as seen by the control plane."""
    ABSENT = "absent"
    ACTIVE = "active"
    PENDING = "pending"
    TERMINATING = "terminating"


@dataclass(frozen=True)
class ResourceRecord:
    """Raw lookup result returned by a provider for a resource that was found."""
    kind: ResourceKind
    name: str
    status: Optional[str] = None  # None when the resource type has no status field
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ResourceState:
    """Current state of one resource, recomputed on every reconciliation."""
    kind: ResourceKind
    name: str
    exists: bool
    lifecycle: Lifecycle
    tags: Dict[str, str] = field(default_factory=dict)
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def managed(self) -> bool:
        """Whether the resource carries the clusterctl provenance marker."""
        return is_managed(self.tags)

    @classmethod
    def absent(cls, kind: ResourceKind, name: str) -> "ResourceState":
        return cls(kind=kind, name=name, exists=False, lifecycle=Lifecycle.ABSENT)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kind": self.kind.value,
            "name": self.name,
            "exists": self.exists,
            "lifecycle": self.lifecycle.value,
            "managed": self.managed,
            "tags": dict(self.tags),
            "attributes": dict(self.attributes),
        }
