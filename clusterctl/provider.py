"""
Provider interface between the reconciler and the remote control plane.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .resources import ResourceKind
from .state import ResourceRecord


class Provider(ABC):
    """Abstract base class for resource providers.

    Implementations translate control-plane failures into TransientError or
    PermanentError for writes and into ProviderError for reads.
    """
    
    @abstractmethod
    def get_by_name(self, kind: ResourceKind, name: str) -> Optional[ResourceRecord]:
        """
        Look up a resource by its deterministic name.
        
        Args:
            kind: Resource kind
            name: Resource name
            
        Returns:
            ResourceRecord if the resource was found, None otherwise
        """
        pass
    
    @abstractmethod
    def create(self, kind: ResourceKind, name: str, spec: Dict[str, Any]) -> None:
        """
        Create a resource.
        
        Args:
            kind: Resource kind
            name: Resource name
            spec: Creation parameters, including the tags to apply
        """
        pass
    
    @abstractmethod
    def delete(self, kind: ResourceKind, name: str) -> None:
        """
        Delete a resource.
        
        Args:
            kind: Resource kind
            name: Resource name
        """
        pass
    
    @abstractmethod
    def list_tags(self, kind: ResourceKind, name: str) -> Dict[str, str]:
        """
        Return the tags of an existing resource.
        
        Args:
            kind: Resource kind
            name: Resource name
            
        Returns:
            Dictionary of tags (empty if the resource has none)
        """
        pass

    def network_info(self) -> Optional[Dict[str, Any]]:
        """
        Describe where the cluster runs, for status output.

        Returns:
            Dictionary with region, vpc_id and subnets, or None if the
            provider has no notion of a network
        """
        return None
