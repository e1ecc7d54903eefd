"""
Tagging utilities for marking resources created by clusterctl.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

PROVENANCE_TAG = "created-by-this-tool"
PROVENANCE_VALUE = "clusterctl"


def base_tags(cluster_name: str, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Generate the tags written onto every resource clusterctl creates.
    
    Args:
        cluster_name: Cluster name
        extra: Additional tags to include
        
    Returns:
        Dictionary of tags to apply to resources
    """
    tags = {}

    # Operator tags must not be able to overwrite the provenance marker
    if extra:
        tags.update(extra)

    tags.update({
        PROVENANCE_TAG: PROVENANCE_VALUE,
        "cluster": cluster_name,
        "created_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    })
    return tags


def parse_user_tags(tag_strings: List[str]) -> Dict[str, str]:
    """
    Parse user-provided tag strings in format "key=value".
    
    Args:
        tag_strings: List of tag strings in "key=value" format
        
    Returns:
        Dictionary of parsed tags
        
    Raises:
        ValueError: If tag string format is invalid
    """
    tags = {}
    
    for tag_str in tag_strings:
        if "=" not in tag_str:
            raise ValueError(f"Invalid tag format: {tag_str}. Expected 'key=value'")
        
        key, value = tag_str.split("=", 1)
        if not key.strip() or not value.strip():
            raise ValueError(f"Invalid tag format: {tag_str}. Key and value must not be empty")
        
        tags[key.strip()] = value.strip()
    
    return tags


def is_managed(tags: Optional[Dict[str, str]]) -> bool:
    """
    Check if a resource was created by clusterctl based on its tags.
    
    Args:
        tags: Resource tags
        
    Returns:
        True if the resource carries the provenance marker
    """
    return bool(tags) and tags.get(PROVENANCE_TAG) == PROVENANCE_VALUE


def to_aws_tags(tags: Dict[str, str]) -> List[Dict[str, str]]:
    """Convert a tag mapping into the AWS Key/Value list form."""
    return [{"Key": key, "Value": value} for key, value in sorted(tags.items())]


def from_aws_tags(tag_list: Optional[List[Dict[str, str]]]) -> Dict[str, str]:
    """Convert an AWS Key/Value tag list into a mapping."""
    return {tag["Key"]: tag["Value"] for tag in tag_list or []}
