"""
Tests for tagging and deterministic naming.
"""

import pytest

from clusterctl.errors import ConfigurationError
from clusterctl.names import ResourceNames, normalize_cluster_name
from clusterctl.resources import ResourceKind
from clusterctl.tags import (
    PROVENANCE_TAG,
    PROVENANCE_VALUE,
    base_tags,
    from_aws_tags,
    is_managed,
    parse_user_tags,
    to_aws_tags,
)


class TestTags:
    """Test tagging functionality."""

    def test_base_tags(self):
        """Test base tag generation."""
        tags = base_tags("demo")

        assert tags[PROVENANCE_TAG] == PROVENANCE_VALUE
        assert tags["cluster"] == "demo"
        assert tags["created_at"].endswith("Z")

    def test_base_tags_with_extra(self):
        """Test extra tags are kept but cannot replace the provenance marker."""
        tags = base_tags("demo", {"owner": "ops", PROVENANCE_TAG: "someone-else"})

        assert tags["owner"] == "ops"
        assert tags[PROVENANCE_TAG] == PROVENANCE_VALUE

    def test_parse_user_tags(self):
        """Test parsing user tag strings."""
        tags = parse_user_tags(["owner=ops", "stage = dev", "expr=a=b"])

        assert tags == {"owner": "ops", "stage": "dev", "expr": "a=b"}

    def test_parse_user_tags_invalid(self):
        """Test parsing invalid tag strings."""
        with pytest.raises(ValueError, match="Invalid tag format"):
            parse_user_tags(["invalid-tag"])

        with pytest.raises(ValueError, match="Key and value must not be empty"):
            parse_user_tags(["=value"])

    def test_is_managed(self):
        """Test provenance detection."""
        assert is_managed({PROVENANCE_TAG: PROVENANCE_VALUE})
        assert not is_managed({PROVENANCE_TAG: "terraform"})
        assert not is_managed({})
        assert not is_managed(None)

    def test_aws_tag_conversion(self):
        """Test conversion to and from the AWS Key/Value form."""
        assert to_aws_tags({"b": "2", "a": "1"}) == [{"Key": "a", "Value": "1"}, {"Key": "b", "Value": "2"}]
        assert from_aws_tags([{"Key": "a", "Value": "1"}]) == {"a": "1"}
        assert from_aws_tags(None) == {}


class TestNames:
    """Test resource naming."""

    def test_names_for_cluster(self):
        """Test every resource name is derived from the cluster name."""
        names = ResourceNames.for_cluster(" demo ")

        assert names.cluster_name == "demo"
        assert names.name_of(ResourceKind.COMPUTE_CLUSTER) == "demo"
        assert names.name_of(ResourceKind.SERVICE_ROLE) == "demo-ecs-service-role"
        assert names.name_of(ResourceKind.INSTANCE_PROFILE) == "demo-instance-profile"
        assert names.name_of(ResourceKind.INSTANCE_SECURITY_GROUP) == "demo-instance-sg"
        assert names.name_of(ResourceKind.LAUNCH_TEMPLATE) == "demo-lt"
        assert names.name_of(ResourceKind.SCALING_GROUP) == "demo-asg"

    def test_instance_profile_override(self):
        """Test an operator-supplied instance profile replaces the default name."""
        names = ResourceNames.for_cluster("demo", instance_profile="shared-profile")

        assert names.instance_profile == "shared-profile"
        assert names.name_of(ResourceKind.INSTANCE_PROFILE) == "shared-profile"

    @pytest.mark.parametrize("name", ["", "   ", "-demo", "demo cluster", "a" * 33, "demo/1"])
    def test_invalid_names(self, name):
        """Test invalid cluster names are rejected."""
        with pytest.raises(ConfigurationError, match="Invalid cluster name"):
            normalize_cluster_name(name)

    def test_valid_names(self):
        """Test valid cluster names."""
        assert normalize_cluster_name("demo_1-prod") == "demo_1-prod"
        assert normalize_cluster_name("a" * 32) == "a" * 32
