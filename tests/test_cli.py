"""
Tests for the click command line interface.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from conftest import populate
from clusterctl.cli import main
from clusterctl.errors import PermanentError, ProviderError
from clusterctl.resources import ResourceKind


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, provider, clock):
    def _invoke(args, **kwargs):
        obj = {"provider": provider, "timing": {"sleep": clock.sleep, "clock": clock}}
        return runner.invoke(main, args, obj=obj, **kwargs)
    return _invoke


class TestClusterCreate:
    """Test the cluster-create command."""

    def test_create_forced(self, invoke, provider):
        """Test creating a cluster without confirmation."""
        result = invoke(["cluster-create", "demo", "--force", "--tag", "owner=ops"])

        assert result.exit_code == 0
        assert "Determining AWS resources to create for cluster demo" in result.output
        assert "Create ECS Cluster [demo]" in result.output
        assert len(provider.writes()) == 6

    def test_create_confirmed(self, invoke, provider):
        """Test answering yes to the prompt."""
        result = invoke(["cluster-create", "demo"], input="y\n")

        assert result.exit_code == 0
        assert "Do you want to create these resources?" in result.output
        assert len(provider.writes()) == 6

    def test_create_declined(self, invoke, provider):
        """Test answering no leaves everything untouched."""
        result = invoke(["cluster-create", "demo"], input="n\n")

        assert result.exit_code == 0
        assert "Aborted" in result.output
        assert provider.writes() == []

    def test_nothing_to_create(self, invoke, provider, names):
        """Test an existing cluster needs no prompt."""
        populate(provider, names)

        result = invoke(["cluster-create", "demo"])

        assert result.exit_code == 0
        assert "Nothing to create" in result.output
        assert "Do you want" not in result.output

    def test_create_options(self, invoke, provider):
        """Test the instance profile option skips profile creation."""
        result = invoke([
            "cluster-create", "demo", "-y",
            "--instance-type", "t3.small",
            "--initial-capacity", "2",
            "--instance-profile", "shared-profile",
        ])

        assert result.exit_code == 0
        created = {call[1] for call in provider.writes()}
        assert ResourceKind.INSTANCE_PROFILE not in created
        assert len(created) == 5

    def test_invalid_tag(self, invoke, provider):
        """Test malformed tags are rejected."""
        result = invoke(["cluster-create", "demo", "--tag", "nope"])

        assert result.exit_code == 1
        assert "Invalid tag format" in result.output
        assert provider.calls == []

    def test_invalid_name(self, invoke):
        """Test invalid cluster names are rejected."""
        result = invoke(["cluster-create", "-bad-"])

        assert result.exit_code != 0

    def test_invalid_name_characters(self, invoke, provider):
        """Test names with invalid characters fail with exit code 1."""
        result = invoke(["cluster-create", "demo.cluster", "-y"])

        assert result.exit_code == 1
        assert "Invalid cluster name" in result.output
        assert provider.calls == []

    def test_failed_action(self, invoke, provider):
        """Test a failed action exits 1 and names the resource."""
        provider.errors[("create", ResourceKind.LAUNCH_TEMPLATE)] = [PermanentError("bad image")]

        result = invoke(["cluster-create", "demo", "-y"])

        assert result.exit_code == 1
        assert "Create Launch Template [demo-lt] failed: bad image" in result.output
        assert "Aborted after" in result.output


class TestClusterDelete:
    """Test the cluster-delete command."""

    def test_delete(self, invoke, provider, names):
        """Test deleting a managed cluster."""
        populate(provider, names)

        result = invoke(["cluster-delete", "demo", "-y"])

        assert result.exit_code == 0
        assert provider.resources == {}

    def test_delete_continue(self, invoke, provider, names):
        """Test --continue keeps going after a failure but still exits 1."""
        populate(provider, names)
        provider.errors[("delete", ResourceKind.LAUNCH_TEMPLATE)] = [PermanentError("in use")]

        result = invoke(["cluster-delete", "demo", "-y", "--continue"])

        assert result.exit_code == 1
        assert (ResourceKind.INSTANCE_PROFILE, names.instance_profile) not in provider.resources
        assert "1 action(s) failed" in result.output

    def test_delete_inspection_error(self, invoke, provider):
        """Test a failed read exits 1 before any write."""
        provider.read_errors[ResourceKind.COMPUTE_CLUSTER] = ProviderError("connection reset")

        result = invoke(["cluster-delete", "demo", "-y"])

        assert result.exit_code == 1
        assert "Failed to inspect ECS Cluster for cluster [demo]" in result.output
        assert provider.writes() == []

    def test_nothing_to_delete(self, invoke):
        """Test deleting a cluster that does not exist."""
        result = invoke(["cluster-delete", "demo"])

        assert result.exit_code == 0
        assert "Nothing to delete" in result.output


class TestClusterStatus:
    """Test the cluster-status command."""

    def test_status_human(self, invoke, provider, names):
        """Test the human-readable status."""
        populate(provider, names)

        result = invoke(["cluster-status", "demo"])

        assert result.exit_code == 0
        assert "Auto Scaling Group" in result.output
        assert "demo-asg" in result.output
        assert "Region" in result.output

    def test_status_json(self, invoke, provider, names):
        """Test the JSON status."""
        populate(provider, names)

        result = invoke(["cluster-status", "demo", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["cluster"] == "demo"
        assert data["present"] == 6
        assert data["network"]["region"]

    def test_status_missing_cluster(self, invoke):
        """Test status of a cluster that does not exist."""
        result = invoke(["cluster-status", "demo"])

        assert result.exit_code == 0
        assert "not found" in result.output


class TestGlobalOptions:
    """Test group-level options and settings."""

    def test_region_reaches_provider(self, runner):
        """Test --region is passed to the AWS provider."""
        with patch("clusterctl.cli.AwsProvider") as mock_provider:
            mock_provider.return_value.get_by_name.return_value = None
            mock_provider.return_value.network_info.return_value = {
                "region": "eu-west-1", "vpc_id": "vpc-1", "subnets": ["subnet-1"],
            }

            result = runner.invoke(main, ["--region", "eu-west-1", "cluster-status", "demo"])

        assert result.exit_code == 0
        mock_provider.assert_called_once_with(region="eu-west-1", vpc_id=None)
        assert "eu-west-1" in result.output
        assert "vpc-1" in result.output

    def test_status_vpc_reaches_provider(self, runner):
        """Test cluster-status --vpc selects the network the provider resolves."""
        with patch("clusterctl.cli.AwsProvider") as mock_provider:
            mock_provider.return_value.get_by_name.return_value = None
            mock_provider.return_value.network_info.return_value = None

            result = runner.invoke(main, ["--region", "eu-west-1", "cluster-status", "demo", "--vpc", "vpc-9"])

        assert result.exit_code == 0
        mock_provider.assert_called_once_with(region="eu-west-1", vpc_id="vpc-9")

    def test_malformed_environment(self, invoke):
        """Test malformed settings exit 1."""
        result = invoke(["cluster-status", "demo"], env={"CLUSTERCTL_RETRY_ATTEMPTS": "many"})

        assert result.exit_code == 1
        assert "CLUSTERCTL_RETRY_ATTEMPTS" in result.output
