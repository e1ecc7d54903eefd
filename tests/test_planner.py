"""
Tests for plan building.
"""

import pytest

from clusterctl.errors import ConfigurationError
from clusterctl.planner import Action, Plan, ProvenanceScope, build_plan
from clusterctl.resources import Operation, ResourceKind, topological_order
from clusterctl.state import Lifecycle, ResourceState
from clusterctl.tags import base_tags


def _states(lifecycle=Lifecycle.ABSENT, managed=True, **overrides):
    tags = base_tags("demo") if managed else {}
    states = {}
    for kind in ResourceKind:
        current = overrides.get(kind.value, lifecycle)
        if current is Lifecycle.ABSENT:
            states[kind] = ResourceState.absent(kind, f"demo-{kind.value}")
        else:
            states[kind] = ResourceState(kind, f"demo-{kind.value}", True, current, tags=dict(tags))
    return states


class TestBuildPlan:
    """Test create and delete plans."""

    def test_create_empty_cluster(self):
        """Test every kind is created in dependency order."""
        plan = build_plan(Operation.CREATE, _states())

        assert plan.kinds == topological_order(Operation.CREATE)
        assert not any(action.pre_wait for action in plan)

    def test_create_complete_cluster_is_empty(self):
        """Test nothing is planned when all resources exist."""
        plan = build_plan(Operation.CREATE, _states(Lifecycle.ACTIVE))

        assert plan.is_empty
        assert not plan

    def test_create_waits_for_terminating_scaling_group(self):
        """Test a terminating scaling group is recreated after a pre-wait."""
        plan = build_plan(Operation.CREATE, _states(Lifecycle.ACTIVE, scaling_group=Lifecycle.TERMINATING))

        assert plan.kinds == [ResourceKind.SCALING_GROUP]
        assert plan.actions[0].pre_wait

    def test_create_skips_other_terminating_kinds(self):
        """Test terminating kinds without a pre-wait rule are left alone."""
        plan = build_plan(Operation.CREATE, _states(Lifecycle.ACTIVE, launch_template=Lifecycle.TERMINATING))

        assert plan.is_empty

    def test_create_skips_pending(self):
        """Test pending resources count as present."""
        plan = build_plan(Operation.CREATE, _states(Lifecycle.PENDING))

        assert plan.is_empty

    def test_delete_managed_cluster(self):
        """Test every managed kind is deleted in reverse order."""
        plan = build_plan(Operation.DELETE, _states(Lifecycle.ACTIVE))

        assert plan.kinds == topological_order(Operation.DELETE)
        assert plan.kinds.index(ResourceKind.SCALING_GROUP) < plan.kinds.index(ResourceKind.LAUNCH_TEMPLATE)

    def test_delete_removes_cluster_after_scaling_group(self):
        """Test the ECS cluster is deleted only once its instances are gone."""
        plan = build_plan(Operation.DELETE, _states(Lifecycle.ACTIVE))

        assert plan.kinds.index(ResourceKind.SCALING_GROUP) < plan.kinds.index(ResourceKind.COMPUTE_CLUSTER)
        assert plan.kinds[-1] is ResourceKind.COMPUTE_CLUSTER

    def test_delete_skips_unmanaged(self):
        """Test resources without the provenance marker are never deleted."""
        states = _states(Lifecycle.ACTIVE, managed=False)
        states[ResourceKind.SCALING_GROUP] = ResourceState(
            ResourceKind.SCALING_GROUP, "demo-asg", True, Lifecycle.TERMINATING,
        )

        plan = build_plan(Operation.DELETE, states)

        assert plan.is_empty

    def test_delete_legacy_scope(self):
        """Test the legacy scope only checks the security group and scaling group."""
        plan = build_plan(Operation.DELETE, _states(Lifecycle.ACTIVE, managed=False), scope=ProvenanceScope.LEGACY)

        assert ResourceKind.INSTANCE_SECURITY_GROUP not in plan.kinds
        assert ResourceKind.SCALING_GROUP not in plan.kinds
        assert ResourceKind.SERVICE_ROLE in plan.kinds
        assert ResourceKind.INSTANCE_PROFILE in plan.kinds

    def test_delete_terminating_gets_pre_wait(self):
        """Test an already terminating resource is awaited instead of deleted again."""
        plan = build_plan(Operation.DELETE, _states(Lifecycle.ACTIVE, compute_cluster=Lifecycle.TERMINATING))

        actions = {action.kind: action for action in plan}
        assert actions[ResourceKind.COMPUTE_CLUSTER].pre_wait
        assert not actions[ResourceKind.SERVICE_ROLE].pre_wait

    def test_external_kinds_are_not_planned(self):
        """Test externally supplied kinds are never created or deleted."""
        external = frozenset({ResourceKind.INSTANCE_PROFILE})

        create = build_plan(Operation.CREATE, _states(), external=external)
        delete = build_plan(Operation.DELETE, _states(Lifecycle.ACTIVE), external=external)

        assert ResourceKind.INSTANCE_PROFILE not in create.kinds
        assert ResourceKind.INSTANCE_PROFILE not in delete.kinds

    def test_missing_state(self):
        """Test a state mapping without every kind is rejected."""
        states = _states()
        del states[ResourceKind.SERVICE_ROLE]

        with pytest.raises(ConfigurationError):
            build_plan(Operation.CREATE, states)


class TestPlan:
    """Test the Plan container."""

    def test_rejects_duplicates(self):
        """Test a kind can appear only once."""
        action = Action(ResourceKind.SERVICE_ROLE, "demo-role", Operation.CREATE)

        with pytest.raises(ConfigurationError, match="already contains"):
            Plan(Operation.CREATE, [action, action])

    def test_rejects_mixed_operations(self):
        """Test a plan holds actions for a single operation."""
        with pytest.raises(ConfigurationError):
            Plan(Operation.CREATE, [Action(ResourceKind.SERVICE_ROLE, "demo-role", Operation.DELETE)])

    def test_describe_and_dict(self):
        """Test action rendering."""
        action = Action(ResourceKind.SCALING_GROUP, "demo-asg", Operation.DELETE, pre_wait=True)
        plan = Plan(Operation.DELETE, [action])

        assert action.describe() == "Delete Auto Scaling Group [demo-asg]"
        assert plan.to_dict() == {
            "operation": "delete",
            "actions": [{"kind": "scaling_group", "name": "demo-asg", "operation": "delete", "pre_wait": True}],
        }
        assert len(plan) == 1
