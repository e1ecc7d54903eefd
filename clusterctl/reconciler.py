"""
Reconciliation facade: inspect -> plan -> (confirm) -> execute.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from .config import ClusterOptions, Settings
from .errors import ProviderError
from .executor import ExecutionPolicy, ExecutionReport, Executor
from .inspector import StateInspector
from .names import ResourceNames
from .planner import Plan, build_plan
from .provider import Provider
from .reporter import ClusterSnapshot, report
from .resources import Operation, ResourceKind
from .specs import build_resource_specs
from .state import ResourceState

logger = logging.getLogger(__name__)


@dataclass
class PlannedChange:
    """Inspected state and the plan derived from it, not yet executed."""
    names: ResourceNames
    operation: Operation
    states: Dict[ResourceKind, ResourceState]
    plan: Plan
    specs: Dict[ResourceKind, Dict[str, Any]] = field(default_factory=dict)

    @property
    def nothing_to_do(self) -> bool:
        return self.plan.is_empty


@dataclass
class ReconciliationResult:
    """Everything one reconciliation produced."""
    change: PlannedChange
    report: ExecutionReport

    @property
    def ok(self) -> bool:
        return not self.report.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cluster": self.change.names.cluster_name,
            "operation": self.change.operation.value,
            "resources": {kind.value: state.to_dict() for kind, state in self.change.states.items()},
            "plan": self.change.plan.to_dict(),
            "report": self.report.to_dict(),
        }


class Reconciler:
    """Creates, deletes and reports on clusters through a provider."""

    def __init__(
        self,
        provider: Provider,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.settings = settings or Settings()
        self.inspector = StateInspector(provider)
        self.executor = Executor(
            provider,
            retry=self.settings.retry,
            wait=self.settings.wait,
            settle=self.settings.settle,
            sleep=sleep,
            clock=clock,
        )

    def plan(self, cluster_name: str, operation: Operation, options: Optional[ClusterOptions] = None) -> PlannedChange:
        """
        Inspect the cluster and build the plan for an operation.

        State is always read fresh from the control plane.

        Args:
            cluster_name: Cluster name
            operation: Operation.CREATE or Operation.DELETE
            options: Cluster options (used for naming and creation specs)

        Returns:
            PlannedChange

        Raises:
            ConfigurationError: If the cluster name is invalid
            InspectionError: If any resource could not be read
        """
        options = options or ClusterOptions()
        names = ResourceNames.for_cluster(cluster_name, instance_profile=options.instance_profile)

        external = frozenset()
        if options.instance_profile:
            external = frozenset({ResourceKind.INSTANCE_PROFILE})

        states = self.inspector.inspect(names.cluster_name, names)
        plan = build_plan(operation, states, scope=self.settings.provenance_scope, external=external)

        specs = {}
        if operation is Operation.CREATE:
            specs = build_resource_specs(names, options)

        return PlannedChange(names=names, operation=operation, states=states, plan=plan, specs=specs)

    def apply(self, change: PlannedChange, policy: Optional[ExecutionPolicy] = None) -> ReconciliationResult:
        """Execute a planned change. An empty plan is never handed to the executor."""
        if change.nothing_to_do:
            logger.info(f"Nothing to {change.operation.value} for cluster {change.names.cluster_name}")
            return ReconciliationResult(change=change, report=ExecutionReport())

        execution = self.executor.execute(change.plan, policy, specs=change.specs)
        return ReconciliationResult(change=change, report=execution)

    def create(
        self,
        cluster_name: str,
        options: Optional[ClusterOptions] = None,
        policy: Optional[ExecutionPolicy] = None,
    ) -> ReconciliationResult:
        return self.apply(self.plan(cluster_name, Operation.CREATE, options), policy)

    def delete(self, cluster_name: str, policy: Optional[ExecutionPolicy] = None) -> ReconciliationResult:
        return self.apply(self.plan(cluster_name, Operation.DELETE), policy)

    def status(self, cluster_name: str, instance_profile: Optional[str] = None) -> ClusterSnapshot:
        """Inspect a cluster and return its display snapshot."""
        names = ResourceNames.for_cluster(cluster_name, instance_profile=instance_profile)
        states = self.inspector.inspect(names.cluster_name, names)
        return report(names.cluster_name, states, self._network())

    def _network(self) -> Dict[str, Any]:
        try:
            network = self.provider.network_info()
        except ProviderError as e:
            logger.warning(f"Could not resolve the cluster network: {e}")
            network = None
        return network or {"region": self.settings.region, "vpc_id": None, "subnets": []}
