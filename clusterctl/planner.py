"""
Plan building: diff the desired topology against inspected state.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional

from .errors import ConfigurationError
from .resources import Operation, ResourceKind, topological_order
from .state import Lifecycle, ResourceState

logger = logging.getLogger(__name__)

# Kinds whose own transitional state must be waited out before recreation
WAIT_BEFORE_CREATE = frozenset({ResourceKind.SCALING_GROUP, ResourceKind.COMPUTE_CLUSTER})


class ProvenanceScope(Enum):
    """Which kinds must carry the provenance marker before they may be deleted."""
    ALL = "all"
    LEGACY = "legacy"  # only the security group and scaling group are checked

    @property
    def guarded_kinds(self) -> FrozenSet[ResourceKind]:
        if self is ProvenanceScope.LEGACY:
            return frozenset({ResourceKind.INSTANCE_SECURITY_GROUP, ResourceKind.SCALING_GROUP})
        return frozenset(ResourceKind)


@dataclass(frozen=True)
class Action:
    """A single create or delete step of a plan."""
    kind: ResourceKind
    name: str
    operation: Operation
    pre_wait: bool = False  # poll until the resource is absent before acting

    def describe(self) -> str:
        verb = "Create" if self.operation is Operation.CREATE else "Delete"
        return f"{verb} {self.kind.label} [{self.name}]"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "operation": self.operation.value,
            "pre_wait": self.pre_wait,
        }


class Plan:
    """Ordered, duplicate-free sequence of actions for one operation."""

    def __init__(self, operation: Operation, actions: Optional[Iterable[Action]] = None):
        self.operation = operation
        self.actions: List[Action] = []
        for action in actions or []:
            self._append(action)

    def _append(self, action: Action) -> None:
        if action.operation is not self.operation:
            raise ConfigurationError(
                f"Cannot add {action.operation.value} action to a {self.operation.value} plan"
            )
        if any(existing.kind is action.kind for existing in self.actions):
            raise ConfigurationError(f"Plan already contains an action for {action.kind.value}")
        self.actions.append(action)

    @property
    def kinds(self) -> List[ResourceKind]:
        return [action.kind for action in self.actions]

    @property
    def is_empty(self) -> bool:
        return not self.actions

    def __iter__(self) -> Iterator[Action]:
        return iter(self.actions)

    def __len__(self) -> int:
        return len(self.actions)

    def __bool__(self) -> bool:
        return bool(self.actions)

    def __repr__(self) -> str:
        return f"Plan({self.operation.value}, {[a.kind.value for a in self.actions]})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation.value,
            "actions": [action.to_dict() for action in self.actions],
        }


def build_plan(
    operation: Operation,
    states: Mapping[ResourceKind, ResourceState],
    scope: ProvenanceScope = ProvenanceScope.ALL,
    external: FrozenSet[ResourceKind] = frozenset(),
) -> Plan:
    """
    Build the ordered action plan for an operation.

    Create includes every absent kind, plus a scaling group or compute cluster
    that is still terminating (flagged for pre-wait). Delete includes every
    present kind carrying the provenance marker; a kind that is already
    terminating is flagged for pre-wait instead of being deleted again.
    Kinds listed in `external` are supplied by the operator and never acted on.

    Args:
        operation: Operation.CREATE or Operation.DELETE
        states: Inspected state for every resource kind
        scope: Kinds subject to the provenance check on delete
        external: Kinds that are referenced but not managed

    Returns:
        Plan in creation or deletion topological order
    """
    plan = Plan(operation)

    for kind in topological_order(operation):
        state = states.get(kind)
        if state is None:
            raise ConfigurationError(f"No inspected state for {kind.value}")
        if kind in external:
            logger.debug(f"{kind.label} [{state.name}] is supplied externally, not planning it")
            continue

        if operation is Operation.CREATE:
            action = _plan_create(state)
        else:
            action = _plan_delete(state, scope)

        if action is not None:
            plan._append(action)

    logger.info(f"Planned {len(plan)} {operation.value} action(s): {[k.value for k in plan.kinds]}")
    return plan


def _plan_create(state: ResourceState) -> Optional[Action]:
    if state.lifecycle is Lifecycle.ABSENT:
        return Action(state.kind, state.name, Operation.CREATE)
    if state.lifecycle is Lifecycle.TERMINATING and state.kind in WAIT_BEFORE_CREATE:
        return Action(state.kind, state.name, Operation.CREATE, pre_wait=True)
    return None


def _plan_delete(state: ResourceState, scope: ProvenanceScope) -> Optional[Action]:
    if state.lifecycle is Lifecycle.ABSENT:
        return None
    if state.kind in scope.guarded_kinds and not state.managed:
        logger.info(f"Skipping {state.kind.label} [{state.name}]: not created by clusterctl")
        return None
    if state.lifecycle is Lifecycle.TERMINATING:
        return Action(state.kind, state.name, Operation.DELETE, pre_wait=True)
    return Action(state.kind, state.name, Operation.DELETE)
