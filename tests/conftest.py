"""
Shared fixtures: an in-memory provider and a fake clock.
"""

from typing import Any, Dict, List, Optional

import pytest

from clusterctl.config import RetryPolicy, Settings, WaitPolicy
from clusterctl.names import ResourceNames
from clusterctl.provider import Provider
from clusterctl.reconciler import Reconciler
from clusterctl.resources import ResourceKind
from clusterctl.state import ResourceRecord
from clusterctl.tags import base_tags

ABSENT = object()


class FakeProvider(Provider):
    """In-memory provider recording every call."""

    def __init__(self):
        self.resources: Dict[tuple, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        # (operation, kind) -> exceptions raised by successive calls
        self.errors: Dict[tuple, List[Exception]] = {}
        self.read_errors: Dict[ResourceKind, Exception] = {}
        # kind -> statuses returned by successive lookups; ABSENT removes the resource
        self.status_sequence: Dict[ResourceKind, List[Any]] = {}

    def add(self, kind: ResourceKind, name: str, status: Optional[str] = None,
            tags: Optional[Dict[str, str]] = None, attributes: Optional[Dict[str, Any]] = None):
        self.resources[(kind, name)] = {
            "status": status,
            "tags": dict(tags or {}),
            "attributes": dict(attributes or {}),
        }

    def writes(self) -> List[tuple]:
        return [call for call in self.calls if call[0] in ("create", "delete")]

    def get_by_name(self, kind, name):
        self.calls.append(("get", kind, name))
        if kind in self.read_errors:
            raise self.read_errors[kind]

        sequence = self.status_sequence.get(kind)
        if sequence:
            status = sequence.pop(0) if len(sequence) > 1 else sequence[0]
            if status is ABSENT:
                self.resources.pop((kind, name), None)
            elif (kind, name) in self.resources:
                self.resources[(kind, name)]["status"] = status

        entry = self.resources.get((kind, name))
        if entry is None:
            return None
        return ResourceRecord(kind=kind, name=name, status=entry["status"], attributes=entry["attributes"])

    def list_tags(self, kind, name):
        self.calls.append(("list_tags", kind, name))
        entry = self.resources.get((kind, name))
        return dict(entry["tags"]) if entry else {}

    def create(self, kind, name, spec):
        self.calls.append(("create", kind, name))
        self._maybe_raise("create", kind)
        status = "ACTIVE" if kind is ResourceKind.COMPUTE_CLUSTER else None
        self.add(kind, name, status=status, tags=spec.get("tags", {}))

    def delete(self, kind, name):
        self.calls.append(("delete", kind, name))
        self._maybe_raise("delete", kind)
        self.resources.pop((kind, name), None)

    def _maybe_raise(self, operation, kind):
        pending = self.errors.get((operation, kind))
        if pending:
            raise pending.pop(0)


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def populate(provider: FakeProvider, names: ResourceNames, managed: bool = True) -> None:
    """Register every resource of a cluster as existing."""
    tags = base_tags(names.cluster_name) if managed else {"owner": "someone-else"}
    for kind in ResourceKind:
        status = "ACTIVE" if kind is ResourceKind.COMPUTE_CLUSTER else None
        provider.add(kind, names.name_of(kind), status=status, tags=tags)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def names():
    return ResourceNames.for_cluster("demo")


@pytest.fixture
def settings():
    return Settings(
        retry=RetryPolicy(max_attempts=3, delay=0.5),
        wait=WaitPolicy(interval=1.0, timeout=5.0),
        settle=WaitPolicy(interval=2.0, timeout=20.0),
    )


@pytest.fixture
def reconciler(provider, settings, clock):
    return Reconciler(provider, settings, sleep=clock.sleep, clock=clock)
