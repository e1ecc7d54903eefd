"""
Plan execution with bounded retries, pre-waits and a partial-failure policy.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from .config import DEFAULT_SETTLE_INTERVAL, DEFAULT_SETTLE_TIMEOUT, RetryPolicy, WaitPolicy
from .errors import PermanentError, ProviderError, TransientError, UserAborted, WaitTimeoutError
from .inspector import classify
from .planner import Action, Plan
from .provider import Provider
from .resources import DESCRIPTORS, Operation, ResourceKind, dependents_of
from .state import Lifecycle

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]


class Outcome(Enum):
    """Final outcome of one planned action."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    ABORTED = "aborted"


@dataclass
class ActionResult:
    """Outcome of one action, as reported to the operator."""
    action: Action
    outcome: Outcome
    reason: Optional[str] = None
    cause_kind: Optional[ResourceKind] = None  # set for SKIPPED
    error_type: Optional[str] = None
    attempts: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.action.kind.value,
            "name": self.action.name,
            "operation": self.action.operation.value,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "cause_kind": self.cause_kind.value if self.cause_kind else None,
            "error_type": self.error_type,
            "attempts": self.attempts,
        }


@dataclass
class ExecutionReport:
    """Per-action outcomes of one reconciliation."""
    results: List[ActionResult] = field(default_factory=list)
    user_aborted: bool = False

    @property
    def failures(self) -> List[ActionResult]:
        return [r for r in self.results if r.outcome is Outcome.FAILED]

    @property
    def failed(self) -> bool:
        return bool(self.failures)

    @property
    def nothing_to_do(self) -> bool:
        return not self.results and not self.user_aborted

    @property
    def succeeded(self) -> bool:
        return bool(self.results) and not self.user_aborted and all(
            r.outcome is Outcome.SUCCEEDED for r in self.results
        )

    def outcome_of(self, kind: ResourceKind) -> Optional[Outcome]:
        for result in self.results:
            if result.action.kind is kind:
                return result.outcome
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_aborted": self.user_aborted,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class ExecutionPolicy:
    """How a plan is executed: failure policy and confirmation gate."""
    continue_on_error: bool = False
    confirm: Optional[ConfirmFn] = None  # None means no confirmation is required


def confirmation_prompt(plan: Plan) -> str:
    verb = "create" if plan.operation is Operation.CREATE else "delete"
    return f"Do you want to {verb} these resources?"


class Executor:
    """Runs plan actions one at a time against a provider."""

    def __init__(
        self,
        provider: Provider,
        retry: Optional[RetryPolicy] = None,
        wait: Optional[WaitPolicy] = None,
        settle: Optional[WaitPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.retry = retry or RetryPolicy()
        self.wait = wait or WaitPolicy()
        self.settle = settle or WaitPolicy(interval=DEFAULT_SETTLE_INTERVAL, timeout=DEFAULT_SETTLE_TIMEOUT)
        self._sleep = sleep
        self._clock = clock

    def execute(
        self,
        plan: Plan,
        policy: Optional[ExecutionPolicy] = None,
        specs: Optional[Mapping[ResourceKind, Dict[str, Any]]] = None,
    ) -> ExecutionReport:
        """
        Execute a plan.

        Args:
            plan: Ordered actions to run
            policy: Failure policy and confirmation callback
            specs: Creation parameters per resource kind

        Returns:
            ExecutionReport with one entry per planned action
        """
        policy = policy or ExecutionPolicy()
        specs = specs or {}
        report = ExecutionReport()

        if plan.is_empty:
            return report

        if policy.confirm is not None and not policy.confirm(confirmation_prompt(plan)):
            aborted = UserAborted("Declined by operator")
            logger.info(f"Execution of {plan!r} declined by the operator")
            report.user_aborted = True
            report.results = [
                ActionResult(action, Outcome.ABORTED, reason=str(aborted), error_type=type(aborted).__name__)
                for action in plan
            ]
            return report

        failed_kinds: List[ResourceKind] = []
        actions = list(plan)

        for index, action in enumerate(actions):
            cause = self._blocking_failure(action.kind, failed_kinds)
            if cause is not None:
                logger.warning(f"Skipping {action.describe()}: depends on failed {cause.label}")
                report.results.append(ActionResult(
                    action, Outcome.SKIPPED,
                    reason=f"{cause.label} failed",
                    cause_kind=cause,
                ))
                continue

            result = self._run(action, specs.get(action.kind, {}))
            report.results.append(result)

            if result.outcome is not Outcome.FAILED:
                continue

            failed_kinds.append(action.kind)
            if not policy.continue_on_error:
                for rest in actions[index + 1:]:
                    report.results.append(ActionResult(
                        rest, Outcome.ABORTED, reason=f"Aborted after {action.describe()} failed",
                    ))
                break

        return report

    def _blocking_failure(self, kind: ResourceKind, failed_kinds: List[ResourceKind]) -> Optional[ResourceKind]:
        for failed in failed_kinds:
            if kind in dependents_of(failed):
                return failed
        return None

    def _run(self, action: Action, spec: Dict[str, Any]) -> ActionResult:
        attempts = 0
        try:
            if action.pre_wait:
                logger.info(f"Waiting for {action.kind.label} [{action.name}] to be fully deleted...")
                self._wait_for_absence(action, self.wait)
                if action.operation is Operation.DELETE:
                    # The earlier deletion completed; nothing left to delete.
                    logger.info(f"{action.describe()}: already deleted")
                    return ActionResult(action, Outcome.SUCCEEDED, attempts=0)

            attempts = self._call_with_retry(action, spec)

            if action.operation is Operation.DELETE and DESCRIPTORS[action.kind].settles_on_delete:
                logger.info(f"Waiting for {action.kind.label} [{action.name}] to settle...")
                self._wait_for_absence(action, self.settle)

        except WaitTimeoutError as e:
            logger.error(f"{action.describe()} failed: {e}")
            return ActionResult(
                action, Outcome.FAILED,
                reason=f"{action.describe()} failed: {e}",
                error_type="TimeoutError",
                attempts=attempts,
            )
        except ProviderError as e:
            attempts = e.attempts or attempts
            if isinstance(e, TransientError):
                reason = f"{action.describe()} failed after {attempts} attempts: {e}"
            else:
                reason = f"{action.describe()} failed: {e}"
            logger.error(reason)
            return ActionResult(
                action, Outcome.FAILED,
                reason=reason,
                error_type=type(e).__name__,
                attempts=attempts,
            )

        logger.info(f"{action.describe()}: done")
        return ActionResult(action, Outcome.SUCCEEDED, attempts=attempts)

    def _call_with_retry(self, action: Action, spec: Dict[str, Any]) -> int:
        """Run the provider call; returns the number of attempts used."""
        last_error: Optional[TransientError] = None

        for attempt in range(1, self.retry.max_attempts + 1):
            logger.info(f"{action.describe()} (attempt {attempt}/{self.retry.max_attempts})...")
            try:
                if action.operation is Operation.CREATE:
                    self.provider.create(action.kind, action.name, spec)
                else:
                    self.provider.delete(action.kind, action.name)
                return attempt
            except TransientError as e:
                last_error = e
                logger.warning(f"{action.describe()}: transient error on attempt {attempt}: {e}")
                if attempt < self.retry.max_attempts:
                    self._sleep(self.retry.delay)
            except PermanentError as e:
                e.attempts = attempt
                raise

        last_error.attempts = self.retry.max_attempts
        raise last_error

    def _wait_for_absence(self, action: Action, policy: WaitPolicy) -> None:
        deadline = self._clock() + policy.timeout

        while True:
            try:
                lifecycle = classify(self.provider.get_by_name(action.kind, action.name))
            except TransientError as e:
                logger.debug(f"Polling {action.kind.label} [{action.name}] failed, will retry: {e}")
                lifecycle = None

            if lifecycle is Lifecycle.ABSENT:
                return

            if self._clock() >= deadline:
                raise WaitTimeoutError(
                    f"{action.kind.label} [{action.name}] was not deleted within {policy.timeout:g} seconds"
                )
            self._sleep(policy.interval)
