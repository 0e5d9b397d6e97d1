# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from .errors import EXIT_CONFIG_ERROR, EXIT_OK, EXIT_TARGET_FAILED, PreconditionFailedError

if TYPE_CHECKING:
    from .conditions import Condition
    from .params import Context


@dataclass(frozen=True)
class Step:
    """A single shell command inside a target."""
    name: str
    run: str
    cwd: str | None = None


class TargetState(str, Enum):
    PENDING = "pending"
    SKIPPED = "skipped"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SkipReason(str, Enum):
    CONDITION = "condition"    # an only_when predicate was false
    DEPENDENCY = "dependency"  # a hard dependency failed or was blocked
    ABORTED = "aborted"        # fail-fast stopped the run


@dataclass
class Target:
    """
    A named unit of work: dependencies + preconditions + action.

    The action is either a callable taking the run context, a list of shell
    steps, or both (callable first, then steps).
    """
    name: str
    action: Optional[Callable[["Context"], Any]] = None
    steps: List[Step] = field(default_factory=list)

    # hard dependencies: must succeed before this target starts
    depends_on: List[str] = field(default_factory=list)

    # soft ordering: only enforced when both targets are planned
    before: List[str] = field(default_factory=list)
    after: List[str] = field(default_factory=list)

    requires: List["Condition"] = field(default_factory=list)
    only_when: List["Condition"] = field(default_factory=list)

    description: str | None = None
    env: Dict[str, str] = field(default_factory=dict)


@dataclass
class TargetResult:
    name: str
    state: TargetState = TargetState.PENDING
    skip_reason: SkipReason | None = None
    error: Exception | None = None
    duration: float | None = None

    @property
    def satisfied(self) -> bool:
        """True when dependents of this target may run."""
        if self.state is TargetState.SUCCEEDED:
            return True
        return self.state is TargetState.SKIPPED and self.skip_reason is SkipReason.CONDITION

    @property
    def status(self) -> str:
        if self.state is TargetState.SKIPPED and self.skip_reason is not None:
            return f"skipped({self.skip_reason.value})"
        return self.state.value


@dataclass
class RunReport:
    """Final state of every planned target, in plan order."""
    results: Dict[str, TargetResult] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return all(r.satisfied for r in self.results.values())

    @property
    def failures(self) -> List[TargetResult]:
        return [r for r in self.results.values() if r.state is TargetState.FAILED]

    @property
    def exit_code(self) -> int:
        """
        EXIT_CONFIG_ERROR when every failure is an unmet precondition
        (missing or invalid parameters), EXIT_TARGET_FAILED otherwise.
        """
        if self.succeeded:
            return EXIT_OK
        failures = self.failures
        if failures and all(isinstance(r.error, PreconditionFailedError) for r in failures):
            return EXIT_CONFIG_ERROR
        return EXIT_TARGET_FAILED

    def states(self) -> Dict[str, TargetState]:
        return {name: r.state for name, r in self.results.items()}

    def __getitem__(self, name: str) -> TargetResult:
        return self.results[name]
