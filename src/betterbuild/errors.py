# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

EXIT_OK = 0
EXIT_TARGET_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


class BuildError(Exception):
    """Base class for every error raised or recorded by betterbuild."""


# ----------------------------------------------------------------------
# Configuration errors (detected before any target runs)
# ----------------------------------------------------------------------

class ConfigurationError(BuildError):
    pass


@dataclass
class DuplicateTargetError(ConfigurationError):
    name: str

    def __str__(self) -> str:
        return f"Duplicate target name: {self.name!r}"


@dataclass
class UnknownTargetError(ConfigurationError):
    name: str
    known: List[str] = field(default_factory=list)
    referenced_by: Optional[str] = None

    def __str__(self) -> str:
        if self.referenced_by:
            msg = f"Target {self.referenced_by!r} references unknown target {self.name!r}"
        else:
            msg = f"Unknown target: {self.name!r}"
        if self.known:
            msg += f". Known targets: {', '.join(self.known)}"
        return msg


@dataclass
class CyclicDependencyError(ConfigurationError):
    cycle: List[str]

    def __str__(self) -> str:
        return f"Dependency cycle detected: {' -> '.join(self.cycle)}"


class RegistryFrozenError(ConfigurationError):
    pass


class ParameterError(ConfigurationError):
    pass


class WorkflowLoadError(ConfigurationError):
    pass


# ----------------------------------------------------------------------
# Execution errors (collected per target, never raised out of a run)
# ----------------------------------------------------------------------

@dataclass
class PreconditionFailedError(BuildError):
    target: str
    message: str

    def __str__(self) -> str:
        return f"[{self.target}] precondition failed: {self.message}"


@dataclass
class StepFailure(BuildError):
    target: str
    step: str
    cmd: str
    exit_code: int
    output: str = ""

    def __str__(self) -> str:
        lines = [f"[{self.target}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"]
        if self.output:
            lines.append(self.output)
        return "\n".join(lines)


@dataclass
class ActionError(BuildError):
    """Wraps whatever failure a target action reported."""
    target: str
    message: str
    # the raw exception may carry secret values, keep it out of repr()
    cause: Optional[BaseException] = field(default=None, repr=False, compare=False)

    def __str__(self) -> str:
        return f"[{self.target}] action failed: {self.message}"
