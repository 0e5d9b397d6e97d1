# src/betterbuild/dsl.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, List, Optional, Dict, Sequence

from .conditions import Condition
from .model import Step, Target
from .params import Context, Parameter
from .registry import TargetRegistry


# ---------------------------------------------------------------------
# Step helper
# ---------------------------------------------------------------------

def sh(name: str, cmd: str, *, cwd: str | None = None) -> Step:
    """Create a shell step."""
    return Step(name=name, run=cmd, cwd=cwd)


# ---------------------------------------------------------------------
# Target helper
# ---------------------------------------------------------------------

def target(
    name: str,
    *steps: Step,  # allow: target("x", sh(...), sh(...))
    action: Optional[Callable[[Context], Any]] = None,
    depends_on: Optional[Sequence[str]] = None,
    before: Optional[Sequence[str]] = None,
    after: Optional[Sequence[str]] = None,
    requires: Optional[Sequence[Condition]] = None,
    only_when: Optional[Sequence[Condition]] = None,
    description: str | None = None,
    env: Optional[Dict[str, str]] = None,
    cwd: str | None = None,  # default cwd applied to steps missing cwd
) -> Target:
    steps_final: List[Step] = list(steps)

    if not steps_final and action is None:
        raise ValueError(f"target({name!r}) must have an action or at least one step")

    if cwd is not None:
        steps_final = [s if s.cwd is not None else replace(s, cwd=cwd) for s in steps_final]

    return Target(
        name=name,
        action=action,
        steps=steps_final,
        depends_on=list(depends_on or []),
        before=list(before or []),
        after=list(after or []),
        requires=list(requires or []),
        only_when=list(only_when or []),
        description=description,
        env={k: str(v) for k, v in (env or {}).items()},
    )


def param(
    name: str,
    default: str | None = None,
    *,
    secret: bool = False,
    env: str | None = None,
    help: str | None = None,
) -> Parameter:
    return Parameter(name=name, default=default, secret=secret, env=env, help=help)


# ---------------------------------------------------------------------
# Workflow helper (single-file story)
# ---------------------------------------------------------------------

@dataclass
class Workflow:
    targets: List[Target]
    parameters: List[Parameter] = field(default_factory=list)
    default: str | None = None

    def registry(self) -> TargetRegistry:
        return TargetRegistry(self.targets)


def build(
    *targets: Target,
    parameters: Sequence[Parameter] = (),
    default: str | None = None,
) -> Workflow:
    """
    Workflow definition helper.

    Users can write:
        from betterbuild import build, target, sh, param

        def workflow():
            return build(
                target("restore", sh("Restore", "dotnet restore")),
                target("compile", sh(...), depends_on=["restore"]),
                parameters=[param("configuration", "Debug")],
                default="compile",
            )

    Or define TARGETS (and optionally PARAMETERS / DEFAULT) directly.
    """
    return Workflow(targets=list(targets), parameters=list(parameters), default=default)
