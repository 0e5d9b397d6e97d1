# conditions.py
from __future__ import annotations

import shutil
from dataclasses import dataclass
from typing import Callable

from .params import Context

TOOL_HINTS = {
    "dotnet": "Install the .NET SDK or fix PATH.",
    "git": "Install Git or fix PATH.",
    "npm": "Install Node.js (includes npm) or fix PATH.",
    "pytest": "Install pytest (e.g., pip install pytest).",
    "ruff": "Install ruff (e.g., pip install ruff).",
    "docker": "Install Docker and ensure the daemon is running.",
    "python3": "Install Python 3 or fix PATH (python3).",
}


@dataclass(frozen=True)
class Condition:
    """
    A pure predicate over the run context.

    `description` is what gets reported when the predicate is false, so it
    must name parameters, never their values.
    """
    description: str
    check: Callable[[Context], bool]

    def evaluate(self, ctx: Context) -> bool:
        return bool(self.check(ctx))


def when(description: str, check: Callable[[Context], bool]) -> Condition:
    return Condition(description=description, check=check)


def param_set(name: str) -> Condition:
    """Parameter `name` is present and non-empty."""
    return Condition(
        description=f"parameter {name!r} must be set",
        check=lambda ctx: bool(ctx.get(name)),
    )


def param_equals(name: str, expected: str) -> Condition:
    return Condition(
        description=f"parameter {name!r} must equal {expected!r}",
        check=lambda ctx: ctx.get(name) == expected,
    )


def tool_available(tool: str) -> Condition:
    hint = TOOL_HINTS.get(tool, "Install it and ensure it is on PATH.")
    return Condition(
        description=f"tool {tool!r} not found on PATH. {hint}",
        check=lambda ctx: shutil.which(tool) is not None,
    )
