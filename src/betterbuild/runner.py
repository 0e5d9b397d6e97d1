from __future__ import annotations

import os
import runpy
import subprocess
import time
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .conditions import Condition
from .dsl import Workflow
from .errors import (
    ActionError,
    PreconditionFailedError,
    StepFailure,
    WorkflowLoadError,
)
from .model import RunReport, SkipReason, Step, Target, TargetResult, TargetState
from .params import Context
from .ui.console import Console, get_console

OUTPUT_TAIL_LINES = 30


# ----------------------------------------------------------------------
# Workflow loading (local file)
# ----------------------------------------------------------------------

def load_workflow(path: str | Path) -> Workflow:
    """
    Load a workflow from a python file path.

    The file must define either:
      - workflow() -> Workflow   (see dsl.build)
      - TARGETS = [Target, ...], optionally PARAMETERS and DEFAULT
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise WorkflowLoadError(f"Workflow file not found: {wf_path}")
    if wf_path.suffix != ".py":
        raise WorkflowLoadError(f"Workflow must be a .py file, got: {wf_path.name}")

    module_name = f"betterbuild_workflow_{wf_path.stem}"
    try:
        globals_dict = runpy.run_path(str(wf_path), run_name=module_name)
        wf = globals_dict["workflow"]() if callable(globals_dict.get("workflow")) else None
    except Exception as e:
        raise WorkflowLoadError(f"Failed to load {wf_path.name}: {type(e).__name__}: {e}") from e

    if wf is None:
        if "TARGETS" not in globals_dict:
            raise WorkflowLoadError(
                f"{wf_path.name} defines neither workflow() nor TARGETS. "
                "Define workflow() -> build(...) or TARGETS = [target(...), ...]."
            )
        wf = Workflow(
            targets=list(globals_dict["TARGETS"]),
            parameters=list(globals_dict.get("PARAMETERS", [])),
            default=globals_dict.get("DEFAULT"),
        )

    if not isinstance(wf, Workflow) or not all(isinstance(t, Target) for t in wf.targets):
        raise WorkflowLoadError(
            "workflow() must return build(...) and TARGETS must be a list of target(...)"
        )
    return wf


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _tail(text: str, lines: int = OUTPUT_TAIL_LINES) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


def _run_step(target: Target, step: Step, ctx: Context, console: Console) -> None:
    cwd = (ctx.root / (step.cwd or ".")).resolve()
    console.print_debug(f"[{target.name}] {ctx.redact(step.name)}: cwd={cwd}")
    if not cwd.exists():
        raise FileNotFoundError(f"[{target.name}] step '{step.name}' cwd not found: {cwd}")

    env = os.environ.copy()
    env.update(ctx.environment())
    env.update(target.env)

    proc = subprocess.run(
        step.run,
        shell=True,
        cwd=str(cwd),
        env=env,
        text=True,
        capture_output=True,   # so we can show output on failure
    )
    console.print_debug(f"[{target.name}] {ctx.redact(step.name)}: exit={proc.returncode}")

    if proc.returncode != 0:
        combined = (proc.stdout or "") + "\n" + (proc.stderr or "")
        raise StepFailure(
            target=target.name,
            step=step.name,
            cmd=step.run,
            exit_code=proc.returncode,
            output=_tail(combined),
        )


def _run_action(target: Target, ctx: Context, console: Console) -> None:
    if target.action is not None:
        target.action(ctx)
    for step in target.steps:
        console.print_step(target.name, ctx.redact(step.name))
        _run_step(target, step, ctx, console)


def _first_unmet(
    target: Target, conditions: Iterable[Condition], ctx: Context
) -> Tuple[Optional[Condition], Optional[PreconditionFailedError]]:
    """
    Returns (condition, None) for the first false predicate, or
    (condition, error) when a predicate raised. (None, None) if all hold.
    """
    for cond in conditions:
        try:
            ok = cond.evaluate(ctx)
        except Exception as e:
            return cond, PreconditionFailedError(
                target.name, ctx.redact(f"{cond.description} ({type(e).__name__}: {e})")
            )
        if not ok:
            return cond, None
    return None, None


def _blocked_by(target: Target, report: RunReport) -> List[str]:
    # a dependency missing from the plan never ran, so it is not satisfied
    return [d for d in target.depends_on if d not in report.results or not report.results[d].satisfied]


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def execute(
    plan: Iterable[Target],
    ctx: Context,
    *,
    fail_fast: bool = False,
    console: Console | None = None,
) -> RunReport:
    """
    Run a plan sequentially and return the final state of every target.

    Errors are recorded on the report, never raised. A failed or blocked
    target skips its dependents; unrelated targets keep running unless
    fail_fast is set.
    """
    console = console or get_console()
    plan = list(plan)
    report = RunReport({t.name: TargetResult(t.name) for t in plan})
    aborted = False

    for t in plan:
        result = report.results[t.name]

        if aborted:
            result.state, result.skip_reason = TargetState.SKIPPED, SkipReason.ABORTED
            console.print_target_skipped(t.name, "aborted after earlier failure")
            continue

        blocked = _blocked_by(t, report)
        if blocked:
            result.state, result.skip_reason = TargetState.SKIPPED, SkipReason.DEPENDENCY
            console.print_target_skipped(t.name, f"dependency not satisfied: {', '.join(blocked)}")
            continue

        # 1) requires: a false predicate fails the target
        cond, err = _first_unmet(t, t.requires, ctx)
        if cond is not None and err is None:
            err = PreconditionFailedError(t.name, ctx.redact(cond.description))

        # 2) only_when: a false predicate skips it, a raising one fails it
        if err is None:
            cond, err = _first_unmet(t, t.only_when, ctx)
            if cond is not None and err is None:
                result.state, result.skip_reason = TargetState.SKIPPED, SkipReason.CONDITION
                console.print_target_skipped(t.name, ctx.redact(f"condition false: {cond.description}"))
                continue

        if err is not None:
            result.state, result.error = TargetState.FAILED, err
            console.print_failure(t.name, str(err), is_target=True)
            aborted = fail_fast
            continue

        result.state = TargetState.RUNNING
        console.print_target_start(t.name)
        started = time.monotonic()
        try:
            _run_action(t, ctx, console)
        except Exception as e:
            result.state = TargetState.FAILED
            result.error = ActionError(t.name, ctx.redact(str(e) or type(e).__name__), cause=e)
            console.print_failure(
                t.name,
                result.error.message,
                exit_code=getattr(e, "exit_code", None),
                is_target=True,
            )
            aborted = fail_fast
        else:
            result.state = TargetState.SUCCEEDED
            console.print_success(t.name)
        finally:
            result.duration = time.monotonic() - started

    return report
