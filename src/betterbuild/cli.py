# cli.py
from __future__ import annotations

import sys
from pathlib import Path

import click

from betterbuild.dag import plan as plan_targets
from betterbuild.dsl import Workflow
from betterbuild.errors import (
    EXIT_CONFIG_ERROR,
    EXIT_INTERRUPTED,
    ConfigurationError,
)
from betterbuild.params import Context, parse_assignments, resolve_parameters
from betterbuild.runner import execute, load_workflow
from betterbuild.ui.console import Console, get_console, set_console

DEFAULT_WORKFLOW = "betterbuild_workflow.py"


def find_workflow_files(directory: Path = Path(".")) -> list[Path]:
    """
    Find all workflow files in a directory.

    Returns:
        List of Path objects for workflow files
    """
    workflow_files = []

    default_workflow = directory / DEFAULT_WORKFLOW
    if default_workflow.exists():
        workflow_files.append(default_workflow)

    for path in directory.glob("*_workflow.py"):
        if path != default_workflow:
            workflow_files.append(path)

    return sorted(workflow_files)


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Discover workflow file from argument or default.

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists() and workflow_path.suffix != ".py":
            workflow_path = Path(str(workflow_path) + ".py")
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  betterbuild run --workflow my_workflow.py",
            )
            sys.exit(EXIT_CONFIG_ERROR)
        return workflow_path

    workflow_files = find_workflow_files()

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=[
                "Looked for:",
                f"  {DEFAULT_WORKFLOW}",
                "  *_workflow.py",
            ],
            suggestion=f"Create a workflow file:\n  {DEFAULT_WORKFLOW}\n\nOr specify a workflow explicitly:\n  betterbuild run --workflow my_workflow.py",
        )
        sys.exit(EXIT_CONFIG_ERROR)

    if len(workflow_files) > 1:
        file_list = "\n".join(f"  {f}" for f in workflow_files)
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[file_list],
            suggestion=f"Specify a workflow explicitly:\n  betterbuild run --workflow {DEFAULT_WORKFLOW}",
        )
        sys.exit(EXIT_CONFIG_ERROR)

    return workflow_files[0]


def _prepare(workflow: str | None, params: tuple[str, ...]) -> tuple[Path, Workflow, Context]:
    workflow_path = discover_workflow(workflow)
    wf = load_workflow(workflow_path)
    ctx = resolve_parameters(
        wf.parameters,
        parse_assignments(params),
        root=workflow_path.resolve().parent,
    )
    return workflow_path, wf, ctx


def _requested(targets: tuple[str, ...], wf: Workflow) -> list[str]:
    if targets:
        return list(targets)
    return [wf.default] if wf.default else []


def _fail_config(ctx: click.Context, exc: ConfigurationError, redact=None) -> None:
    message = str(exc)
    if redact is not None:
        message = redact(message)
    console = get_console()
    console.print_error("Configuration error", message)
    if ctx.obj.get("debug", False):
        console.print_exception(exc, redact)
    sys.exit(EXIT_CONFIG_ERROR)


workflow_option = click.option(
    "--workflow",
    default=None,
    help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)",
)
param_option = click.option(
    "--param",
    "-p",
    "params",
    multiple=True,
    metavar="NAME=VALUE",
    help="Set a workflow parameter (repeatable). Overrides environment and defaults.",
)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """betterbuild: dependency-ordered build targets."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("targets", nargs=-1)
@workflow_option
@param_option
@click.option("--fail-fast/--no-fail-fast", default=False, help="Skip all remaining targets after the first failure")
@click.option("--print-plan/--no-print-plan", default=True, show_default=True, help="Print the execution plan before running")
@click.pass_context
def run(ctx, targets, workflow, params, fail_fast, print_plan):
    """Run TARGETS (or the workflow's default target) and their dependencies."""
    console = get_console()
    run_ctx = None

    try:
        workflow_path, wf, run_ctx = _prepare(workflow, params)
        requested = _requested(targets, wf)
        plan = plan_targets(wf.registry(), requested)
    except ConfigurationError as e:
        _fail_config(ctx, e, run_ctx.redact if run_ctx is not None else None)
        return

    try:
        console.print_run_started(
            workflow=workflow_path.name,
            requested=requested,
            target_count=len(plan),
        )
        if print_plan:
            console.print_plan(plan)

        report = execute(plan, run_ctx, fail_fast=fail_fast, console=console)
        console.print_results(report)
        if not report.succeeded:
            sys.exit(report.exit_code)

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(EXIT_INTERRUPTED)


@cli.command()
@click.argument("targets", nargs=-1)
@workflow_option
@param_option
@click.pass_context
def plan(ctx, targets, workflow, params):
    """Print the execution plan for TARGETS without running anything."""
    console = get_console()
    try:
        _path, wf, _run_ctx = _prepare(workflow, params)
        console.print_plan(plan_targets(wf.registry(), _requested(targets, wf)))
    except ConfigurationError as e:
        _fail_config(ctx, e)


@cli.command(name="list")
@workflow_option
@param_option
@click.pass_context
def list_targets(ctx, workflow, params):
    """List targets and parameters declared by the workflow."""
    console = get_console()
    try:
        _path, wf, run_ctx = _prepare(workflow, params)
        wf.registry()
    except ConfigurationError as e:
        _fail_config(ctx, e)
        return

    console.print_targets(wf.targets, default=wf.default)
    console.print_parameters(wf.parameters, run_ctx)


if __name__ == "__main__":
    cli()
