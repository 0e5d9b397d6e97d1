"""Console output formatting utilities for betterbuild."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from betterbuild.model import RunReport, Target
    from betterbuild.params import Context, Parameter


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))

    def print_run_started(
        self,
        workflow: str,
        requested: list[str],
        target_count: int,
    ) -> None:
        """Print run start information."""
        print("\nBUILD STARTED")
        print(f"Workflow: {workflow}")
        print(f"Requested: {', '.join(requested)}")
        print(f"Targets: {target_count}")
        print()

    def print_plan(self, plan: list["Target"]) -> None:
        """Print the execution plan in order."""
        self.print_header("PLAN")
        for i, t in enumerate(plan, 1):
            deps = f" (depends on: {', '.join(t.depends_on)})" if t.depends_on else ""
            print(f"  {i}. {t.name}{deps}")

    def print_target_start(self, name: str) -> None:
        print(f"\nTARGET STARTED: {name}")

    def print_step(self, target: str, name: str) -> None:
        print(f"[{target}] ▶ {name}")

    def print_success(self, name: str) -> None:
        print("STATUS: success")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        is_target: bool = False,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Target or step name
            reason: Failure reason/error message (already redacted)
            exit_code: Optional exit code
            is_target: If True, print "TARGET FAILED", otherwise "STEP FAILED"
        """
        prefix = "TARGET FAILED" if is_target else "STEP FAILED"
        print(f"{prefix}: {name}")
        if exit_code is not None:
            print(f"Exit code: {exit_code}")
        if self.debug:
            print(f"Error details: {reason}")
        else:
            # first line only outside debug mode
            error_line = reason.split("\n")[0] if reason else "Unknown error"
            print(f"Error: {error_line}")

    def print_target_skipped(self, name: str, reason: str) -> None:
        print(f"\nTARGET SKIPPED: {name}")
        print(f"STATUS: skipped ({reason})")

    def print_results(self, report: "RunReport") -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for name, r in report.results.items():
            duration = f" ({r.duration:.1f}s)" if r.duration is not None else ""
            print(f"  {name}: {r.status.upper()}{duration}")
        print()
        print("BUILD SUCCEEDED" if report.succeeded else "BUILD FAILED")

    def print_targets(self, targets: Iterable["Target"], default: str | None = None) -> None:
        self.print_header("TARGETS")
        for t in targets:
            marker = " (default)" if t.name == default else ""
            print(f"  {t.name}{marker}")
            if t.description:
                print(f"      {t.description}")
            if t.depends_on:
                print(f"      depends on: {', '.join(t.depends_on)}")
            if t.before or t.after:
                order = [f"before {n}" for n in t.before] + [f"after {n}" for n in t.after]
                print(f"      ordering: {', '.join(order)}")

    def print_parameters(self, parameters: Iterable["Parameter"], ctx: "Context") -> None:
        params = list(parameters)
        if not params:
            return
        self.print_header("PARAMETERS")
        for p in params:
            flag = " [secret]" if p.secret else ""
            print(f"  {p.name} = {ctx.display(p.name)}  (env: {p.env_var}){flag}")
            if p.help:
                print(f"      {p.help}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception, redact=None) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            text = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        else:
            text = f"Error: {exc}"
        print(redact(text) if redact is not None else text, file=sys.stderr)

    def print_info(self, message: str) -> None:
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (initialized by the CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
