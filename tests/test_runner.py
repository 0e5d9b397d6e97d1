import pytest

from betterbuild.conditions import param_equals, param_set, when
from betterbuild.dag import plan
from betterbuild.dsl import sh, target
from betterbuild.errors import ActionError, PreconditionFailedError, StepFailure
from betterbuild.model import SkipReason, TargetState
from betterbuild.params import Context
from betterbuild.registry import TargetRegistry
from betterbuild.runner import execute
from betterbuild.ui.console import Console

SECRET = "s3cr3t"


def recorder(calls, name, fail=False):
    def action(ctx):
        calls.append(name)
        if fail:
            raise RuntimeError(f"{name} broke")
    return action


def run(targets, requested, ctx=None, **kwargs):
    reg = TargetRegistry(targets)
    return execute(plan(reg, requested), ctx or Context(), **kwargs)


def test_restore_compile_test_chain():
    calls = []
    report = run(
        [
            target("restore", action=recorder(calls, "restore")),
            target("compile", action=recorder(calls, "compile"), depends_on=["restore"]),
            target("test", action=recorder(calls, "test"), depends_on=["compile"]),
        ],
        ["test"],
    )

    assert calls == ["restore", "compile", "test"]
    assert report.states() == {
        "restore": TargetState.SUCCEEDED,
        "compile": TargetState.SUCCEEDED,
        "test": TargetState.SUCCEEDED,
    }
    assert report.succeeded
    assert report.exit_code == 0


def test_diamond_dependency_executes_once():
    calls = []
    run(
        [
            target("A", action=recorder(calls, "A"), depends_on=["B", "C"]),
            target("B", action=recorder(calls, "B"), depends_on=["D"]),
            target("C", action=recorder(calls, "C"), depends_on=["D"]),
            target("D", action=recorder(calls, "D")),
        ],
        ["A"],
    )

    assert calls.count("D") == 1
    assert calls.index("D") < calls.index("B") < calls.index("A")
    assert calls.index("D") < calls.index("C") < calls.index("A")


def test_failure_skips_transitive_dependents_but_not_independents():
    calls = []
    report = run(
        [
            target("D", action=recorder(calls, "D", fail=True)),
            target("B", action=recorder(calls, "B"), depends_on=["D"]),
            target("A", action=recorder(calls, "A"), depends_on=["B"]),
            target("E", action=recorder(calls, "E")),
        ],
        ["A", "E"],
    )

    assert calls == ["D", "E"]
    assert report["D"].state is TargetState.FAILED
    assert isinstance(report["D"].error, ActionError)
    assert isinstance(report["D"].error.cause, RuntimeError)
    assert "D broke" in str(report["D"].error)
    assert report["B"].state is TargetState.SKIPPED
    assert report["B"].skip_reason is SkipReason.DEPENDENCY
    assert report["A"].state is TargetState.SKIPPED
    assert report["E"].state is TargetState.SUCCEEDED
    assert not report.succeeded
    assert report.exit_code == 1
    assert [r.name for r in report.failures] == ["D"]


def test_requires_false_fails_target_without_running_it():
    calls = []
    ctx = Context({"configuration": "Debug"})
    report = run(
        [
            target("pack", action=recorder(calls, "pack")),
            target(
                "release",
                action=recorder(calls, "release"),
                depends_on=["pack"],
                requires=[param_equals("configuration", "Release")],
            ),
            target("announce", action=recorder(calls, "announce"), depends_on=["release"]),
        ],
        ["announce"],
        ctx,
    )

    assert calls == ["pack"]
    assert report["release"].state is TargetState.FAILED
    assert isinstance(report["release"].error, PreconditionFailedError)
    assert "configuration" in str(report["release"].error)
    assert report["announce"].state is TargetState.SKIPPED
    assert report["announce"].skip_reason is SkipReason.DEPENDENCY
    assert not report.succeeded


def test_missing_required_parameter_is_reported_by_name():
    report = run(
        [target("release", action=lambda ctx: None, requires=[param_set("nuget_api_key")])],
        ["release"],
        Context({"nuget_api_key": None}),
    )

    assert report["release"].state is TargetState.FAILED
    assert "'nuget_api_key' must be set" in str(report["release"].error)


def test_only_when_false_skips_without_penalizing_dependents():
    calls = []
    report = run(
        [
            target(
                "changelog",
                action=recorder(calls, "changelog"),
                only_when=[when("on CI", lambda ctx: ctx.get("ci") == "true")],
            ),
            target("pack", action=recorder(calls, "pack"), depends_on=["changelog"]),
        ],
        ["pack"],
        Context({"ci": "false"}),
    )

    assert calls == ["pack"]
    assert report["changelog"].state is TargetState.SKIPPED
    assert report["changelog"].skip_reason is SkipReason.CONDITION
    assert report["pack"].state is TargetState.SUCCEEDED
    assert report.succeeded


def test_requires_checked_before_only_when():
    report = run(
        [
            target(
                "release",
                action=lambda ctx: None,
                requires=[when("always false", lambda ctx: False)],
                only_when=[when("also false", lambda ctx: False)],
            )
        ],
        ["release"],
    )

    assert report["release"].state is TargetState.FAILED


def test_raising_predicate_fails_target():
    def boom(ctx):
        raise KeyError("missing")

    report = run(
        [target("x", action=lambda ctx: None, only_when=[when("probe", boom)])],
        ["x"],
    )

    assert report["x"].state is TargetState.FAILED
    assert isinstance(report["x"].error, PreconditionFailedError)
    assert "KeyError" in str(report["x"].error)


def test_fail_fast_aborts_remaining_targets():
    calls = []
    report = run(
        [
            target("lint", action=recorder(calls, "lint", fail=True)),
            target("docs", action=recorder(calls, "docs")),
            target("test", action=recorder(calls, "test")),
        ],
        ["lint", "docs", "test"],
        fail_fast=True,
    )

    assert calls == ["lint"]
    assert report["docs"].skip_reason is SkipReason.ABORTED
    assert report["test"].skip_reason is SkipReason.ABORTED


def test_without_fail_fast_independent_targets_continue():
    calls = []
    report = run(
        [
            target("lint", action=recorder(calls, "lint", fail=True)),
            target("docs", action=recorder(calls, "docs")),
        ],
        ["lint", "docs"],
    )

    assert calls == ["lint", "docs"]
    assert report["docs"].state is TargetState.SUCCEEDED


def test_failed_requires_with_fail_fast_aborts():
    calls = []
    report = run(
        [
            target("release", action=recorder(calls, "release"), requires=[when("nope", lambda ctx: False)]),
            target("docs", action=recorder(calls, "docs")),
        ],
        ["release", "docs"],
        fail_fast=True,
    )

    assert calls == []
    assert report["docs"].skip_reason is SkipReason.ABORTED


def test_shell_steps_run_in_root_with_parameters_exported(tmp_path):
    (tmp_path / "sub").mkdir()
    ctx = Context({"configuration": "Release"}, root=tmp_path)
    report = run(
        [
            target(
                "compile",
                sh("write config", 'printf "%s" "$CONFIGURATION" > config.txt'),
                sh("write env", 'printf "%s" "$EXTRA" > extra.txt', cwd="sub"),
                env={"EXTRA": "yes"},
            )
        ],
        ["compile"],
        ctx,
    )

    assert report.succeeded
    assert (tmp_path / "config.txt").read_text() == "Release"
    assert (tmp_path / "sub" / "extra.txt").read_text() == "yes"


def test_failing_shell_step_reports_exit_code(tmp_path):
    report = run(
        [target("test", sh("ok", "true"), sh("tests", "echo failing >&2; exit 3"))],
        ["test"],
        Context(root=tmp_path),
    )

    err = report["test"].error
    assert report["test"].state is TargetState.FAILED
    assert isinstance(err.cause, StepFailure)
    assert err.cause.exit_code == 3
    assert "failing" in str(err)


def test_secret_never_appears_in_errors_or_output(tmp_path, capsys):
    ctx = Context({"api_key": SECRET}, secrets=["api_key"], root=tmp_path)

    def leaky_check(ctx):
        raise ValueError(f"bad key {ctx['api_key']}")

    def leaky_action(ctx):
        raise RuntimeError(f"push rejected for key {ctx['api_key']}")

    report = run(
        [
            target("a", action=lambda c: None, requires=[when("api key has sk- prefix", lambda c: c["api_key"].startswith("sk-"))]),
            target("b", action=lambda c: None, requires=[when("api key is valid", leaky_check)]),
            target("c", action=leaky_action),
            target("d", sh("push", 'echo "using $API_KEY"; exit 1')),
        ],
        ["a", "b", "c", "d"],
        ctx,
        console=Console(debug=True),
    )

    assert all(r.state is TargetState.FAILED for r in report.results.values())
    for r in report.results.values():
        assert SECRET not in str(r.error)
    assert "***" in str(report["b"].error)
    assert "***" in str(report["d"].error)
    assert SECRET not in repr(report)
    assert SECRET not in repr(report["c"].error)

    out = capsys.readouterr()
    assert SECRET not in out.out
    assert SECRET not in out.err


def test_results_are_in_plan_order_with_durations():
    report = run(
        [
            target("b", action=lambda ctx: None, depends_on=["a"]),
            target("a", action=lambda ctx: None),
        ],
        ["b"],
    )

    assert list(report.results) == ["a", "b"]
    assert all(r.duration is not None for r in report.results.values())


def test_action_receives_context():
    seen = {}
    ctx = Context({"configuration": "Release"})

    run([target("x", action=lambda c: seen.update(cfg=c.get("configuration")))], ["x"], ctx)

    assert seen == {"cfg": "Release"}


@pytest.mark.parametrize("fail_fast", [True, False])
def test_nothing_runs_twice(fail_fast):
    calls = []
    targets = [
        target("restore", action=recorder(calls, "restore")),
        target("compile", action=recorder(calls, "compile"), depends_on=["restore"]),
        target("test", action=recorder(calls, "test"), depends_on=["compile", "restore"]),
        target("pack", action=recorder(calls, "pack"), depends_on=["test", "compile"]),
    ]
    run(targets, ["pack", "test", "restore"], fail_fast=fail_fast)

    assert calls == ["restore", "compile", "test", "pack"]


def test_only_precondition_failures_exit_with_configuration_code():
    report = run(
        [
            target("release", action=lambda ctx: None, requires=[param_set("api_key")]),
            target("docs", action=lambda ctx: None),
        ],
        ["release", "docs"],
        Context({"api_key": None}),
    )

    assert report.exit_code == 2


def test_action_failure_exits_with_target_failure_code():
    report = run(
        [
            target("release", action=lambda ctx: None, requires=[param_set("api_key")]),
            target("compile", action=recorder([], "compile", fail=True)),
        ],
        ["release", "compile"],
        Context({"api_key": None}),
    )

    assert report.exit_code == 1


def test_dependency_missing_from_hand_built_plan_is_not_satisfied():
    calls = []
    reg = TargetRegistry([
        target("restore", action=recorder(calls, "restore")),
        target("compile", action=recorder(calls, "compile"), depends_on=["restore"]),
    ])

    report = execute([reg.get("compile")], Context())

    assert calls == []
    assert report["compile"].state is TargetState.SKIPPED
    assert report["compile"].skip_reason is SkipReason.DEPENDENCY


def test_debug_console_reports_step_cwd_and_exit(tmp_path, capsys):
    run(
        [target("compile", sh("build", "exit 4"))],
        ["compile"],
        Context(root=tmp_path),
        console=Console(debug=True),
    )

    err = capsys.readouterr().err
    assert f"[DEBUG] [compile] build: cwd={tmp_path.resolve()}" in err
    assert "[DEBUG] [compile] build: exit=4" in err


def test_debug_lines_hidden_without_debug(tmp_path, capsys):
    run([target("compile", sh("build", "true"))], ["compile"], Context(root=tmp_path), console=Console())

    assert "[DEBUG]" not in capsys.readouterr().err
