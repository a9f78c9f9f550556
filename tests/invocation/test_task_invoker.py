from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from buildlauncher.app.invocation import (
    TaskInvoker,
    VerifyFailedError,
    run_plugin,
    run_verify,
    to_task,
    verify_order,
    verify_task,
)
from buildlauncher.domain.errors import ChildFailure, LaunchError
from buildlauncher.domain.tasks import (
    GlobalConfig,
    GlobalFlagOptions,
    Task,
    VerifyFlag,
    VerifyFlagType,
    VerifyOptions,
    new_task_descriptor,
    with_command,
    with_global_flag_options,
    with_verify_options,
)
from buildlauncher.settings import RuntimeSettings


def _recording_task(name: str, calls: list[tuple[str, tuple[str, ...]]], ordering: int | None, fail: bool = False) -> Task:
    def run_impl(task: Task, global_config: GlobalConfig, stdout) -> None:
        calls.append((task.name, global_config.task_args))
        if fail:
            raise ChildFailure(1)

    return Task(
        name=name,
        description="",
        run_impl=run_impl,
        verify=VerifyOptions(ordering=ordering, apply_true_args=("--fix",), apply_false_args=("--check",)),
    )


def test_run_plugin_streams_output(make_plugin) -> None:
    plugin = make_plugin("echo-plugin", {"id": "echo", "tasks": []})
    sink = io.StringIO()
    assert run_plugin(plugin.path, ["hello", "world"], sink) == 0
    assert sink.getvalue() == "ran hello world\n"


def test_task_runs_plugin_with_built_argv(make_plugin, project_dir: Path) -> None:
    plugin = make_plugin("fmt-plugin", {"id": "fmt", "tasks": []})
    descriptor = new_task_descriptor(
        "fmt", "", with_command("format"), with_global_flag_options(GlobalFlagOptions(project_dir_flag="--root"))
    )
    task = to_task(descriptor, plugin.path)
    global_config = GlobalConfig(wrapper=str(project_dir / "launchw"), task="fmt", task_args=("a.txt",))
    sink = io.StringIO()
    task.run(global_config, sink)
    assert plugin.calls() == [["--root", str(project_dir), "format", "a.txt"]]
    assert sink.getvalue().startswith("ran --root")


def test_non_zero_exit_raises_child_failure(make_plugin) -> None:
    plugin = make_plugin("bad-plugin", {"id": "bad", "tasks": []})
    task = to_task(new_task_descriptor("bad", "", with_command("fail")), plugin.path)
    sink = io.StringIO()
    with pytest.raises(ChildFailure) as excinfo:
        task.run(GlobalConfig(), sink)
    assert excinfo.value.returncode == 3
    assert str(excinfo.value) == ""
    assert "failing fail" in sink.getvalue()


def test_missing_executable_raises_launch_error(tmp_path: Path) -> None:
    task = to_task(new_task_descriptor("ghost", ""), tmp_path / "missing")
    with pytest.raises(LaunchError, match="task=ghost"):
        task.run(GlobalConfig(), io.StringIO())


def test_invoker_records_telemetry(make_plugin, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BUILDLAUNCHER_TELEMETRY", "1")
    settings = RuntimeSettings(home_dir=tmp_path / "home", log_dir=tmp_path / "logs")
    plugin = make_plugin("fmt-plugin", {"id": "fmt", "tasks": []})
    task = TaskInvoker(settings).to_task(new_task_descriptor("fmt", ""), plugin.path)
    task.run(GlobalConfig(), io.StringIO())
    events = [json.loads(line) for line in settings.telemetry_file.read_text(encoding="utf-8").splitlines()]
    assert [event["event"] for event in events] == ["plugin.run"]
    assert events[0]["payload"]["exit_code"] == 0
    assert json.loads(settings.telemetry_file.read_text(encoding="utf-8"))["status"] == "success"


def test_verify_order_sorts_by_ordering_then_name() -> None:
    calls: list = []
    tasks = [
        _recording_task("zeta", calls, None),
        _recording_task("beta", calls, 2),
        _recording_task("alpha", calls, None),
        _recording_task("gamma", calls, 1),
        Task(name="plain", description="", run_impl=lambda *args: None),
    ]
    assert [task.name for task in verify_order(tasks)] == ["gamma", "beta", "alpha", "zeta"]


def test_run_verify_continues_after_failures() -> None:
    calls: list = []
    tasks = [
        _recording_task("first", calls, 1, fail=True),
        _recording_task("second", calls, 2),
        _recording_task("third", calls, 3, fail=True),
    ]
    sink = io.StringIO()
    with pytest.raises(VerifyFailedError) as excinfo:
        run_verify(tasks, GlobalConfig(), sink, apply=False)
    assert excinfo.value.failed == ["first", "third"]
    assert [name for name, _ in calls] == ["first", "second", "third"]
    assert all(args == ("--check",) for _, args in calls)
    assert sink.getvalue().endswith("Failed tasks:\n\tfirst\n\tthird\n")


def test_verify_task_parses_its_own_arguments() -> None:
    calls: list = []
    flagged = Task(
        name="lint",
        description="",
        run_impl=lambda task, global_config, stdout: calls.append((task.name, global_config.task_args)),
        verify=VerifyOptions(
            flags=(VerifyFlag("strict"), VerifyFlag("only", type=VerifyFlagType.STRING)),
            apply_true_args=("--fix",),
        ),
    )
    skipped = _recording_task("slow", calls, 0)
    task = verify_task([flagged, skipped])
    global_config = GlobalConfig(task="verify", task_args=("--lint-strict", "--lint-only", "pkg", "--skip", "slow"))
    task.run(global_config, io.StringIO())
    assert calls == [("lint", ("--strict", "--only", "pkg", "--fix"))]


def test_descriptor_verify_options_reach_task(make_plugin) -> None:
    plugin = make_plugin("lint-plugin", {"id": "lint", "tasks": []})
    descriptor = new_task_descriptor("lint", "", with_verify_options(VerifyOptions(ordering=5)))
    task = to_task(descriptor, plugin.path, "lint.yml")
    assert task.verify == VerifyOptions(ordering=5)
    assert task.config_file == "lint.yml"
    assert task.global_flag_opts == GlobalFlagOptions()


def test_undecodable_output_is_replaced(make_plugin) -> None:
    plugin = make_plugin("latin-plugin", {"id": "latin", "tasks": []})
    task = to_task(new_task_descriptor("latin", "", with_command("latin1")), plugin.path)
    sink = io.StringIO()
    task.run(GlobalConfig(), sink)
    assert sink.getvalue() == "caf\ufffd\n"


def test_run_verify_ignores_tasks_without_verify_options() -> None:
    calls: list = []
    plain = Task(name="plain", description="", run_impl=lambda task, global_config, stdout: calls.append(task.name))
    run_verify([plain, _recording_task("checked", calls, 1)], GlobalConfig(), io.StringIO(), apply=True)
    assert calls == [("checked", ("--fix",))]
