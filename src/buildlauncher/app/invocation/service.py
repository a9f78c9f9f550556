"""Plugin task invocation: descriptors turned into runnable tasks."""

from __future__ import annotations

import argparse
import subprocess
import time
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence, TextIO, cast

from buildlauncher.domain.errors import ChildFailure, LaunchError, LauncherError, ReportedError
from buildlauncher.domain.tasks import GlobalConfig, GlobalFlagOptions, Task, TaskDescriptor, VerifyFlagType
from buildlauncher.settings import RuntimeSettings
from buildlauncher.utils.telemetry import record_structured_event

from .arguments import build_argv

VERIFY_TASK = "verify"


class VerifyFailedError(ReportedError):
    """One or more verify tasks failed; the failures were already printed."""

    def __init__(self, failed: Sequence[str]) -> None:
        super().__init__()
        self.failed = list(failed)


def run_plugin(executable: Path | str, args: Sequence[str], stdout: TextIO) -> int:
    """Run ``executable`` with ``args``, forwarding its output line by line.

    stdin and stderr are inherited. Output is decoded as UTF-8 with undecodable
    bytes replaced. Blocks until the process exits and returns its exit status.
    """
    process = subprocess.Popen(
        [str(executable), *args],
        stdout=subprocess.PIPE,
        encoding="utf-8",
        errors="replace",
    )
    pipe = cast(TextIO, process.stdout)
    try:
        with pipe:
            for line in iter(pipe.readline, ""):
                stdout.write(line)
                stdout.flush()
    finally:
        exit_code = process.wait()
    return exit_code


class TaskInvoker:
    def __init__(self, settings: RuntimeSettings | None = None) -> None:
        self._settings = settings

    def to_task(self, descriptor: TaskDescriptor, plugin_executable: Path | str, config_file: str = "") -> Task:
        def run_impl(task: Task, global_config: GlobalConfig, stdout: TextIO) -> None:
            self._run(descriptor, plugin_executable, task, global_config, stdout)

        return Task(
            name=descriptor.name,
            description=descriptor.description,
            run_impl=run_impl,
            config_file=config_file,
            verify=descriptor.verify_options,
            global_flag_opts=descriptor.global_flag_options or GlobalFlagOptions(),
        )

    def _run(
        self,
        descriptor: TaskDescriptor,
        plugin_executable: Path | str,
        task: Task,
        global_config: GlobalConfig,
        stdout: TextIO,
    ) -> None:
        args = build_argv(descriptor, task, global_config)
        started = time.perf_counter()
        try:
            exit_code = run_plugin(plugin_executable, args, stdout)
        except OSError as exc:
            self._record(task, plugin_executable, started, status="error", exit_code=None)
            raise LaunchError(
                f"plugin execution failed: task={task.name} executable={plugin_executable}: {exc}"
            ) from exc
        self._record(task, plugin_executable, started, status="success" if exit_code == 0 else "failure", exit_code=exit_code)
        if exit_code != 0:
            # the plugin already printed its own diagnostics to the inherited stderr
            raise ChildFailure(exit_code)

    def _record(
        self,
        task: Task,
        plugin_executable: Path | str,
        started: float,
        *,
        status: str,
        exit_code: Optional[int],
    ) -> None:
        if self._settings is None:
            return
        record_structured_event(
            self._settings,
            "plugin.run",
            status=status,
            level="info" if status == "success" else "error",
            component="invocation",
            duration_ms=(time.perf_counter() - started) * 1000,
            payload={"task": task.name, "executable": str(plugin_executable), "exit_code": exit_code},
        )


def to_task(descriptor: TaskDescriptor, plugin_executable: Path | str, config_file: str = "") -> Task:
    return TaskInvoker().to_task(descriptor, plugin_executable, config_file)


def verify_order(tasks: Iterable[Task]) -> List[Task]:
    """Tasks taking part in verify, sorted by their ordering then name."""
    selected = [task for task in tasks if task.verify is not None]
    return sorted(
        selected,
        key=lambda t: (t.verify.ordering is None, t.verify.ordering or 0, t.name),  # type: ignore[union-attr]
    )


def run_verify(
    tasks: Iterable[Task],
    global_config: GlobalConfig,
    stdout: TextIO,
    *,
    apply: bool,
    flag_values: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> None:
    """Run every verify task; keep going after failures and report them together."""
    values = flag_values or {}
    failed: List[str] = []
    for task in verify_order(tasks):
        if task.verify is None:
            continue
        args = task.verify.task_args(apply, values.get(task.name))
        print(f"Running {task.name}...", file=stdout)
        try:
            task.run(global_config.with_task(task.name, args), stdout)
        except ReportedError:
            failed.append(task.name)
        except LauncherError as exc:
            print(f"{task.name}: {exc}", file=stdout)
            failed.append(task.name)
    if failed:
        print("Failed tasks:", file=stdout)
        for name in failed:
            print(f"\t{name}", file=stdout)
        raise VerifyFailedError(failed)


def _flag_dest(task_name: str, flag_name: str) -> str:
    return f"{task_name}_{flag_name}".replace("-", "_")


def build_verify_parser(tasks: Sequence[Task]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=VERIFY_TASK, description="Run verification tasks")
    parser.add_argument(
        "--apply",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="apply changes when possible (--no-apply only checks)",
    )
    parser.add_argument("--skip", action="append", default=[], metavar="TASK", help="skip the named verify task")
    for task in verify_order(tasks):
        if task.verify is None:
            continue
        for flag in task.verify.flags:
            option = f"--{task.name}-{flag.name}"
            dest = _flag_dest(task.name, flag.name)
            if flag.type is VerifyFlagType.BOOL:
                parser.add_argument(option, dest=dest, action="store_true", help=flag.description)
            else:
                parser.add_argument(option, dest=dest, default=None, help=flag.description)
    return parser


def verify_task(tasks: Sequence[Task]) -> Task:
    """The ``verify`` task: runs every task carrying verify options."""
    candidates = list(tasks)
    parser = build_verify_parser(candidates)

    def run_impl(task: Task, global_config: GlobalConfig, stdout: TextIO) -> None:
        args = parser.parse_args(list(global_config.task_args))
        selected = [t for t in candidates if t.name not in set(args.skip)]
        flag_values: dict[str, dict[str, Any]] = {}
        for candidate in verify_order(selected):
            if candidate.verify is None:
                continue
            flag_values[candidate.name] = {
                flag.name: getattr(args, _flag_dest(candidate.name, flag.name)) for flag in candidate.verify.flags
            }
        run_verify(selected, global_config, stdout, apply=args.apply, flag_values=flag_values)

    return Task(name=VERIFY_TASK, description=parser.description or "", run_impl=run_impl)
