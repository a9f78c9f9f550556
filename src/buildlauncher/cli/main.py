#!/usr/bin/env python3
"""Entry point for the blaunch CLI."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from textwrap import dedent
from typing import Dict, TextIO

from buildlauncher import __version__
from buildlauncher.app.invocation import VERIFY_TASK, TaskInvoker, verify_task
from buildlauncher.app.migration import (
    UPGRADE_LEGACY_CONFIG_TASK,
    central_config_upgrade_task,
    upgrade_legacy_config_task,
)
from buildlauncher.domain.errors import ChildFailure, LauncherError, PluginError, ReportedError
from buildlauncher.domain.project import WRAPPER_SCRIPT, LauncherConfig, central_config_path, config_dir_path
from buildlauncher.domain.tasks import GlobalConfig, Task
from buildlauncher.plugins.loader import Registry, load_plugins
from buildlauncher.settings import SETTINGS
from buildlauncher.utils.telemetry import record_structured_event

TASKS_TASK = "tasks"

HELP_OVERVIEW = dedent(
    """
    Run build tasks provided by plugins declared in launcher/config/launcher.yml.

    Built-in tasks:
      - blaunch tasks                  - list every available task
      - blaunch verify [--no-apply]    - run all verification tasks
      - blaunch upgrade-legacy-config  - migrate legacy configuration files
                                         (--dry-run, --print-content)

    Any other task name is forwarded to the plugin that declares it; the
    remaining arguments are passed to the plugin untouched.
    """
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blaunch",
        description=HELP_OVERVIEW,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"blaunch {__version__}")
    parser.add_argument("--wrapper", help="Path of the project's launcher script (its directory is the project root)")
    parser.add_argument("--project-dir", help="Project root when not running through the wrapper")
    parser.add_argument("--debug", action="store_true", help="Forward the debug flag to plugins that accept it")
    parser.add_argument("task", help="Task to run")
    parser.add_argument("task_args", nargs=argparse.REMAINDER, help="Arguments passed to the task verbatim")
    return parser


def _resolve_wrapper(args: argparse.Namespace) -> str:
    if args.wrapper:
        return str(Path(args.wrapper).expanduser().resolve())
    if args.project_dir:
        return str(Path(args.project_dir).expanduser().resolve() / WRAPPER_SCRIPT)
    cwd = Path.cwd()
    if config_dir_path(cwd).is_dir():
        return str(cwd / WRAPPER_SCRIPT)
    return ""


def _load_registry(global_config: GlobalConfig) -> Registry:
    invoker = TaskInvoker(SETTINGS)
    if not global_config.wrapper:
        return Registry(invoker)
    project_dir = global_config.project_dir()
    launcher_config = LauncherConfig.load(central_config_path(project_dir))
    return load_plugins(launcher_config.plugin_paths(project_dir), invoker)


def _tasks_task(registry: Registry, builtin: Dict[str, Task]) -> Task:
    parser = argparse.ArgumentParser(prog=TASKS_TASK, description="List available tasks")
    parser.add_argument("--json", action="store_true", help="Emit machine-readable JSON")

    def run_impl(task: Task, global_config: GlobalConfig, stdout: TextIO) -> None:
        args = parser.parse_args(list(global_config.task_args))
        entries = [{"name": name, "description": t.description, "plugin": None} for name, t in builtin.items()]
        entries.append({"name": TASKS_TASK, "description": task.description, "plugin": None})
        entries.extend(
            {"name": name, "description": t.description, "plugin": registry.owner(name)} for name, t in registry.items()
        )
        entries.sort(key=lambda entry: entry["name"])
        if args.json:
            print(json.dumps(entries, ensure_ascii=False, indent=2), file=stdout)
            return
        width = max(len(entry["name"]) for entry in entries)
        for entry in entries:
            print(f"{entry['name']:<{width}}  {entry['description']}", file=stdout)

    return Task(name=TASKS_TASK, description=parser.description or "", run_impl=run_impl)


def build_router(registry: Registry) -> Dict[str, Task]:
    upgrades = [central_config_upgrade_task(), *registry.upgrade_tasks()]
    router: Dict[str, Task] = {
        UPGRADE_LEGACY_CONFIG_TASK: upgrade_legacy_config_task(upgrades, settings=SETTINGS),
        VERIFY_TASK: verify_task(registry.tasks()),
    }
    router[TASKS_TASK] = _tasks_task(registry, dict(router))
    for name, task in registry.items():
        if name in router:
            raise PluginError(f"task {name} of plugin {registry.owner(name)} conflicts with a built-in task")
        router[name] = task
    return router


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    global_config = GlobalConfig(
        wrapper=_resolve_wrapper(args),
        debug=args.debug,
        executable=sys.argv[0] or "blaunch",
        task=args.task,
        task_args=tuple(args.task_args),
    )
    try:
        router = build_router(_load_registry(global_config))
        task = router.get(args.task)
        if task is None:
            print(f"error: unknown task {args.task!r}; run `blaunch tasks` to list tasks", file=sys.stderr)
            return 2
        task.run(global_config, sys.stdout)
    except ChildFailure as exc:
        return exc.returncode if exc.returncode > 0 else 1
    except ReportedError:
        return 1
    except LauncherError as exc:
        record_structured_event(
            SETTINGS,
            "cli.error",
            status="error",
            level="error",
            component="cli",
            payload={"task": args.task, "message": str(exc)},
        )
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
