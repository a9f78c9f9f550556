"""Upgrade of a project's configuration directory from legacy layouts."""

from __future__ import annotations

import argparse
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Set, TextIO, Tuple

import yaml

from buildlauncher.domain.errors import (
    ConfigIOError,
    ConfigParseError,
    LauncherError,
    TransformError,
    UpgradeFailedError,
    ValidationError,
)
from buildlauncher.domain.project import YAML_SUFFIX, config_dir_path
from buildlauncher.domain.tasks import GlobalConfig, Task, UpgradeConfigTask
from buildlauncher.settings import RuntimeSettings
from buildlauncher.utils.telemetry import record_structured_event

from .context import MigrationContext
from .legacy import BUILTIN_UPGRADERS, LegacyUpgrader

UPGRADE_LEGACY_CONFIG_TASK = "upgrade-legacy-config"
LEGACY_MARKER_KEY = "legacy-config"


@dataclass
class MigrationState:
    """Accumulator threaded through one run; nothing here outlives it."""

    original_yml_files: List[str]
    known_config_files: Set[str] = field(default_factory=set)
    failed_upgrades: List[Tuple[str, str]] = field(default_factory=list)

    def mark_known(self, *file_names: str) -> None:
        for name in file_names:
            if name:
                self.known_config_files.add(name)

    def fail(self, path: str, exc: BaseException) -> None:
        self.failed_upgrades.append((path, str(exc)))


@dataclass(frozen=True)
class MigrationReport:
    dry_run: bool
    known_config_files: Tuple[str, ...]
    applied: Tuple[str, ...]
    backups: Tuple[Tuple[str, str], ...]
    unhandled_files: Tuple[str, ...]
    failures: Tuple[Tuple[str, str], ...]

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "known_config_files": list(self.known_config_files),
            "applied": list(self.applied),
            "backups": [{"from": src, "to": dst} for src, dst in self.backups],
            "unhandled_files": list(self.unhandled_files),
            "failures": [{"path": path, "error": error} for path, error in self.failures],
        }


def dir_yml_files(config_dir: Path) -> List[str]:
    """Names of the regular ``*.yml`` files directly inside ``config_dir``, sorted."""
    try:
        entries = list(config_dir.iterdir())
    except OSError as exc:
        raise ConfigIOError(f"failed to read configuration directory {config_dir}: {exc}") from exc
    return sorted(entry.name for entry in entries if entry.is_file() and entry.name.endswith(YAML_SUFFIX))


def mark_legacy(raw: bytes) -> bytes:
    """Re-serialise a legacy YAML mapping with ``legacy-config: true`` as its first key."""
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigParseError(f"failed to unmarshal YAML configuration: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigParseError("legacy configuration must be a YAML mapping")
    marked: dict[Any, Any] = {LEGACY_MARKER_KEY: True}
    for key, value in data.items():
        if key == LEGACY_MARKER_KEY:
            continue
        marked[key] = value
    return yaml.safe_dump(marked, sort_keys=False, allow_unicode=True).encode("utf-8")


class MigrationOrchestrator:
    """Runs built-in upgraders, then plugin upgraders sorted by ID, then reports.

    A failing upgrader never stops the run: failures are collected and
    reported together once every upgrader had its chance.
    """

    def __init__(
        self,
        upgrade_tasks: Iterable[UpgradeConfigTask],
        *,
        builtin_upgraders: Sequence[LegacyUpgrader] = BUILTIN_UPGRADERS,
        settings: RuntimeSettings | None = None,
    ) -> None:
        self._tasks: dict[str, UpgradeConfigTask] = {}
        for task in upgrade_tasks:
            if task.id in self._tasks:
                raise ValidationError(f"duplicate upgrade task id: {task.id}")
            self._tasks[task.id] = task
        self._builtin = tuple(builtin_upgraders)
        self._settings = settings

    def run(
        self,
        config_dir: Path,
        global_config: GlobalConfig,
        stdout: TextIO,
        *,
        dry_run: bool = False,
        print_content: bool = False,
        project_dir: Optional[Path] = None,
    ) -> MigrationReport:
        started = time.perf_counter()
        base_dir = project_dir if project_dir is not None else config_dir
        state = MigrationState(original_yml_files=dir_yml_files(config_dir))
        ctx = MigrationContext(config_dir=config_dir, stdout=stdout, dry_run=dry_run, print_content=print_content)

        for upgrader in self._builtin:
            state.mark_known(upgrader.file_name, *upgrader.written_files)
            try:
                upgrader.upgrade(ctx)
            except LauncherError as exc:
                state.fail(_relative(base_dir, config_dir / upgrader.file_name), exc)

        pending: List[str] = []
        for task in self._tasks.values():
            # a plugin's current config file is claimed even when it has nothing to migrate
            state.mark_known(task.config_file)
            if not task.legacy_config_file:
                continue
            pending.append(task.id)

        for task_id in sorted(pending):
            task = self._tasks[task_id]
            state.mark_known(task.legacy_config_file)
            try:
                self._upgrade_task(task, ctx, global_config)
            except LauncherError as exc:
                state.fail(_relative(base_dir, config_dir / task.config_file), exc)

        unhandled = [name for name in state.original_yml_files if name not in state.known_config_files]
        self._process_unhandled(unhandled, ctx, state, base_dir)

        report = MigrationReport(
            dry_run=dry_run,
            known_config_files=tuple(sorted(state.known_config_files)),
            applied=tuple(ctx.written),
            backups=tuple(ctx.backups),
            unhandled_files=tuple(unhandled),
            failures=tuple(state.failed_upgrades),
        )
        self._record(report, config_dir, started)
        if report.ok:
            return report
        ctx.println("Failed to upgrade configuration:")
        for path, error in report.failures:
            ctx.println(f"\t{path}: {error}")
        raise UpgradeFailedError(report)

    def _upgrade_task(self, task: UpgradeConfigTask, ctx: MigrationContext, global_config: GlobalConfig) -> None:
        if not ctx.path(task.legacy_config_file).exists():
            return
        payload = mark_legacy(ctx.read(task.legacy_config_file))
        try:
            upgraded = task.run(payload, global_config, ctx.stdout)
        except Exception as exc:
            raise TransformError(f"failed to upgrade configuration: {exc}") from exc

        ctx.backup(task.legacy_config_file)
        if task.config_file != task.legacy_config_file:
            # an existing current-format file is moved aside rather than overwritten
            ctx.backup(task.config_file)
        if not upgraded:
            return
        ctx.write(task.config_file, upgraded)

    def _process_unhandled(
        self,
        unhandled: Sequence[str],
        ctx: MigrationContext,
        state: MigrationState,
        base_dir: Path,
    ) -> None:
        non_empty: List[str] = []
        for name in unhandled:
            try:
                content = ctx.read(name)
                if not content:
                    ctx.backup(name)
                    continue
            except LauncherError as exc:
                state.fail(_relative(base_dir, ctx.path(name)), exc)
                continue
            non_empty.append(name)
        if not non_empty:
            return
        ctx.println(
            "WARNING: The following configuration file(s) were non-empty and had no known upgraders "
            f"for legacy configuration: {', '.join(non_empty)}\n"
            "         If these configuration file(s) are for plugins, add the plugins to the configuration "
            f"and re-run the {UPGRADE_LEGACY_CONFIG_TASK} task."
        )

    def _record(self, report: MigrationReport, config_dir: Path, started: float) -> None:
        if self._settings is None:
            return
        record_structured_event(
            self._settings,
            "migration.upgrade",
            status="success" if report.ok else "failure",
            level="info" if report.ok else "error",
            component="migration",
            duration_ms=(time.perf_counter() - started) * 1000,
            payload={"config_dir": str(config_dir)} | report.to_dict(),
        )


def _relative(base_dir: Path, path: Path) -> str:
    return os.path.relpath(path, base_dir)


def build_upgrade_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=UPGRADE_LEGACY_CONFIG_TASK, description="Upgrade the legacy configuration")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="print what the upgrade operation would do without writing changes",
    )
    parser.add_argument(
        "--print-content",
        action="store_true",
        help="print the content of the changes to stdout in addition to writing them",
    )
    return parser


def upgrade_legacy_config_task(
    upgrade_tasks: Iterable[UpgradeConfigTask],
    *,
    settings: RuntimeSettings | None = None,
) -> Task:
    """The ``upgrade-legacy-config`` task; its flags are parsed from ``GlobalConfig.task_args``.

    Upgrade tasks are only checked for conflicting IDs when the task runs.
    """
    candidates = list(upgrade_tasks)
    parser = build_upgrade_parser()

    def run_impl(task: Task, global_config: GlobalConfig, stdout: TextIO) -> None:
        args = parser.parse_args(list(global_config.task_args))
        orchestrator = MigrationOrchestrator(candidates, settings=settings)
        project_dir = global_config.project_dir()
        orchestrator.run(
            config_dir_path(project_dir),
            global_config,
            stdout,
            dry_run=args.dry_run,
            print_content=args.print_content,
            project_dir=project_dir,
        )

    return Task(
        name=UPGRADE_LEGACY_CONFIG_TASK,
        description=parser.description or "",
        run_impl=run_impl,
    )
