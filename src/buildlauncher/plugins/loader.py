"""Runtime plugin loading: querying executables and registering their tasks."""

from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, ItemsView, List, TextIO

from buildlauncher.app.invocation import TaskInvoker, global_flag_args
from buildlauncher.domain.errors import LaunchError, PluginError, TransformError
from buildlauncher.domain.tasks import GlobalConfig, GlobalFlagOptions, Task, UpgradeConfigTask

from . import PLUGIN_INFO_COMMAND, PluginInfo


def load_plugin_info(executable: Path) -> PluginInfo:
    try:
        completed = subprocess.run(
            [str(executable), PLUGIN_INFO_COMMAND],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise LaunchError(f"failed to query plugin info: executable={executable}: {exc}") from exc
    if completed.returncode != 0:
        detail = (completed.stderr or completed.stdout).strip()
        raise PluginError(f"plugin {executable} failed to describe itself ({completed.returncode}): {detail}")
    try:
        payload = json.loads(completed.stdout)
    except json.JSONDecodeError as exc:
        raise PluginError(
            f"plugin {executable} printed invalid JSON: {exc.msg} (line {exc.lineno} column {exc.colno})"
        ) from exc
    if not isinstance(payload, dict):
        raise PluginError(f"plugin {executable} info must be a JSON object")
    return PluginInfo.from_dict(payload)


@dataclass(frozen=True)
class LoadedPlugin:
    executable: Path
    info: PluginInfo

    def tasks(self, invoker: TaskInvoker) -> List[Task]:
        return [invoker.to_task(descriptor, self.executable, self.info.config_file) for descriptor in self.info.tasks]

    def upgrade_config_task(self) -> UpgradeConfigTask | None:
        """Upgrade task claiming the plugin's config file; None when the plugin has no config at all."""
        upgrade = self.info.upgrade_config
        if upgrade is None:
            if not self.info.config_file:
                return None
            return UpgradeConfigTask(id=self.info.id, config_file=self.info.config_file, run=_no_upgrade)

        executable = self.executable
        config_file = self.info.config_file
        flags = upgrade.global_flag_options or GlobalFlagOptions()
        command = upgrade.command

        def run(legacy: bytes, global_config: GlobalConfig, stdout: TextIO) -> bytes:
            args = global_flag_args(flags, config_file, global_config) + list(command)
            try:
                completed = subprocess.run(
                    [str(executable), *args],
                    input=legacy,
                    capture_output=True,
                    check=False,
                )
            except OSError as exc:
                raise LaunchError(f"plugin execution failed: executable={executable}: {exc}") from exc
            if completed.returncode != 0:
                detail = completed.stderr.decode("utf-8", errors="replace").strip()
                raise TransformError(detail or f"plugin exited with status {completed.returncode}")
            return completed.stdout

        return UpgradeConfigTask(
            id=self.info.id,
            config_file=config_file,
            legacy_config_file=upgrade.legacy_config_file,
            run=run,
        )


def _no_upgrade(legacy: bytes, global_config: GlobalConfig, stdout: TextIO) -> bytes:
    return b""


class Registry:
    """Tasks and upgrade tasks of every loaded plugin, keyed by name."""

    def __init__(self, invoker: TaskInvoker) -> None:
        self._invoker = invoker
        self._plugins: List[LoadedPlugin] = []
        self._tasks: Dict[str, Task] = {}
        self._owners: Dict[str, str] = {}

    def add_plugin(self, plugin: LoadedPlugin) -> None:
        tasks = plugin.tasks(self._invoker)
        for task in tasks:
            if task.name in self._tasks:
                raise PluginError(
                    f"task {task.name} of plugin {plugin.info.id} already registered by {self._owners[task.name]}"
                )
        for task in tasks:
            self._tasks[task.name] = task
            self._owners[task.name] = plugin.info.id
        self._plugins.append(plugin)

    def items(self) -> ItemsView[str, Task]:
        return self._tasks.items()

    def tasks(self) -> List[Task]:
        return list(self._tasks.values())

    def owner(self, task_name: str) -> str:
        return self._owners[task_name]

    def upgrade_tasks(self) -> List[UpgradeConfigTask]:
        upgrades: List[UpgradeConfigTask] = []
        for plugin in self._plugins:
            upgrade = plugin.upgrade_config_task()
            if upgrade is not None:
                upgrades.append(upgrade)
        return upgrades


def load_plugins(executables: Iterable[Path], invoker: TaskInvoker) -> Registry:
    registry = Registry(invoker)
    for executable in executables:
        registry.add_plugin(LoadedPlugin(executable=executable, info=load_plugin_info(executable)))
    return registry
