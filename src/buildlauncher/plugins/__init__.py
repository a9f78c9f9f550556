"""Plugin self-description envelope.

A plugin is an executable that prints this envelope as JSON when invoked with
``_plugin-info``. The launcher never looks further into a plugin than that.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from buildlauncher.domain.errors import PluginError, ValidationError
from buildlauncher.domain.tasks import GlobalFlagOptions, TaskDescriptor

from .schema import iter_schema_errors

PLUGIN_INFO_COMMAND = "_plugin-info"


@dataclass(frozen=True)
class UpgradeConfigInfo:
    command: Tuple[str, ...]
    legacy_config_file: str = ""
    global_flag_options: Optional[GlobalFlagOptions] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "legacyConfigFile": self.legacy_config_file,
            "command": list(self.command),
            "globalFlagOptions": self.global_flag_options.to_dict() if self.global_flag_options else None,
        }


@dataclass(frozen=True)
class PluginInfo:
    id: str
    tasks: Tuple[TaskDescriptor, ...] = ()
    config_file: str = ""
    upgrade_config: Optional[UpgradeConfigInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "configFileName": self.config_file,
            "tasks": [task.to_dict() for task in self.tasks],
            "upgradeConfig": self.upgrade_config.to_dict() if self.upgrade_config else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PluginInfo":
        errors = [f"{path or '<root>'}: {message}" for path, message in iter_schema_errors(data)]
        if errors:
            raise PluginError("invalid plugin info: " + "; ".join(errors))
        try:
            tasks = tuple(TaskDescriptor.from_dict(item) for item in data.get("tasks", []))
        except ValidationError as exc:
            raise PluginError(f"invalid plugin info for {data['id']}: {exc}") from exc
        names = [task.name for task in tasks]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise PluginError(f"plugin {data['id']} declares duplicate tasks: {', '.join(duplicates)}")
        upgrade_raw = data.get("upgradeConfig")
        upgrade = None
        if upgrade_raw:
            flags_raw = upgrade_raw.get("globalFlagOptions")
            upgrade = UpgradeConfigInfo(
                command=tuple(upgrade_raw.get("command", ())),
                legacy_config_file=upgrade_raw.get("legacyConfigFile", ""),
                global_flag_options=GlobalFlagOptions.from_dict(flags_raw) if flags_raw else None,
            )
        return cls(
            id=data["id"],
            tasks=tasks,
            config_file=data.get("configFileName", ""),
            upgrade_config=upgrade,
        )


__all__ = ["PLUGIN_INFO_COMMAND", "PluginInfo", "UpgradeConfigInfo"]
