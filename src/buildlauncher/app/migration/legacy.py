"""Built-in upgraders for configuration formats that predate plugins."""

from __future__ import annotations

from typing import Protocol, TextIO, Tuple

import yaml

from buildlauncher.domain.errors import ConfigParseError
from buildlauncher.domain.project import CENTRAL_CONFIG, ExcludeConfig, LauncherConfig
from buildlauncher.domain.tasks import GlobalConfig, UpgradeConfigTask

from .context import MigrationContext

LEGACY_EXCLUDE_CONFIG = "exclude.yml"


class LegacyUpgrader(Protocol):  # pragma: no cover
    file_name: str
    written_files: Tuple[str, ...]

    def upgrade(self, ctx: MigrationContext) -> None:
        ...


class ExcludeConfigUpgrader:
    """Folds a standalone ``exclude.yml`` into the ``exclude`` block of ``launcher.yml``.

    Legacy names are merged into ``exclude.names`` and legacy paths into
    ``exclude.paths``; entries already present are skipped. The legacy file
    is backed up even when it contributed nothing new.
    """

    file_name = LEGACY_EXCLUDE_CONFIG
    written_files = (CENTRAL_CONFIG,)

    def upgrade(self, ctx: MigrationContext) -> None:
        if not ctx.path(self.file_name).exists():
            return
        raw = ctx.read(self.file_name)
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ConfigParseError(f"failed to parse legacy exclude configuration: {exc}") from exc
        legacy = ExcludeConfig.from_dict(data, strict=True)

        central_path = ctx.path(CENTRAL_CONFIG)
        try:
            current = LauncherConfig.load(central_path)
        except ConfigParseError as exc:
            raise ConfigParseError(f"failed to read {CENTRAL_CONFIG}: {exc}") from exc

        modified = current.exclude.merge(legacy)
        ctx.backup(self.file_name)
        if not modified:
            return
        ctx.write(CENTRAL_CONFIG, current.to_yaml().encode("utf-8"))


BUILTIN_UPGRADERS: Tuple[LegacyUpgrader, ...] = (ExcludeConfigUpgrader(),)


CORE_UPGRADE_TASK_ID = "launcher"


def _central_config_unchanged(legacy: bytes, global_config: GlobalConfig, stdout: TextIO) -> bytes:
    return b""


def central_config_upgrade_task() -> UpgradeConfigTask:
    """Claims ``launcher.yml`` for the core; it has no legacy format of its own."""
    return UpgradeConfigTask(id=CORE_UPGRADE_TASK_ID, config_file=CENTRAL_CONFIG, run=_central_config_unchanged)
