"""Legacy configuration migration pipeline."""

from .backup import backup_config_file, backup_path_for
from .context import MigrationContext
from .legacy import (
    BUILTIN_UPGRADERS,
    CORE_UPGRADE_TASK_ID,
    LEGACY_EXCLUDE_CONFIG,
    ExcludeConfigUpgrader,
    LegacyUpgrader,
    central_config_upgrade_task,
)
from .service import (
    LEGACY_MARKER_KEY,
    UPGRADE_LEGACY_CONFIG_TASK,
    MigrationOrchestrator,
    MigrationReport,
    MigrationState,
    dir_yml_files,
    mark_legacy,
    upgrade_legacy_config_task,
)

__all__ = [
    "BUILTIN_UPGRADERS",
    "CORE_UPGRADE_TASK_ID",
    "LEGACY_EXCLUDE_CONFIG",
    "LEGACY_MARKER_KEY",
    "UPGRADE_LEGACY_CONFIG_TASK",
    "ExcludeConfigUpgrader",
    "LegacyUpgrader",
    "MigrationContext",
    "MigrationOrchestrator",
    "MigrationReport",
    "MigrationState",
    "backup_config_file",
    "backup_path_for",
    "central_config_upgrade_task",
    "dir_yml_files",
    "mark_legacy",
    "upgrade_legacy_config_task",
]
