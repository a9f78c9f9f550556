"""Backups of superseded configuration files."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, TextIO

from buildlauncher.domain.errors import ConfigIOError

BACKUP_SUFFIX = ".bak"
DRY_RUN_PREFIX = "[DRY RUN] "


def dry_run_print(stdout: TextIO, dry_run: bool, message: str) -> None:
    prefix = DRY_RUN_PREFIX if dry_run else ""
    print(f"{prefix}{message}", file=stdout)


def backup_path_for(path: Path) -> Path:
    """First of ``<name>.bak``, ``<name>.1.bak``, ``<name>.2.bak``... that does not exist yet."""
    candidate = path.with_name(path.name + BACKUP_SUFFIX)
    index = 1
    while candidate.exists():
        candidate = path.with_name(f"{path.name}.{index}{BACKUP_SUFFIX}")
        index += 1
    return candidate


def backup_config_file(path: Path, *, dry_run: bool, stdout: TextIO) -> Optional[Path]:
    """Move ``path`` aside next to itself; returns the backup path or None when there was nothing to move."""
    if not path.exists():
        return None
    destination = backup_path_for(path)
    dry_run_print(stdout, dry_run, f"Backing up {path} to {destination}")
    if dry_run:
        return destination
    try:
        path.rename(destination)
    except OSError as exc:
        raise ConfigIOError(f"failed to back up {path}: {exc}") from exc
    return destination
