"""Per-run state and filesystem effects of a legacy configuration upgrade."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, TextIO, Tuple

from buildlauncher.domain.errors import ConfigIOError

from .backup import backup_config_file, dry_run_print


@dataclass
class MigrationContext:
    """Everything an upgrader may do to the config directory goes through here.

    Under ``dry_run`` writes and backups are only printed.
    """

    config_dir: Path
    stdout: TextIO
    dry_run: bool = False
    print_content: bool = False
    backups: List[Tuple[str, str]] = field(default_factory=list)
    written: List[str] = field(default_factory=list)

    def path(self, file_name: str) -> Path:
        return self.config_dir / file_name

    def read(self, file_name: str) -> bytes:
        try:
            return self.path(file_name).read_bytes()
        except OSError as exc:
            raise ConfigIOError(f"failed to read {file_name}: {exc}") from exc

    def backup(self, file_name: str) -> Optional[Path]:
        destination = backup_config_file(self.path(file_name), dry_run=self.dry_run, stdout=self.stdout)
        if destination is not None:
            self.backups.append((file_name, destination.name))
        return destination

    def write(self, file_name: str, content: bytes) -> None:
        if not self.dry_run:
            try:
                self.path(file_name).write_bytes(content)
            except OSError as exc:
                raise ConfigIOError(f"failed to write upgraded configuration {file_name}: {exc}") from exc
        self.written.append(file_name)
        self.print_upgraded(file_name, content)

    def print_upgraded(self, file_name: str, content: bytes) -> None:
        if self.print_content:
            text = content.decode("utf-8", errors="replace")
            self.println(f"Upgraded configuration for {file_name}:\n{text.rstrip()}")
        else:
            self.println(f"Upgraded configuration for {file_name}")

    def println(self, message: str) -> None:
        dry_run_print(self.stdout, self.dry_run, message)
