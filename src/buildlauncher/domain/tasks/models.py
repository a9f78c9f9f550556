"""Runtime task models resolved from descriptors."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, TextIO, Tuple

from buildlauncher.domain.errors import ValidationError

from .descriptor import GlobalFlagOptions, VerifyOptions


@dataclass(frozen=True)
class GlobalConfig:
    """Context of one launcher invocation, passed to every task it runs."""

    wrapper: str = ""
    debug: bool = False
    executable: str = ""
    task: str = ""
    task_args: Tuple[str, ...] = ()

    def project_dir(self) -> Path:
        if not self.wrapper:
            raise ValidationError("wrapper must be specified to determine project directory")
        return Path(self.wrapper).parent

    def with_task(self, task: str, task_args: Tuple[str, ...] | list[str]) -> "GlobalConfig":
        return GlobalConfig(
            wrapper=self.wrapper,
            debug=self.debug,
            executable=self.executable,
            task=task,
            task_args=tuple(task_args),
        )


RunImpl = Callable[["Task", GlobalConfig, TextIO], None]


@dataclass(frozen=True)
class Task:
    name: str
    description: str
    run_impl: RunImpl
    config_file: str = ""
    verify: Optional[VerifyOptions] = None
    global_flag_opts: GlobalFlagOptions = field(default_factory=GlobalFlagOptions)

    def run(self, global_config: GlobalConfig, stdout: TextIO) -> None:
        self.run_impl(self, global_config, stdout)


UpgradeFn = Callable[[bytes, GlobalConfig, TextIO], bytes]


@dataclass(frozen=True)
class UpgradeConfigTask:
    """Plugin-declared migration from ``legacy_config_file`` to ``config_file``.

    ``id`` only drives ordering. An empty ``legacy_config_file`` means the
    plugin has no legacy format; its ``config_file`` is still claimed.
    """

    id: str
    config_file: str
    run: UpgradeFn
    legacy_config_file: str = ""
