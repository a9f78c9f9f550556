"""Argument construction for plugin task invocations.

Every plugin is an executable accepting the argv shape built here: launcher
flags the task opted into, then the task's fixed command tokens, then the
user's arguments untouched.
"""

from __future__ import annotations

from typing import List

from buildlauncher.domain.project import CENTRAL_CONFIG, config_dir_path
from buildlauncher.domain.tasks import GlobalConfig, GlobalFlagOptions, Task, TaskDescriptor


def global_flag_args(flags: GlobalFlagOptions, config_file: str, global_config: GlobalConfig) -> List[str]:
    args: List[str] = []
    if global_config.debug and flags.debug_flag:
        args.append(flags.debug_flag)

    # project-relative flags only make sense when running through a wrapper
    if not global_config.wrapper:
        return args

    project_dir = global_config.project_dir()
    if flags.project_dir_flag:
        args.extend([flags.project_dir_flag, str(project_dir)])

    wants_plugin_config = bool(flags.config_flag and config_file)
    if not flags.launcher_config_flag and not wants_plugin_config:
        return args

    cfg_dir = config_dir_path(project_dir)
    if flags.launcher_config_flag:
        args.extend([flags.launcher_config_flag, str(cfg_dir / CENTRAL_CONFIG)])
    if wants_plugin_config:
        args.extend([flags.config_flag, str(cfg_dir / config_file)])
    return args


def build_global_flag_args(task: Task, global_config: GlobalConfig) -> List[str]:
    return global_flag_args(task.global_flag_opts, task.config_file, global_config)


def build_argv(descriptor: TaskDescriptor, task: Task, global_config: GlobalConfig) -> List[str]:
    """Return the arguments (without the executable) passed to the plugin."""
    args = build_global_flag_args(task, global_config)
    args.extend(descriptor.command)
    args.extend(global_config.task_args)
    return args
