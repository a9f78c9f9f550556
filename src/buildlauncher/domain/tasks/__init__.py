"""Task domain exports."""

from .descriptor import (
    GlobalFlagOptions,
    TaskDescriptor,
    TaskDescriptorError,
    TaskDescriptorOption,
    VerifyFlag,
    VerifyFlagType,
    VerifyOptions,
    must_new_task_descriptor,
    new_task_descriptor,
    with_command,
    with_global_flag_options,
    with_verify_options,
)
from .models import GlobalConfig, Task, UpgradeConfigTask

__all__ = [
    "GlobalConfig",
    "GlobalFlagOptions",
    "Task",
    "TaskDescriptor",
    "TaskDescriptorError",
    "TaskDescriptorOption",
    "UpgradeConfigTask",
    "VerifyFlag",
    "VerifyFlagType",
    "VerifyOptions",
    "must_new_task_descriptor",
    "new_task_descriptor",
    "with_command",
    "with_global_flag_options",
    "with_verify_options",
]
