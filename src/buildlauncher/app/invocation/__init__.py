"""Plugin task invocation protocol."""

from .arguments import build_argv, build_global_flag_args, global_flag_args
from .service import (
    VERIFY_TASK,
    TaskInvoker,
    VerifyFailedError,
    build_verify_parser,
    run_plugin,
    run_verify,
    to_task,
    verify_order,
    verify_task,
)

__all__ = [
    "VERIFY_TASK",
    "TaskInvoker",
    "VerifyFailedError",
    "build_argv",
    "build_verify_parser",
    "build_global_flag_args",
    "global_flag_args",
    "run_plugin",
    "run_verify",
    "to_task",
    "verify_order",
    "verify_task",
]
