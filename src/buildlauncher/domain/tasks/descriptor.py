"""Declarative task descriptors published by plugins."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from buildlauncher.domain.errors import ValidationError


class TaskDescriptorError(ValidationError):
    """Raised when a task descriptor payload is invalid."""


class VerifyFlagType(str, Enum):
    BOOL = "bool"
    STRING = "string"


@dataclass(frozen=True)
class VerifyFlag:
    name: str
    description: str = ""
    type: VerifyFlagType = VerifyFlagType.BOOL

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "description": self.description, "type": self.type.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VerifyFlag":
        if not isinstance(data.get("name"), str) or not data["name"]:
            raise TaskDescriptorError("verify flag name missing or invalid")
        try:
            flag_type = VerifyFlagType(data.get("type", VerifyFlagType.BOOL.value))
        except ValueError as exc:
            raise TaskDescriptorError(f"unsupported verify flag type: {data.get('type')!r}") from exc
        return cls(name=str(data["name"]), description=str(data.get("description", "")), type=flag_type)


@dataclass(frozen=True)
class VerifyOptions:
    """How a task takes part in ``verify``.

    ``flags`` are the named sub-flags the task accepts, in declaration order.
    ``ordering`` positions the task relative to other verify tasks (lower runs
    first, unset runs last). ``apply_true_args``/``apply_false_args`` are
    appended when verification runs in fix or check mode respectively.
    """

    flags: Tuple[VerifyFlag, ...] = ()
    ordering: Optional[int] = None
    apply_true_args: Tuple[str, ...] = ()
    apply_false_args: Tuple[str, ...] = ()

    def task_args(self, apply: bool, flag_values: Optional[Mapping[str, Any]] = None) -> List[str]:
        values = flag_values or {}
        args: List[str] = []
        for flag in self.flags:
            value = values.get(flag.name)
            if value is None or value is False:
                continue
            if flag.type is VerifyFlagType.BOOL:
                args.append(f"--{flag.name}")
            else:
                args.extend([f"--{flag.name}", str(value)])
        args.extend(self.apply_true_args if apply else self.apply_false_args)
        return args

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verifyTaskFlags": [flag.to_dict() for flag in self.flags],
            "ordering": self.ordering,
            "applyTrueArgs": list(self.apply_true_args),
            "applyFalseArgs": list(self.apply_false_args),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VerifyOptions":
        ordering = data.get("ordering")
        if ordering is not None and (isinstance(ordering, bool) or not isinstance(ordering, int)):
            raise TaskDescriptorError("verifyOptions.ordering must be an integer")
        return cls(
            flags=tuple(VerifyFlag.from_dict(item) for item in data.get("verifyTaskFlags") or ()),
            ordering=ordering,
            apply_true_args=tuple(data.get("applyTrueArgs") or ()),
            apply_false_args=tuple(data.get("applyFalseArgs") or ()),
        )


@dataclass(frozen=True)
class GlobalFlagOptions:
    """Literal spelling of each launcher flag a task accepts; empty means not accepted."""

    debug_flag: str = ""
    project_dir_flag: str = ""
    launcher_config_flag: str = ""
    config_flag: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "debugFlag": self.debug_flag,
            "projectDirFlag": self.project_dir_flag,
            "launcherConfigFlag": self.launcher_config_flag,
            "configFlag": self.config_flag,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GlobalFlagOptions":
        return cls(
            debug_flag=data.get("debugFlag") or "",
            project_dir_flag=data.get("projectDirFlag") or "",
            launcher_config_flag=data.get("launcherConfigFlag") or "",
            config_flag=data.get("configFlag") or "",
        )


def _validate_name(name: str) -> None:
    if not name:
        raise TaskDescriptorError("task name must be a non-empty string")
    if any(char.isspace() for char in name):
        raise TaskDescriptorError(f"task name cannot contain whitespace: {name!r}")


@dataclass(frozen=True)
class TaskDescriptor:
    """JSON-serialisable description of a single task exposed by a plugin."""

    name: str
    description: str = ""
    command: Tuple[str, ...] = ()
    global_flag_options: Optional[GlobalFlagOptions] = None
    verify_options: Optional[VerifyOptions] = None

    def __post_init__(self) -> None:
        _validate_name(self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "command": list(self.command),
            "globalFlagOptions": self.global_flag_options.to_dict() if self.global_flag_options else None,
            "verifyOptions": self.verify_options.to_dict() if self.verify_options else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskDescriptor":
        if not isinstance(data.get("name"), str):
            raise TaskDescriptorError("task name missing or invalid")
        options: List[TaskDescriptorOption] = [with_command(*(data.get("command") or ()))]
        if data.get("globalFlagOptions"):
            options.append(with_global_flag_options(GlobalFlagOptions.from_dict(data["globalFlagOptions"])))
        if data.get("verifyOptions"):
            options.append(with_verify_options(VerifyOptions.from_dict(data["verifyOptions"])))
        return new_task_descriptor(data["name"], str(data.get("description", "")), *options)


@dataclass
class _DescriptorDraft:
    name: str
    description: str
    command: Tuple[str, ...] = ()
    global_flag_options: Optional[GlobalFlagOptions] = None
    verify_options: Optional[VerifyOptions] = None


TaskDescriptorOption = Callable[[_DescriptorDraft], None]


def with_command(*tokens: str) -> TaskDescriptorOption:
    frozen = tuple(tokens)

    def _apply(draft: _DescriptorDraft) -> None:
        draft.command = frozen

    return _apply


def with_global_flag_options(options: GlobalFlagOptions) -> TaskDescriptorOption:
    def _apply(draft: _DescriptorDraft) -> None:
        draft.global_flag_options = replace(options)

    return _apply


def with_verify_options(options: VerifyOptions) -> TaskDescriptorOption:
    def _apply(draft: _DescriptorDraft) -> None:
        draft.verify_options = replace(options)

    return _apply


def new_task_descriptor(name: str, description: str, *options: Optional[TaskDescriptorOption]) -> TaskDescriptor:
    """Build a descriptor by applying ``options`` left to right; the last one touching a field wins."""
    _validate_name(name)
    draft = _DescriptorDraft(name=name, description=description)
    for option in options:
        if option is None:
            continue
        option(draft)
    return TaskDescriptor(
        name=draft.name,
        description=draft.description,
        command=draft.command,
        global_flag_options=draft.global_flag_options,
        verify_options=draft.verify_options,
    )


def must_new_task_descriptor(name: str, description: str, *options: Optional[TaskDescriptorOption]) -> TaskDescriptor:
    """Like :func:`new_task_descriptor` but aborts the process on invalid input.

    Meant for task names that are literals in plugin source.
    """
    try:
        return new_task_descriptor(name, description, *options)
    except TaskDescriptorError as exc:
        raise SystemExit(f"invalid task descriptor: {exc}") from exc
