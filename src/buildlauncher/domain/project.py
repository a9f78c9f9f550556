"""Domain model for the project configuration directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List

import yaml

from buildlauncher.domain.errors import ConfigIOError, ConfigParseError

CONFIG_DIR = Path("launcher") / "config"
CENTRAL_CONFIG = "launcher.yml"
WRAPPER_SCRIPT = "launchw"
YAML_SUFFIX = ".yml"


def config_dir_path(project_dir: Path) -> Path:
    """Return the configuration directory of the project rooted at ``project_dir``."""
    return Path(project_dir) / CONFIG_DIR


def central_config_path(project_dir: Path) -> Path:
    return config_dir_path(project_dir) / CENTRAL_CONFIG


@dataclass
class ExcludeConfig:
    names: List[str] = field(default_factory=list)
    paths: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any, *, strict: bool = False) -> "ExcludeConfig":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigParseError("exclude configuration must be a mapping")
        if strict:
            unknown = sorted(str(key) for key in data if key not in ("names", "paths"))
            if unknown:
                raise ConfigParseError(f"unknown exclude configuration keys: {', '.join(unknown)}")
        return cls(
            names=_string_list(data.get("names"), "exclude.names"),
            paths=_string_list(data.get("paths"), "exclude.paths"),
        )

    def to_dict(self) -> dict[str, List[str]]:
        return {"names": list(self.names), "paths": list(self.paths)}

    def merge(self, other: "ExcludeConfig") -> bool:
        """Append entries of ``other`` missing from this config; return True when anything changed."""
        modified = False
        for name in other.names:
            if name not in self.names:
                self.names.append(name)
                modified = True
        for path in other.paths:
            if path not in self.paths:
                self.paths.append(path)
                modified = True
        return modified


@dataclass
class LauncherConfig:
    """Central descriptor (``launcher.yml``) of a project.

    ``raw`` keeps the parsed document in its original key order so rewriting
    the file never drops or reshuffles content owned by someone else.
    """

    plugins: List[str] = field(default_factory=list)
    exclude: ExcludeConfig = field(default_factory=ExcludeConfig)
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_yaml(cls, raw: str) -> "LauncherConfig":
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ConfigParseError(f"invalid YAML: {exc}") from exc
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigParseError("launcher configuration must be a mapping")
        return cls(
            plugins=_string_list(data.get("plugins"), "plugins"),
            exclude=ExcludeConfig.from_dict(data.get("exclude")),
            raw=dict(data),
        )

    @classmethod
    def load(cls, path: Path) -> "LauncherConfig":
        """Read ``path``; a missing file yields an empty configuration."""
        if not path.exists():
            return cls()
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigIOError(f"failed to read {path}: {exc}") from exc
        return cls.from_yaml(raw)

    def to_dict(self) -> dict[str, Any]:
        payload = dict(self.raw)
        if self.plugins or "plugins" in payload:
            payload["plugins"] = list(self.plugins)
        payload["exclude"] = self.exclude.to_dict()
        return payload

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)

    def plugin_paths(self, project_dir: Path) -> List[Path]:
        resolved: List[Path] = []
        for entry in self.plugins:
            candidate = Path(entry).expanduser()
            if not candidate.is_absolute():
                candidate = Path(project_dir) / candidate
            resolved.append(candidate)
        return resolved


def _string_list(value: Any, label: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigParseError(f"{label} must be a list of strings")
    return list(value)
