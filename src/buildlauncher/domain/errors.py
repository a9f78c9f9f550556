"""Error taxonomy shared by the invocation protocol and the migration pipeline."""

from __future__ import annotations

from typing import Any


class LauncherError(RuntimeError):
    """Base class for every failure raised by buildlauncher."""


class ValidationError(LauncherError, ValueError):
    """Raised when user or plugin supplied metadata is malformed."""


class ConfigIOError(LauncherError):
    """Raised when a configuration file cannot be read, written or enumerated."""


class ConfigParseError(LauncherError):
    """Raised when configuration content is not valid YAML of the expected shape."""


class TransformError(LauncherError):
    """Raised when a plugin-supplied configuration upgrade fails."""


class LaunchError(LauncherError):
    """Raised when a plugin executable cannot be started."""


class PluginError(LauncherError):
    """Raised when a plugin cannot describe itself."""


class ReportedError(LauncherError):
    """Failure whose diagnostics were already written to the user.

    Carries no message so callers do not print the same problem twice.
    """

    def __init__(self) -> None:
        super().__init__("")


class ChildFailure(ReportedError):
    """A plugin process exited with a non-zero status."""

    def __init__(self, returncode: int) -> None:
        super().__init__()
        self.returncode = returncode


class UpgradeFailedError(ReportedError):
    """One or more configuration upgrades failed; the report was already printed."""

    def __init__(self, report: Any = None) -> None:
        super().__init__()
        self.report = report
