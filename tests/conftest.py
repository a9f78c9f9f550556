from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
SANDBOX_HOME = ROOT / ".test_place" / "global-home"
os.environ.setdefault("BUILDLAUNCHER_HOME", str(SANDBOX_HOME))
os.environ.setdefault("BUILDLAUNCHER_TELEMETRY", "0")
SANDBOX_HOME.mkdir(parents=True, exist_ok=True)
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


PLUGIN_TEMPLATE = '''#!{python}
import json
import sys

INFO = json.loads({info!r})
LOG = {log!r}

args = sys.argv[1:]
if args == ["_plugin-info"]:
    print(json.dumps(INFO))
    sys.exit(0)
with open(LOG, "a", encoding="utf-8") as fh:
    fh.write(json.dumps(args) + "\\n")
if "upgrade" in args:
    data = sys.stdin.read()
    if "boom" in data:
        sys.stderr.write("cannot upgrade legacy configuration\\n")
        sys.exit(1)
    if "drop" in data:
        sys.exit(0)
    sys.stdout.write(data.replace("legacy-config: true", "upgraded: true"))
    sys.exit(0)
if "latin1" in args:
    sys.stdout.buffer.write(b"caf\\xe9\\n")
    sys.exit(0)
if "fail" in args:
    print("failing " + " ".join(args))
    sys.exit(3)
print("ran " + " ".join(args))
'''


class FakePlugin:
    """Executable script answering ``_plugin-info`` and logging every other call."""

    def __init__(self, path: Path, log: Path) -> None:
        self.path = path
        self.log = log

    def calls(self) -> list[list[str]]:
        if not self.log.exists():
            return []
        return [json.loads(line) for line in self.log.read_text(encoding="utf-8").splitlines() if line]


@pytest.fixture()
def make_plugin(tmp_path: Path) -> Callable[..., FakePlugin]:
    plugin_dir = tmp_path / "plugins"
    plugin_dir.mkdir(exist_ok=True)

    def factory(name: str, info: dict[str, Any]) -> FakePlugin:
        path = plugin_dir / name
        log = plugin_dir / f"{name}.calls.jsonl"
        path.write_text(
            PLUGIN_TEMPLATE.format(python=sys.executable, info=json.dumps(info), log=str(log)),
            encoding="utf-8",
        )
        os.chmod(path, 0o755)
        return FakePlugin(path, log)

    return factory


@pytest.fixture()
def project_dir(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    (root / "launcher" / "config").mkdir(parents=True)
    return root
