#!/usr/bin/env python3
"""Minimal blaunch plugin: a greeting task plus an upgrade of its legacy config.

List it under ``plugins:`` in ``launcher/config/launcher.yml``.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

import yaml

from buildlauncher.domain.tasks import (
    GlobalFlagOptions,
    VerifyFlag,
    VerifyOptions,
    must_new_task_descriptor,
    with_command,
    with_global_flag_options,
    with_verify_options,
)
from buildlauncher.plugins import PLUGIN_INFO_COMMAND, PluginInfo, UpgradeConfigInfo

CONFIG_FILE = "hello.yml"
LEGACY_CONFIG_FILE = "greeting.yml"

GREET_TASK = must_new_task_descriptor(
    "hello",
    "Print a greeting for the configured name",
    with_command("greet"),
    with_global_flag_options(GlobalFlagOptions(debug_flag="--debug", config_flag="--config")),
    with_verify_options(
        VerifyOptions(
            flags=(VerifyFlag("loud", "shout the greeting"),),
            ordering=10,
            apply_false_args=("--check",),
        )
    ),
)

PLUGIN_INFO = PluginInfo(
    id="hello",
    tasks=(GREET_TASK,),
    config_file=CONFIG_FILE,
    upgrade_config=UpgradeConfigInfo(command=("upgrade",), legacy_config_file=LEGACY_CONFIG_FILE),
)


def _load_config(path: Optional[str]) -> dict[str, Any]:
    if not path or not Path(path).exists():
        return {}
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    return data if isinstance(data, dict) else {}


def _greet(args: argparse.Namespace) -> int:
    name = _load_config(args.config).get("name")
    if args.check:
        if not name:
            print(f"{CONFIG_FILE}: name is not set", file=sys.stderr)
            return 1
        return 0
    greeting = f"Hello, {name or 'world'}!"
    print(greeting.upper() if args.loud else greeting)
    return 0


def _upgrade() -> int:
    # legacy greeting.yml used `target:`; current hello.yml uses `name:`
    legacy = yaml.safe_load(sys.stdin.read()) or {}
    upgraded = {"name": legacy.get("target", "world")}
    sys.stdout.write(yaml.safe_dump(upgraded, sort_keys=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hello-plugin")
    parser.add_argument("--debug", action="store_true")
    parser.add_argument("--config")
    sub = parser.add_subparsers(dest="command", required=True)
    greet = sub.add_parser("greet")
    greet.add_argument("--loud", action="store_true")
    greet.add_argument("--check", action="store_true")
    sub.add_parser("upgrade")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if argv == [PLUGIN_INFO_COMMAND]:
        print(json.dumps(PLUGIN_INFO.to_dict()))
        return 0
    args = build_parser().parse_args(argv)
    if args.command == "upgrade":
        return _upgrade()
    return _greet(args)


if __name__ == "__main__":
    sys.exit(main())
