from __future__ import annotations

import json
import os
import sys
from pathlib import Path

CONFIG_KEYS = ("default_branch", "jobs", "include_remotes", "top_commits", "timeout_s", "out_dir")


def _check_value(key: str, value: object) -> None:
    if value is None:
        return
    if key in ("default_branch", "out_dir"):
        ok = isinstance(value, str)
        want = "a string"
    elif key == "include_remotes":
        ok = isinstance(value, bool)
        want = "true or false"
    elif key == "jobs":
        ok = isinstance(value, int) and not isinstance(value, bool) and value >= 1
        want = "an integer >= 1"
    elif key == "top_commits":
        ok = isinstance(value, int) and not isinstance(value, bool) and value >= 0
        want = "an integer >= 0"
    else:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0
        want = "a number >= 0"
    if not ok:
        raise ValueError(f"{key} must be {want}, got {value!r}")


def load_config(config_path: Path | None) -> dict:
    if config_path is None or not config_path.exists():
        return {}
    data = json.loads(config_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{config_path}: expected a JSON object")
    unknown = sorted(k for k in data if k not in CONFIG_KEYS)
    if unknown:
        print(f"Warning: ignoring unknown config keys in {config_path}: {', '.join(unknown)}", file=sys.stderr)
    config = {k: v for k, v in data.items() if k in CONFIG_KEYS}
    for key, value in config.items():
        try:
            _check_value(key, value)
        except ValueError as e:
            raise ValueError(f"{config_path}: {e}") from e
    return config


def _prompt_str(prompt: str) -> str:
    try:
        return input(prompt).strip()
    except EOFError:
        return ""


def prompt_bool(prompt: str, *, default: bool) -> bool:
    suffix = "[Y/n]" if default else "[y/N]"
    ans = _prompt_str(f"{prompt} {suffix} ").lower()
    if not ans:
        return default
    if ans in ("y", "yes"):
        return True
    if ans in ("n", "no"):
        return False
    return default


def default_jobs() -> int:
    return max(1, min(8, (os.cpu_count() or 4)))
