from __future__ import annotations
from typing import Dict, Any, List
from pathlib import Path
import os
import yaml

from .errors import ConfigError, InputFileError


def ensure_dir(path: Path | str) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping, got {type(data).__name__}")
    return data


def read_lines(path: str | Path) -> List[str]:
    """
    Read a newline-delimited list file, preserving order.
    Only the line terminator ("\\n" or "\\r\\n") is stripped; blank lines are kept.
    The whole read fails with InputFileError, no partial result.
    """
    lines: List[str] = []
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            for line in f:
                if line.endswith("\n"):
                    line = line[:-1]
                    if line.endswith("\r"):
                        line = line[:-1]
                lines.append(line)
    except (OSError, UnicodeDecodeError) as e:
        raise InputFileError(f"cannot read {path}: {e}") from e
    return lines


def default_dest(account: str) -> str:
    """Account text before the first dot, e.g. 'acme.blob.core.windows.net' -> 'acme'."""
    return account.split(".", 1)[0]


def resolve_local_path(dst_root: str | Path, name: str) -> Path:
    # join-then-normalise, so "a//b" and "a/./b" land on the same file
    return Path(os.path.normpath(f"{dst_root}{os.sep}{name}"))


def is_within(root: str | Path, path: str | Path) -> bool:
    root_abs = os.path.abspath(root)
    path_abs = os.path.abspath(path)
    return os.path.commonpath([root_abs, path_abs]) == root_abs


def human_bytes(n: int) -> str:
    units = ["B", "KB", "MB", "GB", "TB"]
    s = float(n)
    for u in units:
        if s < 1024 or u == units[-1]:
            return f"{s:.1f} {u}"
        s /= 1024.0
