from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict
from urllib.parse import quote

import yaml

# Characters encodeURIComponent leaves untouched on top of quote()'s always-safe set
_URI_COMPONENT_SAFE = "!*'()"

_UNSAFE_PATH_CHARS = re.compile(r"[\\/\x00-\x1f]")


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def expand_env(value: Any) -> Any:
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    if isinstance(value, dict):
        return {key: expand_env(val) for key, val in value.items()}
    return value


def load_yaml_file(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return expand_env(data)


def strip_extension(filename: str) -> str:
    """Return ``filename`` without the text after its last dot.

    Names without a dot, or whose only dot is the leading one, are returned unchanged.
    """
    stem, dot, _ = filename.rpartition(".")
    if not dot or not stem:
        return filename
    return stem


def encode_uri_component(value: str) -> str:
    """Percent-encode ``value`` the way browsers encode a single URI component."""
    return quote(value, safe=_URI_COMPONENT_SAFE)


def safe_path_component(component: str, replacement: str = "_") -> str:
    """Make a title usable as a single directory or file name.

    Unlike ASCII sanitizers this keeps non-Latin titles intact and only removes
    path separators and control characters.
    """
    cleaned = _UNSAFE_PATH_CHARS.sub(replacement, component).strip()
    if not cleaned or cleaned in {".", ".."}:
        return "untitled"
    return cleaned


def env_path(name: str, default: str) -> Path:
    """Resolve a path from the environment, falling back to ``default`` when unset or blank."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        raw = default
    return Path(raw).expanduser()
