"""Version detection for installed and container builds."""

from __future__ import annotations

import os
from importlib.metadata import PackageNotFoundError, version

_DISTRIBUTION = "autostrm"
_FALLBACK_VERSION = "unknown"


def get_version() -> str:
    """Get the current version string.

    Priority:
    1. BUILD_VERSION environment variable (set during image builds)
    2. GIT_SHA environment variable, reported as ``dev (<sha>)``
    3. Installed distribution metadata
    4. Fallback to "unknown"
    """
    build_version = os.environ.get("BUILD_VERSION")
    if build_version:
        return build_version.strip()

    env_sha = os.environ.get("GIT_SHA")
    if env_sha:
        return f"dev ({env_sha.strip()})"

    try:
        return version(_DISTRIBUTION)
    except PackageNotFoundError:
        return _FALLBACK_VERSION


__version__ = get_version()
