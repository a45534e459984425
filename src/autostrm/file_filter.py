"""Task-level filename inclusion filtering.

A task lists regular expressions; a file is eligible when any of them
matches its filename. Patterns that fail to compile are logged once and
never match.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence

from .logging_utils import render_fields_block

LOGGER = logging.getLogger(__name__)


def compile_file_patterns(patterns: Iterable[str], *, task: str | None = None) -> list[re.Pattern[str]]:
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as exc:
            LOGGER.warning(
                render_fields_block(
                    "Invalid File Pattern",
                    {"Task": task or "(unknown)", "Pattern": pattern, "Error": exc},
                )
            )
    return compiled


def matches_file_patterns(filename: str, patterns: Sequence[re.Pattern[str]]) -> bool:
    """Return True when any pattern matches ``filename``; an empty list matches nothing."""
    return any(pattern.search(filename) for pattern in patterns)
