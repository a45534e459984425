"""Log block rendering and handler setup.

Log messages across the package are rendered as small titled blocks of
``label: value`` lines so a run log stays scannable when many files are
processed. :func:`configure_logging` installs the handlers described by the
optional logger YAML file.
"""

from __future__ import annotations

import logging
import logging.handlers
import re
from collections.abc import Mapping, MutableSequence, Sequence
from pathlib import Path
from textwrap import wrap
from typing import Any, Union

from rich.console import Console
from rich.logging import RichHandler

from .errors import ConfigurationError
from .utils import ensure_directory, load_yaml_file

DEFAULT_WRAP_WIDTH = 110
DEFAULT_LABEL_WIDTH = 22
DEFAULT_INDENT = "    "

FILE_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_RETENTION_PATTERN = re.compile(r"^\s*(\d+)\s*d?\s*$", re.IGNORECASE)

FieldMapping = Union[Mapping[str, object], Sequence[tuple[str, object]]]


def _stringify(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple, set)):
        return ", ".join(_stringify(item) for item in value)
    return str(value)


class LogBlockBuilder:
    def __init__(
        self,
        title: str,
        *,
        wrap_width: int = DEFAULT_WRAP_WIDTH,
        label_width: int = DEFAULT_LABEL_WIDTH,
        indent: str = DEFAULT_INDENT,
        pad_top: bool = True,
    ) -> None:
        self.wrap_width = wrap_width
        self.label_width = label_width
        self.indent = indent
        self.lines: MutableSequence[str] = [""] if pad_top else []
        self.lines.append(title)
        self.lines.append("-" * len(title))

    def add_fields(self, fields: FieldMapping | None) -> None:
        if not fields:
            return
        items = list(fields.items()) if isinstance(fields, Mapping) else list(fields)
        if not items:
            return

        label_width = max(min(max(len(str(key)) for key, _ in items), self.label_width), 8)
        value_width = max(self.wrap_width - len(self.indent) - label_width - 4, 32)

        for key, value in items:
            wrapped = wrap(_stringify(value), width=value_width) or [""]
            self.lines.append(f"{self.indent}{str(key):<{label_width}}: {wrapped[0]}")
            for continuation in wrapped[1:]:
                self.lines.append(f"{self.indent}{'':<{label_width}}  {continuation}")

    def add_section(self, heading: str, fields: FieldMapping) -> None:
        if self.lines and self.lines[-1] != "":
            self.lines.append("")
        self.lines.append(f"{heading}:")
        self.add_fields(fields)

    def render(self) -> str:
        return "\n".join(self.lines).rstrip()


def render_fields_block(title: str, fields: FieldMapping, *, pad_top: bool = True) -> str:
    builder = LogBlockBuilder(title, pad_top=pad_top)
    builder.add_fields(fields)
    return builder.render()


def _parse_retention_days(value: Any) -> int:
    if value is None:
        return 14
    match = _RETENTION_PATTERN.match(str(value))
    if not match:
        raise ConfigurationError(f"Unsupported log retention '{value}', expected a day count such as '14d'")
    return int(match.group(1))


def _build_handler(entry: Mapping[str, Any], log_dir: Path, console: Console | None) -> logging.Handler:
    transport_type = str(entry.get("type", ""))
    if transport_type == "Console":
        return RichHandler(console=console, rich_tracebacks=True, show_path=False, markup=False)

    filename = entry.get("filename")
    if not filename:
        raise ConfigurationError(f"Log transport '{transport_type}' requires a 'filename'")

    if transport_type == "DailyRotateFile":
        ensure_directory(log_dir)
        handler: logging.Handler = logging.handlers.TimedRotatingFileHandler(
            log_dir / str(filename),
            when="midnight",
            backupCount=_parse_retention_days(entry.get("maxFiles")),
            encoding="utf-8",
        )
    elif transport_type == "File":
        path = Path(str(filename))
        ensure_directory(path.parent)
        handler = logging.FileHandler(path, encoding="utf-8")
    else:
        raise ConfigurationError(f"Unsupported log transport type: {transport_type or '<missing>'}")

    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt=FILE_DATE_FORMAT))
    level = entry.get("level")
    if level:
        handler.setLevel(str(level).upper())
    return handler


def configure_logging(
    config_path: Path | None = None,
    *,
    level: str | None = None,
    console: Console | None = None,
) -> None:
    """Install root handlers from the logger YAML at ``config_path``.

    A missing file falls back to a single console handler. ``level`` overrides
    the level declared in the file.
    """
    data: dict[str, Any] = {}
    if config_path is not None and config_path.exists():
        data = load_yaml_file(config_path)

    transports = data.get("transports") or [{"type": "Console"}]
    if not isinstance(transports, list):
        raise ConfigurationError("'transports' in the logger configuration must be a list")
    log_dir = Path(str(data.get("logDir") or "logs")).expanduser()

    handlers = [_build_handler(entry, log_dir, console) for entry in transports]

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
        existing.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(str(level or data.get("level") or "info").upper())

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
