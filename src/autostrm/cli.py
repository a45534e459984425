from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence

from rich.console import Console
from rich.table import Table

from .config import (
    BASE_OUTPUT_DIR_ENV,
    CONFIG_PATH_ENV,
    LOGGER_CONFIG_ENV,
    RULES_PATH_ENV,
    AppConfig,
    Settings,
    SourceConfig,
    build_app_config,
    load_config,
    load_yaml_document,
)
from .discern import discern
from .errors import ConfigurationError
from .logging_utils import configure_logging, render_fields_block
from .models import FileDescriptor, MediaType
from .processor import Processor
from .validation import ValidationIssue, ValidationReport, validate_config_data
from .version import __version__

LOGGER = logging.getLogger(__name__)
CONSOLE = Console()


def _settings_from_args(args: argparse.Namespace) -> Settings:
    return Settings.from_env(
        config_path=getattr(args, "config", None),
        rules_path=getattr(args, "rules", None),
        base_output_dir=getattr(args, "output_dir", None),
        logger_config_path=getattr(args, "log_config", None),
    )


def _resolve_log_level(args: argparse.Namespace) -> Optional[str]:
    if getattr(args, "verbose", False):
        return "DEBUG"
    return getattr(args, "log_level", None)


def _setup_logging(args: argparse.Namespace, settings: Settings) -> None:
    configure_logging(settings.logger_config_path, level=_resolve_log_level(args), console=CONSOLE)


def _load_config_or_none(settings: Settings) -> Optional[AppConfig]:
    try:
        return load_config(settings)
    except ConfigurationError as exc:
        LOGGER.error(render_fields_block("Configuration Error", {"Config": settings.config_path, "Error": exc}))
        return None


def run_run(args: argparse.Namespace) -> int:
    settings = _settings_from_args(args)
    _setup_logging(args, settings)

    config = _load_config_or_none(settings)
    if config is None:
        return 1

    stats = Processor(config).process_all()
    return 1 if stats.aborted else 0


def _issues_table(title: str, issues: Sequence[ValidationIssue], style: str) -> Table:
    table = Table(title=title, title_style=style, show_lines=False)
    table.add_column("Path", style="cyan", no_wrap=True)
    table.add_column("Code", style="dim")
    table.add_column("Message")
    table.add_column("Suggestion", style="green")
    for issue in issues:
        table.add_row(issue.path, issue.code, issue.message, issue.fix_suggestion or "")
    return table


def _print_report(report: ValidationReport) -> None:
    if report.errors:
        CONSOLE.print(_issues_table("Validation Errors", report.errors, "bold red"))
    if report.warnings:
        CONSOLE.print(_issues_table("Validation Warnings", report.warnings, "bold yellow"))

    if report.errors:
        CONSOLE.print(f"[bold red]✗ Configuration has {len(report.errors)} error(s).[/bold red]")
    elif report.warnings:
        CONSOLE.print(
            f"[bold green]✓ Configuration passed validation (with {len(report.warnings)} warning(s)).[/bold green]"
        )
    else:
        CONSOLE.print("[bold green]✓ Configuration passed validation.[/bold green]")


def run_validate_config(args: argparse.Namespace) -> int:
    settings = _settings_from_args(args)

    if not settings.config_path.exists():
        CONSOLE.print(f"[bold red]Configuration file not found:[/bold red] {settings.config_path}")
        return 1

    try:
        config_data = load_yaml_document(settings.config_path)
        rules_data = load_yaml_document(settings.rules_path)
    except ConfigurationError as exc:
        CONSOLE.print(f"[bold red]Failed to load configuration:[/bold red] {exc}")
        return 1

    report = validate_config_data(config_data, rules_data)
    if report.is_valid:
        try:
            build_app_config(config_data, rules_data, settings)
        except ConfigurationError as exc:
            report.add("error", "<root>", str(exc), "load-config")

    _print_report(report)
    return 0 if report.is_valid else 1


def run_discern(args: argparse.Namespace) -> int:
    settings = _settings_from_args(args)
    _setup_logging(args, settings)

    config = _load_config_or_none(settings)
    if config is None:
        return 1

    task_name = getattr(args, "task", None)
    if task_name:
        try:
            task = config.task(task_name)
        except ConfigurationError as exc:
            CONSOLE.print(f"[bold red]{exc}[/bold red]")
            return 1
        rules = config.rules_for_task(task)
        media_type = task.media_type
    else:
        try:
            media_type = MediaType.parse(getattr(args, "media_type", None) or MediaType.MOVIE)
        except ValueError as exc:
            CONSOLE.print(f"[bold red]{exc}[/bold red]")
            return 1
        rules = list(config.naming_rules)

    path = Path(args.filename)
    file = FileDescriptor(
        filename=path.name,
        file_path=str(path),
        visit_url="",
        source=SourceConfig(name="cli", type="local_folder", path=str(path.parent)),
    )
    candidates = discern(file, rules, media_type)

    table = Table(title=f"Candidates for {path.name} ({media_type.value})")
    table.add_column("#", justify="right")
    table.add_column("Kind")
    table.add_column("Rule")
    table.add_column("Title")
    table.add_column("Year")
    table.add_column("Subtitle")
    table.add_column("Non-English Title")
    for position, candidate in enumerate(candidates, start=1):
        table.add_row(
            str(position),
            candidate.kind.value,
            candidate.rule_name or "-",
            candidate.title or "-",
            candidate.year or "-",
            candidate.subtitle or "-",
            candidate.nonengtitle or "-",
        )
    CONSOLE.print(table)
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autostrm",
        description="Generate .strm stream references and .nfo metadata for media-server libraries.",
        epilog=(
            f"Environment variables: {CONFIG_PATH_ENV}, {RULES_PATH_ENV}, "
            f"{BASE_OUTPUT_DIR_ENV}, {LOGGER_CONFIG_ENV}. Flags take precedence."
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, help="Path to the main YAML configuration")
    parser.add_argument("--rules", type=Path, help="Path to the naming rules YAML")
    parser.add_argument("--output-dir", type=Path, help="Base directory for generated libraries")
    parser.add_argument("--log-config", type=Path, help="Path to the logger YAML")
    parser.add_argument("--log-level", help="Override the log level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--verbose", action="store_true", help="Shortcut for --log-level DEBUG")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Process every enabled task once")
    run_parser.set_defaults(func=run_run)

    validate_parser = subparsers.add_parser("validate-config", help="Validate the configuration and rules files")
    validate_parser.set_defaults(func=run_validate_config)

    discern_parser = subparsers.add_parser("discern", help="Show how naming rules interpret a filename")
    discern_parser.add_argument("filename", help="File name or path to interpret")
    target = discern_parser.add_mutually_exclusive_group()
    target.add_argument("--task", help="Use the naming rules and media type of this task")
    target.add_argument(
        "--media-type",
        choices=[member.value for member in MediaType],
        help="Media type to interpret the file as (default: movie)",
    )
    discern_parser.set_defaults(func=run_discern)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    handler: Callable[[argparse.Namespace], int] = args.func
    return handler(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
