from __future__ import annotations

import argparse
from pathlib import Path

import pytest
from rich.console import Console

from autostrm import cli
from autostrm.models import ProcessingStats

CONFIG_YAML = """
sources:
  disk:
    type: local_folder
    path: /mnt/media
nfo_providers:
  tmdb:
    type: tmdb
    api_key: secret
outputs:
  jellyfin:
    type: jellyfin
    output_dir: movies
tasks:
  movies:
    source: disk
    nfo_provider: tmdb
    media_type: movie
    output: jellyfin
    file_patterns: ['\\.mkv$']
    naming_rules: [title_year]
"""

RULES_YAML = """
naming_rules:
  title_year:
    regex: '^(?<title>.+?)\\.(?<year>\\d{4})'
    supported_media_types: [movie]
  title_only:
    regex: '^(?<title>[^.]+)'
    supported_media_types: [tvshow]
"""


def _write_files(tmp_path: Path, config_text: str = CONFIG_YAML) -> tuple[Path, Path]:
    config_path = tmp_path / "config.yaml"
    rules_path = tmp_path / "rules.yaml"
    config_path.write_text(config_text, encoding="utf-8")
    rules_path.write_text(RULES_YAML, encoding="utf-8")
    return config_path, rules_path


def _args(tmp_path: Path, command: str, **extra) -> argparse.Namespace:
    config_path, rules_path = _write_files(tmp_path)
    values = {
        "config": config_path,
        "rules": rules_path,
        "output_dir": tmp_path / "strm",
        "log_config": tmp_path / "logger.yaml",
        "log_level": None,
        "verbose": False,
        "command": command,
    }
    values.update(extra)
    return argparse.Namespace(**values)


@pytest.fixture
def output_lines(monkeypatch):
    lines = []

    def mock_console_print(message, **kwargs):
        lines.append(str(message))

    monkeypatch.setattr("autostrm.cli.CONSOLE.print", mock_console_print)
    return lines


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setattr("autostrm.cli.configure_logging", lambda *args, **kwargs: None)


def test_validate_config_with_valid_config(tmp_path, output_lines) -> None:
    exit_code = cli.run_validate_config(_args(tmp_path, "validate-config"))

    assert exit_code == 0
    assert "Configuration passed validation" in "\n".join(output_lines)


def test_validate_config_reports_errors(tmp_path, output_lines) -> None:
    args = _args(tmp_path, "validate-config")
    args.config.write_text(CONFIG_YAML.replace("media_type: movie", "media_type: podcast"), encoding="utf-8")

    exit_code = cli.run_validate_config(args)

    assert exit_code == 1
    assert "1 error(s)" in "\n".join(output_lines)


def test_validate_config_file_not_found(tmp_path, output_lines) -> None:
    args = _args(tmp_path, "validate-config", config=tmp_path / "missing.yaml")

    assert cli.run_validate_config(args) == 1
    assert "not found" in "\n".join(output_lines)


def test_validate_config_with_invalid_yaml(tmp_path, output_lines) -> None:
    args = _args(tmp_path, "validate-config")
    args.config.write_text("sources: [unclosed", encoding="utf-8")

    assert cli.run_validate_config(args) == 1
    assert "Failed to load configuration" in "\n".join(output_lines)


def test_run_fails_when_base_output_directory_is_missing(tmp_path) -> None:
    assert cli.run_run(_args(tmp_path, "run")) == 1


def test_run_succeeds_with_existing_output_directory(tmp_path, monkeypatch) -> None:
    (tmp_path / "strm").mkdir()
    processed = []

    class DummyProcessor:
        def __init__(self, config) -> None:
            self.config = config

        def process_all(self) -> ProcessingStats:
            processed.append(sorted(self.config.tasks))
            return ProcessingStats()

    monkeypatch.setattr("autostrm.cli.Processor", DummyProcessor)

    assert cli.run_run(_args(tmp_path, "run")) == 0
    assert processed == [["movies"]]


def test_run_fails_when_configuration_is_invalid(tmp_path) -> None:
    args = _args(tmp_path, "run")
    args.config.write_text("tasks: [not, a, mapping]", encoding="utf-8")

    assert cli.run_run(args) == 1


def test_discern_prints_ranked_candidates(tmp_path, monkeypatch) -> None:
    console = Console(record=True, width=200)
    monkeypatch.setattr("autostrm.cli.CONSOLE", console)
    args = _args(
        tmp_path,
        "discern",
        filename="Inception.2010.1080p.BluRay.x264-Group.mkv",
        task=None,
        media_type="movie",
    )

    assert cli.run_discern(args) == 0

    output = console.export_text()
    assert "matched" in output
    assert "title_year" in output
    assert "Inception" in output
    assert "2010" in output
    assert "title_only" not in output


def test_discern_uses_task_rules(tmp_path, monkeypatch) -> None:
    console = Console(record=True, width=200)
    monkeypatch.setattr("autostrm.cli.CONSOLE", console)
    args = _args(tmp_path, "discern", filename="random_clip.mkv", task="movies", media_type=None)

    assert cli.run_discern(args) == 0
    assert "fallback" in console.export_text()


def test_discern_unknown_task(tmp_path, output_lines) -> None:
    args = _args(tmp_path, "discern", filename="x.mkv", task="nope", media_type=None)

    assert cli.run_discern(args) == 1
    assert "nope" in "\n".join(output_lines)


def test_arg_parser_accepts_global_flags_and_subcommands() -> None:
    parser = cli.build_arg_parser()

    args = parser.parse_args(["--config", "c.yaml", "--verbose", "discern", "Heat.1995.mkv", "--task", "movies"])

    assert args.config == Path("c.yaml")
    assert args.verbose is True
    assert args.filename == "Heat.1995.mkv"
    assert args.task == "movies"
    assert args.func is cli.run_discern


def test_arg_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        cli.build_arg_parser().parse_args([])


def test_main_dispatches_to_command(tmp_path, monkeypatch, output_lines) -> None:
    config_path, rules_path = _write_files(tmp_path)

    exit_code = cli.main(["--config", str(config_path), "--rules", str(rules_path), "validate-config"])

    assert exit_code == 0
