from __future__ import annotations

from urllib.parse import quote

import pytest

from autostrm.file_filter import compile_file_patterns, matches_file_patterns
from autostrm.utils import (
    encode_uri_component,
    env_path,
    expand_env,
    load_yaml_file,
    safe_path_component,
    strip_extension,
)


@pytest.mark.parametrize(
    "filename,expected",
    [
        ("Inception.2010.1080p.mkv", "Inception.2010.1080p"),
        ("movie.mkv", "movie"),
        ("README", "README"),
        (".hidden", ".hidden"),
        ("archive.tar.gz", "archive.tar"),
    ],
)
def test_strip_extension(filename, expected) -> None:
    assert strip_extension(filename) == expected


def test_encode_uri_component_matches_browser_encoding() -> None:
    assert encode_uri_component("/Movies/Heat (1995) [HD]!.mkv") == "%2FMovies%2FHeat%20(1995)%20%5BHD%5D!.mkv"
    assert encode_uri_component("盗梦空间") == quote("盗梦空间", safe="")
    assert encode_uri_component("a~b_c-d.e*f'g") == "a~b_c-d.e*f'g"


def test_safe_path_component_keeps_unicode_and_removes_separators() -> None:
    assert safe_path_component("盗梦空间 (2010)") == "盗梦空间 (2010)"
    assert safe_path_component("AC/DC\\Live") == "AC_DC_Live"
    assert safe_path_component("..") == "untitled"
    assert safe_path_component("   ") == "untitled"


def test_expand_env_walks_nested_structures(monkeypatch) -> None:
    monkeypatch.setenv("AUTOSTRM_TOKEN", "abc")

    assert expand_env({"a": ["${AUTOSTRM_TOKEN}", 1], "b": {"c": "$AUTOSTRM_TOKEN"}}) == {
        "a": ["abc", 1],
        "b": {"c": "abc"},
    }


def test_load_yaml_file_treats_empty_document_as_mapping(tmp_path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")

    assert load_yaml_file(path) == {}


def test_env_path_falls_back_when_unset(monkeypatch, tmp_path) -> None:
    monkeypatch.delenv("AUTOSTRM_TEST_PATH", raising=False)
    assert str(env_path("AUTOSTRM_TEST_PATH", "/default/path")) == "/default/path"

    monkeypatch.setenv("AUTOSTRM_TEST_PATH", str(tmp_path))
    assert env_path("AUTOSTRM_TEST_PATH", "/default/path") == tmp_path


def test_file_patterns_match_any_and_ignore_invalid(caplog) -> None:
    patterns = compile_file_patterns([r"\.mkv$", r"\.mp4$", "(broken"], task="movies")

    assert len(patterns) == 2
    assert matches_file_patterns("Heat.1995.mp4", patterns)
    assert not matches_file_patterns("Heat.1995.avi", patterns)
    assert "Invalid File Pattern" in caplog.text


def test_empty_pattern_list_matches_nothing() -> None:
    assert not matches_file_patterns("movie.mkv", [])
