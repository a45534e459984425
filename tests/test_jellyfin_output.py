from __future__ import annotations

from xml.etree import ElementTree as ET

import pytest

from autostrm.config import MetadataProviderConfig, NamingRule, OutputConfig, SourceConfig
from autostrm.errors import PersistenceError
from autostrm.models import AuditRecord, CandidateKind, EnrichmentRecord, FileDescriptor, MediaType, ParsedIdentity
from autostrm.outputs.jellyfin import (
    AUDIT_LOG_NAME,
    AUDIT_SEPARATOR,
    NFO_FIELDS,
    JellyfinOutputProvider,
    render_audit_entry,
    render_nfo,
)

OUTPUT = OutputConfig(name="jellyfin", type="jellyfin", output_dir="movies", library_name="Movies")
PROVIDER = MetadataProviderConfig(name="tmdb", type="tmdb")
SOURCE = SourceConfig(name="nas", type="webdav", path="/media", server_address="http://nas")
RULE = NamingRule(name="title_year", regex=r"^(?<title>.+?)\.(?<year>\d{4})", supported_media_types=(MediaType.MOVIE,))
ENRICHMENT = EnrichmentRecord(
    title="Inception",
    originaltitle="Inception",
    year="2010",
    releasedate="2010-07-15",
    rating="8.4",
    plot="A thief who steals corporate secrets.",
    tmdbid="27205",
    poster="https://image.tmdb.org/t/p/w500/poster.jpg",
)


def _record(executed_at: str = "2026-01-01T00:00:00+00:00") -> AuditRecord:
    candidate = ParsedIdentity(
        kind=CandidateKind.MATCHED,
        media_type=MediaType.MOVIE,
        file=FileDescriptor(
            filename="Inception.2010.1080p.mkv",
            file_path="/media/Inception.2010.1080p.mkv",
            visit_url="http://nas/d/Inception.2010.1080p.mkv",
            source=SOURCE,
        ),
        rule=RULE,
        title="Inception",
        year="2010",
    )
    return AuditRecord(
        executed_at=executed_at,
        task_started_at="2026-01-01T00:00:00+00:00",
        candidate=candidate,
        title="Inception",
        year="2010",
        enrichment=ENRICHMENT,
        provider=PROVIDER,
        output=OUTPUT,
    )


def test_reference_write_is_idempotent(tmp_path) -> None:
    provider = JellyfinOutputProvider(OUTPUT)
    url = "http://nas/d/Inception.2010.1080p.mkv"

    assert provider.write_reference_file(tmp_path, "Inception", "2010", "Inception.2010.1080p", url) is True
    assert provider.write_reference_file(tmp_path, "Inception", "2010", "Inception.2010.1080p", url) is False

    strm_path = tmp_path / "Inception (2010)" / "Inception.2010.1080p.strm"
    assert strm_path.read_text(encoding="utf-8") == url


def test_reference_is_rewritten_when_url_changes(tmp_path) -> None:
    provider = JellyfinOutputProvider(OUTPUT)
    provider.write_reference_file(tmp_path, "Inception", "2010", "Inception", "http://old/url")

    assert provider.write_reference_file(tmp_path, "Inception", "2010", "Inception", "http://new/url") is True
    assert (tmp_path / "Inception (2010)" / "Inception.strm").read_text(encoding="utf-8") == "http://new/url"


def test_reference_with_non_utf8_content_is_rewritten(tmp_path) -> None:
    strm_path = tmp_path / "Inception (2010)" / "Inception.strm"
    strm_path.parent.mkdir()
    strm_path.write_bytes("http://host/Café.mkv".encode("latin-1"))
    provider = JellyfinOutputProvider(OUTPUT)

    assert provider.write_reference_file(tmp_path, "Inception", "2010", "Inception", "http://host/Café.mkv") is True
    assert strm_path.read_text(encoding="utf-8") == "http://host/Café.mkv"


def test_item_directory_without_year_uses_title_only(tmp_path) -> None:
    provider = JellyfinOutputProvider(OUTPUT)

    assert provider.item_directory(tmp_path, "Inception", "") == tmp_path / "Inception"


def test_item_directory_removes_path_separators(tmp_path) -> None:
    provider = JellyfinOutputProvider(OUTPUT)

    assert provider.item_directory(tmp_path, "AC/DC Live", "1991") == tmp_path / "AC_DC Live (1991)"


def test_write_failure_raises_persistence_error(tmp_path) -> None:
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("", encoding="utf-8")
    provider = JellyfinOutputProvider(OUTPUT)

    with pytest.raises(PersistenceError):
        provider.write_reference_file(blocker, "Inception", "2010", "Inception", "http://nas/x")


def test_render_nfo_uses_media_type_fields_in_order() -> None:
    root = ET.fromstring(render_nfo(MediaType.MOVIE, ENRICHMENT))

    assert root.tag == "movie"
    assert [child.tag for child in root] == list(NFO_FIELDS[MediaType.MOVIE])
    assert root.findtext("title") == "Inception"
    assert root.findtext("tmdbid") == "27205"
    assert root.findtext("mpaa") == ""


def test_render_nfo_escapes_markup() -> None:
    root = ET.fromstring(render_nfo(MediaType.MOVIE, EnrichmentRecord(title="Tom & Jerry <Classic>")))

    assert root.findtext("title") == "Tom & Jerry <Classic>"


def test_render_nfo_maps_id_for_tv_and_episode() -> None:
    tv = ET.fromstring(render_nfo(MediaType.TVSHOW, ENRICHMENT))
    episode = ET.fromstring(render_nfo(MediaType.EPISODE, EnrichmentRecord(title="Pilot", season="1", episode="1")))

    assert tv.tag == "tvshow"
    assert tv.findtext("id") == "27205"
    assert episode.tag == "episodedetails"
    assert episode.findtext("season") == "1"


def test_metadata_file_round_trip(tmp_path) -> None:
    provider = JellyfinOutputProvider(OUTPUT)

    assert not provider.metadata_exists(tmp_path, "Inception", "2010", MediaType.MOVIE)
    path = provider.write_metadata_file(tmp_path, "Inception", "2010", MediaType.MOVIE, "en", ENRICHMENT)

    assert path == tmp_path / "Inception (2010)" / "movie.nfo"
    assert provider.metadata_exists(tmp_path, "Inception", "2010", MediaType.MOVIE)
    assert not provider.metadata_exists(tmp_path, "Inception", "2010", MediaType.TVSHOW)


def test_audit_records_are_appended(tmp_path) -> None:
    provider = JellyfinOutputProvider(OUTPUT)

    provider.write_audit_record(tmp_path, "Inception", "2010", _record("2026-01-01T00:00:00+00:00"))
    log_path = provider.write_audit_record(tmp_path, "Inception", "2010", _record("2026-01-02T00:00:00+00:00"))

    assert log_path == tmp_path / AUDIT_LOG_NAME
    content = log_path.read_text(encoding="utf-8")
    assert content.count(AUDIT_SEPARATOR) == 2
    assert "2026-01-01T00:00:00+00:00" in content
    assert "2026-01-02T00:00:00+00:00" in content


def test_render_audit_entry_lists_match_and_metadata() -> None:
    entry = render_audit_entry(_record(), "Inception", "2010")

    assert entry.startswith("Audit Record")
    assert "title_year" in entry
    assert "27205" in entry
    assert "http://nas/d/Inception.2010.1080p.mkv" in entry
    assert "Non-English Title" in entry
    assert "N/A" in entry
