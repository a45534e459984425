"""Jellyfin library layout.

Each identity gets a directory named ``Title (Year)`` (or just ``Title``)
holding the ``.strm`` reference and an ``.nfo`` sidecar::

    <output_dir>/
        record_info.txt
        Inception (2010)/
            Inception.2010.1080p.BluRay.x264-Group.strm
            movie.nfo
"""

from __future__ import annotations

import logging
from pathlib import Path
from xml.etree import ElementTree as ET

from ..errors import PersistenceError
from ..logging_utils import LogBlockBuilder, render_fields_block
from ..models import AuditRecord, EnrichmentRecord, MediaType
from ..utils import ensure_directory, safe_path_component
from .base import OutputProvider

LOGGER = logging.getLogger(__name__)

AUDIT_LOG_NAME = "record_info.txt"
AUDIT_SEPARATOR = "-" * 40
NOT_AVAILABLE = "N/A"

NFO_FILE_NAMES: dict[MediaType, str] = {
    MediaType.MOVIE: "movie.nfo",
    MediaType.TVSHOW: "tvshow.nfo",
    MediaType.EPISODE: "episode.nfo",
    MediaType.ALBUM: "album.nfo",
}

NFO_FIELDS: dict[MediaType, tuple[str, ...]] = {
    MediaType.MOVIE: ("title", "originaltitle", "year", "releasedate", "rating", "plot", "tmdbid", "mpaa", "poster"),
    MediaType.TVSHOW: ("title", "originaltitle", "year", "rating", "plot", "id", "mpaa", "poster"),
    MediaType.EPISODE: ("title", "season", "episode", "aired", "plot", "id"),
    MediaType.ALBUM: ("title", "artist", "year", "genre", "rating", "plot", "id", "poster"),
}


def _or_na(value: object) -> object:
    return NOT_AVAILABLE if value in (None, "") else value


def render_nfo(media_type: MediaType, enrichment: EnrichmentRecord) -> str:
    root = ET.Element(media_type.value)
    for name in NFO_FIELDS[media_type]:
        ET.SubElement(root, name).text = enrichment.field_value(name)
    ET.indent(root, space="  ")
    return ET.tostring(root, encoding="unicode")


def render_audit_entry(record: AuditRecord, title: str, year: str) -> str:
    candidate = record.candidate
    source = candidate.file.source
    enrichment = record.enrichment
    rule = candidate.rule

    builder = LogBlockBuilder("Audit Record", pad_top=False, indent="  ")
    builder.add_fields({"Executed At": record.executed_at, "Task Started At": record.task_started_at})
    builder.add_section(
        "Source",
        {
            "Source Name": source.name,
            "Source Path": source.path,
            "File Path": candidate.file.file_path,
            "Visit URL": candidate.file.visit_url,
        },
    )
    builder.add_section(
        "Filename Match",
        {
            "Title": title,
            "Year": _or_na(year),
            "Naming Rule": _or_na(rule.name if rule else None),
            "Rule Regex": _or_na(rule.regex if rule else None),
            "Subtitle": _or_na(candidate.subtitle),
            "Non-English Title": _or_na(candidate.nonengtitle),
        },
    )
    builder.add_section(
        "Metadata",
        {
            "Provider": record.provider.name,
            "Catalog ID": _or_na(enrichment.tmdbid if enrichment else None),
            "Catalog Title": _or_na(enrichment.title if enrichment else None),
            "Original Title": _or_na(enrichment.originaltitle if enrichment else None),
            "Release Date": _or_na(enrichment.releasedate if enrichment else None),
            "Rating": _or_na(enrichment.rating if enrichment else None),
        },
    )
    builder.add_section(
        "Output",
        {
            "Output Type": record.output.type,
            "Output Directory": record.output.output_dir,
            "Library Name": _or_na(record.output.library_name),
        },
    )
    return builder.render()


class JellyfinOutputProvider(OutputProvider):
    def item_directory(self, base_dir: Path, title: str, year: str) -> Path:
        name = f"{title} ({year})" if year else title
        return base_dir / safe_path_component(name)

    def nfo_path(self, base_dir: Path, title: str, year: str, media_type: MediaType) -> Path:
        return self.item_directory(base_dir, title, year) / NFO_FILE_NAMES[media_type]

    def write_reference_file(self, base_dir: Path, title: str, year: str, file_name: str, visit_url: str) -> bool:
        directory = self.item_directory(base_dir, title, year)
        strm_path = directory / f"{safe_path_component(file_name)}.strm"
        try:
            if strm_path.exists() and strm_path.read_bytes().strip() == visit_url.encode("utf-8"):
                LOGGER.debug(render_fields_block("STRM Unchanged, Skipping Write", {"Path": strm_path}, pad_top=False))
                return False
            ensure_directory(directory)
            strm_path.write_text(visit_url, encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(strm_path, exc) from exc

        LOGGER.info(render_fields_block("STRM Written", {"Path": strm_path}))
        return True

    def write_metadata_file(
        self,
        base_dir: Path,
        title: str,
        year: str,
        media_type: MediaType,
        language: str,
        enrichment: EnrichmentRecord,
    ) -> Path:
        nfo_path = self.nfo_path(base_dir, title, year, media_type)
        try:
            ensure_directory(nfo_path.parent)
            nfo_path.write_text(render_nfo(media_type, enrichment), encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(nfo_path, exc) from exc

        LOGGER.info(render_fields_block("NFO Written", {"Path": nfo_path, "Language": language}))
        return nfo_path

    def metadata_exists(self, base_dir: Path, title: str, year: str, media_type: MediaType) -> bool:
        return self.nfo_path(base_dir, title, year, media_type).is_file()

    def write_audit_record(self, base_dir: Path, title: str, year: str, record: AuditRecord) -> Path:
        log_path = base_dir / AUDIT_LOG_NAME
        entry = render_audit_entry(record, title, year)
        try:
            ensure_directory(base_dir)
            with log_path.open("a", encoding="utf-8") as handle:
                handle.write(f"\n{AUDIT_SEPARATOR}\n{entry}\n")
        except OSError as exc:
            raise PersistenceError(log_path, exc) from exc

        LOGGER.debug(render_fields_block("Audit Record Appended", {"Path": log_path}, pad_top=False))
        return log_path
