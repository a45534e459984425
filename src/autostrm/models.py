from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .config import MetadataProviderConfig, NamingRule, OutputConfig, SourceConfig


class MediaType(str, Enum):
    MOVIE = "movie"
    TVSHOW = "tvshow"
    ALBUM = "album"
    EPISODE = "episodedetails"

    @classmethod
    def parse(cls, value: object) -> "MediaType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(f"Unsupported media type '{value}', expected one of: {allowed}") from exc


class CandidateKind(str, Enum):
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True)
class FileDescriptor:
    filename: str
    file_path: str
    visit_url: str
    source: "SourceConfig"


@dataclass(frozen=True, slots=True)
class FileListing:
    files: List[FileDescriptor]
    has_more: bool = False
    total: Optional[int] = None


@dataclass(frozen=True, slots=True)
class CaptureRecord:
    title: Optional[str] = None
    year: Optional[str] = None
    subtitle: Optional[str] = None
    nonengtitle: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ParsedIdentity:
    """One candidate interpretation of a filename."""

    kind: CandidateKind
    media_type: MediaType
    file: FileDescriptor
    rule: Optional["NamingRule"] = None
    order: int = 0
    title: Optional[str] = None
    nonengtitle: Optional[str] = None
    subtitle: Optional[str] = None
    year: Optional[str] = None

    @property
    def match(self) -> bool:
        return self.kind is CandidateKind.MATCHED

    @property
    def is_fallback(self) -> bool:
        return self.kind is CandidateKind.FALLBACK

    @property
    def rule_name(self) -> Optional[str]:
        return self.rule.name if self.rule is not None else None


@dataclass(frozen=True, slots=True)
class EnrichmentRecord:
    title: str = ""
    originaltitle: str = ""
    year: str = ""
    releasedate: str = ""
    rating: str = ""
    plot: str = ""
    tmdbid: str = ""
    poster: str = ""
    mpaa: str = ""
    season: Optional[str] = None
    episode: Optional[str] = None
    aired: Optional[str] = None
    artist: Optional[str] = None
    genre: Optional[str] = None

    def field_value(self, name: str) -> str:
        # Sidecar templates use "id" for the catalog id
        if name == "id":
            name = "tmdbid"
        value = getattr(self, name, None)
        return "" if value is None else str(value)


@dataclass(frozen=True, slots=True)
class CandidateOutcome:
    success: bool
    metadata_existed: bool = False
    year: str = ""
    enrichment: Optional[EnrichmentRecord] = None


@dataclass(frozen=True, slots=True)
class AuditRecord:
    executed_at: str
    task_started_at: str
    candidate: ParsedIdentity
    title: str
    year: str
    enrichment: Optional[EnrichmentRecord]
    provider: "MetadataProviderConfig"
    output: "OutputConfig"


@dataclass(slots=True)
class ProcessingStats:
    processed: int = 0
    skipped: int = 0
    ignored: int = 0
    failed_tasks: int = 0
    aborted: bool = False
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    processed_by_task: Dict[str, int] = field(default_factory=dict)
    skipped_by_task: Dict[str, int] = field(default_factory=dict)

    def register_processed(self, task: Optional[str] = None) -> None:
        self.processed += 1
        if task:
            self.processed_by_task[task] = self.processed_by_task.get(task, 0) + 1

    def register_skipped(self, reason: str, *, task: Optional[str] = None) -> None:
        self.skipped += 1
        self.register_warning(reason)
        if task:
            self.skipped_by_task[task] = self.skipped_by_task.get(task, 0) + 1

    def register_ignored(self) -> None:
        self.ignored += 1

    def register_warning(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)

    def register_error(self, message: str) -> None:
        self.errors.append(message)

    def register_failed_task(self, message: str) -> None:
        self.failed_tasks += 1
        self.register_error(message)
