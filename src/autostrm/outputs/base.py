from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from ..config import OutputConfig
from ..models import AuditRecord, EnrichmentRecord, MediaType


class OutputProvider(ABC):
    """Persists stream references, metadata sidecars and audit entries.

    Every write is idempotent for identical input except the audit log, which
    only ever grows. Write failures raise ``PersistenceError``.
    """

    def __init__(self, config: OutputConfig) -> None:
        self.config = config

    @abstractmethod
    def write_reference_file(self, base_dir: Path, title: str, year: str, file_name: str, visit_url: str) -> bool:
        """Write the stream reference; returns False when identical content already exists."""

    @abstractmethod
    def write_metadata_file(
        self,
        base_dir: Path,
        title: str,
        year: str,
        media_type: MediaType,
        language: str,
        enrichment: EnrichmentRecord,
    ) -> Path:
        """Write the metadata sidecar and return its path."""

    @abstractmethod
    def metadata_exists(self, base_dir: Path, title: str, year: str, media_type: MediaType) -> bool:
        """Whether a metadata sidecar is already present for the identity."""

    @abstractmethod
    def write_audit_record(self, base_dir: Path, title: str, year: str, record: AuditRecord) -> Path:
        """Append ``record`` to the audit log and return the log path."""
