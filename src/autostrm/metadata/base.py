from __future__ import annotations

from abc import ABC, abstractmethod

from ..config import MetadataProviderConfig
from ..models import EnrichmentRecord, ParsedIdentity


class MetadataProvider(ABC):
    """Looks up catalog metadata for a parsed identity.

    ``fetch_info`` returns None when nothing is found or the catalog cannot be
    reached; it never raises for those cases.
    """

    def __init__(self, config: MetadataProviderConfig) -> None:
        self.config = config

    @abstractmethod
    def fetch_info(self, identity: ParsedIdentity) -> EnrichmentRecord | None:
        """Return enrichment fields for ``identity`` or None."""

    def close(self) -> None:
        """Release backend resources."""
