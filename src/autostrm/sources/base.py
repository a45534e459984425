from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Iterator

from ..config import SourceConfig
from ..models import FileDescriptor, FileListing
from ..utils import encode_uri_component

LOGGER = logging.getLogger(__name__)


class SourceProvider(ABC):
    """Lists media files from one configured source.

    Implementations cache their listing for the lifetime of the instance, so a
    paginated traversal only queries the backend once.
    """

    def __init__(self, config: SourceConfig) -> None:
        self.config = config
        self._cached: list[FileDescriptor] | None = None

    def supports_pagination(self) -> bool:
        return self.config.use_pagination

    @abstractmethod
    def _list_files(self) -> list[FileDescriptor]:
        """Enumerate every file below the configured path."""

    def _all_files(self) -> list[FileDescriptor]:
        if self._cached is None:
            self._cached = self._list_files()
        return self._cached

    def get_files(self, page: int | None = None) -> FileListing:
        """Return one 1-based page of files, or every file when ``page`` is None."""
        files = self._all_files()
        total = len(files)
        if page is None or not self.supports_pagination():
            return FileListing(files=list(files), has_more=False, total=total)

        size = self.config.page_size
        start = max(page - 1, 0) * size
        return FileListing(
            files=files[start : start + size],
            has_more=start + size < total,
            total=total,
        )

    def get_total_files(self) -> int:
        return len(self._all_files())

    def get_page_count(self) -> int:
        if not self.supports_pagination():
            return 1
        return math.ceil(self.get_total_files() / self.config.page_size)

    def build_visit_url(self, relative_path: str) -> str:
        prefix = self.config.visit_url_prefix or ""
        return f"{prefix}{encode_uri_component(relative_path)}"

    def relative_to_root(self, file_path: str) -> str:
        root = self.config.path
        if root and file_path.startswith(root):
            return file_path[len(root) :]
        return file_path

    def close(self) -> None:
        """Release backend resources."""


def iter_source_files(provider: SourceProvider) -> Iterator[FileDescriptor]:
    """Yield every file of ``provider``, walking pages when the provider paginates."""
    if not provider.supports_pagination():
        yield from provider.get_files().files
        return

    page = 1
    while True:
        listing = provider.get_files(page)
        LOGGER.debug("Fetched page %d from source %s (%d files)", page, provider.config.name, len(listing.files))
        yield from listing.files
        if not listing.has_more:
            return
        page += 1
