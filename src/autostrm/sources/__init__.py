"""Source providers that enumerate media files."""

from __future__ import annotations

from ..config import SourceConfig
from ..errors import ConfigurationError
from .base import SourceProvider, iter_source_files
from .local_folder import LocalFolderSourceProvider
from .webdav import WebDAVSourceProvider

SOURCE_PROVIDERS: dict[str, type[SourceProvider]] = {
    "webdav": WebDAVSourceProvider,
    "local_folder": LocalFolderSourceProvider,
}


def create_source_provider(config: SourceConfig) -> SourceProvider:
    try:
        provider_class = SOURCE_PROVIDERS[config.type]
    except KeyError:
        raise ConfigurationError(f"Unsupported source provider type: {config.type}") from None
    return provider_class(config)


__all__ = [
    "LocalFolderSourceProvider",
    "SOURCE_PROVIDERS",
    "SourceProvider",
    "WebDAVSourceProvider",
    "create_source_provider",
    "iter_source_files",
]
