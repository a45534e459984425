"""Metadata providers that enrich parsed identities with catalog data."""

from __future__ import annotations

from ..config import MetadataProviderConfig
from ..errors import ConfigurationError
from .base import MetadataProvider
from .tmdb import TmdbProvider

METADATA_PROVIDERS: dict[str, type[MetadataProvider]] = {
    "tmdb": TmdbProvider,
}


def create_metadata_provider(config: MetadataProviderConfig) -> MetadataProvider:
    try:
        provider_class = METADATA_PROVIDERS[config.type.lower()]
    except KeyError:
        raise ConfigurationError(f"Unsupported NFO provider type: {config.type}") from None
    return provider_class(config)


__all__ = [
    "METADATA_PROVIDERS",
    "MetadataProvider",
    "TmdbProvider",
    "create_metadata_provider",
]
