"""Output providers that materialize the media-server library layout."""

from __future__ import annotations

from ..config import OutputConfig
from ..errors import ConfigurationError
from .base import OutputProvider
from .jellyfin import JellyfinOutputProvider

OUTPUT_PROVIDERS: dict[str, type[OutputProvider]] = {
    "jellyfin": JellyfinOutputProvider,
}


def create_output_provider(config: OutputConfig) -> OutputProvider:
    try:
        provider_class = OUTPUT_PROVIDERS[config.type]
    except KeyError:
        raise ConfigurationError(f"Unsupported output provider type: {config.type}") from None
    return provider_class(config)


__all__ = [
    "JellyfinOutputProvider",
    "OUTPUT_PROVIDERS",
    "OutputProvider",
    "create_output_provider",
]
