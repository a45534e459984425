"""TMDb search client."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..config import MetadataProviderConfig
from ..logging_utils import render_fields_block
from ..models import EnrichmentRecord, MediaType, ParsedIdentity
from .base import MetadataProvider
from .tmdb_models import TmdbSearchResponse, TmdbSearchResult

LOGGER = logging.getLogger(__name__)

API_BASE_URL = "https://api.themoviedb.org/3"
POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"


def _format_number(value: float | int | None) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class TmdbProvider(MetadataProvider):
    """Resolves titles against the TMDb search endpoints.

    TV shows are searched with ``/search/tv``; every other media type uses
    ``/search/movie``. The first result wins.
    """

    def __init__(self, config: MetadataProviderConfig) -> None:
        super().__init__(config)
        self.base_url = (config.base_url or API_BASE_URL).rstrip("/")
        self._client = httpx.Client(timeout=config.timeout)

    def _search_params(self, identity: ParsedIdentity) -> tuple[str, dict[str, Any]]:
        is_tv = identity.media_type is MediaType.TVSHOW
        params: dict[str, Any] = {"query": identity.title or "", "api_key": self.config.api_key}
        if identity.year:
            params["first_air_date_year" if is_tv else "year"] = identity.year
        if self.config.language:
            params["language"] = self.config.language
        return ("/search/tv" if is_tv else "/search/movie"), params

    def fetch_info(self, identity: ParsedIdentity) -> EnrichmentRecord | None:
        path, params = self._search_params(identity)
        try:
            response = self._client.get(f"{self.base_url}{path}", params=params)
            response.raise_for_status()
            payload = TmdbSearchResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as exc:
            LOGGER.warning(
                render_fields_block(
                    "TMDb Lookup Failed",
                    {"Title": identity.title, "Year": identity.year or "N/A", "Error": exc},
                )
            )
            return None

        if not payload.results:
            LOGGER.info(
                render_fields_block(
                    "TMDb Returned No Results",
                    {"Title": identity.title, "Year": identity.year or "N/A", "Endpoint": path},
                )
            )
            return None

        return self.to_enrichment(payload.results[0], identity.media_type)

    @staticmethod
    def to_enrichment(result: TmdbSearchResult, media_type: MediaType) -> EnrichmentRecord:
        date = result.date
        fields: dict[str, Any] = {
            "title": result.display_title,
            "originaltitle": result.display_original_title,
            "year": date[:4] if date else "",
            "releasedate": date,
            "rating": _format_number(result.vote_average) if result.vote_average else "",
            "plot": result.overview or "",
            "tmdbid": str(result.id) if result.id is not None else "",
            "poster": f"{POSTER_BASE_URL}{result.poster_path}" if result.poster_path else "",
            "mpaa": result.certification or "",
        }
        if media_type is MediaType.TVSHOW:
            fields["season"] = _format_number(result.season_number)
            fields["episode"] = _format_number(result.episode_number)
            fields["aired"] = result.air_date or ""
        if result.genres:
            fields["genre"] = ", ".join(genre.name for genre in result.genres if genre.name)
        return EnrichmentRecord(**fields)

    def close(self) -> None:
        self._client.close()
