from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

import httpx

from autostrm.config import MetadataProviderConfig, SourceConfig
from autostrm.metadata import create_metadata_provider
from autostrm.metadata.tmdb import POSTER_BASE_URL, TmdbProvider
from autostrm.metadata.tmdb_models import TmdbSearchResult
from autostrm.models import CandidateKind, FileDescriptor, MediaType, ParsedIdentity

SOURCE = SourceConfig(name="local", type="local_folder", path="/media")

INCEPTION = {
    "page": 1,
    "total_results": 1,
    "results": [
        {
            "id": 27205,
            "title": "Inception",
            "original_title": "Inception",
            "release_date": "2010-07-15",
            "vote_average": 8.4,
            "overview": "A thief who steals corporate secrets.",
            "poster_path": "/poster.jpg",
            "popularity": 99.1,
        }
    ],
}


def _identity(title: str, year: str | None, media_type: MediaType = MediaType.MOVIE) -> ParsedIdentity:
    return ParsedIdentity(
        kind=CandidateKind.MATCHED,
        media_type=media_type,
        file=FileDescriptor(filename="x.mkv", file_path="/media/x.mkv", visit_url="/media/x.mkv", source=SOURCE),
        title=title,
        year=year,
    )


def _response(payload: dict) -> MagicMock:
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def _config(**overrides) -> MetadataProviderConfig:
    values = {"name": "tmdb", "type": "tmdb", "api_key": "secret"}
    values.update(overrides)
    return MetadataProviderConfig(**values)


def test_movie_lookup_uses_movie_search_and_year() -> None:
    with patch("autostrm.metadata.tmdb.httpx.Client") as mock_client_class:
        mock_client = mock_client_class.return_value
        mock_client.get.return_value = _response(INCEPTION)
        provider = TmdbProvider(_config(language="zh-CN"))

        enrichment = provider.fetch_info(_identity("Inception", "2010"))

    url = mock_client.get.call_args.args[0]
    params = mock_client.get.call_args.kwargs["params"]
    assert url == "https://api.themoviedb.org/3/search/movie"
    assert params == {"query": "Inception", "api_key": "secret", "year": "2010", "language": "zh-CN"}

    assert enrichment is not None
    assert enrichment.title == "Inception"
    assert enrichment.year == "2010"
    assert enrichment.releasedate == "2010-07-15"
    assert enrichment.rating == "8.4"
    assert enrichment.tmdbid == "27205"
    assert enrichment.poster == f"{POSTER_BASE_URL}/poster.jpg"
    assert enrichment.season is None


def test_tv_lookup_uses_tv_search_and_first_air_date_year() -> None:
    payload = {
        "results": [
            {"id": 1396, "name": "Breaking Bad", "original_name": "Breaking Bad", "first_air_date": "2008-01-20"}
        ]
    }
    with patch("autostrm.metadata.tmdb.httpx.Client") as mock_client_class:
        mock_client = mock_client_class.return_value
        mock_client.get.return_value = _response(payload)
        provider = TmdbProvider(_config(base_url="https://tmdb.example/3/"))

        enrichment = provider.fetch_info(_identity("Breaking Bad", "2008", MediaType.TVSHOW))

    assert mock_client.get.call_args.args[0] == "https://tmdb.example/3/search/tv"
    assert mock_client.get.call_args.kwargs["params"]["first_air_date_year"] == "2008"
    assert enrichment is not None
    assert enrichment.title == "Breaking Bad"
    assert enrichment.year == "2008"
    assert enrichment.season == ""


def test_lookup_without_year_omits_year_parameter() -> None:
    with patch("autostrm.metadata.tmdb.httpx.Client") as mock_client_class:
        mock_client = mock_client_class.return_value
        mock_client.get.return_value = _response(INCEPTION)
        TmdbProvider(_config()).fetch_info(_identity("Inception", None))

    assert mock_client.get.call_args.kwargs["params"] == {"query": "Inception", "api_key": "secret"}


def test_empty_results_return_none() -> None:
    with patch("autostrm.metadata.tmdb.httpx.Client") as mock_client_class:
        mock_client_class.return_value.get.return_value = _response({"results": []})

        assert TmdbProvider(_config()).fetch_info(_identity("Nothing", "1900")) is None


def test_transport_error_returns_none_and_logs(caplog) -> None:
    with patch("autostrm.metadata.tmdb.httpx.Client") as mock_client_class:
        mock_client_class.return_value.get.side_effect = httpx.ConnectError("connection refused")

        with caplog.at_level(logging.WARNING, logger="autostrm.metadata.tmdb"):
            assert TmdbProvider(_config()).fetch_info(_identity("Inception", "2010")) is None

    assert "TMDb Lookup Failed" in caplog.text


def test_invalid_json_returns_none() -> None:
    response = MagicMock()
    response.raise_for_status.return_value = None
    response.json.side_effect = ValueError("not json")
    with patch("autostrm.metadata.tmdb.httpx.Client") as mock_client_class:
        mock_client_class.return_value.get.return_value = response

        assert TmdbProvider(_config()).fetch_info(_identity("Inception", "2010")) is None


def test_to_enrichment_formats_whole_ratings_and_genres() -> None:
    result = TmdbSearchResult.model_validate(
        {"id": 1, "title": "Film", "vote_average": 7.0, "genres": [{"id": 18, "name": "Drama"}, {"name": "Crime"}]}
    )

    enrichment = TmdbProvider.to_enrichment(result, MediaType.MOVIE)

    assert enrichment.rating == "7"
    assert enrichment.genre == "Drama, Crime"
    assert enrichment.year == ""


def test_factory_builds_tmdb_provider() -> None:
    with patch("autostrm.metadata.tmdb.httpx.Client"):
        provider = create_metadata_provider(_config(type="tmdb"))

    assert isinstance(provider, TmdbProvider)
