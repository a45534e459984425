"""Pydantic models for TMDb search responses."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TmdbGenre(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    name: str = ""


class TmdbSearchResult(BaseModel):
    """One entry of ``/search/movie`` or ``/search/tv``.

    Movies carry ``title``/``release_date``; TV shows carry
    ``name``/``first_air_date``.
    """

    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    title: str | None = None
    name: str | None = None
    original_title: str | None = None
    original_name: str | None = None
    release_date: str | None = None
    first_air_date: str | None = None
    vote_average: float | None = None
    overview: str | None = None
    poster_path: str | None = None
    certification: str | None = None
    season_number: int | None = None
    episode_number: int | None = None
    air_date: str | None = None
    genres: list[TmdbGenre] = Field(default_factory=list)

    @property
    def display_title(self) -> str:
        return self.title or self.name or ""

    @property
    def display_original_title(self) -> str:
        return self.original_title or self.original_name or ""

    @property
    def date(self) -> str:
        return self.release_date or self.first_air_date or ""


class TmdbSearchResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    page: int = 1
    results: list[TmdbSearchResult] = Field(default_factory=list)
    total_results: int = 0
