from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

import httpx

from watch_wrapped.config import Settings
from watch_wrapped.exceptions import ImdbRequestError, TmdbAuthenticationError, TmdbRequestError
from watch_wrapped.metadata_cache import ConcurrencyGate, TtlCache
from watch_wrapped.models import (
    WatchedEpisode,
    WatchedMovie,
    normalize_episode_rating,
    normalize_movie_rating,
)

TMDB_BASE_URL = "https://api.themoviedb.org/3"
IMAGE_BASE_URL = "https://image.tmdb.org/t/p"
PLACEHOLDER_IMAGE_URL = "https://via.placeholder.com/500x750?text=No+Image"
IMDB_GRAPHQL_URL = "https://graphql.imdb.com"

# v4 read access tokens are long JWTs; v3 API keys are 32 hex characters.
BEARER_TOKEN_MIN_LENGTH = 50

IMDB_ID_PATTERN = re.compile(r"^tt\d+$")


@dataclass(frozen=True)
class ImdbRating:
    rating: float
    votes: int | None


class TmdbClient:
    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        cache: TtlCache | None = None,
        gate: ConcurrencyGate | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._logger = logger
        self._cache = cache or TtlCache(
            ttl_seconds=settings.tmdb_cache_ttl_seconds,
            max_entries=settings.tmdb_cache_max_entries,
        )
        self._gate = gate or ConcurrencyGate(settings.tmdb_max_concurrent_requests)

        api_key = settings.tmdb_api_key
        headers = {"Content-Type": "application/json", "User-Agent": "watch-wrapped/0.1"}
        self._default_params = {"language": "en-US"}
        if len(api_key) > BEARER_TOKEN_MIN_LENGTH:
            headers["Authorization"] = f"Bearer {api_key}"
        else:
            self._default_params["api_key"] = api_key

        self._http = httpx.Client(
            base_url=TMDB_BASE_URL,
            headers=headers,
            timeout=30.0,
            transport=transport,
        )
        # Separate client so TMDB credentials never reach IMDb.
        self._imdb_http = httpx.Client(
            headers={"Content-Type": "application/json", "User-Agent": "watch-wrapped/0.1"},
            timeout=30.0,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()
        self._imdb_http.close()

    def search(self, query: str) -> list[dict[str, Any]]:
        payload = self._get("/search/multi", params={"query": query})
        return list(payload.get("results", []))

    def get_trending(self) -> list[dict[str, Any]]:
        payload = self._get("/trending/tv/week")
        return list(payload.get("results", []))

    def get_movie_details(self, movie_id: int) -> dict[str, Any]:
        return self._get(f"/movie/{movie_id}")

    def get_tv_details(self, tv_id: int) -> dict[str, Any]:
        show = self._get(f"/tv/{tv_id}")
        show["external_ids"] = self._get(f"/tv/{tv_id}/external_ids")
        return show

    def get_season_details(self, tv_id: int, season_number: int) -> dict[str, Any]:
        return self._get(f"/tv/{tv_id}/season/{season_number}")

    def get_episode_details(self, tv_id: int, season_number: int, episode_number: int) -> dict[str, Any]:
        return self._get(
            f"/tv/{tv_id}/season/{season_number}/episode/{episode_number}",
            params={"append_to_response": "credits,images"},
        )

    def get_episode_imdb_id(self, tv_id: int, season_number: int, episode_number: int) -> str | None:
        payload = self._get(f"/tv/{tv_id}/season/{season_number}/episode/{episode_number}/external_ids")
        imdb_id = payload.get("imdb_id")
        return str(imdb_id) if imdb_id else None

    def get_imdb_rating(self, imdb_id: str | None) -> ImdbRating | None:
        """Look up the aggregate IMDb rating for a title id such as ``tt0133093``.

        Returns None for missing or malformed ids and for titles without a rating.
        """
        if not imdb_id or not IMDB_ID_PATTERN.match(imdb_id):
            return None

        cache_key = ("imdb", imdb_id)
        cached = self._cache.get(cache_key)
        if cached is not None:
            self._logger.debug("tmdb_cache_hit", extra={"path": imdb_id})
            return cached

        query = f'{{ title(id: "{imdb_id}") {{ ratingsSummary {{ aggregateRating voteCount }} }} }}'
        with self._gate:
            try:
                response = self._imdb_http.post(IMDB_GRAPHQL_URL, json={"query": query})
            except httpx.HTTPError as error:
                raise ImdbRequestError(f"IMDb request failed imdb_id={imdb_id}: {error}") from error

        if response.status_code >= 400:
            raise ImdbRequestError(
                f"IMDb request failed status={response.status_code}, imdb_id={imdb_id}, "
                f"detail={_response_detail(response)}"
            )
        try:
            payload = response.json()
        except ValueError as error:
            raise ImdbRequestError(f"Unexpected IMDb response format for {imdb_id}") from error

        rating = _parse_imdb_rating(payload)
        if rating is not None:
            self._cache.set(cache_key, rating)
        return rating

    def get_imdb_episode_rating(self, tv_id: int, season_number: int, episode_number: int) -> ImdbRating | None:
        imdb_id = self.get_episode_imdb_id(tv_id, season_number, episode_number)
        if imdb_id is None:
            return None
        return self.get_imdb_rating(imdb_id)

    def get_season_imdb_ratings(
        self,
        tv_id: int,
        season_number: int,
        episode_numbers: Iterable[int],
    ) -> dict[int, ImdbRating]:
        """Fetch IMDb ratings for several episodes at once, bounded by the concurrency gate.

        Episodes whose lookup fails are logged and left out.
        """
        numbers = list(dict.fromkeys(episode_numbers))
        with ThreadPoolExecutor(max_workers=self._gate.max_concurrent) as executor:
            results = list(
                executor.map(
                    lambda number: self._episode_rating_or_none(tv_id, season_number, number),
                    numbers,
                )
            )
        return {number: rating for number, rating in zip(numbers, results) if rating is not None}

    def _episode_rating_or_none(self, tv_id: int, season_number: int, episode_number: int) -> ImdbRating | None:
        try:
            return self.get_imdb_episode_rating(tv_id, season_number, episode_number)
        except TmdbAuthenticationError:
            raise
        except (TmdbRequestError, ImdbRequestError) as error:
            self._logger.warning(
                "imdb_rating_failed",
                extra={
                    "tv_id": tv_id,
                    "season_number": season_number,
                    "episode_number": episode_number,
                    "error": str(error),
                },
            )
            return None

    @staticmethod
    def image_url(path: str | None, size: str = "w500") -> str:
        if not path:
            return PLACEHOLDER_IMAGE_URL
        return f"{IMAGE_BASE_URL}/{size}{path}"

    def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        merged = {**self._default_params, **(params or {})}
        cache_key = (path, tuple(sorted((key, str(value)) for key, value in merged.items())))

        cached = self._cache.get(cache_key)
        if cached is not None:
            self._logger.debug("tmdb_cache_hit", extra={"path": path})
            return dict(cached)

        with self._gate:
            try:
                response = self._http.get(path, params=merged)
            except httpx.HTTPError as error:
                raise TmdbRequestError(f"TMDB request failed path={path}: {error}") from error

        if response.status_code == 401:
            raise TmdbAuthenticationError(f"TMDB rejected credentials path={path}")
        if response.status_code >= 400:
            raise TmdbRequestError(
                f"TMDB request failed status={response.status_code}, path={path}, detail={_response_detail(response)}"
            )

        payload = response.json()
        if not isinstance(payload, dict):
            raise TmdbRequestError(f"Unexpected TMDB response format for {path}")

        self._cache.set(cache_key, payload)
        return dict(payload)



def movie_from_details(details: dict[str, Any], watched_date: str, rating: float = 0) -> WatchedMovie:
    movie_id = details.get("id")
    if movie_id is None:
        raise ValueError("Missing id in TMDB movie details")

    return WatchedMovie(
        movie_id=int(movie_id),
        title=str(details.get("title") or "Unknown"),
        poster_path=details.get("poster_path"),
        backdrop_path=details.get("backdrop_path"),
        rating=normalize_movie_rating(rating),
        watched_date=watched_date,
        runtime=max(0, int(details.get("runtime") or 0)),
        release_date=str(details.get("release_date") or ""),
        genres=tuple(str(genre["name"]) for genre in details.get("genres", []) if genre.get("name")),
        overview=str(details.get("overview") or ""),
    )



def episode_from_details(
    show: dict[str, Any],
    season: dict[str, Any],
    episode_number: int,
    watched_date: str,
    rating: float = 0,
    liked: bool = False,
    review: str | None = None,
    tags: tuple[str, ...] = (),
) -> WatchedEpisode:
    episode = next(
        (item for item in season.get("episodes", []) if item.get("episode_number") == episode_number),
        None,
    )
    if episode is None:
        raise ValueError(f"Episode {episode_number} not found in season {season.get('season_number')}")

    runtime = episode.get("runtime")
    return WatchedEpisode(
        episode_id=int(episode["id"]),
        series_id=int(show["id"]),
        series_name=show.get("name"),
        episode_name=episode.get("name"),
        still_path=episode.get("still_path"),
        season_number=int(episode.get("season_number") or season.get("season_number") or 0),
        episode_number=episode_number,
        rating=normalize_episode_rating(rating),
        watched_date=watched_date,
        liked=liked,
        review=review,
        tags=tags,
        runtime=max(0, int(runtime)) if runtime is not None else None,
        genres=tuple(str(genre["name"]) for genre in show.get("genres", []) if genre.get("name")),
    )



def _response_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict):
        return str(payload.get("status_message") or payload)[:200]
    return str(payload)[:200]



def season_episode_counts(show: dict[str, Any]) -> dict[int, int]:
    """Episode count per season from TMDB show details, specials (season 0) left out."""
    counts: dict[int, int] = {}
    for season in show.get("seasons") or []:
        season_number = season.get("season_number")
        if season_number is None or int(season_number) <= 0:
            continue
        counts[int(season_number)] = int(season.get("episode_count") or 0)
    return counts



def _parse_imdb_rating(payload: Any) -> ImdbRating | None:
    summary = payload
    for key in ("data", "title", "ratingsSummary"):
        if not isinstance(summary, dict):
            return None
        summary = summary.get(key)
    if not isinstance(summary, dict) or not summary.get("aggregateRating"):
        return None

    votes = summary.get("voteCount")
    return ImdbRating(
        rating=float(summary["aggregateRating"]),
        votes=int(votes) if votes else None,
    )
