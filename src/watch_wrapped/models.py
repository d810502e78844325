from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Any


@dataclass(frozen=True)
class WatchedMovie:
    movie_id: int
    title: str
    poster_path: str | None
    backdrop_path: str | None
    rating: int
    watched_date: str
    runtime: int
    release_date: str
    genres: tuple[str, ...]
    overview: str

    @property
    def storage_key(self) -> str:
        return f"{self.movie_id}_{self.watched_date}"


@dataclass(frozen=True)
class WatchedEpisode:
    episode_id: int
    series_id: int
    series_name: str | None
    episode_name: str | None
    still_path: str | None
    season_number: int
    episode_number: int
    rating: float
    watched_date: str
    liked: bool = False
    review: str | None = None
    tags: tuple[str, ...] = ()
    rewatch: bool = False
    no_spoilers: bool = False
    runtime: int | None = None
    genres: tuple[str, ...] = ()

    @property
    def display_title(self) -> str:
        return f"{self.display_series_name} S{self.season_number}E{self.episode_number}"

    @property
    def display_series_name(self) -> str:
        return self.series_name or f"Show {self.series_id}"



def parse_watched_movie(payload: dict[str, Any]) -> WatchedMovie:
    movie_id = payload.get("movieId")
    if movie_id is None:
        raise ValueError("Missing movieId in payload")

    return WatchedMovie(
        movie_id=int(movie_id),
        title=str(payload.get("title") or "Unknown"),
        poster_path=_str_or_none(payload.get("posterPath")),
        backdrop_path=_str_or_none(payload.get("backdropPath")),
        rating=normalize_movie_rating(payload.get("rating")),
        watched_date=str(payload.get("watchedDate") or ""),
        runtime=_runtime(payload.get("runtime")) or 0,
        release_date=str(payload.get("releaseDate") or ""),
        genres=_string_tuple(payload.get("genres")),
        overview=str(payload.get("overview") or ""),
    )



def parse_watched_episode(payload: dict[str, Any]) -> WatchedEpisode:
    episode_id = payload.get("episodeId")
    if episode_id is None:
        raise ValueError("Missing episodeId in payload")
    series_id = payload.get("seriesId")
    if series_id is None:
        raise ValueError("Missing seriesId in payload")

    review = payload.get("review")
    return WatchedEpisode(
        episode_id=int(episode_id),
        series_id=int(series_id),
        series_name=_str_or_none(payload.get("seriesName")),
        episode_name=_str_or_none(payload.get("episodeName")),
        still_path=_str_or_none(payload.get("stillPath")),
        season_number=int(payload.get("seasonNumber") or 0),
        episode_number=int(payload.get("episodeNumber") or 0),
        rating=normalize_episode_rating(payload.get("rating")),
        watched_date=str(payload.get("watchedDate") or ""),
        liked=bool(payload.get("liked", False)),
        review=str(review) if review is not None else None,
        tags=_string_tuple(payload.get("tags")),
        rewatch=bool(payload.get("rewatch", False)),
        no_spoilers=bool(payload.get("noSpoilers", False)),
        runtime=_runtime(payload.get("runtime")),
        genres=_string_tuple(payload.get("genres")),
    )



def parse_watch_timestamp(value: str | None, tz: tzinfo = timezone.utc) -> datetime | None:
    """Parse an ISO 8601 watch date into ``tz``; naive values are read as local wall-clock time.

    Returns None for empty or malformed input.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=tz)
        return parsed.astimezone(tz)
    except (ValueError, OverflowError):
        return None



def movie_to_payload(movie: WatchedMovie) -> dict[str, Any]:
    return {
        "movieId": movie.movie_id,
        "title": movie.title,
        "posterPath": movie.poster_path,
        "backdropPath": movie.backdrop_path,
        "rating": movie.rating,
        "watchedDate": movie.watched_date,
        "runtime": movie.runtime,
        "releaseDate": movie.release_date,
        "genres": list(movie.genres),
        "overview": movie.overview,
    }



def episode_to_payload(episode: WatchedEpisode) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "episodeId": episode.episode_id,
        "seriesId": episode.series_id,
        "seriesName": episode.series_name,
        "episodeName": episode.episode_name,
        "stillPath": episode.still_path,
        "seasonNumber": episode.season_number,
        "episodeNumber": episode.episode_number,
        "rating": episode.rating,
        "watchedDate": episode.watched_date,
        "liked": episode.liked,
        "rewatch": episode.rewatch,
        "noSpoilers": episode.no_spoilers,
        "tags": list(episode.tags),
        "genres": list(episode.genres),
    }
    if episode.review is not None:
        payload["review"] = episode.review
    if episode.runtime is not None:
        payload["runtime"] = episode.runtime
    return payload



def normalize_movie_rating(value: Any) -> int:
    """Movie ratings live on a 1-10 scale; anything outside it means unrated."""
    rating = _float_or_none(value)
    if rating is None:
        return 0
    rounded = math.floor(rating + 0.5)
    if rounded < 1 or rounded > 10:
        return 0
    return int(rounded)



def normalize_episode_rating(value: Any) -> float:
    """Episode ratings are half stars in [0.5, 5]; anything else means unrated."""
    rating = _float_or_none(value)
    if rating is None:
        return 0.0
    snapped = math.floor(rating * 2 + 0.5) / 2
    if snapped < 0.5 or snapped > 5:
        return 0.0
    return snapped



def _float_or_none(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(parsed) or math.isinf(parsed):
        return None
    return parsed



def _runtime(value: Any) -> int | None:
    runtime = _float_or_none(value)
    if runtime is None:
        return None
    return max(0, int(runtime))



def _str_or_none(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)



def _string_tuple(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    out: list[str] = []
    for item in value:
        # TMDB detail payloads carry genres as {"id": .., "name": ..} objects.
        if isinstance(item, dict):
            item = item.get("name")
        if item:
            out.append(str(item))
    return tuple(out)
