from __future__ import annotations

import json
import logging
import os
import sqlite3
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from watch_wrapped.models import (
    WatchedEpisode,
    WatchedMovie,
    episode_to_payload,
    movie_to_payload,
    parse_watch_timestamp,
    parse_watched_episode,
    parse_watched_movie,
)

T = TypeVar("T")

WATCHED_MOVIES = "watched_movies"
WATCHED_EPISODES = "watched_episodes"
FAVORITE_MOVIES = "favorite_movies"
FAVORITE_EPISODES = "favorite_episodes"
WATCHLIST = "watchlist"
CURRENTLY_WATCHING = "currently_watching"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class FavoriteMovie:
    movie_id: int
    title: str
    poster_path: str | None
    added_date: str


@dataclass(frozen=True)
class QueuedItem:
    series_id: int
    name: str
    poster_path: str | None
    added_date: str
    item_type: str


@dataclass(frozen=True)
class CurrentlyWatchingItem:
    series_id: int
    name: str
    poster_path: str | None
    last_updated: str


@dataclass(frozen=True)
class HistorySnapshot:
    movies: tuple[WatchedMovie, ...]
    episodes: tuple[WatchedEpisode, ...]
    favorite_movie_ids: frozenset[int]
    favorite_episode_ids: frozenset[int]


class HistoryStore:
    """Named collections of JSON records in one SQLite file.

    Movie logs are keyed by ``<movieId>_<watchedDate>`` so rewatches coexist;
    episode logs are keyed by episode id so re-marking an episode overwrites it.
    """

    def __init__(
        self,
        db_path: str,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._logger = logger or logging.getLogger("watch_wrapped")
        self._clock = clock or _utc_now
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.executescript(
            """
            PRAGMA journal_mode=WAL;

            CREATE TABLE IF NOT EXISTS collection_items (
                collection TEXT NOT NULL,
                item_key TEXT NOT NULL,
                payload_json TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (collection, item_key)
            );
            """
        )
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    # Watched movies

    def add_watched_movie(self, movie: WatchedMovie) -> None:
        self._put(WATCHED_MOVIES, movie.storage_key, movie_to_payload(movie))

    def add_watched_movies(self, movies: Iterable[WatchedMovie]) -> None:
        self._put_many(WATCHED_MOVIES, ((movie.storage_key, movie_to_payload(movie)) for movie in movies))

    def update_watched_movie_rating(self, movie_id: int, rating: int) -> bool:
        for key, payload in self._items(WATCHED_MOVIES):
            if payload.get("movieId") == movie_id:
                payload["rating"] = rating
                self._put(WATCHED_MOVIES, key, payload)
                return True
        return False

    def remove_watched_movie(self, movie_id: int, watched_date: str | None = None) -> bool:
        for key, payload in self._items(WATCHED_MOVIES):
            if payload.get("movieId") != movie_id:
                continue
            if watched_date and payload.get("watchedDate") != watched_date:
                continue
            self._delete(WATCHED_MOVIES, key)
            return True
        return False

    def get_watched_movies(self) -> list[WatchedMovie]:
        movies = self._parse_all(WATCHED_MOVIES, parse_watched_movie)
        return sorted(movies, key=lambda movie: _sort_instant(movie.watched_date), reverse=True)

    def is_movie_watched(self, movie_id: int) -> WatchedMovie | None:
        for movie in self._parse_all(WATCHED_MOVIES, parse_watched_movie):
            if movie.movie_id == movie_id:
                return movie
        return None

    # Watched episodes

    def mark_episode_watched(self, episode: WatchedEpisode) -> None:
        self._put(WATCHED_EPISODES, str(episode.episode_id), episode_to_payload(episode))

    def mark_episodes_watched(self, episodes: Iterable[WatchedEpisode]) -> None:
        self._put_many(
            WATCHED_EPISODES,
            ((str(episode.episode_id), episode_to_payload(episode)) for episode in episodes),
        )

    def get_watched_episode(self, episode_id: int) -> WatchedEpisode | None:
        payload = self._get(WATCHED_EPISODES, str(episode_id))
        if payload is None:
            return None
        return parse_watched_episode(payload)

    def get_all_watched_episodes(self) -> list[WatchedEpisode]:
        episodes = self._parse_all(WATCHED_EPISODES, parse_watched_episode)
        return sorted(episodes, key=lambda episode: _sort_instant(episode.watched_date), reverse=True)

    def remove_watched_episode(self, episode_id: int) -> None:
        self._delete(WATCHED_EPISODES, str(episode_id))

    # Favorites

    def set_favorite_episode(self, episode_id: int, is_favorite: bool) -> None:
        if is_favorite:
            self._put(FAVORITE_EPISODES, str(episode_id), {"episodeId": episode_id})
        else:
            self._delete(FAVORITE_EPISODES, str(episode_id))

    def is_episode_favorite(self, episode_id: int) -> bool:
        return self._get(FAVORITE_EPISODES, str(episode_id)) is not None

    def get_favorite_episode_ids(self) -> set[int]:
        return {int(key) for key in self._keys(FAVORITE_EPISODES)}

    def set_favorite_movie(
        self,
        movie_id: int,
        is_favorite: bool,
        title: str = "",
        poster_path: str | None = None,
    ) -> None:
        if not is_favorite:
            self._delete(FAVORITE_MOVIES, str(movie_id))
            return
        self._put(
            FAVORITE_MOVIES,
            str(movie_id),
            {"movieId": movie_id, "title": title, "posterPath": poster_path, "addedDate": self._now_iso()},
        )

    def is_movie_favorite(self, movie_id: int) -> bool:
        return self._get(FAVORITE_MOVIES, str(movie_id)) is not None

    def get_favorite_movies(self) -> list[FavoriteMovie]:
        return self._parse_all(FAVORITE_MOVIES, _parse_favorite_movie)

    def get_favorite_movie_ids(self) -> set[int]:
        return {int(key) for key in self._keys(FAVORITE_MOVIES)}

    # Watchlist

    def add_to_watchlist(self, item: QueuedItem) -> None:
        self._put(
            WATCHLIST,
            str(item.series_id),
            {
                "seriesId": item.series_id,
                "name": item.name,
                "posterPath": item.poster_path,
                "addedDate": item.added_date,
                "itemType": item.item_type,
            },
        )

    def remove_from_watchlist(self, series_id: int) -> None:
        self._delete(WATCHLIST, str(series_id))

    def get_watchlist(self) -> list[QueuedItem]:
        items = self._parse_all(WATCHLIST, _parse_queued_item)
        return sorted(items, key=lambda item: _sort_instant(item.added_date), reverse=True)

    # Currently watching

    def add_to_currently_watching(self, series_id: int, name: str, poster_path: str | None = None) -> None:
        """Add a show, or bump it to the front if it is already listed."""
        self._put(
            CURRENTLY_WATCHING,
            str(series_id),
            {"seriesId": series_id, "name": name, "posterPath": poster_path, "lastUpdated": self._now_iso()},
        )

    def remove_from_currently_watching(self, series_id: int) -> None:
        self._delete(CURRENTLY_WATCHING, str(series_id))

    def get_currently_watching(self) -> list[CurrentlyWatchingItem]:
        items = self._parse_all(CURRENTLY_WATCHING, _parse_currently_watching_item)
        return sorted(items, key=lambda item: _sort_instant(item.last_updated), reverse=True)

    def is_show_fully_watched(self, series_id: int, episodes_by_season: dict[int, int]) -> bool:
        """True once every regular-season episode of ``series_id`` has a watch log.

        ``episodes_by_season`` maps season number to episode count; specials are ignored.
        """
        expected = sum(count for season, count in episodes_by_season.items() if season > 0)
        if expected <= 0:
            return False
        watched = {
            episode.episode_id
            for episode in self._parse_all(WATCHED_EPISODES, parse_watched_episode)
            if episode.series_id == series_id and episode.season_number > 0
        }
        return len(watched) >= expected

    def load_snapshot(self) -> HistorySnapshot:
        return HistorySnapshot(
            movies=tuple(self.get_watched_movies()),
            episodes=tuple(self.get_all_watched_episodes()),
            favorite_movie_ids=frozenset(self.get_favorite_movie_ids()),
            favorite_episode_ids=frozenset(self.get_favorite_episode_ids()),
        )

    def _now_iso(self) -> str:
        return self._clock().isoformat()

    def _put(self, collection: str, key: str, payload: dict[str, Any]) -> None:
        self._put_many(collection, [(key, payload)])

    def _put_many(self, collection: str, items: Iterable[tuple[str, dict[str, Any]]]) -> None:
        now = self._now_iso()
        rows = [
            (collection, key, json.dumps(payload, ensure_ascii=False), now)
            for key, payload in items
        ]
        if not rows:
            return

        self._conn.executemany(
            """
            INSERT INTO collection_items(collection, item_key, payload_json, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(collection, item_key) DO UPDATE SET
                payload_json = excluded.payload_json,
                updated_at = excluded.updated_at
            """,
            rows,
        )
        self._conn.commit()

    def _get(self, collection: str, key: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT payload_json FROM collection_items WHERE collection = ? AND item_key = ?",
            (collection, key),
        ).fetchone()
        if row is None:
            return None
        return json.loads(str(row["payload_json"]))

    def _delete(self, collection: str, key: str) -> None:
        self._conn.execute(
            "DELETE FROM collection_items WHERE collection = ? AND item_key = ?",
            (collection, key),
        )
        self._conn.commit()

    def _keys(self, collection: str) -> list[str]:
        rows = self._conn.execute(
            "SELECT item_key FROM collection_items WHERE collection = ? ORDER BY item_key ASC",
            (collection,),
        ).fetchall()
        return [str(row["item_key"]) for row in rows]

    def _items(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        rows = self._conn.execute(
            """
            SELECT item_key, payload_json
            FROM collection_items
            WHERE collection = ?
            ORDER BY rowid ASC
            """,
            (collection,),
        ).fetchall()

        items: list[tuple[str, dict[str, Any]]] = []
        for row in rows:
            try:
                payload = json.loads(str(row["payload_json"]))
            except json.JSONDecodeError as error:
                self._skip(collection, str(row["item_key"]), error)
                continue
            items.append((str(row["item_key"]), payload))
        return items

    def _parse_all(self, collection: str, parser: Callable[[dict[str, Any]], T]) -> list[T]:
        parsed: list[T] = []
        for key, payload in self._items(collection):
            try:
                parsed.append(parser(payload))
            except (KeyError, ValueError, TypeError, AttributeError) as error:
                self._skip(collection, key, error)
        return parsed

    def _skip(self, collection: str, key: str, error: Exception) -> None:
        self._logger.warning(
            "history_record_skipped",
            extra={"collection": collection, "item_key": key, "error": str(error)},
        )



def _parse_favorite_movie(payload: dict[str, Any]) -> FavoriteMovie:
    return FavoriteMovie(
        movie_id=int(payload["movieId"]),
        title=str(payload.get("title") or ""),
        poster_path=payload.get("posterPath"),
        added_date=str(payload.get("addedDate") or ""),
    )



def _parse_queued_item(payload: dict[str, Any]) -> QueuedItem:
    return QueuedItem(
        series_id=int(payload["seriesId"]),
        name=str(payload.get("name") or ""),
        poster_path=payload.get("posterPath"),
        added_date=str(payload.get("addedDate") or ""),
        item_type=str(payload.get("itemType") or "tv"),
    )



def _parse_currently_watching_item(payload: dict[str, Any]) -> CurrentlyWatchingItem:
    return CurrentlyWatchingItem(
        series_id=int(payload["seriesId"]),
        name=str(payload.get("name") or ""),
        poster_path=payload.get("posterPath"),
        last_updated=str(payload.get("lastUpdated") or ""),
    )



def delete_history_database(db_path: str) -> list[str]:
    """Remove the SQLite file and its WAL side files, returning the paths removed."""
    removed: list[str] = []
    for path in (db_path, f"{db_path}-wal", f"{db_path}-shm"):
        if os.path.exists(path):
            os.remove(path)
            removed.append(path)
    return removed



def _sort_instant(value: str) -> datetime:
    return parse_watch_timestamp(value) or _EPOCH



def _utc_now() -> datetime:
    return datetime.now(timezone.utc)



def import_history_document(store: HistoryStore, document: dict[str, Any]) -> tuple[int, int]:
    """Load an exported history document (app-style camelCase keys) into ``store``."""
    movies = [parse_watched_movie(payload) for payload in document.get("watchedMovies", [])]
    episodes = [parse_watched_episode(payload) for payload in document.get("watchedEpisodes", [])]

    store.add_watched_movies(movies)
    store.mark_episodes_watched(episodes)
    for movie_id in document.get("favoriteMovieIds", []):
        store.set_favorite_movie(int(movie_id), True)
    for episode_id in document.get("favoriteEpisodeIds", []):
        store.set_favorite_episode(int(episode_id), True)
    return len(movies), len(episodes)
