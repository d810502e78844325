from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from watch_wrapped.history_store import (
    WATCHED_MOVIES,
    CurrentlyWatchingItem,
    HistoryStore,
    QueuedItem,
    delete_history_database,
    import_history_document,
)
from watch_wrapped.models import WatchedEpisode, WatchedMovie



def _movie(movie_id: int, watched_date: str, rating: int = 0) -> WatchedMovie:
    return WatchedMovie(
        movie_id=movie_id,
        title=f"Movie {movie_id}",
        poster_path=None,
        backdrop_path=None,
        rating=rating,
        watched_date=watched_date,
        runtime=100,
        release_date="2001-01-01",
        genres=("Drama",),
        overview="",
    )



def _episode(episode_id: int, watched_date: str, rating: float = 0) -> WatchedEpisode:
    return WatchedEpisode(
        episode_id=episode_id,
        series_id=10,
        series_name="Example Show",
        episode_name=f"Episode {episode_id}",
        still_path=None,
        season_number=1,
        episode_number=episode_id,
        rating=rating,
        watched_date=watched_date,
    )



def test_rewatches_are_kept_as_separate_movie_logs(tmp_path) -> None:
    store = HistoryStore(str(tmp_path / "history.db"))

    store.add_watched_movie(_movie(1, "2026-01-01T20:00:00Z"))
    store.add_watched_movie(_movie(1, "2026-02-01T20:00:00Z"))
    store.add_watched_movie(_movie(2, "2026-03-01T20:00:00Z"))
    # Same movie and date again replaces the existing log.
    store.add_watched_movie(_movie(2, "2026-03-01T20:00:00Z", rating=7))

    movies = store.get_watched_movies()

    assert [(movie.movie_id, movie.watched_date) for movie in movies] == [
        (2, "2026-03-01T20:00:00Z"),
        (1, "2026-02-01T20:00:00Z"),
        (1, "2026-01-01T20:00:00Z"),
    ]
    assert movies[0].rating == 7
    assert store.is_movie_watched(1) is not None
    assert store.is_movie_watched(3) is None
    store.close()



def test_update_and_remove_movie_logs(tmp_path) -> None:
    store = HistoryStore(str(tmp_path / "history.db"))
    store.add_watched_movies([_movie(1, "2026-01-01T20:00:00Z"), _movie(1, "2026-02-01T20:00:00Z")])

    assert store.update_watched_movie_rating(1, 9) is True
    assert store.update_watched_movie_rating(404, 9) is False
    assert sorted(movie.rating for movie in store.get_watched_movies()) == [0, 9]

    assert store.remove_watched_movie(1, watched_date="2026-02-01T20:00:00Z") is True
    assert [movie.watched_date for movie in store.get_watched_movies()] == ["2026-01-01T20:00:00Z"]
    assert store.remove_watched_movie(1) is True
    assert store.remove_watched_movie(1) is False
    assert store.get_watched_movies() == []
    store.close()



def test_marking_an_episode_again_overwrites_it(tmp_path) -> None:
    store = HistoryStore(str(tmp_path / "history.db"))

    store.mark_episode_watched(_episode(1, "2026-01-01T20:00:00Z"))
    store.mark_episode_watched(_episode(1, "2026-01-05T20:00:00Z", rating=4.5))
    store.mark_episodes_watched([_episode(2, "2026-01-03T20:00:00Z")])

    episode = store.get_watched_episode(1)
    assert episode is not None
    assert episode.rating == 4.5
    assert episode.watched_date == "2026-01-05T20:00:00Z"
    assert [item.episode_id for item in store.get_all_watched_episodes()] == [1, 2]

    store.remove_watched_episode(1)
    assert store.get_watched_episode(1) is None
    store.close()



def test_favorites_toggle(tmp_path) -> None:
    store = HistoryStore(str(tmp_path / "history.db"))

    store.set_favorite_movie(603, True, title="The Matrix", poster_path="/matrix.jpg")
    store.set_favorite_movie(604, True)
    store.set_favorite_movie(604, False)
    store.set_favorite_episode(42, True)
    store.set_favorite_episode(42, True)

    assert store.is_movie_favorite(603) is True
    assert store.is_movie_favorite(604) is False
    assert store.get_favorite_movie_ids() == {603}
    assert [movie.title for movie in store.get_favorite_movies()] == ["The Matrix"]
    assert store.is_episode_favorite(42) is True
    assert store.get_favorite_episode_ids() == {42}

    store.set_favorite_episode(42, False)
    assert store.get_favorite_episode_ids() == set()
    store.close()



def test_watchlist_is_newest_first(tmp_path) -> None:
    store = HistoryStore(str(tmp_path / "history.db"))

    store.add_to_watchlist(QueuedItem(1, "Old", None, "2026-01-01T00:00:00Z", "tv"))
    store.add_to_watchlist(QueuedItem(2, "New", None, "2026-02-01T00:00:00Z", "movie"))

    assert [item.name for item in store.get_watchlist()] == ["New", "Old"]
    store.remove_from_watchlist(2)
    assert [item.series_id for item in store.get_watchlist()] == [1]
    store.close()



def test_load_snapshot_collects_everything_the_report_needs(tmp_path) -> None:
    store = HistoryStore(str(tmp_path / "history.db"))
    store.add_watched_movie(_movie(1, "2026-01-01T20:00:00Z"))
    store.mark_episode_watched(_episode(5, "2026-01-02T20:00:00Z"))
    store.set_favorite_movie(1, True)
    store.set_favorite_episode(5, True)

    snapshot = store.load_snapshot()

    assert [movie.movie_id for movie in snapshot.movies] == [1]
    assert [episode.episode_id for episode in snapshot.episodes] == [5]
    assert snapshot.favorite_movie_ids == frozenset({1})
    assert snapshot.favorite_episode_ids == frozenset({5})
    store.close()



def test_history_survives_reopen(tmp_path) -> None:
    db_path = str(tmp_path / "nested" / "history.db")
    store = HistoryStore(db_path)
    store.add_watched_movie(_movie(1, "2026-01-01T20:00:00Z", rating=8))
    store.close()

    reopened = HistoryStore(db_path)
    assert [movie.rating for movie in reopened.get_watched_movies()] == [8]
    reopened.close()



def test_unreadable_records_are_skipped(tmp_path, caplog: pytest.LogCaptureFixture) -> None:
    db_path = tmp_path / "history.db"
    store = HistoryStore(str(db_path), logger=logging.getLogger("test_history_store"))
    store.add_watched_movie(_movie(1, "2026-01-01T20:00:00Z"))

    conn = sqlite3.connect(str(db_path))
    conn.executemany(
        "INSERT INTO collection_items(collection, item_key, payload_json, updated_at) VALUES (?, ?, ?, ?)",
        [
            (WATCHED_MOVIES, "broken_json", "{not json", "2026-01-01T00:00:00Z"),
            (WATCHED_MOVIES, "missing_id", '{"title": "No id"}', "2026-01-01T00:00:00Z"),
        ],
    )
    conn.commit()
    conn.close()

    with caplog.at_level(logging.WARNING, logger="test_history_store"):
        movies = store.get_watched_movies()

    assert [movie.movie_id for movie in movies] == [1]
    skipped = [record for record in caplog.records if record.getMessage() == "history_record_skipped"]
    assert len(skipped) == 2
    store.close()



def test_import_history_document(tmp_path) -> None:
    store = HistoryStore(str(tmp_path / "history.db"))
    document = {
        "watchedMovies": [
            {"movieId": 603, "title": "The Matrix", "rating": 9, "watchedDate": "2026-01-01T20:00:00Z"},
            {"movieId": 603, "title": "The Matrix", "rating": 10, "watchedDate": "2026-02-01T20:00:00Z"},
        ],
        "watchedEpisodes": [
            {"episodeId": 1, "seriesId": 7, "rating": 4, "watchedDate": "2026-01-03T20:00:00Z", "liked": True},
        ],
        "favoriteMovieIds": [603],
        "favoriteEpisodeIds": ["1"],
    }

    counts = import_history_document(store, document)

    assert counts == (2, 1)
    snapshot = store.load_snapshot()
    assert len(snapshot.movies) == 2
    assert snapshot.episodes[0].liked is True
    assert snapshot.favorite_movie_ids == frozenset({603})
    assert snapshot.favorite_episode_ids == frozenset({1})
    store.close()



def test_import_history_document_rejects_invalid_records(tmp_path) -> None:
    store = HistoryStore(str(tmp_path / "history.db"))

    with pytest.raises(ValueError):
        import_history_document(store, {"watchedMovies": [{"title": "No id"}]})

    assert store.get_watched_movies() == []
    store.close()



class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int) -> None:
        self.now += timedelta(minutes=minutes)



def test_currently_watching_moves_updated_show_to_front(tmp_path) -> None:
    clock = FakeClock()
    store = HistoryStore(str(tmp_path / "history.db"), clock=clock)

    store.add_to_currently_watching(1, "First Show", "/first.jpg")
    clock.advance(5)
    store.add_to_currently_watching(2, "Second Show")
    clock.advance(5)
    store.add_to_currently_watching(1, "First Show", "/first.jpg")

    items = store.get_currently_watching()

    assert [item.series_id for item in items] == [1, 2]
    assert items[0] == CurrentlyWatchingItem(
        series_id=1,
        name="First Show",
        poster_path="/first.jpg",
        last_updated="2026-05-01T12:10:00+00:00",
    )

    store.remove_from_currently_watching(1)
    assert [item.series_id for item in store.get_currently_watching()] == [2]
    store.close()



def test_show_is_fully_watched_once_every_regular_episode_is_logged(tmp_path) -> None:
    store = HistoryStore(str(tmp_path / "history.db"))
    counts = {0: 2, 1: 3}

    store.mark_episodes_watched([_episode(1, "2026-01-01T20:00:00Z"), _episode(2, "2026-01-02T20:00:00Z")])
    assert store.is_show_fully_watched(10, counts) is False

    # Re-marking an episode does not count twice.
    store.mark_episode_watched(_episode(2, "2026-01-03T20:00:00Z"))
    assert store.is_show_fully_watched(10, counts) is False

    store.mark_episode_watched(_episode(3, "2026-01-04T20:00:00Z"))
    assert store.is_show_fully_watched(10, counts) is True
    assert store.is_show_fully_watched(99, counts) is False
    assert store.is_show_fully_watched(10, {0: 3}) is False
    store.close()



def test_delete_history_database_removes_wal_side_files(tmp_path) -> None:
    db_path = tmp_path / "history.db"
    for suffix in ("", "-wal", "-shm"):
        (tmp_path / f"history.db{suffix}").write_bytes(b"stale")
    (tmp_path / "other.db").write_bytes(b"keep")

    removed = delete_history_database(str(db_path))

    assert removed == [str(db_path), f"{db_path}-wal", f"{db_path}-shm"]
    assert sorted(path.name for path in tmp_path.iterdir()) == ["other.db"]
    assert delete_history_database(str(db_path)) == []



def test_reset_store_starts_empty_after_deleting_database(tmp_path) -> None:
    db_path = str(tmp_path / "history.db")
    store = HistoryStore(db_path)
    store.add_watched_movie(_movie(1, "2026-01-01T20:00:00Z"))
    store.close()

    delete_history_database(db_path)
    reopened = HistoryStore(db_path)

    assert reopened.get_watched_movies() == []
    reopened.close()
