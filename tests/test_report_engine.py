from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from watch_wrapped.config import Settings
from watch_wrapped.history_store import HistoryStore
from watch_wrapped.models import WatchedEpisode, WatchedMovie
from watch_wrapped.report import WrappedStats
from watch_wrapped.report_engine import ReportEngine


class FakeInfluxWriter:
    def __init__(self) -> None:
        self.writes: list[tuple[WrappedStats, datetime]] = []

    def write_wrapped_stats(self, stats: WrappedStats, computed_at: datetime) -> None:
        self.writes.append((stats, computed_at))

    def close(self) -> None:
        return



def _settings(tmp_path: Path, timezone_name: str = "UTC") -> Settings:
    return Settings(
        tmdb_api_key="",
        tmdb_cache_ttl_seconds=300.0,
        tmdb_cache_max_entries=16,
        tmdb_max_concurrent_requests=2,
        influx_enabled=True,
        influx_url="http://localhost:8086",
        influx_token="token",
        influx_org="org",
        influx_bucket="watch_wrapped",
        report_cron="0 6 * * *",
        timezone=timezone_name,
        history_db_path=str(tmp_path / "history.db"),
        report_path=str(tmp_path / "out" / "wrapped.json"),
        log_level="INFO",
        running_in_docker=False,
        config_path="",
    )



def test_run_report_writes_snapshot_and_exports(tmp_path) -> None:
    settings = _settings(tmp_path)
    store = HistoryStore(settings.history_db_path)
    store.add_watched_movie(
        WatchedMovie(
            movie_id=603,
            title="The Matrix",
            poster_path=None,
            backdrop_path=None,
            rating=9,
            watched_date="2026-03-01T20:00:00Z",
            runtime=136,
            release_date="1999-03-31",
            genres=("Action",),
            overview="",
        )
    )
    store.mark_episode_watched(
        WatchedEpisode(
            episode_id=1,
            series_id=95396,
            series_name="Severance",
            episode_name="Good News About Hell",
            still_path=None,
            season_number=1,
            episode_number=1,
            rating=4.5,
            watched_date="2026-03-02T21:00:00Z",
            liked=True,
            runtime=57,
        )
    )
    store.set_favorite_movie(603, True)

    influx = FakeInfluxWriter()
    computed_at = datetime(2026, 3, 3, 6, 0, tzinfo=timezone.utc)
    engine = ReportEngine(
        settings=settings,
        store=store,
        influx_writer=influx,
        logger=logging.getLogger("test_report_engine"),
        clock=lambda: computed_at,
    )

    stats = engine.run_report()

    assert stats.total_entries == 2
    assert stats.total_favorites == 1
    assert stats.longest_streak == 2
    assert stats.like_ratio == 50
    assert influx.writes == [(stats, computed_at)]

    document = json.loads(Path(settings.report_path).read_text(encoding="utf-8"))
    assert document["computed_at"] == "2026-03-03T06:00:00+00:00"
    assert document["timezone"] == "UTC"
    assert document["report"]["total_movies"] == 1
    assert document["report"]["longest_movie"] == {"title": "The Matrix", "runtime": 136}
    assert document["report"]["personality"]["label"] == "Balanced Viewer"
    assert not Path(settings.report_path + ".tmp").exists()
    store.close()



def test_run_report_on_empty_history_and_latest_run_wins(tmp_path) -> None:
    settings = _settings(tmp_path, timezone_name="Europe/Berlin")
    store = HistoryStore(settings.history_db_path)
    influx = FakeInfluxWriter()
    engine = ReportEngine(
        settings=settings,
        store=store,
        influx_writer=influx,
        logger=logging.getLogger("test_report_engine"),
    )

    first = engine.run_report()
    assert first.personality.label == "Newcomer"

    store.mark_episode_watched(
        WatchedEpisode(
            episode_id=7,
            series_id=1,
            series_name="Late Show",
            episode_name=None,
            still_path=None,
            season_number=1,
            episode_number=1,
            rating=0,
            watched_date="2026-03-01T23:30:00Z",
        )
    )
    second = engine.run_report()

    document = json.loads(Path(settings.report_path).read_text(encoding="utf-8"))
    assert len(influx.writes) == 2
    assert second.total_episodes == 1
    # Bucketed on the Berlin calendar day.
    assert document["report"]["busiest_day"] == {"date": "2026-03-02", "count": 1}
    assert document["report"]["personality"]["label"] == "Binger"
    store.close()
