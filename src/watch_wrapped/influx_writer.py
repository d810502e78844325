from __future__ import annotations

import logging
from datetime import datetime, timezone

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from watch_wrapped.config import Settings
from watch_wrapped.report import WrappedStats


class InfluxWriter:
    def __init__(self, settings: Settings, logger: logging.Logger) -> None:
        self._settings = settings
        self._client = InfluxDBClient(
            url=settings.influx_url,
            token=settings.influx_token,
            org=settings.influx_org,
        )
        self._write_api = self._client.write_api(write_options=SYNCHRONOUS)
        self._logger = logger

    def close(self) -> None:
        self._client.close()

    def ping(self) -> bool:
        return self._client.ping()

    def write_wrapped_stats(self, stats: WrappedStats, computed_at: datetime) -> None:
        points = build_wrapped_points(stats, computed_at)
        self._write_api.write(
            bucket=self._settings.influx_bucket,
            org=self._settings.influx_org,
            record=points,
        )
        self._logger.info(
            "influx_exported_wrapped",
            extra={"count": len(points), "bucket": self._settings.influx_bucket},
        )


def build_wrapped_points(stats: WrappedStats, computed_at: datetime) -> list[Point]:
    summary = (
        Point("wrapped_summary")
        .tag("personality", stats.personality.label)
        .field("total_movies", stats.total_movies)
        .field("total_episodes", stats.total_episodes)
        .field("total_hours_watched", float(stats.total_hours_watched))
        .field("avg_per_week", float(stats.avg_per_week))
        .field("avg_movie_rating", float(stats.avg_movie_rating))
        .field("avg_episode_rating", float(stats.avg_episode_rating))
        .field("longest_streak", stats.longest_streak)
        .field("unique_shows_watched", stats.unique_shows_watched)
        .field("rewatch_count", stats.rewatch_count)
        .field("total_likes", stats.total_likes)
        .field("total_favorites", stats.total_favorites)
        .field("like_ratio", stats.like_ratio)
        .field("total_reviews", stats.total_reviews)
        .time(computed_at.astimezone(timezone.utc), WritePrecision.S)
    )

    points = [summary]
    for month_key, count in stats.monthly_activity.items():
        year, month = (int(part) for part in month_key.split("-"))
        points.append(
            Point("wrapped_monthly_activity")
            .field("entries_count", count)
            .time(datetime(year, month, 1, tzinfo=timezone.utc), WritePrecision.S)
        )
    return points
