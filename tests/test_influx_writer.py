from __future__ import annotations

from datetime import datetime, timezone

from influxdb_client import WritePrecision

from watch_wrapped.aggregator import compute_wrapped
from watch_wrapped.influx_writer import build_wrapped_points
from watch_wrapped.models import WatchedMovie



def _movie(movie_id: int, watched_date: str) -> WatchedMovie:
    return WatchedMovie(
        movie_id=movie_id,
        title=f"Movie {movie_id}",
        poster_path=None,
        backdrop_path=None,
        rating=8,
        watched_date=watched_date,
        runtime=90,
        release_date="",
        genres=(),
        overview="",
    )



def test_build_wrapped_points_summary_and_monthly_series() -> None:
    stats = compute_wrapped(
        [
            _movie(1, "2026-01-10T20:00:00Z"),
            _movie(2, "2026-03-01T20:00:00Z"),
            _movie(3, "2026-03-02T20:00:00Z"),
        ],
        [],
    )
    computed_at = datetime(2026, 3, 3, 6, 0, tzinfo=timezone.utc)

    points = build_wrapped_points(stats, computed_at)
    lines = [point.to_line_protocol(WritePrecision.S) for point in points]

    assert len(points) == 3
    assert lines[0].startswith("wrapped_summary,personality=Cinephile ")
    assert "total_movies=3i" in lines[0]
    assert "total_hours_watched=4.5" in lines[0]
    assert lines[0].endswith(f" {int(computed_at.timestamp())}")
    assert lines[1] == f"wrapped_monthly_activity entries_count=1i {int(datetime(2026, 1, 1, tzinfo=timezone.utc).timestamp())}"
    assert lines[2] == f"wrapped_monthly_activity entries_count=2i {int(datetime(2026, 3, 1, tzinfo=timezone.utc).timestamp())}"
