from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

from watch_wrapped.aggregator import compute_wrapped
from watch_wrapped.config import Settings
from watch_wrapped.history_store import HistoryStore
from watch_wrapped.influx_writer import InfluxWriter
from watch_wrapped.noop_influx_writer import NoopInfluxWriter
from watch_wrapped.report import WrappedStats


class ReportEngine:
    def __init__(
        self,
        settings: Settings,
        store: HistoryStore,
        influx_writer: InfluxWriter | NoopInfluxWriter,
        logger: logging.Logger,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._settings = settings
        self._store = store
        self._influx = influx_writer
        self._logger = logger
        self._timezone = ZoneInfo(settings.timezone)
        self._clock = clock

    def run_report(self) -> WrappedStats:
        """Recompute the report from the current history and publish it.

        Every run replaces the previous snapshot, so the latest run always wins.
        """
        computed_at = self._clock()
        self._logger.info("report_start", extra={"computed_at": computed_at.isoformat()})

        snapshot = self._store.load_snapshot()
        stats = compute_wrapped(
            snapshot.movies,
            snapshot.episodes,
            snapshot.favorite_movie_ids,
            snapshot.favorite_episode_ids,
            tz=self._timezone,
        )
        self._logger.info(
            "wrapped_report_computed",
            extra={
                "total_entries": stats.total_entries,
                "total_hours_watched": stats.total_hours_watched,
                "personality": stats.personality.label,
            },
        )

        self._write_snapshot(stats, computed_at)
        self._influx.write_wrapped_stats(stats, computed_at)
        return stats

    def _write_snapshot(self, stats: WrappedStats, computed_at: datetime) -> None:
        path = Path(self._settings.report_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        document = {
            "computed_at": computed_at.astimezone(timezone.utc).isoformat(),
            "timezone": self._settings.timezone,
            "report": stats.to_dict(),
        }
        tmp_path = path.with_name(f"{path.name}.tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(document, handle, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)

        self._logger.info("wrapped_report_written", extra={"path": str(path)})
