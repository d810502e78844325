from __future__ import annotations

from datetime import datetime

from watch_wrapped.report import WrappedStats


class NoopInfluxWriter:
    """
    Drop-in replacement for InfluxWriter when export is disabled.
    """

    def close(self) -> None:
        return

    def ping(self) -> bool:
        return True

    def write_wrapped_stats(self, stats: WrappedStats, computed_at: datetime) -> None:
        del stats, computed_at
        return
