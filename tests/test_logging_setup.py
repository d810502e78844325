from __future__ import annotations

import logging

from watch_wrapped.logging_setup import ColorFormatter, NoNoneFilter



def _record(msg: str, name: str = "watch_wrapped", level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord(name, level, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record



def test_known_events_get_friendly_lines() -> None:
    formatter = ColorFormatter()

    line = formatter.format(_record("wrapped_report_computed", total_entries=12, personality="Binger"))

    assert "Wrapped report ready" in line
    assert "12" in line
    assert "Binger" in line



def test_noisy_events_are_filtered_out() -> None:
    log_filter = NoNoneFilter()

    assert log_filter.filter(_record("report_start")) is False
    assert log_filter.filter(_record("Running job", name="apscheduler.scheduler")) is False
    assert log_filter.filter(_record("something else", level=logging.WARNING)) is True



def test_show_progress_and_imdb_events_get_friendly_lines() -> None:
    formatter = ColorFormatter()

    completed = formatter.format(_record("show_completed", series_name="Severance"))
    failed = formatter.format(_record("imdb_rating_failed", level=logging.WARNING, episode_number=4, error="status=500"))

    assert "Finished" in completed
    assert "Severance" in completed
    assert "episode 4" in failed
    assert "status=500" in failed
