import logging
import sys

class ColorFormatter(logging.Formatter):
    """Custom formatter with colors for terminal output."""

    ICONS = {
        "DEBUG": "   ",
        "INFO": " \033[94m>\033[0m ",
        "WARNING": " \033[93m!\033[0m ",
        "ERROR": " \033[91mX\033[0m ",
        "CRITICAL": " \033[95m!!\033[0m ",
    }

    IGNORE_LOGGERS = {"apscheduler.scheduler", "apscheduler.executors.default"}
    SILENT_EVENTS = {"report_start", "tmdb_cache_hit"}

    def format(self, record):
        if record.name in self.IGNORE_LOGGERS and record.levelname == "INFO":
            return None

        msg = record.getMessage()
        if msg in self.SILENT_EVENTS:
            return None

        if msg == "wrapped_report_computed":
            entries = getattr(record, "total_entries", 0)
            personality = getattr(record, "personality", "unknown")
            return f"\033[92m✓\033[0m Wrapped report ready (\033[1m{entries}\033[0m entries, {personality})"
        elif msg == "wrapped_report_written":
            path = getattr(record, "path", "unknown")
            return f"\033[96m💾\033[0m Report snapshot written to \033[90m{path}\033[0m"
        elif msg == "influx_exported_wrapped":
            count = getattr(record, "count", 0)
            bucket = getattr(record, "bucket", "unknown")
            return f"\033[96m📤\033[0m Exported \033[1m{count}\033[0m report points to \033[90m{bucket}\033[0m"
        elif msg == "influx_disabled":
            return "\033[93m⚠\033[0m InfluxDB is disabled"
        elif msg == "history_imported":
            movies = getattr(record, "movies", 0)
            episodes = getattr(record, "episodes", 0)
            return f"\033[92m✓\033[0m Imported {movies} movies and {episodes} episodes"
        elif msg == "movie_logged":
            title = getattr(record, "title", "unknown")
            return f"\033[92m✓\033[0m Logged movie \033[1m{title}\033[0m"
        elif msg == "episode_logged":
            title = getattr(record, "title", "unknown")
            return f"\033[92m✓\033[0m Logged episode \033[1m{title}\033[0m"
        elif msg == "show_completed":
            name = getattr(record, "series_name", "unknown")
            return f"\033[92m★\033[0m Finished \033[1m{name}\033[0m"
        elif msg == "imdb_rating_failed":
            episode = getattr(record, "episode_number", "?")
            error = getattr(record, "error", "")
            return f"\033[93m!\033[0m IMDb rating unavailable for episode {episode}: {error}"
        elif msg == "history_record_skipped":
            collection = getattr(record, "collection", "unknown")
            error = getattr(record, "error", "")
            return f"\033[93m!\033[0m Skipped unreadable {collection} record: {error}"
        elif msg == "service_scheduler_started":
            return "\033[92m●\033[0m Scheduler started. Report refresh active."
        elif msg == "runtime_docker_mode":
            return "\033[94m🐳\033[0m Running in Docker mode"
        elif msg == "tmdb_auth_failed":
            reason = getattr(record, "reason", "Unknown error")
            return f"\033[91mX\033[0m TMDB Authentication Failed: {reason}\n   \033[93mCheck TMDB_API_KEY.\033[0m"
        elif msg == "service_shutdown":
            return "\033[90m   Stopped gracefully.\033[0m\n"

        icon = self.ICONS.get(record.levelname, "   ")
        return f"{icon}{msg}"


class NoNoneFilter(logging.Filter):
    def filter(self, record):
        formatted = ColorFormatter().format(record)
        return formatted is not None

def configure_logging(level: str) -> None:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColorFormatter())
    console_handler.addFilter(NoNoneFilter())

    logging.root.handlers = []
    logging.root.addHandler(console_handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
