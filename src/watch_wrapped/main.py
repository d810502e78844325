from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from watch_wrapped.config import Settings, load_settings
from watch_wrapped.exceptions import TmdbAuthenticationError
from watch_wrapped.history_store import HistoryStore, delete_history_database, import_history_document
from watch_wrapped.influx_writer import InfluxWriter
from watch_wrapped.logging_setup import configure_logging
from watch_wrapped.models import WatchedEpisode
from watch_wrapped.noop_influx_writer import NoopInfluxWriter
from watch_wrapped.report import WrappedStats
from watch_wrapped.report_engine import ReportEngine
from watch_wrapped.tmdb_client import TmdbClient, episode_from_details, movie_from_details, season_episode_counts


def main() -> None:
    args = _parse_args()
    wants_tmdb = args.log_movie is not None or args.log_episode is not None
    settings = load_settings(require_tmdb=wants_tmdb, require_influx=not args.no_influx)
    configure_logging(settings.log_level)
    logger = logging.getLogger("watch_wrapped")

    if settings.running_in_docker:
        logger.info(
            "runtime_docker_mode",
            extra={"config_path": settings.config_path, "history_db_path": settings.history_db_path},
        )

    if args.reset_state:
        logger.warning(f"\033[93m⚠\033[0m Resetting local history database: {settings.history_db_path}")
        try:
            delete_history_database(settings.history_db_path)
        except OSError as e:
            logger.error(f"Failed to remove history database: {e}")

    store = HistoryStore(settings.history_db_path, logger=logger)
    tmdb_client: TmdbClient | None = None
    influx_writer: InfluxWriter | NoopInfluxWriter | None = None
    try:
        edited = False
        if args.import_json:
            document = json.loads(Path(args.import_json).read_text(encoding="utf-8"))
            movies, episodes = import_history_document(store, document)
            logger.info("history_imported", extra={"movies": movies, "episodes": episodes})
            edited = True

        if wants_tmdb:
            tmdb_client = TmdbClient(settings=settings, logger=logger)
            _log_watch(args, store, tmdb_client, logger)
            edited = True

        if edited and not args.once:
            return

        use_influx = settings.influx_enabled and not args.no_influx
        if not use_influx:
            reason = "flag" if args.no_influx else "config"
            logger.info("influx_disabled", extra={"reason": reason})
        influx_writer = InfluxWriter(settings=settings, logger=logger) if use_influx else NoopInfluxWriter()

        engine = ReportEngine(
            settings=settings,
            store=store,
            influx_writer=influx_writer,
            logger=logger,
        )

        if args.once:
            stats = engine.run_report()
            _print_report(stats, args.format)
            return

        _print_header(settings)
        _run_service(settings=settings, engine=engine, logger=logger)
    except TmdbAuthenticationError:
        logger.error("tmdb_auth_failed", extra={"reason": "API key rejected"})
        sys.exit(1)
    finally:
        if tmdb_client is not None:
            tmdb_client.close()
        if influx_writer is not None:
            influx_writer.close()
        store.close()


def _log_watch(
    args: argparse.Namespace,
    store: HistoryStore,
    tmdb_client: TmdbClient,
    logger: logging.Logger,
) -> None:
    watched_date = args.watched_date or _utc_now_iso()

    if args.log_movie is not None:
        details = tmdb_client.get_movie_details(args.log_movie)
        movie = movie_from_details(details, watched_date=watched_date, rating=args.rating)
        store.add_watched_movie(movie)
        logger.info("movie_logged", extra={"title": movie.title, "movie_id": movie.movie_id})

    if args.log_episode is not None:
        tv_id, season_number, episode_number = args.log_episode
        show = tmdb_client.get_tv_details(tv_id)
        season = tmdb_client.get_season_details(tv_id, season_number)
        episode = episode_from_details(
            show,
            season,
            episode_number,
            watched_date=watched_date,
            rating=args.rating,
            liked=args.liked,
            review=args.review,
            tags=tuple(args.tag or ()),
        )
        store.mark_episode_watched(episode)
        logger.info("episode_logged", extra={"title": episode.display_title, "episode_id": episode.episode_id})
        _track_show_progress(store, show, episode, logger)


def _track_show_progress(
    store: HistoryStore,
    show: dict,
    episode: WatchedEpisode,
    logger: logging.Logger,
) -> None:
    store.add_to_currently_watching(episode.series_id, episode.display_series_name, show.get("poster_path"))

    counts = season_episode_counts(show)
    if counts and store.is_show_fully_watched(episode.series_id, counts):
        store.remove_from_currently_watching(episode.series_id)
        logger.info("show_completed", extra={"series_id": episode.series_id, "series_name": episode.display_series_name})


def _run_service(settings: Settings, engine: ReportEngine, logger: logging.Logger) -> None:
    engine.run_report()

    scheduler = BlockingScheduler(timezone=settings.timezone)
    scheduler.add_job(
        engine.run_report,
        trigger=CronTrigger.from_crontab(settings.report_cron, timezone=settings.timezone),
        id="wrapped_report",
        coalesce=True,
        max_instances=1,
    )

    logger.info("service_scheduler_started", extra={"report_cron": settings.report_cron})

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("service_shutdown")


def _print_report(stats: WrappedStats, output_format: str) -> None:
    if output_format == "json":
        print(json.dumps(stats.to_dict(), ensure_ascii=False, indent=2))
        return

    personality = stats.personality
    print()
    print(f"   {personality.emoji}  \033[1mThe {personality.label}\033[0m")
    print(f"   \033[90m{personality.description}\033[0m")
    print()
    print(f"   \033[90mMovies:\033[0m    {stats.total_movies}")
    print(f"   \033[90mEpisodes:\033[0m  {stats.total_episodes}")
    print(f"   \033[90mHours:\033[0m     {stats.total_hours_watched} ({stats.fun_time_equivalent})")
    print(f"   \033[90mStreak:\033[0m    {stats.longest_streak} days")
    if stats.top_genres:
        print(f"   \033[90mTop genre:\033[0m {stats.top_genres[0].genre}")
    if stats.fastest_binge:
        binge = stats.fastest_binge
        print(f"   \033[90mBinge:\033[0m     {binge.name} ({binge.episodes} episodes in {binge.days} days)")
    print()


def _print_header(settings: Settings) -> None:
    try:
        app_version = version("watch-wrapped")
    except PackageNotFoundError:
        app_version = "0.1.0"

    try:
        trigger = CronTrigger.from_crontab(settings.report_cron, timezone=settings.timezone)
        next_run = trigger.get_next_fire_time(None, datetime.now(timezone.utc))
        next_run_str = next_run.astimezone().strftime("%Y-%m-%d %H:%M:%S")
    except (ValueError, AttributeError):
        next_run_str = "Unknown"

    influx_status = settings.influx_url if settings.influx_enabled else "Disabled"

    print()
    print("\033[94m" + "=" * 50 + "\033[0m")
    print(f"\033[1m   Watch Wrapped v{app_version}\033[0m")
    print("\033[94m" + "=" * 50 + "\033[0m")
    print()
    print(f"   \033[90mHistory:\033[0m    {settings.history_db_path}")
    print(f"   \033[90mReport:\033[0m     {settings.report_path}")
    print(f"   \033[90mInfluxDB:\033[0m   {influx_status}")
    print(f"   \033[90mReport cron:\033[0m {settings.report_cron} (Next: {next_run_str})")
    print()
    print("\033[94m" + "-" * 50 + "\033[0m")
    print()


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch history -> wrapped report")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Compute one report, print it and exit.",
    )
    parser.add_argument(
        "--format",
        choices=["json", "summary"],
        default="summary",
        help="Output format for --once.",
    )
    parser.add_argument(
        "--no-influx",
        action="store_true",
        help="Compute reports without exporting them to InfluxDB.",
    )
    parser.add_argument(
        "--import-json",
        metavar="FILE",
        help="Import an exported history document into the local store.",
    )
    parser.add_argument(
        "--log-movie",
        type=int,
        metavar="TMDB_ID",
        help="Log a watched movie, enriched with TMDB details.",
    )
    parser.add_argument(
        "--log-episode",
        type=int,
        nargs=3,
        metavar=("TV_ID", "SEASON", "EPISODE"),
        help="Log a watched episode, enriched with TMDB details.",
    )
    parser.add_argument("--rating", type=float, default=0, help="Rating for the logged entry (0 = unrated).")
    parser.add_argument("--watched-date", help="ISO 8601 watch date for the logged entry (default: now).")
    parser.add_argument("--liked", action="store_true", help="Mark the logged episode as liked.")
    parser.add_argument("--review", help="Review text for the logged episode.")
    parser.add_argument("--tag", action="append", help="Tag for the logged episode (repeatable).")
    parser.add_argument(
        "--reset-state",
        action="store_true",
        help="Delete the local history database before starting.",
    )
    return parser.parse_args()


if __name__ == "__main__":
    main()
