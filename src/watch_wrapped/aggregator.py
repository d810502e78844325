from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from typing import TypeVar

from watch_wrapped.fun_facts import fun_time_equivalent
from watch_wrapped.models import WatchedEpisode, WatchedMovie, parse_watch_timestamp
from watch_wrapped.personality import PersonalityInputs, classify_personality
from watch_wrapped.report import (
    Binge,
    BusiestDay,
    BusiestMonth,
    DayOfWeekCount,
    GenreCount,
    GenreRating,
    LogEntry,
    LongestMovie,
    MovieYear,
    RatedMovie,
    RatedShow,
    ShowEpisodeCount,
    TagCount,
    WrappedStats,
)
from watch_wrapped.rounding import round_half_up

K = TypeVar("K")

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

TOP_MOVIES_LIMIT = 5
TOP_SHOWS_LIMIT = 5
TOP_GENRES_LIMIT = 10
TOP_TAGS_LIMIT = 10
MIN_GENRE_RATINGS = 2
MIN_BINGE_EPISODES = 3


@dataclass(frozen=True)
class VolumeStats:
    total_movies: int
    total_episodes: int
    total_entries: int
    total_hours_watched: float
    longest_movie: LongestMovie | None
    busiest_day: BusiestDay | None
    busiest_month: BusiestMonth | None
    avg_per_week: float


@dataclass(frozen=True)
class RatingStats:
    avg_movie_rating: float
    avg_episode_rating: float
    combined_avg_rating: float | None
    rating_distribution: dict[str, int]
    highest_rated_movies: tuple[RatedMovie, ...]
    lowest_rated_movies: tuple[RatedMovie, ...]
    highest_rated_shows: tuple[RatedShow, ...]


@dataclass(frozen=True)
class GenreStats:
    top_genres: tuple[GenreCount, ...]
    genre_by_avg_rating: tuple[GenreRating, ...]
    distinct_genres: int


@dataclass(frozen=True)
class TimelineStats:
    longest_streak: int
    busiest_day_of_week: DayOfWeekCount | None
    first_log: LogEntry | None
    last_log: LogEntry | None
    monthly_activity: dict[str, int]


@dataclass(frozen=True)
class TvStats:
    unique_shows_watched: int
    shows_with_most_episodes: tuple[ShowEpisodeCount, ...]
    fastest_binge: Binge | None
    total_seasons_completed: int


@dataclass(frozen=True)
class MovieStats:
    decade_breakdown: dict[str, int]
    oldest_movie: MovieYear | None
    newest_movie: MovieYear | None
    avg_movie_runtime: int
    rewatch_count: int


@dataclass(frozen=True)
class EngagementStats:
    total_likes: int
    total_favorites: int
    like_ratio: int
    total_reviews: int
    avg_review_length: int
    top_tags: tuple[TagCount, ...]


@dataclass(frozen=True)
class _TimedEntry:
    # Local wall-clock time, used for calendar keys only.
    watched_at: datetime
    # UTC instant, used for ordering and elapsed time.
    instant: datetime
    index: int
    title: str
    raw_date: str


@dataclass
class _SeriesTally:
    name: str
    poster_path: str | None
    count: int = 0
    ratings: list[float] = field(default_factory=list)
    first_watched: datetime | None = None
    last_watched: datetime | None = None



def compute_wrapped(
    movies: Iterable[WatchedMovie],
    episodes: Iterable[WatchedEpisode],
    favorite_movie_ids: Iterable[int] = (),
    favorite_episode_ids: Iterable[int] = (),
    tz: tzinfo = timezone.utc,
) -> WrappedStats:
    """Build the wrapped report from a snapshot of the watch history.

    Inputs are only read. Calendar days, months and weekdays are taken in ``tz``;
    entries whose watched date cannot be parsed are left out of date-based figures.
    """
    movies = tuple(movies)
    episodes = tuple(episodes)

    volume = compute_volume(movies, episodes, tz)
    ratings = compute_ratings(movies, episodes)
    genres = compute_genres(movies, episodes)
    timeline = compute_timeline(movies, episodes, tz)
    tv = compute_tv(episodes, tz)
    movie_stats = compute_movies(movies)
    engagement = compute_engagement(movies, episodes, favorite_movie_ids, favorite_episode_ids)

    personality = classify_personality(
        PersonalityInputs(
            total_movies=volume.total_movies,
            total_episodes=volume.total_episodes,
            combined_avg_rating=ratings.combined_avg_rating,
            distinct_genres=genres.distinct_genres,
            total_reviews=engagement.total_reviews,
            total_hours_watched=volume.total_hours_watched,
        )
    )

    return WrappedStats(
        total_movies=volume.total_movies,
        total_episodes=volume.total_episodes,
        total_entries=volume.total_entries,
        total_hours_watched=volume.total_hours_watched,
        longest_movie=volume.longest_movie,
        busiest_day=volume.busiest_day,
        busiest_month=volume.busiest_month,
        avg_per_week=volume.avg_per_week,
        avg_movie_rating=ratings.avg_movie_rating,
        avg_episode_rating=ratings.avg_episode_rating,
        rating_distribution=ratings.rating_distribution,
        highest_rated_movies=ratings.highest_rated_movies,
        lowest_rated_movies=ratings.lowest_rated_movies,
        highest_rated_shows=ratings.highest_rated_shows,
        top_genres=genres.top_genres,
        genre_by_avg_rating=genres.genre_by_avg_rating,
        longest_streak=timeline.longest_streak,
        busiest_day_of_week=timeline.busiest_day_of_week,
        first_log=timeline.first_log,
        last_log=timeline.last_log,
        monthly_activity=timeline.monthly_activity,
        unique_shows_watched=tv.unique_shows_watched,
        shows_with_most_episodes=tv.shows_with_most_episodes,
        fastest_binge=tv.fastest_binge,
        total_seasons_completed=tv.total_seasons_completed,
        decade_breakdown=movie_stats.decade_breakdown,
        oldest_movie=movie_stats.oldest_movie,
        newest_movie=movie_stats.newest_movie,
        avg_movie_runtime=movie_stats.avg_movie_runtime,
        rewatch_count=movie_stats.rewatch_count,
        total_likes=engagement.total_likes,
        total_favorites=engagement.total_favorites,
        like_ratio=engagement.like_ratio,
        total_reviews=engagement.total_reviews,
        avg_review_length=engagement.avg_review_length,
        top_tags=engagement.top_tags,
        personality=personality,
        fun_time_equivalent=fun_time_equivalent(volume.total_hours_watched),
    )



def compute_volume(
    movies: Sequence[WatchedMovie],
    episodes: Sequence[WatchedEpisode],
    tz: tzinfo = timezone.utc,
) -> VolumeStats:
    total_minutes = sum(movie.runtime for movie in movies) + sum(episode.runtime or 0 for episode in episodes)
    total_hours = round_half_up(total_minutes / 60, 1)

    longest = max(movies, key=lambda movie: movie.runtime, default=None)

    entries = _timed_entries(movies, episodes, tz)

    day_counts: dict[str, int] = {}
    month_counts: dict[str, int] = {}
    for entry in entries:
        day_key = entry.watched_at.date().isoformat()
        day_counts[day_key] = day_counts.get(day_key, 0) + 1
        month_key = _month_key(entry.watched_at)
        month_counts[month_key] = month_counts.get(month_key, 0) + 1

    busiest_day = None
    ranked_days = _ranked(day_counts)
    if ranked_days:
        busiest_day = BusiestDay(date=ranked_days[0][0], count=ranked_days[0][1])

    busiest_month = None
    ranked_months = _ranked(month_counts)
    if ranked_months:
        key, count = ranked_months[0]
        busiest_month = BusiestMonth(month=_month_label(key), key=key, count=count)

    avg_per_week = 0.0
    if len(entries) >= 2:
        instants = [entry.instant for entry in entries]
        span_seconds = (max(instants) - min(instants)).total_seconds()
        weeks = max(1.0, span_seconds / (7 * 24 * 3600))
        avg_per_week = round_half_up(len(entries) / weeks, 1)

    return VolumeStats(
        total_movies=len(movies),
        total_episodes=len(episodes),
        total_entries=len(movies) + len(episodes),
        total_hours_watched=total_hours,
        longest_movie=LongestMovie(title=longest.title, runtime=longest.runtime) if longest else None,
        busiest_day=busiest_day,
        busiest_month=busiest_month,
        avg_per_week=avg_per_week,
    )



def compute_ratings(
    movies: Sequence[WatchedMovie],
    episodes: Sequence[WatchedEpisode],
) -> RatingStats:
    rated_movies = [movie for movie in movies if movie.rating > 0]
    rated_episodes = [episode for episode in episodes if episode.rating > 0]

    distribution: dict[str, int] = {}
    normalized: list[float] = []
    for movie in rated_movies:
        value = to_half_star_scale(movie.rating)
        normalized.append(movie.rating / 2)
        key = _rating_key(value)
        distribution[key] = distribution.get(key, 0) + 1
    for episode in rated_episodes:
        normalized.append(episode.rating)
        key = _rating_key(episode.rating)
        distribution[key] = distribution.get(key, 0) + 1

    by_rating = _stable_sorted(rated_movies, lambda movie: -movie.rating)
    highest = tuple(_rated_movie(movie) for movie in by_rating[:TOP_MOVIES_LIMIT])
    lowest = tuple(_rated_movie(movie) for movie in reversed(by_rating[-TOP_MOVIES_LIMIT:]))

    shows: dict[int, _SeriesTally] = {}
    for episode in episodes:
        tally = shows.get(episode.series_id)
        if tally is None:
            tally = _SeriesTally(name=episode.display_series_name, poster_path=episode.still_path)
            shows[episode.series_id] = tally
        if episode.rating > 0:
            tally.ratings.append(episode.rating)

    rated_shows = [
        RatedShow(
            name=tally.name,
            avg_rating=_mean_1dp(tally.ratings),
            poster_path=tally.poster_path,
            episode_count=len(tally.ratings),
        )
        for tally in shows.values()
        if tally.ratings
    ]

    return RatingStats(
        avg_movie_rating=_mean_1dp([movie.rating for movie in rated_movies]),
        avg_episode_rating=_mean_1dp([episode.rating for episode in rated_episodes]),
        combined_avg_rating=sum(normalized) / len(normalized) if normalized else None,
        rating_distribution=dict(sorted(distribution.items(), key=lambda item: float(item[0]))),
        highest_rated_movies=highest,
        lowest_rated_movies=lowest,
        highest_rated_shows=tuple(_stable_sorted(rated_shows, lambda show: -show.avg_rating)[:TOP_SHOWS_LIMIT]),
    )



def compute_genres(
    movies: Sequence[WatchedMovie],
    episodes: Sequence[WatchedEpisode],
) -> GenreStats:
    counts: dict[str, int] = {}
    ratings: dict[str, list[float]] = {}

    tagged: list[tuple[tuple[str, ...], float]] = [(movie.genres, movie.rating / 2) for movie in movies]
    tagged.extend((episode.genres, episode.rating) for episode in episodes)

    for genres, rating in tagged:
        for genre in genres:
            counts[genre] = counts.get(genre, 0) + 1
            if rating > 0:
                ratings.setdefault(genre, []).append(rating)

    averages = {
        genre: _mean_1dp(values)
        for genre, values in ratings.items()
        if len(values) >= MIN_GENRE_RATINGS
    }

    return GenreStats(
        top_genres=tuple(GenreCount(genre=genre, count=count) for genre, count in _ranked(counts)[:TOP_GENRES_LIMIT]),
        genre_by_avg_rating=tuple(GenreRating(genre=genre, avg_rating=avg) for genre, avg in _ranked(averages)),
        distinct_genres=len(counts),
    )



def compute_timeline(
    movies: Sequence[WatchedMovie],
    episodes: Sequence[WatchedEpisode],
    tz: tzinfo = timezone.utc,
) -> TimelineStats:
    entries = _timed_entries(movies, episodes, tz)

    weekday_counts: dict[str, int] = {}
    monthly: dict[str, int] = {}
    for entry in entries:
        day_name = DAY_NAMES[(entry.watched_at.weekday() + 1) % 7]
        weekday_counts[day_name] = weekday_counts.get(day_name, 0) + 1
        month_key = _month_key(entry.watched_at)
        monthly[month_key] = monthly.get(month_key, 0) + 1

    busiest_weekday = None
    ranked_weekdays = _ranked(weekday_counts)
    if ranked_weekdays:
        busiest_weekday = DayOfWeekCount(day=ranked_weekdays[0][0], count=ranked_weekdays[0][1])

    chronological = sorted(entries, key=lambda entry: (entry.instant, entry.index))
    first_log = last_log = None
    if chronological:
        first_log = LogEntry(title=chronological[0].title, date=chronological[0].raw_date)
        last_log = LogEntry(title=chronological[-1].title, date=chronological[-1].raw_date)

    return TimelineStats(
        longest_streak=longest_streak(entry.watched_at.date() for entry in entries),
        busiest_day_of_week=busiest_weekday,
        first_log=first_log,
        last_log=last_log,
        monthly_activity=dict(sorted(monthly.items())),
    )



def longest_streak(days: Iterable[date]) -> int:
    unique_days = sorted(set(days))
    if not unique_days:
        return 0

    best = current = 1
    for previous, day in zip(unique_days, unique_days[1:]):
        if (day - previous).days == 1:
            current += 1
            best = max(best, current)
        else:
            current = 1
    return best



def compute_tv(episodes: Sequence[WatchedEpisode], tz: tzinfo = timezone.utc) -> TvStats:
    series: dict[int, _SeriesTally] = {}
    seasons: set[tuple[int, int]] = set()

    for episode in episodes:
        tally = series.get(episode.series_id)
        if tally is None:
            tally = _SeriesTally(name=episode.display_series_name, poster_path=episode.still_path)
            series[episode.series_id] = tally
        tally.count += 1
        seasons.add((episode.series_id, episode.season_number))

        watched_at = parse_watch_timestamp(episode.watched_date, tz)
        if watched_at is None:
            continue
        instant = watched_at.astimezone(timezone.utc)
        if tally.first_watched is None or instant < tally.first_watched:
            tally.first_watched = instant
        if tally.last_watched is None or instant > tally.last_watched:
            tally.last_watched = instant

    by_count = _stable_sorted(list(series.values()), lambda tally: -tally.count)

    return TvStats(
        unique_shows_watched=len(series),
        shows_with_most_episodes=tuple(
            ShowEpisodeCount(name=tally.name, count=tally.count) for tally in by_count[:TOP_SHOWS_LIMIT]
        ),
        fastest_binge=_fastest_binge(series.values()),
        total_seasons_completed=len(seasons),
    )



def _fastest_binge(series: Iterable[_SeriesTally]) -> Binge | None:
    best: Binge | None = None
    for tally in series:
        if tally.count < MIN_BINGE_EPISODES or tally.first_watched is None or tally.last_watched is None:
            continue
        span_days = (tally.last_watched - tally.first_watched).total_seconds() / (24 * 3600)
        days = max(1, math.ceil(span_days))
        # episodes/days > best.episodes/best.days, compared without division
        if best is None or tally.count * best.days > best.episodes * days:
            best = Binge(name=tally.name, days=days, episodes=tally.count)
    return best



def compute_movies(movies: Sequence[WatchedMovie]) -> MovieStats:
    decades: dict[int, int] = {}
    oldest: MovieYear | None = None
    newest: MovieYear | None = None

    for movie in movies:
        year = release_year(movie.release_date)
        if year is None:
            continue
        decade = year - year % 10
        decades[decade] = decades.get(decade, 0) + 1
        if oldest is None or year < oldest.year:
            oldest = MovieYear(title=movie.title, year=year)
        if newest is None or year > newest.year:
            newest = MovieYear(title=movie.title, year=year)

    runtimes = [movie.runtime for movie in movies if movie.runtime > 0]
    avg_runtime = round_half_up(sum(runtimes) / len(runtimes)) if runtimes else 0

    id_counts: dict[int, int] = {}
    for movie in movies:
        id_counts[movie.movie_id] = id_counts.get(movie.movie_id, 0) + 1

    return MovieStats(
        decade_breakdown={f"{decade}s": decades[decade] for decade in sorted(decades)},
        oldest_movie=oldest,
        newest_movie=newest,
        avg_movie_runtime=avg_runtime,
        rewatch_count=sum(count - 1 for count in id_counts.values() if count > 1),
    )



def compute_engagement(
    movies: Sequence[WatchedMovie],
    episodes: Sequence[WatchedEpisode],
    favorite_movie_ids: Iterable[int] = (),
    favorite_episode_ids: Iterable[int] = (),
) -> EngagementStats:
    total_entries = len(movies) + len(episodes)
    total_likes = sum(1 for episode in episodes if episode.liked)
    like_ratio = round_half_up(total_likes / total_entries * 100) if total_entries else 0

    # Only episode logs carry reviews.
    reviews = [episode.review for episode in episodes if episode.review and episode.review.strip()]
    avg_review_length = round_half_up(sum(len(review) for review in reviews) / len(reviews)) if reviews else 0

    tag_counts: dict[str, int] = {}
    for episode in episodes:
        for tag in episode.tags:
            tag_counts[tag] = tag_counts.get(tag, 0) + 1

    return EngagementStats(
        total_likes=total_likes,
        total_favorites=len(set(favorite_movie_ids)) + len(set(favorite_episode_ids)),
        like_ratio=like_ratio,
        total_reviews=len(reviews),
        avg_review_length=avg_review_length,
        top_tags=tuple(TagCount(tag=tag, count=count) for tag, count in _ranked(tag_counts)[:TOP_TAGS_LIMIT]),
    )



def release_year(release_date: str | None) -> int | None:
    if not release_date:
        return None
    head = release_date.split("-")[0].strip()
    if not (head.isascii() and head.isdigit()):
        return None
    return int(head)



def to_half_star_scale(rating: int) -> float:
    """Map a 1-10 movie rating onto the half-star 0.5-5 scale."""
    return round_half_up(rating) / 2



def _timed_entries(
    movies: Sequence[WatchedMovie],
    episodes: Sequence[WatchedEpisode],
    tz: tzinfo,
) -> list[_TimedEntry]:
    labelled = [(movie.title, movie.watched_date) for movie in movies]
    labelled.extend((episode.display_title, episode.watched_date) for episode in episodes)

    entries: list[_TimedEntry] = []
    for index, (title, raw_date) in enumerate(labelled):
        watched_at = parse_watch_timestamp(raw_date, tz)
        if watched_at is not None:
            entries.append(
                _TimedEntry(
                    watched_at=watched_at,
                    instant=watched_at.astimezone(timezone.utc),
                    index=index,
                    title=title,
                    raw_date=raw_date,
                )
            )
    return entries



def _ranked(values: dict[K, int] | dict[K, float]) -> list[tuple[K, int | float]]:
    """Sort by value descending; equal values keep first-encountered order."""
    items = list(values.items())
    order = sorted(range(len(items)), key=lambda index: (-items[index][1], index))
    return [items[index] for index in order]



def _stable_sorted(items: list, key) -> list:
    return [item for _, item in sorted(enumerate(items), key=lambda pair: (key(pair[1]), pair[0]))]



def _rated_movie(movie: WatchedMovie) -> RatedMovie:
    return RatedMovie(title=movie.title, rating=movie.rating, poster_path=movie.poster_path)



def _mean_1dp(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return round_half_up(sum(values) / len(values), 1)



def _month_key(value: datetime) -> str:
    return f"{value.year:04d}-{value.month:02d}"



def _month_label(key: str) -> str:
    year, month = key.split("-")
    return f"{MONTH_NAMES[int(month) - 1]} {year}"



def _rating_key(value: float) -> str:
    return f"{value:g}"
