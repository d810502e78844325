from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from watch_wrapped.personality import Personality


@dataclass(frozen=True)
class LongestMovie:
    title: str
    runtime: int


@dataclass(frozen=True)
class BusiestDay:
    date: str
    count: int


@dataclass(frozen=True)
class BusiestMonth:
    month: str
    key: str
    count: int


@dataclass(frozen=True)
class RatedMovie:
    title: str
    rating: int
    poster_path: str | None


@dataclass(frozen=True)
class RatedShow:
    name: str
    avg_rating: float
    poster_path: str | None
    episode_count: int


@dataclass(frozen=True)
class GenreCount:
    genre: str
    count: int


@dataclass(frozen=True)
class GenreRating:
    genre: str
    avg_rating: float


@dataclass(frozen=True)
class DayOfWeekCount:
    day: str
    count: int


@dataclass(frozen=True)
class LogEntry:
    title: str
    date: str


@dataclass(frozen=True)
class ShowEpisodeCount:
    name: str
    count: int


@dataclass(frozen=True)
class Binge:
    name: str
    days: int
    episodes: int


@dataclass(frozen=True)
class MovieYear:
    title: str
    year: int


@dataclass(frozen=True)
class TagCount:
    tag: str
    count: int


@dataclass(frozen=True)
class WrappedStats:
    """Watch-history summary report, one field group per display card.

    All fields are plain data. Rankings are tuples; the mapping fields are plain
    dicts that callers must treat as read-only. ``to_dict`` returns deep copies
    and yields a JSON-serializable mapping.
    ``total_seasons_completed`` counts (series, season) pairs with at least one
    watched episode. It does not check that every episode of the season was
    watched.
    """

    # Volume
    total_movies: int
    total_episodes: int
    total_entries: int
    total_hours_watched: float
    longest_movie: LongestMovie | None
    busiest_day: BusiestDay | None
    busiest_month: BusiestMonth | None
    avg_per_week: float
    # Ratings
    avg_movie_rating: float
    avg_episode_rating: float
    rating_distribution: dict[str, int]
    highest_rated_movies: tuple[RatedMovie, ...]
    lowest_rated_movies: tuple[RatedMovie, ...]
    highest_rated_shows: tuple[RatedShow, ...]
    # Genres
    top_genres: tuple[GenreCount, ...]
    genre_by_avg_rating: tuple[GenreRating, ...]
    # Timeline
    longest_streak: int
    busiest_day_of_week: DayOfWeekCount | None
    first_log: LogEntry | None
    last_log: LogEntry | None
    monthly_activity: dict[str, int]
    # TV
    unique_shows_watched: int
    shows_with_most_episodes: tuple[ShowEpisodeCount, ...]
    fastest_binge: Binge | None
    total_seasons_completed: int
    # Movies
    decade_breakdown: dict[str, int]
    oldest_movie: MovieYear | None
    newest_movie: MovieYear | None
    avg_movie_runtime: int
    rewatch_count: int
    # Engagement
    total_likes: int
    total_favorites: int
    like_ratio: int
    total_reviews: int
    avg_review_length: int
    top_tags: tuple[TagCount, ...]
    # Personality and fun facts
    personality: Personality
    fun_time_equivalent: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
