from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class Personality:
    label: str
    emoji: str
    description: str


@dataclass(frozen=True)
class PersonalityInputs:
    total_movies: int
    total_episodes: int
    combined_avg_rating: float | None
    distinct_genres: int
    total_reviews: int
    total_hours_watched: float

    @property
    def total_entries(self) -> int:
        return self.total_movies + self.total_episodes


@dataclass(frozen=True)
class PersonalityRule:
    label: str
    predicate: Callable[[PersonalityInputs], bool]


PERSONALITIES: dict[str, Personality] = {
    personality.label: personality
    for personality in (
        Personality(
            "Newcomer",
            "🌱",
            "You're just getting started! Log some watches and come back.",
        ),
        Personality(
            "Binger",
            "📺",
            "You live for the next episode. TV shows are your comfort zone and you can't hit 'Next' fast enough.",
        ),
        Personality(
            "Critic",
            "🎭",
            "Not easily impressed. You have high standards and aren't afraid to rate honestly.",
        ),
        Personality(
            "Enthusiast",
            "🤩",
            "You love almost everything you watch! Your positive energy is contagious.",
        ),
        Personality(
            "Explorer",
            "🧭",
            "Always diving into new genres. Your taste is eclectic and your watchlist is diverse.",
        ),
        Personality(
            "Reviewer",
            "✍️",
            "You don't just watch, you reflect. Your reviews help you process what you've seen.",
        ),
        Personality(
            "Marathon Runner",
            "🏃",
            "Hundreds of hours watched. You've turned watching into an endurance sport.",
        ),
        Personality(
            "Cinephile",
            "🎬",
            "Movies are your thing. You appreciate the art of a complete story in one sitting.",
        ),
        Personality(
            "Balanced Viewer",
            "⚖️",
            "A healthy mix of movies and shows. You enjoy the best of both worlds.",
        ),
    )
}

DEFAULT_LABEL = "Balanced Viewer"


def _rated_below(threshold: float) -> Callable[[PersonalityInputs], bool]:
    def predicate(inputs: PersonalityInputs) -> bool:
        avg = inputs.combined_avg_rating
        return avg is not None and avg < threshold and inputs.total_entries > 10

    return predicate


def _rated_above(threshold: float) -> Callable[[PersonalityInputs], bool]:
    def predicate(inputs: PersonalityInputs) -> bool:
        avg = inputs.combined_avg_rating
        return avg is not None and avg > threshold and inputs.total_entries > 10

    return predicate


# Order is priority: the first rule whose predicate holds decides the label.
RULES: tuple[PersonalityRule, ...] = (
    PersonalityRule("Newcomer", lambda inputs: inputs.total_entries == 0),
    PersonalityRule("Binger", lambda inputs: inputs.total_episodes > inputs.total_movies * 3),
    PersonalityRule("Critic", _rated_below(2.5)),
    PersonalityRule("Enthusiast", _rated_above(4.0)),
    PersonalityRule("Explorer", lambda inputs: inputs.distinct_genres > 5),
    PersonalityRule("Reviewer", lambda inputs: inputs.total_reviews > inputs.total_entries * 0.3),
    PersonalityRule("Marathon Runner", lambda inputs: inputs.total_hours_watched > 200),
    PersonalityRule("Cinephile", lambda inputs: inputs.total_movies > inputs.total_episodes),
)


def classify_personality(
    inputs: PersonalityInputs,
    rules: tuple[PersonalityRule, ...] = RULES,
) -> Personality:
    for rule in rules:
        if rule.predicate(inputs):
            return PERSONALITIES[rule.label]
    return PERSONALITIES[DEFAULT_LABEL]
