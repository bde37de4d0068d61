"""
Listener archetype classification.

Each archetype is a rule: a list of criteria over named behavioral metrics,
each criterion awarding the weight of the first band its metric falls into.
A rule's score is the clamped sum of its awards; the best-scoring rule is
the primary archetype.

The rule table is plain data so thresholds can be tuned (or whole rules
swapped out) without touching the scoring code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .models import BehavioralMetrics, ListenerArchetype

SECONDARY_THRESHOLD = 0.3


@dataclass(frozen=True)
class Band:
    """Awards ``weight`` when ``above < value < below`` (open bounds)."""
    weight: float
    above: Optional[float] = None
    below: Optional[float] = None

    def contains(self, value: float) -> bool:
        if self.above is not None and not value > self.above:
            return False
        if self.below is not None and not value < self.below:
            return False
        return True


@dataclass(frozen=True)
class Criterion:
    metric: str
    bands: Tuple[Band, ...]

    def award(self, value: float) -> float:
        # First matching band wins
        for band in self.bands:
            if band.contains(value):
                return band.weight
        return 0.0


@dataclass(frozen=True)
class ArchetypeRule:
    key: str
    name: str
    traits: Tuple[str, ...]
    description: str
    criteria: Tuple[Criterion, ...]


def _top_genre_percentage(m: BehavioralMetrics) -> float:
    dist = m.genre_stats.distribution
    return dist[0].percentage if dist else 0.0


def _top_repeat_count(m: BehavioralMetrics) -> float:
    tracks = m.repeat_metrics.most_repeated_tracks
    return tracks[0].count if tracks else 0


METRIC_ACCESSORS: Dict[str, Callable[[BehavioralMetrics], float]] = {
    "repeat_rate": lambda m: m.repeat_metrics.repeat_rate,
    "top_repeat_count": _top_repeat_count,
    "average_time_between_repeats": lambda m: m.repeat_metrics.average_time_between_repeats,
    "artist_streak_count": lambda m: len(m.repeat_metrics.same_artist_streaks),
    "exploration_score": lambda m: m.loyalty_score.exploration_score,
    "top_artist_percentage": lambda m: m.loyalty_score.top_artist_percentage,
    "unique_artists_per_week": lambda m: m.loyalty_score.unique_artists_per_week,
    "genre_diversity": lambda m: m.genre_stats.genre_diversity,
    "top_genre_percentage": _top_genre_percentage,
    "active_score": lambda m: m.active_score,
    "shuffle_rate": lambda m: m.shuffle_rate,
    "skip_rate": lambda m: m.skip_rate,
    "average_completion_ratio": lambda m: m.average_completion_ratio,
}


def _c(metric: str, *bands: Band) -> Criterion:
    return Criterion(metric, tuple(bands))


ARCHETYPE_RULES: Tuple[ArchetypeRule, ...] = (
    ArchetypeRule(
        key="COMFORT_LISTENER",
        name="Comfort Listener",
        traits=("High repeat rate", "Low exploration", "Consistent favorites"),
        description="You find comfort in familiar favorites, creating a cozy musical safe space.",
        criteria=(
            _c("repeat_rate", Band(0.4, above=0.6), Band(0.2, above=0.4)),
            _c("exploration_score", Band(0.3, below=0.4)),
            _c("active_score", Band(0.2, above=0.5, below=0.8)),
            _c("top_artist_percentage", Band(0.1, above=0.4)),
        ),
    ),
    ArchetypeRule(
        key="EXPLORER",
        name="Musical Explorer",
        traits=("High artist diversity", "Low repeat rate", "Broad genre range"),
        description="Always seeking new sounds, you thrive on musical discovery.",
        criteria=(
            _c("exploration_score", Band(0.4, above=0.7), Band(0.2, above=0.5)),
            _c("repeat_rate", Band(0.3, below=0.3)),
            _c("unique_artists_per_week", Band(0.2, above=20)),
            _c("genre_diversity", Band(0.1, above=3)),
        ),
    ),
    ArchetypeRule(
        key="GENRE_HOPPER",
        name="Genre Hopper",
        traits=("High genre diversity", "Mood-based listening", "Eclectic taste"),
        description="You flow between genres effortlessly, matching music to moments.",
        criteria=(
            _c("genre_diversity", Band(0.5, above=3.5), Band(0.3, above=2.5)),
            _c("top_genre_percentage", Band(0.3, below=0.4)),
            _c("exploration_score", Band(0.2, above=0.4, below=0.7)),
        ),
    ),
    ArchetypeRule(
        key="LOYAL_FAN",
        name="Loyal Fan",
        traits=("Artist loyalty", "Deep catalog exploration", "Consistent preferences"),
        description="When you find artists you love, you dive deep into their entire discography.",
        criteria=(
            _c("top_artist_percentage", Band(0.5, above=0.6), Band(0.3, above=0.4)),
            _c("artist_streak_count", Band(0.3, above=5)),
            _c("active_score", Band(0.2, above=0.7)),
        ),
    ),
    ArchetypeRule(
        key="OBSESSIVE_REPEATER",
        name="Obsessive Repeater",
        traits=("Extreme repeat behavior", "Track fixation", "Intense focus"),
        description="When a song hits, you play it on repeat until it's etched in your soul.",
        criteria=(
            _c("repeat_rate", Band(0.5, above=0.7)),
            _c("top_repeat_count", Band(0.4, above=50), Band(0.2, above=30)),
            _c("average_time_between_repeats", Band(0.1, below=24)),
        ),
    ),
    ArchetypeRule(
        key="PASSIVE_LISTENER",
        name="Background Player",
        traits=("High shuffle usage", "High skip rate", "Playlist-focused"),
        description="Music is your ambient companion, setting the vibe while you focus on life.",
        criteria=(
            _c("shuffle_rate", Band(0.3, above=0.7), Band(0.15, above=0.5)),
            _c("skip_rate", Band(0.3, above=0.4), Band(0.15, above=0.25)),
            _c("active_score", Band(0.3, below=0.5)),
            _c("average_completion_ratio", Band(0.1, below=0.7)),
        ),
    ),
    ArchetypeRule(
        key="ACTIVE_CURATOR",
        name="Active Curator",
        traits=("Low shuffle", "Low skip rate", "Intentional listening"),
        description="Every song is chosen with purpose. You craft your listening experience.",
        criteria=(
            _c("shuffle_rate", Band(0.3, below=0.3)),
            _c("skip_rate", Band(0.3, below=0.2)),
            _c("active_score", Band(0.3, above=0.8)),
            _c("average_completion_ratio", Band(0.1, above=0.85)),
        ),
    ),
)


def score_rule(rule: ArchetypeRule, metrics: BehavioralMetrics) -> float:
    """Sum of the rule's awarded weights, clamped to [0, 1]."""
    total = 0.0
    for criterion in rule.criteria:
        value = METRIC_ACCESSORS[criterion.metric](metrics)
        total += criterion.award(value)
    return max(0.0, min(total, 1.0))


def score_all(
    metrics: BehavioralMetrics,
    rules: Sequence[ArchetypeRule] = ARCHETYPE_RULES,
) -> List[Tuple[ArchetypeRule, float]]:
    """Score every rule, best first. Ties keep table order."""
    scored = [(rule, score_rule(rule, metrics)) for rule in rules]
    return sorted(scored, key=lambda pair: pair[1], reverse=True)


def classify_listener(
    metrics: BehavioralMetrics,
    rules: Sequence[ArchetypeRule] = ARCHETYPE_RULES,
    secondary_threshold: float = SECONDARY_THRESHOLD,
) -> ListenerArchetype:
    """
    Pick the best-fitting archetype for a set of behavioral metrics.

    A secondary archetype is reported only when the runner-up scores above
    ``secondary_threshold``; it contributes its first trait.

    Args:
        metrics: Output of ``calculate_behavioral_metrics``
        rules: Rule table, in tie-break order
        secondary_threshold: Minimum runner-up score for a secondary archetype

    Returns:
        ListenerArchetype
    """
    if not rules:
        raise ValueError("At least one archetype rule is required")

    ranked = score_all(metrics, rules)
    primary, primary_score = ranked[0]

    secondary: Optional[ArchetypeRule] = None
    if len(ranked) > 1 and ranked[1][1] > secondary_threshold:
        secondary = ranked[1][0]

    traits = primary.traits + (secondary.traits[:1] if secondary else ())
    return ListenerArchetype(
        primary=primary.name,
        confidence=primary_score,
        traits=traits,
        description=primary.description,
        secondary=secondary.name if secondary else None,
    )
