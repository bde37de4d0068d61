"""Tests for listener archetype classification."""

from datetime import datetime, timezone

import pytest

from spotiprofile.classifier import (
    ARCHETYPE_RULES,
    METRIC_ACCESSORS,
    ArchetypeRule,
    Band,
    Criterion,
    classify_listener,
    score_all,
    score_rule,
)
from spotiprofile.models import (
    ArtistStreak,
    BehavioralMetrics,
    GenreShare,
    GenreStats,
    LoyaltyScore,
    RepeatMetrics,
    TrackCount,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
RULES = {rule.key: rule for rule in ARCHETYPE_RULES}


def _metrics(
    active_score=0.5,
    shuffle_rate=0.5,
    skip_rate=0.3,
    average_completion_ratio=0.75,
    repeat_rate=0.35,
    top_repeat_count=0,
    average_time_between_repeats=48.0,
    streaks=0,
    top_artist_percentage=0.0,
    unique_artists_per_week=0.0,
    exploration_score=0.45,
    genre_diversity=0.0,
    top_genre_percentage=1.0,
):
    """Metrics that score (close to) zero everywhere unless overridden."""
    tracks = (TrackCount("t", "a", top_repeat_count),) if top_repeat_count else ()
    return BehavioralMetrics(
        active_score=active_score,
        shuffle_rate=shuffle_rate,
        skip_rate=skip_rate,
        average_completion_ratio=average_completion_ratio,
        average_session_length=30.0,
        repeat_metrics=RepeatMetrics(
            total_repeats=0,
            repeat_rate=repeat_rate,
            most_repeated_tracks=tracks,
            average_time_between_repeats=average_time_between_repeats,
            same_artist_streaks=tuple(ArtistStreak("a", 3, T0) for _ in range(streaks)),
        ),
        loyalty_score=LoyaltyScore(
            top_artist_percentage=top_artist_percentage,
            unique_artists_per_week=unique_artists_per_week,
            gini_coefficient=1 - exploration_score,
            exploration_score=exploration_score,
            loyalty_label="Balanced",
        ),
        genre_stats=GenreStats(
            distribution=(GenreShare("pop", 10, top_genre_percentage),),
            top_genres=("pop",),
            genre_diversity=genre_diversity,
        ),
    )


def test_band_bounds_are_strict():
    band = Band(0.2, above=0.5, below=0.8)
    assert band.contains(0.6)
    assert not band.contains(0.5)
    assert not band.contains(0.8)
    assert Band(0.1).contains(-100)


def test_criterion_first_matching_band_wins():
    c = Criterion("repeat_rate", (Band(0.4, above=0.6), Band(0.2, above=0.4)))
    assert c.award(0.9) == 0.4
    assert c.award(0.5) == 0.2
    assert c.award(0.1) == 0.0


def test_every_criterion_uses_a_known_metric():
    for rule in ARCHETYPE_RULES:
        for criterion in rule.criteria:
            assert criterion.metric in METRIC_ACCESSORS


def test_baseline_metrics_score_low():
    base = _metrics()
    for rule in ARCHETYPE_RULES:
        assert score_rule(rule, base) <= 0.3


@pytest.mark.parametrize("key, overrides, expected", [
    ("COMFORT_LISTENER", dict(repeat_rate=0.65, exploration_score=0.3, active_score=0.6,
                              top_artist_percentage=0.45), 1.0),
    ("COMFORT_LISTENER", dict(repeat_rate=0.5), 0.2),
    ("EXPLORER", dict(exploration_score=0.8, repeat_rate=0.1, unique_artists_per_week=25,
                      genre_diversity=3.2), 1.0),
    ("EXPLORER", dict(exploration_score=0.6), 0.2),
    ("GENRE_HOPPER", dict(genre_diversity=3.6, top_genre_percentage=0.2, exploration_score=0.5), 1.0),
    ("GENRE_HOPPER", dict(genre_diversity=3.0), 0.5),
    ("LOYAL_FAN", dict(top_artist_percentage=0.7, streaks=6, active_score=0.75), 1.0),
    ("LOYAL_FAN", dict(top_artist_percentage=0.5), 0.3),
    ("OBSESSIVE_REPEATER", dict(repeat_rate=0.8, top_repeat_count=60, average_time_between_repeats=5), 1.0),
    ("OBSESSIVE_REPEATER", dict(top_repeat_count=40), 0.2),
    ("PASSIVE_LISTENER", dict(shuffle_rate=0.8, skip_rate=0.5, active_score=0.3,
                              average_completion_ratio=0.5), 1.0),
    ("PASSIVE_LISTENER", dict(shuffle_rate=0.6, skip_rate=0.3, active_score=0.6), 0.3),
    ("ACTIVE_CURATOR", dict(shuffle_rate=0.1, skip_rate=0.1, active_score=0.9,
                            average_completion_ratio=0.9), 1.0),
])
def test_rule_scores(key, overrides, expected):
    metrics = _metrics(**overrides)
    assert score_rule(RULES[key], metrics) == pytest.approx(expected)


def test_scores_are_clamped():
    rule = ArchetypeRule(
        key="X", name="X", traits=("x",), description="x",
        criteria=(Criterion("active_score", (Band(0.8),)), Criterion("skip_rate", (Band(0.8),))),
    )
    assert score_rule(rule, _metrics()) == 1.0


def test_comfort_listener_scenario():
    metrics = _metrics(repeat_rate=0.65, exploration_score=0.3, active_score=0.6,
                       top_artist_percentage=0.45)
    archetype = classify_listener(metrics)
    assert archetype.primary == "Comfort Listener"
    assert archetype.confidence == pytest.approx(1.0)
    assert archetype.description == RULES["COMFORT_LISTENER"].description


def test_explorer_scenario():
    metrics = _metrics(exploration_score=0.8, repeat_rate=0.1, unique_artists_per_week=25,
                       genre_diversity=3.2, top_genre_percentage=0.5)
    archetype = classify_listener(metrics)
    assert archetype.primary == "Musical Explorer"
    assert archetype.secondary is None


def test_active_curator_scenario():
    metrics = _metrics(shuffle_rate=0.1, skip_rate=0.1, active_score=0.9,
                       average_completion_ratio=0.9)
    archetype = classify_listener(metrics)
    assert archetype.primary == "Active Curator"
    # Loyal Fan picks up 0.2 for active listening, below the secondary threshold
    assert archetype.secondary is None
    assert archetype.traits == RULES["ACTIVE_CURATOR"].traits


def test_secondary_above_threshold_adds_first_trait():
    metrics = _metrics(shuffle_rate=0.1, skip_rate=0.1, active_score=0.9,
                       average_completion_ratio=0.9, top_artist_percentage=0.7)
    archetype = classify_listener(metrics)
    assert archetype.primary == "Active Curator"
    assert archetype.secondary == "Loyal Fan"
    assert archetype.traits == RULES["ACTIVE_CURATOR"].traits + ("Artist loyalty",)


def test_secondary_exactly_at_threshold_is_not_reported():
    rules = (
        ArchetypeRule("A", "A", ("a1", "a2"), "a", (Criterion("active_score", (Band(0.9),)),)),
        ArchetypeRule("B", "B", ("b1",), "b", (Criterion("active_score", (Band(0.3),)),)),
    )
    archetype = classify_listener(_metrics(), rules=rules)
    assert archetype.primary == "A"
    assert archetype.secondary is None
    assert archetype.traits == ("a1", "a2")


def test_ties_keep_table_order():
    rules = (
        ArchetypeRule("A", "First", ("a",), "a", (Criterion("active_score", (Band(0.5),)),)),
        ArchetypeRule("B", "Second", ("b",), "b", (Criterion("active_score", (Band(0.5),)),)),
    )
    ranked = score_all(_metrics(), rules)
    assert [r.name for r, _ in ranked] == ["First", "Second"]
    archetype = classify_listener(_metrics(), rules=rules)
    assert archetype.primary == "First"
    assert archetype.secondary == "Second"


def test_classification_is_deterministic():
    metrics = _metrics(repeat_rate=0.5, exploration_score=0.6, genre_diversity=2.8)
    assert classify_listener(metrics) == classify_listener(metrics)


def test_no_rules_is_an_error():
    with pytest.raises(ValueError):
        classify_listener(_metrics(), rules=())
