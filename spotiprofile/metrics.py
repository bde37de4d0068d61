"""
Behavioral metrics over enriched listening events.

Every aggregate here is a pure function of the events: nothing is cached
between calls. Events are laid out as a DataFrame (one row per play) and the
statistics are computed with pandas/numpy.

All aggregates are ratios, so they raise ``EmptyInputError`` for no events.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .cleaner import create_sessions
from .config import DEFAULT_CONFIG, GENRE_MAPPING, AnalyticsConfig
from .enrich import fallback_genres, raw_active_score
from .errors import EmptyInputError
from .models import (
    ArtistStreak,
    BehavioralMetrics,
    EnrichedEvent,
    GenreDay,
    GenreShare,
    GenreStats,
    HeatmapCell,
    LoyaltyScore,
    RepeatMetrics,
    Session,
    TrackCount,
)

TRACK_KEY = ["track_name", "artist_name"]
SECONDS_PER_HOUR = 60 * 60
SECONDS_PER_WEEK = 7 * 24 * 60 * 60

FRAME_COLUMNS = [
    "ts", "timestamp", "ms_played", "shuffle", "skipped", "track_name",
    "artist_name", "track_uri", "track_id", "platform", "album_name",
    "completion_ratio", "is_active", "duration_ms", "genres",
]


def events_to_frame(events: Sequence[EnrichedEvent]) -> pd.DataFrame:
    """One row per play, in event order, with a UTC ``timestamp`` column."""
    df = pd.DataFrame(
        [{col: getattr(e, col) for col in FRAME_COLUMNS} for e in events],
        columns=FRAME_COLUMNS,
    )
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    df["shuffle"] = df["shuffle"].astype(bool)
    df["skipped"] = df["skipped"].astype(bool)
    return df


def _frame_or_raise(events: Sequence[EnrichedEvent], what: str) -> pd.DataFrame:
    if len(events) == 0:
        raise EmptyInputError(f"Cannot compute {what} without events", stage="metrics")
    return events_to_frame(events)


# ------------------ Active listening ------------------

def calculate_active_score(event: EnrichedEvent, config: AnalyticsConfig = DEFAULT_CONFIG) -> float:
    """Active listening score for one event, clamped to [0, 1]."""
    score = raw_active_score(event.completion_ratio, event.skipped, event.shuffle, config)
    return max(0.0, min(1.0, score))


def _active_scores(df: pd.DataFrame, config: AnalyticsConfig) -> pd.Series:
    score = (
        df["completion_ratio"]
        - df["skipped"] * config.skip_penalty
        - df["shuffle"] * config.shuffle_penalty
    )
    return score.clip(lower=0.0, upper=1.0)


# ------------------ Repeats ------------------

def _repeat_metrics(df: pd.DataFrame, config: AnalyticsConfig) -> RepeatMetrics:
    grouped = df.groupby(TRACK_KEY, sort=False)
    counts = grouped.size()
    repeated = counts[counts > 1]

    # Ratio over distinct tracks, not over plays
    total_repeats = int(len(repeated))
    repeat_rate = total_repeats / len(counts)

    top = repeated.sort_values(ascending=False, kind="stable").head(config.top_items_limit)
    most_repeated = tuple(
        TrackCount(track=track, artist=artist, count=int(n))
        for (track, artist), n in top.items()
    )

    # Adjacent gaps within each track's plays; single plays yield no gap
    gaps = grouped["timestamp"].diff().dropna()
    if len(gaps):
        average_gap_hours = float(gaps.dt.total_seconds().mean() / SECONDS_PER_HOUR)
    else:
        average_gap_hours = 0.0

    return RepeatMetrics(
        total_repeats=total_repeats,
        repeat_rate=float(repeat_rate),
        most_repeated_tracks=most_repeated,
        average_time_between_repeats=average_gap_hours,
        same_artist_streaks=_artist_streaks(df, config),
    )


def _artist_streaks(df: pd.DataFrame, config: AnalyticsConfig) -> Tuple[ArtistStreak, ...]:
    artists = df["artist_name"]
    run_id = (artists != artists.shift()).cumsum()
    runs = df.groupby(run_id, sort=False).agg(
        artist=("artist_name", "first"),
        length=("artist_name", "size"),
        start_time=("timestamp", "first"),
    )
    runs = runs[runs["length"] >= config.streak_min_length]
    runs = runs.sort_values("length", ascending=False, kind="stable").head(config.top_items_limit)
    return tuple(
        ArtistStreak(artist=artist, length=int(length), start_time=start.to_pydatetime())
        for artist, length, start in zip(runs["artist"], runs["length"], runs["start_time"])
    )


def analyze_repeat_patterns(
    events: Sequence[EnrichedEvent],
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> RepeatMetrics:
    """Repeat rate, most repeated tracks, time between repeats and artist streaks."""
    return _repeat_metrics(_frame_or_raise(events, "repeat patterns"), config)


# ------------------ Loyalty ------------------

def gini_coefficient(values: Sequence[float]) -> float:
    """
    Rank-weighted Gini coefficient of non-negative values.

    0 means a perfectly even distribution. A single value yields 0.
    """
    x = np.sort(np.asarray(values, dtype=float))
    n = len(x)
    total = x.sum()
    if n == 0 or total == 0:
        return 0.0
    ranks = np.arange(1, n + 1)
    gini = float(((2 * ranks - n - 1) * x).sum() / (n * total))
    return min(1.0, max(0.0, gini))


def _loyalty_score(df: pd.DataFrame, config: AnalyticsConfig) -> LoyaltyScore:
    counts = df.groupby("artist_name", sort=False).size().sort_values(ascending=False, kind="stable")

    top_artist_percentage = float(counts.head(config.top_items_limit).sum() / len(df))
    gini = gini_coefficient(counts.to_numpy())

    span_seconds = (df["timestamp"].max() - df["timestamp"].min()).total_seconds()
    weeks = span_seconds / SECONDS_PER_WEEK
    unique_artists_per_week = len(counts) / max(weeks, 1.0)

    exploration_score = 1.0 - gini

    if top_artist_percentage > config.high_top_artist_threshold:
        label = "Highly Loyal"
    elif exploration_score > 1.0 - config.low_exploration_threshold:
        label = "Explorer"
    else:
        label = "Balanced"

    return LoyaltyScore(
        top_artist_percentage=top_artist_percentage,
        unique_artists_per_week=float(unique_artists_per_week),
        gini_coefficient=gini,
        exploration_score=exploration_score,
        loyalty_label=label,
    )


def calculate_artist_loyalty(
    events: Sequence[EnrichedEvent],
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> LoyaltyScore:
    """Top-artist share, Gini concentration, discovery pace and loyalty label."""
    return _loyalty_score(_frame_or_raise(events, "artist loyalty"), config)


# ------------------ Genres ------------------

def normalize_genre(genre: str, mapping: Dict[str, Tuple[str, ...]] = GENRE_MAPPING) -> str:
    """Map a raw tag onto a broad category; unmatched tags pass through."""
    lower = genre.lower()
    for category, variants in mapping.items():
        if any(v in lower for v in variants):
            return category
    return genre


def shannon_entropy(counts: Sequence[float]) -> float:
    """Shannon entropy (base 2) of a count distribution."""
    c = np.asarray(counts, dtype=float)
    c = c[c > 0]
    if c.size == 0:
        return 0.0
    p = c / c.sum()
    return max(0.0, float(-(p * np.log2(p)).sum()))


def _event_genres(df: pd.DataFrame, config: AnalyticsConfig) -> List[List[str]]:
    out = []
    for tags, artist in zip(df["genres"], df["artist_name"]):
        if not tags and config.use_fallback_genres:
            tags = fallback_genres(artist)
        out.append([normalize_genre(t) for t in tags])
    return out


def local_times(df: pd.DataFrame, config: AnalyticsConfig = DEFAULT_CONFIG) -> pd.Series:
    """Event timestamps in the configured time zone."""
    return df["timestamp"].dt.tz_convert(config.time_zone)


def _genre_stats(df: pd.DataFrame, config: AnalyticsConfig) -> GenreStats:
    long = (
        pd.DataFrame({"timestamp": local_times(df, config), "genre": _event_genres(df, config)})
        .explode("genre")
        .dropna(subset=["genre"])
        .reset_index(drop=True)
    )
    if long.empty:
        return GenreStats()
    long = long.assign(
        day=long["timestamp"].dt.floor("D"),
        hour=long["timestamp"].dt.hour,
    )

    counts = long.groupby("genre", sort=False).size().sort_values(ascending=False, kind="stable")
    total_listens = len(df)
    distribution = tuple(
        GenreShare(genre=genre, count=int(n), percentage=float(n / total_listens))
        for genre, n in counts.items()
    )

    evolution = tuple(
        GenreDay(
            date=day.to_pydatetime(),
            genres={g: int(n) for g, n in group.groupby("genre", sort=False).size().items()},
        )
        for day, group in long.groupby("day", sort=True)
    )

    by_hour: Dict[int, Dict[str, int]] = {}
    for (h, genre), n in long.groupby(["hour", "genre"], sort=False).size().items():
        by_hour.setdefault(int(h), {})[genre] = int(n)

    return GenreStats(
        distribution=distribution,
        top_genres=tuple(g.genre for g in distribution[:config.top_items_limit]),
        genre_diversity=shannon_entropy(counts.to_numpy()),
        genre_evolution=evolution,
        genre_by_time_of_day=dict(sorted(by_hour.items())),
    )


def calculate_genre_distribution(
    events: Sequence[EnrichedEvent],
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> GenreStats:
    """Genre distribution, diversity, daily evolution and hour-of-day breakdown."""
    return _genre_stats(_frame_or_raise(events, "genre distribution"), config)


# ------------------ Heatmap ------------------

def calculate_listening_heatmap(
    events: Sequence[EnrichedEvent],
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> Tuple[HeatmapCell, ...]:
    """
    Count plays per (day of week, hour) cell in ``config.time_zone``.

    Days run 0 = Sunday to 6 = Saturday. Only non-empty cells are returned,
    sorted by day then hour.
    """
    df = _frame_or_raise(events, "heatmap")
    local = local_times(df, config)
    day = ((local.dt.dayofweek + 1) % 7).rename("day")
    hour = local.dt.hour.rename("hour")
    counts = df.groupby([day, hour]).size()
    return tuple(
        HeatmapCell(day=int(d), hour=int(h), count=int(n))
        for (d, h), n in counts.items()
    )


def heatmap_frame(cells: Sequence[HeatmapCell]) -> pd.DataFrame:
    """Dense 7 x 24 matrix (rows = day, columns = hour) with zeros filled in."""
    grid = pd.DataFrame(0, index=pd.RangeIndex(7, name="day"), columns=pd.RangeIndex(24, name="hour"))
    for cell in cells:
        grid.loc[cell.day, cell.hour] = cell.count
    return grid


# ------------------ All metrics ------------------

def average_session_length(sessions: Sequence[Session]) -> float:
    """Mean listening time per session, in minutes."""
    if not sessions:
        return 0.0
    return float(np.mean([s.total_listening_ms for s in sessions]) / 60_000)


def calculate_behavioral_metrics(
    events: Sequence[EnrichedEvent],
    config: AnalyticsConfig = DEFAULT_CONFIG,
    sessions: Optional[Sequence[Session]] = None,
) -> BehavioralMetrics:
    """
    Compute every behavioral metric for a set of enriched events.

    Args:
        events: Enriched events in chronological order
        config: Thresholds and penalties
        sessions: Pre-built sessions (built from ``events`` when omitted)

    Returns:
        BehavioralMetrics

    Raises:
        EmptyInputError: If ``events`` is empty
    """
    df = _frame_or_raise(events, "behavioral metrics")
    if sessions is None:
        sessions = create_sessions(events, config)

    return BehavioralMetrics(
        active_score=float(_active_scores(df, config).mean()),
        shuffle_rate=float(df["shuffle"].mean()),
        skip_rate=float(df["skipped"].mean()),
        average_completion_ratio=float(df["completion_ratio"].mean()),
        average_session_length=average_session_length(sessions),
        repeat_metrics=_repeat_metrics(df, config),
        loyalty_score=_loyalty_score(df, config),
        genre_stats=_genre_stats(df, config),
    )
