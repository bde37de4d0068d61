"""
Profile assembly: totals, date range, top artists and tracks, metrics and
archetype bundled into one serializable ListenerProfile.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import pandas as pd

from .classifier import classify_listener
from .config import DEFAULT_CONFIG, AnalyticsConfig
from .errors import EmptyInputError
from .metrics import TRACK_KEY, calculate_behavioral_metrics, events_to_frame
from .models import (
    ArtistSummary,
    BehavioralMetrics,
    DateRange,
    EnrichedEvent,
    ListenerArchetype,
    ListenerProfile,
    TrackCount,
)

MS_PER_HOUR = 3_600_000


def _top_artists(df: pd.DataFrame, limit: int) -> Tuple[ArtistSummary, ...]:
    counts = df.groupby("artist_name", sort=False).size().sort_values(ascending=False, kind="stable")
    top = counts.head(limit)

    genres = {}
    for artist, tags in zip(df["artist_name"], df["genres"]):
        if artist in top.index:
            genres.setdefault(artist, {}).update(dict.fromkeys(tags))

    return tuple(
        ArtistSummary(name=artist, count=int(n), genres=tuple(genres.get(artist, {})))
        for artist, n in top.items()
    )


def _top_tracks(df: pd.DataFrame, limit: int) -> Tuple[TrackCount, ...]:
    counts = df.groupby(TRACK_KEY, sort=False).size().sort_values(ascending=False, kind="stable")
    return tuple(
        TrackCount(track=track, artist=artist, count=int(n))
        for (track, artist), n in counts.head(limit).items()
    )


def build_profile(
    events: Sequence[EnrichedEvent],
    metrics: Optional[BehavioralMetrics] = None,
    archetype: Optional[ListenerArchetype] = None,
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> ListenerProfile:
    """
    Assemble a ListenerProfile from enriched events.

    Metrics and archetype are computed when not supplied.

    Raises:
        EmptyInputError: If ``events`` is empty
    """
    if len(events) == 0:
        raise EmptyInputError("Cannot build a profile without events", stage="profile")

    if metrics is None:
        metrics = calculate_behavioral_metrics(events, config)
    if archetype is None:
        archetype = classify_listener(metrics, secondary_threshold=config.secondary_threshold)

    df = events_to_frame(events)
    return ListenerProfile(
        total_listens=len(df),
        total_hours=float(df["ms_played"].sum() / MS_PER_HOUR),
        date_range=DateRange(
            start=df["timestamp"].min().to_pydatetime(),
            end=df["timestamp"].max().to_pydatetime(),
        ),
        metrics=metrics,
        archetype=archetype,
        top_artists=_top_artists(df, config.top_items_limit),
        top_tracks=_top_tracks(df, config.top_items_limit),
    )
