"""
Per-event enrichment: timestamps, completion ratio, active listening flag
and genre tags.

Enrichment happens in passes. ``enrich_events`` works without any external
data; ``update_with_durations`` and ``apply_genres`` fold in metadata once it
arrives, touching only the fields that depend on it.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .config import DEFAULT_CONFIG, AnalyticsConfig
from .models import EnrichedEvent, ListeningEvent, TrackMetadata
from .parser import extract_track_id, parse_timestamp

# Artist-name substrings used when no genre data is available
LATIN_ARTISTS = (
    "bad bunny", "marc anthony", "daddy yankee", "j balvin", "karol g",
    "ozuna", "nicky jam", "maluma", "anuel aa", "rauw alejandro",
    "becky g", "feid", "young miko", "tokischa", "coi leray", "nicki nicole",
    "lyanno", "hozwal", "kaliii", "kenzo b",
)
SOUL_ARTISTS = (
    "jackson 5", "michael jackson", "marvin gaye", "stevie wonder",
    "whitney houston", "elvis presley",
)
FALLBACK_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Latin", LATIN_ARTISTS),
    ("Soul", SOUL_ARTISTS),
)
FALLBACK_DEFAULT = "Various"


def raw_active_score(
    completion_ratio: float,
    skipped: bool,
    shuffle: bool,
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> float:
    """Completion ratio minus skip/shuffle penalties, not clamped."""
    score = completion_ratio
    if skipped:
        score -= config.skip_penalty
    # Shuffle suggests less intentional listening
    if shuffle:
        score -= config.shuffle_penalty
    return score


def completion_ratio(ms_played: int, duration_ms: int) -> float:
    return max(0.0, min(ms_played / duration_ms, 1.0))


def is_active_listen(
    completion: float,
    skipped: bool,
    shuffle: bool,
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> bool:
    return raw_active_score(completion, skipped, shuffle, config) >= config.active_threshold


def enrich_event(event: ListeningEvent, config: AnalyticsConfig = DEFAULT_CONFIG) -> EnrichedEvent:
    # Real durations arrive later through update_with_durations
    ratio = completion_ratio(event.ms_played, config.assumed_track_duration_ms)
    return EnrichedEvent.from_event(
        event,
        timestamp=parse_timestamp(event.ts),
        track_id=extract_track_id(event.track_uri),
        completion_ratio=ratio,
        is_active=is_active_listen(ratio, event.skipped, event.shuffle, config),
        genres=(),
    )


def enrich_events(
    events: Sequence[ListeningEvent],
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> Tuple[EnrichedEvent, ...]:
    """Enrich cleaned events without any external metadata."""
    return tuple(enrich_event(e, config) for e in events)


def update_with_durations(
    events: Sequence[EnrichedEvent],
    durations: Mapping[str, Optional[int]],
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> Tuple[EnrichedEvent, ...]:
    """
    Recompute completion ratio and active flag from real track durations.

    Events whose track has no known (positive) duration are kept as they are.
    Applying the same durations twice gives the same result.
    """
    updated: List[EnrichedEvent] = []
    for event in events:
        duration = durations.get(event.track_id)
        if not duration or duration <= 0:
            updated.append(event)
            continue
        ratio = completion_ratio(event.ms_played, duration)
        updated.append(replace(
            event,
            duration_ms=int(duration),
            completion_ratio=ratio,
            is_active=is_active_listen(ratio, event.skipped, event.shuffle, config),
        ))
    return tuple(updated)


def apply_genres(
    events: Sequence[EnrichedEvent],
    track_genres: Mapping[str, Sequence[str]],
) -> Tuple[EnrichedEvent, ...]:
    """Attach genre tags by track ID; tracks missing from the mapping keep their tags."""
    updated: List[EnrichedEvent] = []
    for event in events:
        if event.track_id not in track_genres:
            updated.append(event)
            continue
        genres = tuple(dict.fromkeys(g for g in track_genres[event.track_id] if g))
        updated.append(replace(event, genres=genres))
    return tuple(updated)


def apply_metadata(
    events: Sequence[EnrichedEvent],
    metadata: Mapping[str, TrackMetadata],
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> Tuple[EnrichedEvent, ...]:
    """Fold provider results (genres and durations) into enriched events."""
    durations: Dict[str, Optional[int]] = {k: m.duration_ms for k, m in metadata.items()}
    genres: Dict[str, Tuple[str, ...]] = {k: m.genres for k, m in metadata.items()}
    return apply_genres(update_with_durations(events, durations, config), genres)


def fallback_genres(artist_name: str) -> Tuple[str, ...]:
    """Coarse genre from well-known artist names, used when no tags exist."""
    name = artist_name.lower()
    for genre, artists in FALLBACK_RULES:
        if any(artist in name for artist in artists):
            return (genre,)
    return (FALLBACK_DEFAULT,)


def get_unique_track_ids(events: Sequence[EnrichedEvent]) -> List[str]:
    return list(dict.fromkeys(e.track_id for e in events))


def get_unique_artists(events: Sequence[ListeningEvent]) -> List[str]:
    return list(dict.fromkeys(e.artist_name for e in events))
