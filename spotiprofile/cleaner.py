"""
Cleaning and sessionization of listening events.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Sequence, Set, Tuple

from .config import DEFAULT_CONFIG, AnalyticsConfig
from .models import CleaningStats, EnrichedEvent, ListeningEvent, Session

logger = logging.getLogger(__name__)


def clean_listening_data(
    events: Sequence[ListeningEvent],
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> Tuple[Tuple[ListeningEvent, ...], CleaningStats]:
    """
    Drop short plays, then exact duplicates (same track URI and raw timestamp).

    Args:
        events: Normalized events, chronological
        config: Supplies ``min_play_duration_ms``

    Returns:
        Tuple of (cleaned events in input order, cleaning statistics)
    """
    # Filter out short plays (accidental plays / skips)
    long_enough = [e for e in events if e.ms_played >= config.min_play_duration_ms]
    removed_short = len(events) - len(long_enough)

    seen: Set[Tuple[str, str]] = set()
    cleaned: List[ListeningEvent] = []
    for event in long_enough:
        key = (event.track_uri, event.ts)
        if key in seen:
            continue
        seen.add(key)
        cleaned.append(event)
    removed_duplicates = len(long_enough) - len(cleaned)

    stats = CleaningStats(
        original_count=len(events),
        filtered_count=len(cleaned),
        removed_short=removed_short,
        removed_duplicates=removed_duplicates,
    )
    logger.info(
        "Cleaned %d -> %d events (%d short, %d duplicates)",
        stats.original_count, stats.filtered_count, removed_short, removed_duplicates,
    )
    return tuple(cleaned), stats


def _build_session(session_id: str, events: List[EnrichedEvent]) -> Session:
    start_time = events[0].timestamp
    end_time = events[-1].timestamp
    active = sum(1 for e in events if e.is_active)
    return Session(
        id=session_id,
        start_time=start_time,
        end_time=end_time,
        events=tuple(events),
        duration_ms=round((end_time - start_time).total_seconds() * 1000),
        total_listening_ms=sum(e.ms_played for e in events),
        track_count=len(events),
        average_active_score=active / len(events),
    )


def create_sessions(
    events: Sequence[EnrichedEvent],
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> Tuple[Session, ...]:
    """Split chronological events into sessions at gaps longer than ``session_gap_ms``."""
    if not events:
        return ()

    sessions: List[Session] = []
    current: List[EnrichedEvent] = [events[0]]

    for prev, event in zip(events, events[1:]):
        gap_ms = (event.timestamp - prev.timestamp).total_seconds() * 1000
        if gap_ms > config.session_gap_ms:
            sessions.append(_build_session(str(len(sessions) + 1), current))
            current = [event]
        else:
            current.append(event)

    sessions.append(_build_session(str(len(sessions) + 1), current))
    return tuple(sessions)


def with_session_count(stats: CleaningStats, sessions: Sequence[Session]) -> CleaningStats:
    return replace(stats, session_count=len(sessions))
