"""
End-to-end analysis: raw export -> ListenerProfile.

Stages run in order (normalize, clean, enrich, sessions, metrics, classify,
profile), each inside a ``timed_step`` banner. Metadata enrichment is
optional and degrades gracefully: if the provider fails part-way, the
profile is built from whatever metadata arrived.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple, Union

from .classifier import classify_listener
from .cleaner import clean_listening_data, create_sessions, with_session_count
from .config import DEFAULT_CONFIG, AnalyticsConfig
from .enrich import apply_metadata, enrich_events, get_unique_track_ids
from .errors import EmptyInputError, ExternalServiceError
from .log import timed_step
from .metrics import calculate_behavioral_metrics, calculate_listening_heatmap
from .models import (
    CleaningStats,
    EnrichedEvent,
    HeatmapCell,
    ListenerProfile,
    ListeningEvent,
    Session,
)
from .parser import Payload, parse_streaming_json, sort_events
from .profile import build_profile
from .providers import MetadataProvider, fetch_track_metadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisResult:
    profile: ListenerProfile
    cleaning_stats: CleaningStats
    sessions: Tuple[Session, ...]
    heatmap: Tuple[HeatmapCell, ...]
    events: Tuple[EnrichedEvent, ...]
    enrichment_error: Optional[ExternalServiceError] = None


def _normalize(source: Union[Payload, Iterable[ListeningEvent]]) -> Tuple[ListeningEvent, ...]:
    if isinstance(source, (str, bytes, dict)):
        return sort_events(parse_streaming_json(source))
    items = list(source)
    if items and all(isinstance(e, ListeningEvent) for e in items):
        return sort_events(items)
    return sort_events(parse_streaming_json(items))


def analyze_history(
    source: Union[Payload, Sequence[ListeningEvent]],
    provider: Optional[MetadataProvider] = None,
    config: AnalyticsConfig = DEFAULT_CONFIG,
    cancel_event: Optional[threading.Event] = None,
    progress: bool = False,
) -> AnalysisResult:
    """
    Run the full analysis over a streaming history export.

    Args:
        source: JSON text, a decoded payload, or already normalized events
        provider: Optional metadata provider for genres and true durations
        config: Analysis settings
        cancel_event: Stops metadata fetching early when set
        progress: Show a progress bar while fetching metadata

    Returns:
        AnalysisResult with the profile and the intermediate tables

    Raises:
        FormatError: If the payload is not an array of events
        EmptyInputError: If no events survive cleaning
    """
    with timed_step("Normalize events"):
        normalized = _normalize(source)
        logger.info("Normalized %s events", f"{len(normalized):,}")

    with timed_step("Clean events"):
        cleaned, stats = clean_listening_data(normalized, config)
    if not cleaned:
        raise EmptyInputError(
            f"No events left after cleaning ({stats.original_count} before)",
            stage="clean",
            affected=stats.original_count,
        )

    with timed_step("Enrich events"):
        events = enrich_events(cleaned, config)

    enrichment_error: Optional[ExternalServiceError] = None
    if provider is not None:
        with timed_step("Fetch track metadata"):
            try:
                metadata = fetch_track_metadata(
                    provider, get_unique_track_ids(events), config,
                    cancel_event=cancel_event, progress=progress,
                )
            except ExternalServiceError as e:
                logger.warning(
                    "Metadata enrichment incomplete (%d tracks affected); continuing with %d partial results",
                    e.affected, len(e.partial),
                )
                enrichment_error = e
                metadata = e.partial
            events = apply_metadata(events, metadata, config)

    with timed_step("Build sessions"):
        sessions = create_sessions(events, config)
        stats = with_session_count(stats, sessions)

    with timed_step("Compute metrics"):
        metrics = calculate_behavioral_metrics(events, config, sessions=sessions)
        heatmap = calculate_listening_heatmap(events, config)

    with timed_step("Classify listener"):
        archetype = classify_listener(metrics, secondary_threshold=config.secondary_threshold)
        logger.info("Archetype: %s (confidence %.2f)", archetype.primary, archetype.confidence)

    with timed_step("Assemble profile"):
        profile = build_profile(events, metrics=metrics, archetype=archetype, config=config)

    return AnalysisResult(
        profile=profile,
        cleaning_stats=stats,
        sessions=sessions,
        heatmap=heatmap,
        events=events,
        enrichment_error=enrichment_error,
    )
