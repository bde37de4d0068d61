"""
spotiprofile - Listener profiles from Spotify streaming history exports.

Turns an extended streaming history export into behavioral metrics and a
listener archetype.

Usage:
    from spotiprofile import analyze_history, load_history_files

    events = load_history_files(["my_spotify_data/"])
    result = analyze_history(events)

    profile = result.profile
    print(profile.archetype.primary)
    print(profile.to_json(indent=2))
"""

from .config import AnalyticsConfig, DEFAULT_CONFIG, GENRE_MAPPING
from .errors import (
    SpotiprofileError,
    FormatError,
    EmptyInputError,
    ExternalServiceError,
    ConfigurationError,
)
from .models import (
    ListeningEvent,
    EnrichedEvent,
    Session,
    CleaningStats,
    BehavioralMetrics,
    ListenerArchetype,
    ListenerProfile,
    HeatmapCell,
    TrackMetadata,
    Nationality,
    CountryCount,
)
from .parser import parse_streaming_json, parse_multiple_files, load_history_files, get_date_range
from .cleaner import clean_listening_data, create_sessions
from .enrich import enrich_events, update_with_durations, apply_genres, apply_metadata
from .metrics import (
    calculate_behavioral_metrics,
    calculate_listening_heatmap,
    analyze_repeat_patterns,
    calculate_artist_loyalty,
    calculate_genre_distribution,
)
from .classifier import classify_listener, ARCHETYPE_RULES
from .profile import build_profile
from .providers import SpotifyMetadataProvider, fetch_track_metadata, spotify_client_from_env
from .nationality import NationalityResolver, calculate_country_distribution
from .pipeline import AnalysisResult, analyze_history
from .export import export_table
from .log import setup_logging

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "analyze_history",
    "AnalysisResult",
    # Configuration
    "AnalyticsConfig",
    "DEFAULT_CONFIG",
    "GENRE_MAPPING",
    # Errors
    "SpotiprofileError",
    "FormatError",
    "EmptyInputError",
    "ExternalServiceError",
    "ConfigurationError",
    # Records
    "ListeningEvent",
    "EnrichedEvent",
    "Session",
    "CleaningStats",
    "BehavioralMetrics",
    "ListenerArchetype",
    "ListenerProfile",
    "HeatmapCell",
    "TrackMetadata",
    "Nationality",
    "CountryCount",
    # Stages
    "parse_streaming_json",
    "parse_multiple_files",
    "load_history_files",
    "get_date_range",
    "clean_listening_data",
    "create_sessions",
    "enrich_events",
    "update_with_durations",
    "apply_genres",
    "apply_metadata",
    "calculate_behavioral_metrics",
    "calculate_listening_heatmap",
    "analyze_repeat_patterns",
    "calculate_artist_loyalty",
    "calculate_genre_distribution",
    "classify_listener",
    "ARCHETYPE_RULES",
    "build_profile",
    # Collaborators
    "SpotifyMetadataProvider",
    "fetch_track_metadata",
    "spotify_client_from_env",
    "NationalityResolver",
    "calculate_country_distribution",
    # Utilities
    "export_table",
    "setup_logging",
]
