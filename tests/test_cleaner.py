"""Tests for cleaning and sessionization."""

from spotiprofile.cleaner import clean_listening_data, create_sessions, with_session_count
from spotiprofile.config import AnalyticsConfig
from spotiprofile.enrich import enrich_events
from spotiprofile.models import ListeningEvent


def _event(ts, ms=200_000, uri="spotify:track:a", artist="Artist", track="Song"):
    return ListeningEvent(
        ts=ts, ms_played=ms, shuffle=False, skipped=False,
        track_name=track, artist_name=artist, track_uri=uri,
    )


def test_short_plays_removed():
    events = [
        _event("2024-01-01T10:00:00Z", ms=10_000),
        _event("2024-01-01T10:01:00Z", ms=30_000),
        _event("2024-01-01T10:02:00Z", ms=29_999),
    ]
    cleaned, stats = clean_listening_data(events)
    assert [e.ts for e in cleaned] == ["2024-01-01T10:01:00Z"]
    assert stats.removed_short == 2
    assert stats.removed_duplicates == 0
    assert stats.original_count == 3
    assert stats.filtered_count == 1


def test_duplicates_removed_keeping_first():
    events = [
        _event("2024-01-01T10:00:00Z", ms=100_000),
        _event("2024-01-01T10:00:00Z", ms=150_000),
        _event("2024-01-01T10:00:00Z", uri="spotify:track:b"),
    ]
    cleaned, stats = clean_listening_data(events)
    assert len(cleaned) == 2
    assert cleaned[0].ms_played == 100_000
    assert stats.removed_duplicates == 1


def test_cleaning_is_idempotent():
    events = [
        _event("2024-01-01T10:00:00Z"),
        _event("2024-01-01T10:00:00Z"),
        _event("2024-01-01T10:05:00Z", ms=5_000),
        _event("2024-01-01T10:10:00Z", uri="spotify:track:b"),
    ]
    once, _ = clean_listening_data(events)
    twice, stats = clean_listening_data(once)
    assert once == twice
    assert stats.removed_short == 0
    assert stats.removed_duplicates == 0


def test_custom_min_play_duration():
    config = AnalyticsConfig(min_play_duration_ms=5_000)
    cleaned, _ = clean_listening_data([_event("2024-01-01T10:00:00Z", ms=6_000)], config)
    assert len(cleaned) == 1


def test_sessions_split_on_long_gaps():
    events = enrich_events([
        _event("2024-01-01T10:00:00Z"),
        _event("2024-01-01T10:20:00Z"),
        _event("2024-01-01T10:50:00Z"),  # exactly 30 min gap: same session
        _event("2024-01-01T11:21:00Z"),  # 31 min gap: new session
    ])
    sessions = create_sessions(events)
    assert [s.id for s in sessions] == ["1", "2"]
    assert sessions[0].track_count == 3
    assert sessions[1].track_count == 1
    assert sessions[0].duration_ms == 50 * 60 * 1000
    assert sessions[0].total_listening_ms == 3 * 200_000
    assert sessions[1].duration_ms == 0


def test_session_active_score_is_fraction_of_active_events():
    events = enrich_events([
        _event("2024-01-01T10:00:00Z", ms=180_000),
        _event("2024-01-01T10:03:00Z", ms=60_000),
    ])
    sessions = create_sessions(events)
    assert sessions[0].average_active_score == 0.5


def test_no_events_no_sessions():
    assert create_sessions([]) == ()


def test_with_session_count():
    events = enrich_events([_event("2024-01-01T10:00:00Z"), _event("2024-01-02T10:00:00Z")])
    _, stats = clean_listening_data(events)
    updated = with_session_count(stats, create_sessions(events))
    assert updated.session_count == 2
    assert stats.session_count == 0
