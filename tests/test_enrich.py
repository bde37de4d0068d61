"""Tests for per-event enrichment."""

from datetime import timezone

import pytest

from spotiprofile.enrich import (
    apply_genres,
    apply_metadata,
    completion_ratio,
    enrich_events,
    fallback_genres,
    get_unique_artists,
    get_unique_track_ids,
    is_active_listen,
    update_with_durations,
)
from spotiprofile.models import ListeningEvent, TrackMetadata


def _event(ms=180_000, shuffle=False, skipped=False, uri="spotify:track:abc", artist="Artist",
           ts="2024-01-01T10:00:00Z"):
    return ListeningEvent(
        ts=ts, ms_played=ms, shuffle=shuffle, skipped=skipped,
        track_name="Song", artist_name=artist, track_uri=uri,
    )


def test_enrich_derives_fields():
    (e,) = enrich_events([_event(ms=90_000)])
    assert e.track_id == "abc"
    assert e.timestamp.tzinfo == timezone.utc
    assert e.completion_ratio == pytest.approx(0.5)
    assert e.is_active is False
    assert e.genres == ()
    assert e.duration_ms is None


def test_completion_ratio_is_clamped():
    assert completion_ratio(400_000, 180_000) == 1.0
    assert completion_ratio(0, 180_000) == 0.0


@pytest.mark.parametrize("completion, skipped, shuffle, expected", [
    (1.0, False, False, True),
    (1.0, True, False, False),   # 0.7
    (0.95, False, True, True),   # 0.85
    (0.85, False, True, False),  # 0.75
])
def test_active_listen_rule(completion, skipped, shuffle, expected):
    assert is_active_listen(completion, skipped, shuffle) is expected


def test_update_with_durations():
    events = enrich_events([_event(ms=90_000), _event(ms=90_000, uri="spotify:track:other")])
    updated = update_with_durations(events, {"abc": 100_000, "other": 0})

    assert updated[0].duration_ms == 100_000
    assert updated[0].completion_ratio == pytest.approx(0.9)
    assert updated[0].is_active is True
    # Non-positive duration leaves the event alone
    assert updated[1] == events[1]
    # Originals untouched
    assert events[0].duration_ms is None


def test_update_with_durations_is_idempotent():
    events = enrich_events([_event(ms=90_000)])
    once = update_with_durations(events, {"abc": 120_000})
    assert update_with_durations(once, {"abc": 120_000}) == once


def test_apply_genres():
    events = enrich_events([_event(), _event(uri="spotify:track:zzz")])
    tagged = apply_genres(events, {"abc": ["pop", "pop", "dance pop"]})
    assert tagged[0].genres == ("pop", "dance pop")
    assert tagged[1].genres == ()
    assert tagged[0].completion_ratio == events[0].completion_ratio


def test_apply_genres_keeps_tags_for_unmapped_tracks():
    events = apply_genres(enrich_events([_event()]), {"abc": ["rock"]})
    assert apply_genres(events, {"other": ["jazz"]})[0].genres == ("rock",)


def test_apply_metadata():
    events = enrich_events([_event(ms=60_000)])
    updated = apply_metadata(events, {"abc": TrackMetadata(genres=("latin",), duration_ms=60_000)})
    assert updated[0].genres == ("latin",)
    assert updated[0].completion_ratio == 1.0
    assert updated[0].is_active is True


@pytest.mark.parametrize("artist, expected", [
    ("Bad Bunny", ("Latin",)),
    ("The Jackson 5", ("Soul",)),
    ("Some Indie Band", ("Various",)),
])
def test_fallback_genres(artist, expected):
    assert fallback_genres(artist) == expected


def test_unique_ids_and_artists_in_first_seen_order():
    events = enrich_events([
        _event(uri="spotify:track:b", artist="B"),
        _event(uri="spotify:track:a", artist="A"),
        _event(uri="spotify:track:b", artist="B", ts="2024-01-01T11:00:00Z"),
    ])
    assert get_unique_track_ids(events) == ["b", "a"]
    assert get_unique_artists(events) == ["B", "A"]
