"""
Streaming History Parsing

Loads Spotify extended streaming history exports and normalizes each record
into a ``ListeningEvent``. Individual malformed records are dropped; only a
payload that is not array-shaped at all is an error.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime
from numbers import Real
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .errors import FormatError
from .models import DateRange, ListeningEvent

logger = logging.getLogger(__name__)

HISTORY_FILE_PATTERNS = ("Streaming_History_Audio_*.json", "endsong_*.json")

UNKNOWN_TRACK = "Unknown Track"
UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_PLATFORM = "unknown"

Payload = Union[str, bytes, list, dict]


def parse_timestamp(ts: str) -> datetime:
    """Parse an export timestamp into a UTC-aware datetime.

    Naive timestamps are taken to be UTC.
    """
    stamp = pd.Timestamp(ts)
    if pd.isna(stamp):
        raise ValueError(f"Unparseable timestamp: {ts!r}")
    if stamp.tzinfo is None:
        stamp = stamp.tz_localize("UTC")
    else:
        stamp = stamp.tz_convert("UTC")
    return stamp.to_pydatetime()


def extract_track_id(uri: str) -> str:
    """Extract track ID from a Spotify URI (spotify:track:1234567890)."""
    return uri.split(":")[-1] or uri


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value)


def _is_valid_record(record: Any) -> bool:
    if not isinstance(record, Mapping):
        return False
    if not (
        isinstance(record.get("ts"), str)
        and _is_number(record.get("ms_played"))
        and isinstance(record.get("master_metadata_track_name"), str)
        and isinstance(record.get("master_metadata_album_artist_name"), str)
        and isinstance(record.get("spotify_track_uri"), str)
    ):
        return False
    if not record["spotify_track_uri"] or record["ms_played"] < 0:
        return False
    try:
        parse_timestamp(record["ts"])
    except (ValueError, TypeError, OverflowError):
        return False
    return True


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def normalize_record(record: Mapping[str, Any]) -> ListeningEvent:
    """Coerce a validated raw record into a ListeningEvent."""
    return ListeningEvent(
        ts=record["ts"],
        ms_played=int(record["ms_played"]),
        shuffle=bool(record.get("shuffle")),
        skipped=bool(record.get("skipped")),
        track_name=str(record.get("master_metadata_track_name") or UNKNOWN_TRACK),
        artist_name=str(record.get("master_metadata_album_artist_name") or UNKNOWN_ARTIST),
        track_uri=str(record["spotify_track_uri"]),
        platform=str(record.get("platform") or UNKNOWN_PLATFORM),
        album_name=_optional_str(record.get("master_metadata_album_album_name")),
        reason_start=_optional_str(record.get("reason_start")),
        reason_end=_optional_str(record.get("reason_end")),
    )


def _records_from_payload(payload: Payload) -> list:
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise FormatError(f"Invalid JSON: {e.msg} (line {e.lineno})")

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    raise FormatError("Invalid format: expected an array of listening events")


def parse_streaming_json(payload: Payload) -> Tuple[ListeningEvent, ...]:
    """
    Parse and validate a Spotify streaming history payload.

    Args:
        payload: JSON text/bytes, or an already decoded list (or dict with a
            ``data`` list) of raw records

    Returns:
        Normalized events in input order

    Raises:
        FormatError: If the payload is not array-shaped
    """
    records = _records_from_payload(payload)
    events = tuple(normalize_record(r) for r in records if _is_valid_record(r))

    dropped = len(records) - len(events)
    if dropped:
        logger.debug("Dropped %d malformed record(s) of %d", dropped, len(records))
    return events


def sort_events(events: Iterable[ListeningEvent]) -> Tuple[ListeningEvent, ...]:
    """Stable sort by parsed timestamp."""
    return tuple(sorted(events, key=lambda e: parse_timestamp(e.ts)))


def parse_multiple_files(payloads: Iterable[Payload]) -> Tuple[ListeningEvent, ...]:
    """Parse several payloads and combine them in chronological order."""
    all_events: List[ListeningEvent] = []
    for payload in payloads:
        all_events.extend(parse_streaming_json(payload))
    return sort_events(all_events)


def _expand_paths(paths: Sequence[Union[str, Path]]) -> List[Path]:
    files: List[Path] = []
    for p in map(Path, paths):
        if p.is_dir():
            found = set()
            for pattern in HISTORY_FILE_PATTERNS:
                found.update(p.glob(pattern))
            files.extend(sorted(found))
        else:
            files.append(p)
    return files


def load_history_files(paths: Sequence[Union[str, Path]]) -> Tuple[ListeningEvent, ...]:
    """
    Load streaming history from export files or export folders.

    Args:
        paths: JSON files, or folders containing ``Streaming_History_Audio_*.json``

    Returns:
        Normalized events from every file, sorted by timestamp
    """
    all_events: List[ListeningEvent] = []
    for f in _expand_paths(paths):
        text = f.read_text(encoding="utf-8")
        try:
            events = parse_streaming_json(text)
        except FormatError as e:
            raise FormatError(f"{f.name}: {e.message}") from e
        logger.info("Loaded %s events from %s", f"{len(events):,}", f.name)
        all_events.extend(events)
    return sort_events(all_events)


def get_date_range(events: Sequence[ListeningEvent]) -> Optional[DateRange]:
    """Earliest and latest timestamp, or None for no events."""
    if not events:
        return None
    stamps = [parse_timestamp(e.ts) for e in events]
    return DateRange(start=min(stamps), end=max(stamps))
