"""
Record types flowing through the analysis pipeline.

Every stage returns new frozen records; collections are tuples so a later
stage can never modify what an earlier stage produced.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class ListeningEvent:
    """A normalized play event. Cleaned events use the same type."""
    ts: str
    ms_played: int
    shuffle: bool
    skipped: bool
    track_name: str
    artist_name: str
    track_uri: str
    platform: str = "unknown"
    album_name: Optional[str] = None
    reason_start: Optional[str] = None
    reason_end: Optional[str] = None


@dataclass(frozen=True)
class EnrichedEvent:
    """A cleaned event plus derived per-event fields."""
    ts: str
    ms_played: int
    shuffle: bool
    skipped: bool
    track_name: str
    artist_name: str
    track_uri: str
    timestamp: datetime
    track_id: str
    completion_ratio: float
    is_active: bool
    genres: Tuple[str, ...] = ()
    duration_ms: Optional[int] = None
    platform: str = "unknown"
    album_name: Optional[str] = None
    reason_start: Optional[str] = None
    reason_end: Optional[str] = None

    @classmethod
    def from_event(cls, event: ListeningEvent, **derived: Any) -> "EnrichedEvent":
        base = {f.name: getattr(event, f.name) for f in fields(ListeningEvent)}
        base.update(derived)
        return cls(**base)


@dataclass(frozen=True)
class Session:
    id: str
    start_time: datetime
    end_time: datetime
    events: Tuple[EnrichedEvent, ...]
    duration_ms: int
    total_listening_ms: int
    track_count: int
    average_active_score: float


@dataclass(frozen=True)
class CleaningStats:
    original_count: int
    filtered_count: int
    removed_short: int
    removed_duplicates: int
    session_count: int = 0


@dataclass(frozen=True)
class TrackCount:
    track: str
    artist: str
    count: int


@dataclass(frozen=True)
class ArtistStreak:
    artist: str
    length: int
    start_time: datetime


@dataclass(frozen=True)
class RepeatMetrics:
    total_repeats: int
    repeat_rate: float
    most_repeated_tracks: Tuple[TrackCount, ...]
    average_time_between_repeats: float
    same_artist_streaks: Tuple[ArtistStreak, ...]


@dataclass(frozen=True)
class LoyaltyScore:
    top_artist_percentage: float
    unique_artists_per_week: float
    gini_coefficient: float
    exploration_score: float
    loyalty_label: str


@dataclass(frozen=True)
class GenreShare:
    genre: str
    count: int
    percentage: float


@dataclass(frozen=True)
class GenreDay:
    date: datetime
    genres: Dict[str, int]


@dataclass(frozen=True)
class GenreStats:
    distribution: Tuple[GenreShare, ...] = ()
    top_genres: Tuple[str, ...] = ()
    genre_diversity: float = 0.0
    genre_evolution: Tuple[GenreDay, ...] = ()
    genre_by_time_of_day: Dict[int, Dict[str, int]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.distribution


@dataclass(frozen=True)
class BehavioralMetrics:
    active_score: float
    shuffle_rate: float
    skip_rate: float
    average_completion_ratio: float
    average_session_length: float
    repeat_metrics: RepeatMetrics
    loyalty_score: LoyaltyScore
    genre_stats: GenreStats


@dataclass(frozen=True)
class ListenerArchetype:
    primary: str
    confidence: float
    traits: Tuple[str, ...]
    description: str
    secondary: Optional[str] = None


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class ArtistSummary:
    name: str
    count: int
    genres: Tuple[str, ...]


@dataclass(frozen=True)
class HeatmapCell:
    day: int  # 0 = Sunday
    hour: int
    count: int


@dataclass(frozen=True)
class TrackMetadata:
    """What the metadata provider knows about one track."""
    genres: Tuple[str, ...] = ()
    duration_ms: Optional[int] = None


@dataclass(frozen=True)
class Nationality:
    country: str
    iso: str  # ISO-3166 numeric


@dataclass(frozen=True)
class CountryCount:
    country: str
    iso: str
    count: int


@dataclass(frozen=True)
class ListenerProfile:
    total_listens: int
    total_hours: float
    date_range: DateRange
    metrics: BehavioralMetrics
    archetype: ListenerArchetype
    top_artists: Tuple[ArtistSummary, ...]
    top_tracks: Tuple[TrackCount, ...]

    def to_dict(self) -> Dict[str, Any]:
        """Plain nested dict; datetimes become ISO-8601 UTC strings."""
        return _jsonable(asdict(self))

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), **kwargs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ListenerProfile":
        metrics = data["metrics"]
        repeat = metrics["repeat_metrics"]
        loyalty = metrics["loyalty_score"]
        genre = metrics["genre_stats"]
        archetype = data["archetype"]

        return cls(
            total_listens=int(data["total_listens"]),
            total_hours=float(data["total_hours"]),
            date_range=DateRange(
                start=_parse_iso(data["date_range"]["start"]),
                end=_parse_iso(data["date_range"]["end"]),
            ),
            metrics=BehavioralMetrics(
                active_score=float(metrics["active_score"]),
                shuffle_rate=float(metrics["shuffle_rate"]),
                skip_rate=float(metrics["skip_rate"]),
                average_completion_ratio=float(metrics["average_completion_ratio"]),
                average_session_length=float(metrics["average_session_length"]),
                repeat_metrics=RepeatMetrics(
                    total_repeats=int(repeat["total_repeats"]),
                    repeat_rate=float(repeat["repeat_rate"]),
                    most_repeated_tracks=tuple(TrackCount(**t) for t in repeat["most_repeated_tracks"]),
                    average_time_between_repeats=float(repeat["average_time_between_repeats"]),
                    same_artist_streaks=tuple(
                        ArtistStreak(s["artist"], int(s["length"]), _parse_iso(s["start_time"]))
                        for s in repeat["same_artist_streaks"]
                    ),
                ),
                loyalty_score=LoyaltyScore(**loyalty),
                genre_stats=GenreStats(
                    distribution=tuple(GenreShare(**g) for g in genre["distribution"]),
                    top_genres=tuple(genre["top_genres"]),
                    genre_diversity=float(genre["genre_diversity"]),
                    genre_evolution=tuple(
                        GenreDay(_parse_iso(d["date"]), dict(d["genres"]))
                        for d in genre["genre_evolution"]
                    ),
                    genre_by_time_of_day={
                        int(hour): dict(counts)
                        for hour, counts in genre["genre_by_time_of_day"].items()
                    },
                ),
            ),
            archetype=ListenerArchetype(
                primary=archetype["primary"],
                confidence=float(archetype["confidence"]),
                traits=tuple(archetype["traits"]),
                description=archetype["description"],
                secondary=archetype.get("secondary"),
            ),
            top_artists=tuple(
                ArtistSummary(a["name"], int(a["count"]), tuple(a["genres"]))
                for a in data["top_artists"]
            ),
            top_tracks=tuple(TrackCount(**t) for t in data["top_tracks"]),
        )

    @classmethod
    def from_json(cls, text: str) -> "ListenerProfile":
        return cls.from_dict(json.loads(text))


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _parse_iso(text: str) -> datetime:
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
