"""
Configuration for the analysis pipeline.

All thresholds live on ``AnalyticsConfig`` so that a run is reproducible and
every rule can be tested with explicit values. Values can be overridden from
the environment (or a ``.env`` file) with ``SPOTIPROFILE_<FIELD_NAME>``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import pandas as pd
from dotenv import load_dotenv

from .errors import ConfigurationError

ENV_PREFIX = "SPOTIPROFILE_"

# Category -> synonyms. Order matters: the first category whose synonym is
# contained in a tag wins.
GENRE_MAPPING: Dict[str, Tuple[str, ...]] = {
    "pop": ("pop", "dance pop", "electropop", "synth-pop"),
    "rock": ("rock", "indie rock", "alternative rock", "classic rock"),
    "hip-hop": ("hip hop", "rap", "trap", "conscious hip hop"),
    "electronic": ("electronic", "edm", "house", "techno", "dubstep"),
    "r&b": ("r&b", "contemporary r&b", "soul", "neo soul"),
    "indie": ("indie", "indie pop", "indie folk"),
    "jazz": ("jazz", "contemporary jazz", "smooth jazz"),
    "classical": ("classical", "modern classical", "baroque"),
    "country": ("country", "contemporary country", "country road"),
    "folk": ("folk", "folk rock", "americana"),
    "metal": ("metal", "heavy metal", "death metal", "metalcore"),
    "latin": ("latin", "reggaeton", "latin pop", "salsa"),
}


def parse_int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def parse_float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def parse_bool_env(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class AnalyticsConfig:
    # Cleaning
    min_play_duration_ms: int = 30_000
    session_gap_ms: int = 30 * 60 * 1000

    # Active listening
    assumed_track_duration_ms: int = 180_000
    active_threshold: float = 0.8
    skip_penalty: float = 0.3
    shuffle_penalty: float = 0.1

    # Metrics
    time_zone: str = "UTC"
    top_items_limit: int = 10
    streak_min_length: int = 3
    use_fallback_genres: bool = True

    # Loyalty thresholds
    high_top_artist_threshold: float = 0.5
    low_exploration_threshold: float = 0.3

    # Classification
    secondary_threshold: float = 0.3

    # External collaborators
    batch_size: int = 50
    max_concurrent_batches: int = 3
    batch_cooldown: float = 0.5
    max_retries: int = 3
    retry_delay: float = 1.0
    nationality_delay: float = 0.1

    def __post_init__(self):
        if self.batch_size <= 0:
            raise ConfigurationError("batch_size must be positive")
        if self.max_concurrent_batches <= 0:
            raise ConfigurationError("max_concurrent_batches must be positive")
        if self.max_retries <= 0:
            raise ConfigurationError("max_retries must be positive")
        if self.assumed_track_duration_ms <= 0:
            raise ConfigurationError("assumed_track_duration_ms must be positive")
        try:
            pd.Timestamp(0, tz=self.time_zone)
        except (KeyError, ValueError, TypeError):
            raise ConfigurationError(f"Unknown time_zone {self.time_zone!r}")

    def with_overrides(self, **overrides) -> "AnalyticsConfig":
        return replace(self, **overrides)

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> "AnalyticsConfig":
        """
        Build a config from ``SPOTIPROFILE_*`` environment variables.

        Args:
            env_file: Optional .env file loaded before reading the environment

        Returns:
            AnalyticsConfig with defaults for every variable that is not set
        """
        if env_file is not None:
            env_path = Path(env_file)
            if env_path.exists():
                load_dotenv(env_path)
        else:
            load_dotenv()

        defaults = cls()
        values = {}
        for f in fields(cls):
            name = ENV_PREFIX + f.name.upper()
            default = getattr(defaults, f.name)
            if isinstance(default, bool):
                values[f.name] = parse_bool_env(name, default)
            elif isinstance(default, str):
                values[f.name] = (os.environ.get(name) or "").strip() or default
            elif isinstance(default, int):
                values[f.name] = parse_int_env(name, default)
            else:
                values[f.name] = parse_float_env(name, default)
        return cls(**values)


DEFAULT_CONFIG = AnalyticsConfig()
