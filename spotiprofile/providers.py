"""
Track metadata providers.

A provider answers ``fetch_batch(track_ids)`` with whatever it knows about
those tracks (genres, true durations). ``fetch_track_metadata`` drives a
provider over any number of ids: batches of ``batch_size`` run in waves of at
most ``max_concurrent_batches`` concurrent calls, with a cooldown between
waves and retries on every call.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Union

import spotipy
from dotenv import load_dotenv
from spotipy.oauth2 import SpotifyClientCredentials
from tqdm import tqdm

from .config import DEFAULT_CONFIG, AnalyticsConfig
from .errors import ConfigurationError, ExternalServiceError
from .models import TrackMetadata
from .ratelimit import RateLimiter, retry_call
from .utils import chunks

logger = logging.getLogger(__name__)

SPOTIFY_MAX_IDS = 50  # Max ids per /tracks and /artists request


class MetadataProvider(Protocol):
    def fetch_batch(self, track_ids: Sequence[str]) -> Dict[str, TrackMetadata]:
        """Metadata for the given ids. Unknown ids may be left out."""
        ...


class SpotifyMetadataProvider:
    """
    Metadata from the Spotify Web API via spotipy.

    Track genres are the union of the genres of the track's artists, in
    artist order.

    Usage:
        sp = spotify_client_from_env()
        provider = SpotifyMetadataProvider(sp)
        provider.fetch_batch(["4uLU6hMCjMI75M1A2tKUQC"])
    """

    def __init__(self, sp: spotipy.Spotify, limiter: Optional[RateLimiter] = None):
        self.sp = sp
        self.limiter = limiter

    def _call(self, func, *args):
        if self.limiter is None:
            return func(*args)
        return self.limiter.call(func, *args)

    def _artist_genres(self, artist_ids: List[str]) -> Dict[str, List[str]]:
        genres: Dict[str, List[str]] = {}
        for batch in chunks(artist_ids, SPOTIFY_MAX_IDS):
            response = self._call(self.sp.artists, batch) or {}
            for artist in response.get("artists") or []:
                if artist and artist.get("id"):
                    genres[artist["id"]] = list(artist.get("genres") or [])
        return genres

    def fetch_batch(self, track_ids: Sequence[str]) -> Dict[str, TrackMetadata]:
        tracks = []
        for batch in chunks(list(track_ids), SPOTIFY_MAX_IDS):
            response = self._call(self.sp.tracks, batch) or {}
            tracks.extend(t for t in response.get("tracks") or [] if t and t.get("id"))

        artist_ids = list(dict.fromkeys(
            a["id"] for t in tracks for a in t.get("artists") or [] if a and a.get("id")
        ))
        artist_genres = self._artist_genres(artist_ids)

        result: Dict[str, TrackMetadata] = {}
        for track in tracks:
            genres: Dict[str, None] = {}
            for artist in track.get("artists") or []:
                if artist and artist.get("id"):
                    genres.update(dict.fromkeys(artist_genres.get(artist["id"], [])))
            duration = track.get("duration_ms")
            result[track["id"]] = TrackMetadata(
                genres=tuple(genres),
                duration_ms=int(duration) if duration else None,
            )
        return result


def spotify_client_from_env(env_file: Optional[Union[str, Path]] = None) -> spotipy.Spotify:
    """
    Build a client-credentials Spotify client.

    Reads SPOTIPY_CLIENT_ID and SPOTIPY_CLIENT_SECRET from the environment
    (after loading ``env_file`` or a ``.env`` in the working directory).

    Raises:
        ConfigurationError: If either credential is missing
    """
    if env_file is not None:
        load_dotenv(Path(env_file))
    else:
        load_dotenv()

    client_id = os.environ.get("SPOTIPY_CLIENT_ID")
    client_secret = os.environ.get("SPOTIPY_CLIENT_SECRET")
    if not all([client_id, client_secret]):
        raise ConfigurationError(
            "Missing SPOTIPY_CLIENT_ID or SPOTIPY_CLIENT_SECRET. "
            "Set them in environment variables or .env file."
        )

    auth = SpotifyClientCredentials(client_id=client_id, client_secret=client_secret)
    # Retries are handled by retry_call
    return spotipy.Spotify(auth_manager=auth, retries=0, status_retries=0)


def _waves(batches: List[List[str]], size: int) -> Iterable[List[List[str]]]:
    for i in range(0, len(batches), size):
        yield batches[i:i + size]


def fetch_track_metadata(
    provider: MetadataProvider,
    track_ids: Iterable[str],
    config: AnalyticsConfig = DEFAULT_CONFIG,
    cancel_event: Optional[threading.Event] = None,
    progress: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, TrackMetadata]:
    """
    Fetch metadata for many tracks in concurrent, rate limited waves.

    Args:
        provider: Anything with ``fetch_batch(track_ids)``
        track_ids: Track ids; duplicates and empty ids are ignored
        config: Batch size, concurrency, cooldown and retry settings
        cancel_event: When set, no further waves are started
        progress: Show a tqdm progress bar
        sleep: Sleep function, replaceable in tests

    Returns:
        Merged metadata keyed by track id (partial if cancelled)

    Raises:
        ExternalServiceError: If a batch still fails after retries. ``partial``
            holds the metadata of every batch that succeeded.
    """
    ids = list(dict.fromkeys(t for t in track_ids if t))
    batches = list(chunks(ids, config.batch_size))
    merged: Dict[str, TrackMetadata] = {}
    if not batches:
        return merged

    logger.info(
        "Fetching metadata for %d tracks in %d batches (%d concurrent)",
        len(ids), len(batches), config.max_concurrent_batches,
    )

    def _fetch(batch: List[str]) -> Dict[str, TrackMetadata]:
        return retry_call(
            provider.fetch_batch, batch,
            max_retries=config.max_retries,
            delay=config.retry_delay,
            sleep=sleep,
        )

    with ThreadPoolExecutor(max_workers=config.max_concurrent_batches) as executor, \
            tqdm(total=len(ids), desc="  Fetching metadata", unit="track",
                 ncols=100, leave=False, disable=not progress) as pbar:
        for wave_no, wave in enumerate(_waves(batches, config.max_concurrent_batches)):
            if wave_no > 0 and config.batch_cooldown > 0:
                sleep(config.batch_cooldown)
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Metadata fetch cancelled after %d tracks", len(merged))
                break

            futures = [executor.submit(_fetch, batch) for batch in wave]

            # Merge only after the whole wave has resolved
            results: List[Dict[str, TrackMetadata]] = []
            failed: List[ExternalServiceError] = []
            failed_ids = 0
            for batch, future in zip(wave, futures):
                try:
                    results.append(future.result())
                except ExternalServiceError as e:
                    failed.append(e)
                    failed_ids += len(batch)
                finally:
                    pbar.update(len(batch))

            for result in results:
                merged.update(result)

            if failed:
                raise ExternalServiceError(
                    f"{len(failed)} metadata batch(es) failed: {failed[0].message}",
                    affected=failed_ids,
                    partial=merged,
                    cause=failed[0].cause,
                )

    logger.info("Fetched metadata for %d of %d tracks", len(merged), len(ids))
    return merged
