from __future__ import annotations
from pathlib import Path
from typing import Sequence

import pandas as pd

from .metrics import events_to_frame, heatmap_frame
from .models import CountryCount, EnrichedEvent, HeatmapCell, Session

AVAILABLE_TABLES = ["events", "sessions", "heatmap"]


def events_table(events: Sequence[EnrichedEvent]) -> pd.DataFrame:
    df = events_to_frame(events)
    # Parquet can't store tuples
    df["genres"] = df["genres"].map(list)
    return df


def sessions_table(sessions: Sequence[Session]) -> pd.DataFrame:
    return pd.DataFrame(
        [{
            "session_id": s.id,
            "start_time": s.start_time,
            "end_time": s.end_time,
            "duration_ms": s.duration_ms,
            "total_listening_ms": s.total_listening_ms,
            "track_count": s.track_count,
            "average_active_score": s.average_active_score,
        } for s in sessions],
        columns=[
            "session_id", "start_time", "end_time", "duration_ms",
            "total_listening_ms", "track_count", "average_active_score",
        ],
    )


def heatmap_table(cells: Sequence[HeatmapCell]) -> pd.DataFrame:
    """7 x 24 heatmap as a tidy table: one row per day, one column per hour."""
    grid = heatmap_frame(cells)
    grid.columns = [str(h) for h in grid.columns]
    return grid.reset_index()


def countries_table(countries: Sequence[CountryCount]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"country": c.country, "iso": c.iso, "count": c.count} for c in countries],
        columns=["country", "iso", "count"],
    )


def export_table(df: pd.DataFrame, out: str) -> str:
    p = Path(out)
    p.parent.mkdir(parents=True, exist_ok=True)
    if p.suffix.lower() in [".parquet", ".pq"]:
        df.to_parquet(p, index=False)
    elif p.suffix.lower() == ".csv":
        df.to_csv(p, index=False)
    else:
        # default parquet
        df.to_parquet(p.with_suffix(".parquet"), index=False)
        return str(p.with_suffix(".parquet"))
    return str(p)
