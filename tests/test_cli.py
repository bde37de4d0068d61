"""CLI smoke tests."""

import json
from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest

from spotiprofile.cli import main
from spotiprofile.models import ListenerProfile

START = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def history_dir(tmp_path):
    records = [{
        "ts": (START + timedelta(minutes=4 * i)).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "ms_played": 200_000 if i % 4 else 10_000,
        "shuffle": bool(i % 2),
        "skipped": False,
        "master_metadata_track_name": f"Song {i % 5}",
        "master_metadata_album_artist_name": f"Artist {i % 3}",
        "spotify_track_uri": f"spotify:track:id{i % 5}",
        "platform": "web",
    } for i in range(20)]
    folder = tmp_path / "export"
    folder.mkdir()
    (folder / "Streaming_History_Audio_2024.json").write_text(json.dumps(records), encoding="utf-8")
    return folder


def test_analyze_writes_profile(history_dir, tmp_path, capsys):
    out = tmp_path / "out" / "profile.json"
    code = main(["analyze", str(history_dir), "--out", str(out), "--log-level", "WARNING"])

    assert code == 0
    printed = capsys.readouterr().out
    assert "Listening:" in printed
    assert "Profile written" in printed

    profile = ListenerProfile.from_json(out.read_text(encoding="utf-8"))
    # Every fourth play is too short
    assert profile.total_listens == 15


def test_min_play_override(history_dir, capsys):
    assert main(["analyze", str(history_dir), "--min-play-ms", "1000", "--log-level", "ERROR"]) == 0
    assert "20 plays" in capsys.readouterr().out


@pytest.mark.parametrize("table, rows", [("events", 15), ("sessions", 1), ("heatmap", 7)])
def test_export_tables(history_dir, tmp_path, table, rows):
    out = tmp_path / f"{table}.csv"
    code = main(["export", str(history_dir), "--table", table, "--out", str(out), "--log-level", "ERROR"])
    assert code == 0
    df = pd.read_csv(out)
    assert len(df) == rows


def test_bad_input_returns_error_code(tmp_path, capsys):
    bad = tmp_path / "bad.json"
    bad.write_text('{"oops": true}', encoding="utf-8")
    assert main(["analyze", str(bad), "--log-level", "ERROR"]) == 1
    assert "normalize" in capsys.readouterr().err
