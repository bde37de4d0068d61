#!/usr/bin/env python3
"""
spotiprofile Quickstart Example

Request your "Extended streaming history" from Spotify's privacy page and
unzip it into ./my_spotify_data. To enrich plays with genres and real track
durations, also set:
    export SPOTIPY_CLIENT_ID="your_client_id"
    export SPOTIPY_CLIENT_SECRET="your_client_secret"
"""

import os

from spotiprofile import (
    SpotifyMetadataProvider,
    analyze_history,
    load_history_files,
    setup_logging,
    spotify_client_from_env,
)
from spotiprofile.metrics import heatmap_frame

setup_logging(log_level="INFO")

# Load every Streaming_History_Audio_*.json in the folder
events = load_history_files(["my_spotify_data"])

# Genres and durations come from the Spotify API when credentials are set
provider = None
if os.environ.get("SPOTIPY_CLIENT_ID"):
    provider = SpotifyMetadataProvider(spotify_client_from_env())

result = analyze_history(events, provider=provider, progress=True)
profile = result.profile

print(f"\n🎧 You are a {profile.archetype.primary}")
print(f"   {profile.archetype.description}")

print(f"\n📊 Your Listening:")
print(f"   • {profile.total_listens:,} plays")
print(f"   • {profile.total_hours:,.0f} hours")
print(f"   • {len(result.sessions):,} sessions")

print(f"\n🎤 Top artists:")
for artist in profile.top_artists[:5]:
    print(f"   • {artist.name} ({artist.count:,} plays)")

# Day x hour heatmap as a DataFrame
grid = heatmap_frame(result.heatmap)
print(f"\n🕒 Busiest hour: {grid.sum().idxmax()}:00")

# Save the whole profile
with open("profile.json", "w", encoding="utf-8") as f:
    f.write(profile.to_json(indent=2))
