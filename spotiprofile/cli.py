"""
spotiprofile CLI - Analyze a Spotify streaming history export.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from .config import AnalyticsConfig
from .errors import SpotiprofileError
from .export import (
    AVAILABLE_TABLES,
    countries_table,
    events_table,
    export_table,
    heatmap_table,
    sessions_table,
)
from .log import setup_logging
from .nationality import NationalityResolver, calculate_country_distribution, default_strategies
from .parser import load_history_files
from .pipeline import AnalysisResult, analyze_history
from .providers import SpotifyMetadataProvider, spotify_client_from_env


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="spotiprofile",
        description="Turn your Spotify streaming history into a listener profile.",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("files", nargs="+", help="Streaming history JSON files or export folders.")
    common.add_argument("--enrich", action="store_true",
                        help="Fetch genres and track durations from Spotify (needs SPOTIPY_CLIENT_ID/SECRET).")
    common.add_argument("--min-play-ms", type=int, default=None,
                        help="Drop plays shorter than this (default: 30000).")
    common.add_argument("--env-file", default=None, help="Optional .env file with settings.")
    common.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    # Analyze command
    ap_analyze = sub.add_parser("analyze", parents=[common], help="Print a listener profile summary.")
    ap_analyze.add_argument("--out", default=None, help="Write the profile as JSON to this path.")
    ap_analyze.add_argument("--countries", action="store_true",
                            help="Resolve artist countries (Wikidata / MusicBrainz).")

    # Export command
    ap_export = sub.add_parser("export", parents=[common], help="Export a table to disk.")
    ap_export.add_argument("--table", required=True, choices=AVAILABLE_TABLES + ["countries"],
                           help="Which table to export.")
    ap_export.add_argument("--out", required=True, help="Output path (.parquet or .csv)")

    return ap


def _run(args: argparse.Namespace) -> Tuple[AnalyticsConfig, AnalysisResult]:
    config = AnalyticsConfig.from_env(args.env_file)
    if args.min_play_ms is not None:
        config = config.with_overrides(min_play_duration_ms=args.min_play_ms)

    provider = None
    if args.enrich:
        provider = SpotifyMetadataProvider(spotify_client_from_env(args.env_file))

    events = load_history_files(args.files)
    return config, analyze_history(events, provider=provider, config=config, progress=args.enrich)


def _resolver(config: AnalyticsConfig) -> NationalityResolver:
    return NationalityResolver(default_strategies(), delay=config.nationality_delay)


def _print_summary(result: AnalysisResult) -> None:
    p = result.profile
    m = p.metrics
    stats = result.cleaning_stats

    print(f"\n🎧 {p.archetype.primary}" + (f" / {p.archetype.secondary}" if p.archetype.secondary else ""))
    print(f"   {p.archetype.description}")
    print(f"   Traits: {', '.join(p.archetype.traits)} (confidence {p.archetype.confidence:.0%})")

    print(f"\n📊 Listening:")
    print(f"   • {p.total_listens:,} plays ({stats.original_count - stats.filtered_count:,} filtered out)")
    print(f"   • {p.total_hours:,.1f} hours in {stats.session_count:,} sessions")
    print(f"   • {p.date_range.start:%Y-%m-%d} → {p.date_range.end:%Y-%m-%d}")
    print(f"   • Active score {m.active_score:.2f}, shuffle {m.shuffle_rate:.0%}, skip {m.skip_rate:.0%}")
    print(f"   • Loyalty: {m.loyalty_score.loyalty_label} (gini {m.loyalty_score.gini_coefficient:.2f})")

    if p.top_artists:
        print(f"\n🎤 Top artists:")
        for a in p.top_artists[:5]:
            print(f"   • {a.name} ({a.count:,})")
    if m.genre_stats.top_genres:
        print(f"\n🎼 Top genres: {', '.join(m.genre_stats.top_genres[:5])}")

    if result.enrichment_error is not None:
        print(f"\n⚠️  Enrichment incomplete: {result.enrichment_error.message}")


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(log_level=args.log_level)

    try:
        config, result = _run(args)

        if args.cmd == "analyze":
            _print_summary(result)
            if args.countries:
                countries = calculate_country_distribution(result.events, _resolver(config))
                print(f"\n🌍 Countries:")
                for c in countries[:10]:
                    print(f"   • {c.country} ({c.count:,})")
            if args.out:
                Path(args.out).parent.mkdir(parents=True, exist_ok=True)
                Path(args.out).write_text(result.profile.to_json(indent=2), encoding="utf-8")
                print(f"\n✅ Profile written to {args.out}")
            return 0

        if args.cmd == "export":
            if args.table == "events":
                df = events_table(result.events)
            elif args.table == "sessions":
                df = sessions_table(result.sessions)
            elif args.table == "heatmap":
                df = heatmap_table(result.heatmap)
            else:
                df = countries_table(calculate_country_distribution(result.events, _resolver(config)))
            path = export_table(df, args.out)
            print(f"✅ Exported {len(df):,} rows to {path}")
            return 0
    except SpotiprofileError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
