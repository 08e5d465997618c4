# main.py
# Entry point: replays a recorded GPS trace through a NavigationController.
# In production the location source is the device; here it is a CSV file.
#
# Usage:
#   python -m navigation.tracker.main route.json trace.csv --mode walk
#
# route.json is the format written by NavLogger.save_route(); trace.csv has
# columns lat, lon and optionally accuracy, timestamp.

import argparse
import logging
import sys
from typing import List, Optional, Sequence

import pandas as pd

from .emissions import format_emissions
from .location_source import SimulatedLocationSource, StaticDirectionsSource
from .models import Coord, LocationFix, NavigationSnapshot, TravelMode
from .nav_config import NavConfig
from .nav_logger import NavLogger
from .navigator import NavigationController, preview_route
from .rewards import InMemoryRewardGateway, RestRewardGateway

logger = logging.getLogger(__name__)


def load_trace(path: str) -> List[LocationFix]:
    """Read a GPS trace CSV into location fixes, skipping rows without coordinates."""
    df = pd.read_csv(path)
    missing = {"lat", "lon"} - set(df.columns)
    if missing:
        raise ValueError(f"{path}: missing column(s) {sorted(missing)}")

    df = df.dropna(subset=["lat", "lon"])
    fixes = []
    for row in df.itertuples(index=False):
        accuracy = getattr(row, "accuracy", None)
        timestamp = getattr(row, "timestamp", None)
        fixes.append(LocationFix(
            coord=Coord(float(row.lat), float(row.lon)),
            accuracy_m=None if accuracy is None or pd.isna(accuracy) else float(accuracy),
            timestamp=None if timestamp is None or pd.isna(timestamp) else float(timestamp),
        ))
    return fixes


def _print_snapshot(snapshot: NavigationSnapshot) -> None:
    if not snapshot.active:
        return
    flag = " [OFF ROUTE]" if snapshot.is_off_route else ""
    print(
        f"  step {snapshot.current_step_index + 1}/{snapshot.step_count} "
        f"{snapshot.current_instruction} | {int(snapshot.remaining_distance_m)} m, "
        f"{int(snapshot.remaining_time_s)} s left, {snapshot.emission_estimate_text}{flag}"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay a GPS trace against a saved route.")
    parser.add_argument("route", help="Route JSON written by NavLogger.save_route()")
    parser.add_argument("trace", help="CSV with lat, lon[, accuracy, timestamp]")
    parser.add_argument("--mode", choices=[m.value for m in TravelMode], default=TravelMode.WALK.value)
    parser.add_argument("--log-dir", default=None, help="Write nav_session.jsonl events here")
    parser.add_argument("--rest-rewards", action="store_true",
                        help="Record credits with the backend configured via NAV_REWARDS_* env vars")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    # ------------------------------------------------------------------
    # Logging setup: configured once here, all modules inherit
    # ------------------------------------------------------------------
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    args = build_parser().parse_args(argv)

    config = NavConfig.from_env()
    if args.log_dir:
        config.log_dir = args.log_dir
        config.event_log_enabled = True

    legs = NavLogger(config).load_route(args.route)
    if not legs:
        print(f"[Main] Could not load route from {args.route}")
        return 1

    fixes = load_trace(args.trace)
    if not fixes:
        print(f"[Main] Trace {args.trace} has no fixes")
        return 1

    mode = TravelMode(args.mode)
    preview = preview_route(legs, mode)
    print(f"[Main] {preview.distance_km:.2f} km, {int(preview.duration_s // 60)} min, "
          f"{preview.emissions_text} ({mode.value})")

    rewards = RestRewardGateway.from_config(config) if args.rest_rewards else InMemoryRewardGateway()
    source = SimulatedLocationSource(initial=fixes[0])
    nav = NavigationController(source, StaticDirectionsSource(legs), rewards, config=config)
    nav.subscribe(_print_snapshot)

    success, msg = nav.start(legs, mode)
    print(f"[Main] {msg}")
    if not success:
        nav.close()
        return 1

    print("\n--- GPS Replay Active ---")
    delivered = source.replay(fixes)
    trip = nav.trip_summary
    nav.close()

    print("\n--- Session complete ---")
    print(f"    Fixes replayed: {delivered}/{len(fixes)}")
    if trip is not None:
        print(f"    Arrived: {trip.reason}, {format_emissions(trip.carbon_grams)}")
    else:
        print("    Trace ended before arrival.")
    if isinstance(rewards, InMemoryRewardGateway):
        print(f"    Credits earned: {rewards.total_credits}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
