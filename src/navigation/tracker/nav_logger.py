# nav_logger.py
# Route and session-event persistence for the tracker.
# Routes are one JSON document (list of legs); events are appended as JSON lines.

import json
import os
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from .models import LocationFix, ProgressResult, RouteLeg
from .nav_config import NavConfig

# Configured by the entry point
logger = logging.getLogger(__name__)


class NavLogger:
    """
    Persists route legs and navigation events to JSON files.

    Args:
        config: NavConfig supplying log_dir, route_filename and event_filepath.
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        os.makedirs(self.config.log_dir, exist_ok=True)

    # ------------------------------------------------------------------
    # Route persistence
    # ------------------------------------------------------------------

    def save_route(self, legs: Sequence[RouteLeg], filepath: Optional[str] = None) -> bool:
        """
        Serialize route legs to JSON.

        Args:
            legs:     Route legs in travel order.
            filepath: Path override; uses config default if omitted.

        Returns:
            True on success, False on failure.
        """
        path = filepath or self.config.route_filepath
        try:
            data = {
                "saved_at": datetime.now().isoformat(),
                "leg_count": len(legs),
                "legs": [leg.to_dict() for leg in legs],
            }
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            logger.info(f"Route saved to {path} ({len(legs)} legs).")
            return True
        except IOError as e:
            logger.error(f"Failed to save route to {path}: {e}")
            return False

    def load_route(self, filepath: Optional[str] = None) -> Optional[List[RouteLeg]]:
        """
        Load previously saved route legs from JSON.

        Args:
            filepath: Path override; uses config default if omitted.

        Returns:
            List of RouteLeg objects, or None if loading failed.
        """
        path = filepath or self.config.route_filepath
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            legs = [RouteLeg.from_dict(d) for d in data["legs"]]
            logger.info(f"Route loaded from {path} ({len(legs)} legs).")
            return legs
        except (IOError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Failed to load route from {path}: {e}")
            return None

    # ------------------------------------------------------------------
    # Session event logging
    # ------------------------------------------------------------------

    def log_event(self, result: ProgressResult, fix: LocationFix) -> None:
        """
        Append a single navigation event to the session log file.

        Args:
            result: ProgressResult from RouteTracker.
            fix:    The location fix that produced it.
        """
        snapshot = result.snapshot
        entry = {
            "timestamp": datetime.now().isoformat(),
            "lat": fix.coord.lat,
            "lon": fix.coord.lon,
            "status": result.status.value,
            "message": result.message,
            "step_index": snapshot.current_step_index,
            "remaining_m": round(snapshot.remaining_distance_m, 1),
            "remaining_s": round(snapshot.remaining_time_s, 1),
            "off_route": snapshot.is_off_route,
            "timing": snapshot.instruction_timing.value,
            "emission_g": round(snapshot.emission_estimate_g, 1),
        }
        try:
            with open(self.config.event_filepath, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except IOError as e:
            logger.error(f"Failed to write event log: {e}")
