# nav_config.py
# All tuneable constants in one place.
# Pass a NavConfig instance to every module that needs settings.

import os
from dataclasses import dataclass
from typing import Optional


# ---------------------------------------------------------------------------
# Tracking thresholds (metres)
# ---------------------------------------------------------------------------

STEP_ADVANCE_THRESHOLD_M: float = 35.0
OFF_ROUTE_THRESHOLD_M: float = 50.0
ARRIVAL_THRESHOLD_M: float = 30.0
RECALC_DISTANCE_M: float = 80.0

INSTRUCTION_NOW_M: float = 50.0
INSTRUCTION_UPCOMING_M: float = 200.0
INSTRUCTION_PREPARE_M: float = 500.0


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class NavConfig:
    # Progress tracking
    step_advance_threshold_m: float = STEP_ADVANCE_THRESHOLD_M   # step end → next step
    off_route_threshold_m: float = OFF_ROUTE_THRESHOLD_M         # distance to any leg polyline
    arrival_threshold_m: float = ARRIVAL_THRESHOLD_M             # distance to destination
    recalc_distance_m: float = RECALC_DISTANCE_M                 # periodic refresh while on-route

    # Instruction timing tiers
    instruction_now_m: float = INSTRUCTION_NOW_M
    instruction_upcoming_m: float = INSTRUCTION_UPCOMING_M
    instruction_prepare_m: float = INSTRUCTION_PREPARE_M

    # Logging
    log_dir: str = "."                     # directory for saved JSON files
    route_filename: str = "active_route.json"
    event_log_enabled: bool = False        # append per-update JSONL events

    # Rewards backend (PostgREST)
    rewards_url: Optional[str] = None
    rewards_api_key: Optional[str] = None
    rewards_user_id: Optional[str] = None
    request_timeout_s: float = 10.0

    @property
    def route_filepath(self) -> str:
        return os.path.join(self.log_dir, self.route_filename)

    @property
    def event_filepath(self) -> str:
        return os.path.join(self.log_dir, "nav_session.jsonl")

    @classmethod
    def from_env(cls) -> "NavConfig":
        """Build a config from NAV_* environment variables, falling back to defaults."""
        return cls(
            step_advance_threshold_m=_env_float("NAV_STEP_ADVANCE_THRESHOLD_M", STEP_ADVANCE_THRESHOLD_M),
            off_route_threshold_m=_env_float("NAV_OFF_ROUTE_THRESHOLD_M", OFF_ROUTE_THRESHOLD_M),
            arrival_threshold_m=_env_float("NAV_ARRIVAL_THRESHOLD_M", ARRIVAL_THRESHOLD_M),
            recalc_distance_m=_env_float("NAV_RECALC_DISTANCE_M", RECALC_DISTANCE_M),
            log_dir=os.getenv("NAV_LOG_DIR", "."),
            event_log_enabled=_env_bool("NAV_EVENT_LOG_ENABLED", False),
            rewards_url=os.getenv("NAV_REWARDS_URL") or None,
            rewards_api_key=os.getenv("NAV_REWARDS_API_KEY") or None,
            rewards_user_id=os.getenv("NAV_REWARDS_USER_ID") or None,
            request_timeout_s=_env_float("NAV_REQUEST_TIMEOUT_S", 10.0),
        )
