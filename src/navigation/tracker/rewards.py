# rewards.py
# Reward gateways: where trip-completion credits end up.
# RestRewardGateway writes to the hosted backend's `rewards` table through its
# PostgREST endpoint; InMemoryRewardGateway keeps a local tally.

import logging
import threading
from dataclasses import dataclass
from typing import List, Optional

import requests
from requests import Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import RewardGatewayError
from .nav_config import NavConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewardEntry:
    points: int
    reason: str


class InMemoryRewardGateway:
    """Thread-safe local credit ledger."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: List[RewardEntry] = []

    def record_trip_credits(self, points: int, reason: str) -> None:
        with self._lock:
            self._entries.append(RewardEntry(points=max(points, 0), reason=reason))
        logger.info(f"Recorded {points} credit(s): {reason}")

    @property
    def entries(self) -> List[RewardEntry]:
        with self._lock:
            return list(self._entries)

    @property
    def total_credits(self) -> int:
        with self._lock:
            return sum(e.points for e in self._entries)


def _build_retry() -> Retry:
    return Retry(
        total=3,
        backoff_factor=1.0,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["POST"],
    )


def create_rewards_session(api_key: str) -> Session:
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=_build_retry())
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update(
        {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Prefer": "return=minimal",
        }
    )
    return session


class RestRewardGateway:
    """
    Inserts one row per completed trip into the backend `rewards` table.

    Args:
        base_url: Project URL, e.g. https://<project>.supabase.co
        api_key:  Key sent as `apikey` and bearer token.
        user_id:  Owner of the reward rows; None means not signed in.
        timeout:  Request timeout in seconds.
        session:  Optional pre-built requests session.
    """

    TABLE_PATH = "/rest/v1/rewards"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        user_id: Optional[str],
        timeout: float = 10.0,
        session: Optional[Session] = None,
    ) -> None:
        self._url = base_url.rstrip("/") + self.TABLE_PATH
        self._user_id = user_id
        self._timeout = timeout
        self._session = session or create_rewards_session(api_key)

    @classmethod
    def from_config(cls, config: NavConfig) -> "RestRewardGateway":
        if not config.rewards_url or not config.rewards_api_key:
            raise RewardGatewayError("rewards_url and rewards_api_key must be configured.")
        return cls(
            base_url=config.rewards_url,
            api_key=config.rewards_api_key,
            user_id=config.rewards_user_id,
            timeout=config.request_timeout_s,
        )

    def record_trip_credits(self, points: int, reason: str) -> None:
        if not self._user_id:
            raise RewardGatewayError("Not signed in; cannot record trip credits.")

        payload = {
            "user_id": self._user_id,
            "name": reason,
            "cost": int(points),
            "description": None,
        }
        try:
            response = self._session.post(self._url, json=payload, timeout=self._timeout)
        except requests.RequestException as exc:
            raise RewardGatewayError(f"Reward request failed: {exc}") from exc

        if response.status_code >= 400:
            raise RewardGatewayError(
                f"Reward insert rejected (HTTP {response.status_code}): {response.text[:200]}"
            )
        logger.info(f"Recorded {points} credit(s) with backend: {reason}")
