from unittest.mock import Mock

import pytest
import requests

from navigation.tracker.errors import RewardGatewayError
from navigation.tracker.nav_config import NavConfig
from navigation.tracker.rewards import (
    InMemoryRewardGateway,
    RestRewardGateway,
    RewardEntry,
    create_rewards_session,
)


def make_gateway(status_code=201, user_id="user-123", side_effect=None):
    session = Mock()
    if side_effect is not None:
        session.post.side_effect = side_effect
    else:
        session.post.return_value = Mock(status_code=status_code, text="details")
    gateway = RestRewardGateway(
        base_url="https://example.supabase.co/",
        api_key="anon-key",
        user_id=user_id,
        timeout=5.0,
        session=session,
    )
    return gateway, session


def test_record_trip_credits_posts_reward_row():
    gateway, session = make_gateway()
    gateway.record_trip_credits(3, "Trip 4.20 km")

    session.post.assert_called_once_with(
        "https://example.supabase.co/rest/v1/rewards",
        json={"user_id": "user-123", "name": "Trip 4.20 km", "cost": 3, "description": None},
        timeout=5.0,
    )


def test_rejected_insert_raises():
    gateway, _ = make_gateway(status_code=400)
    with pytest.raises(RewardGatewayError, match="HTTP 400"):
        gateway.record_trip_credits(1, "Trip 0.50 km")


def test_network_error_raises():
    gateway, _ = make_gateway(side_effect=requests.ConnectionError("offline"))
    with pytest.raises(RewardGatewayError):
        gateway.record_trip_credits(1, "Trip 0.50 km")


def test_signed_out_user_is_rejected_without_request():
    gateway, session = make_gateway(user_id=None)
    with pytest.raises(RewardGatewayError):
        gateway.record_trip_credits(1, "Trip 0.50 km")
    session.post.assert_not_called()


def test_from_config_requires_backend_settings():
    with pytest.raises(RewardGatewayError):
        RestRewardGateway.from_config(NavConfig(rewards_api_key="key"))


def test_from_config_builds_authenticated_session():
    config = NavConfig(rewards_url="https://example.supabase.co", rewards_api_key="key", rewards_user_id="u1")
    gateway = RestRewardGateway.from_config(config)
    assert gateway._url == "https://example.supabase.co/rest/v1/rewards"
    assert gateway._session.headers["apikey"] == "key"
    assert gateway._session.headers["Authorization"] == "Bearer key"


def test_rewards_session_retries_server_errors():
    session = create_rewards_session("key")
    retry = session.get_adapter("https://example.supabase.co").max_retries
    assert retry.total == 3
    assert 503 in retry.status_forcelist


def test_in_memory_gateway_tallies_credits():
    gateway = InMemoryRewardGateway()
    gateway.record_trip_credits(2, "Trip 1.10 km")
    gateway.record_trip_credits(-4, "Trip 0.10 km")

    assert gateway.entries == [RewardEntry(2, "Trip 1.10 km"), RewardEntry(0, "Trip 0.10 km")]
    assert gateway.total_credits == 2
