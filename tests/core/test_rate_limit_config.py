# tests/core/test_rate_limit_config.py
"""Rate limit key and message helpers"""

from starlette.requests import Request

from fixflow.core.rate_limit_config import RATE_LIMIT_TIERS, get_rate_limit_message, get_rate_limits, get_real_ip


def make_request(headers=None, client=("10.0.0.9", 1234)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestRealIp:

    def test_forwarded_for_first_hop(self):
        request = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})

        assert get_real_ip(request) == "203.0.113.7"

    def test_real_ip_header(self):
        assert get_real_ip(make_request({"X-Real-IP": "198.51.100.2"})) == "198.51.100.2"

    def test_peer_address(self):
        assert get_real_ip(make_request()) == "10.0.0.9"


class TestMessages:

    def test_known_and_unknown_endpoints(self):
        assert "sessions started" in get_rate_limit_message("start")
        assert get_rate_limit_message("read") == get_rate_limit_message("default")

    def test_tiers_cover_every_endpoint(self):
        for tier in RATE_LIMIT_TIERS.values():
            assert set(tier) == {"start", "reply", "read"}


class TestTierSelection:

    def test_configured_tier(self):
        assert get_rate_limits("trusted") == RATE_LIMIT_TIERS["trusted"]

    def test_unknown_tier_uses_default(self):
        assert get_rate_limits("platinum") == RATE_LIMIT_TIERS["default"]
