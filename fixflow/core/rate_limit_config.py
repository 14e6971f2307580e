# fixflow/core/rate_limit_config.py
"""
Rate limiting configuration for the fixflow API
"""

import logging
from typing import Dict

from fastapi import Request
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)


def get_real_ip(request: Request) -> str:
    """
    Get the real IP address, considering proxy headers.

    Deployments sit behind a load balancer, so the direct peer address is
    usually the proxy.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, take the first
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return get_remote_address(request)


# Starting a session may select a flow and touch the issue tracker; replies may call the LLM.
# "trusted" is for deployments where a single chat gateway forwards every tenant from one IP.
RATE_LIMIT_TIERS = {
    "default": {
        "start": "10/minute",
        "reply": "30/minute",
        "read": "60/minute",
    },
    "trusted": {
        "start": "50/minute",
        "reply": "150/minute",
        "read": "300/minute",
    },
}

RATE_LIMIT_MESSAGES = {
    "default": "Too many requests. Please wait a moment and try again.",
    "start": "Too many troubleshooting sessions started. Please wait a minute.",
    "reply": "Too many messages sent. Please slow down a little.",
}


def get_rate_limits(tier: str) -> Dict[str, str]:
    """Limits for the configured tier; unknown tiers fall back to "default"."""
    if tier not in RATE_LIMIT_TIERS:
        logger.warning(f"Unknown RATE_LIMIT_TIER '{tier}', using default limits")
        tier = "default"
    return RATE_LIMIT_TIERS[tier]


def get_rate_limit_message(endpoint: str) -> str:
    """Get custom error message for rate limited endpoint"""
    return RATE_LIMIT_MESSAGES.get(endpoint, RATE_LIMIT_MESSAGES["default"])
