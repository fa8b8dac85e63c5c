"""
Constants for the Motion API client.

Per the Motion REST API rate limit documentation:
- Exceeding 12 requests in a minute returns 429 and locks the key for an hour
- Three such overruns in a day disable API access until support restores it
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

MOTION_BASE_URL = "https://api.usemotion.com/v1"

API_KEY_HEADER = "X-API-Key"
ACCEPT_HEADER_VALUE = "application/json"

DEFAULT_QUEUE_SIZE = 20
DEFAULT_REQUEST_TIMEOUT_MS = 10000

LIMIT_EXCEEDED_STATUS = 429


class ErrorType(str, Enum):
    """Discriminant carried by every error returned by the client."""

    ARGUMENT = "MOTION_ARGUMENT_ERROR"
    FETCH = "FETCH_ERROR"
    LIMITER = "MOTION_LIMITER_ERROR"
    QUEUE_OVERFLOW = "MOTION_LIMITER_QUEUE_EXCEEDED"
    CLOSED = "MOTION_CLIENT_CLOSED"
    LIMIT_EXCEEDED = "MOTION_API_RATE_LIMIT_EXCEEDED"
    MULTI = "MOTION_MULTI_ERROR"


@dataclass(frozen=True)
class RateLimits:
    """
    Points allowed per window.

    Attributes:
        points: Maximum points consumable within one window.
        duration: Window length in seconds.
    """

    points: int
    duration: float


@dataclass(frozen=True)
class MotionRateLimits:
    """Request and overrun limits, as a pair."""

    requests: RateLimits
    overruns: RateLimits


# Official limits. Prefer RECOMMENDED_RATE_LIMITS for actual traffic.
MOTION_RATE_LIMITS = MotionRateLimits(
    requests=RateLimits(points=12, duration=60),
    overruns=RateLimits(points=3, duration=60 * 60 * 24),
)

# One request of headroom per minute, and stop after the first overrun of the day
RECOMMENDED_RATE_LIMITS = MotionRateLimits(
    requests=RateLimits(
        points=MOTION_RATE_LIMITS.requests.points - 1,
        duration=MOTION_RATE_LIMITS.requests.duration,
    ),
    overruns=RateLimits(points=1, duration=MOTION_RATE_LIMITS.overruns.duration),
)
