"""Rate-governed client for the Motion REST API."""

from motionsdk.client import Motion, client_from_environment
from motionsdk.config import ClientConfig
from motionsdk.constants import (
    MOTION_RATE_LIMITS,
    RECOMMENDED_RATE_LIMITS,
    ErrorType,
    MotionRateLimits,
    RateLimits,
)
from motionsdk.errors import (
    ArgumentError,
    ClosedError,
    FetchError,
    LimiterError,
    LimitExceededError,
    MotionError,
    MultiError,
    QueueOverflowError,
    bundle_errors,
    is_argument_error,
    is_closed_error,
    is_fetch_error,
    is_limit_exceeded_error,
    is_limiter_error,
    is_motion_error,
    is_multi_error,
    is_queue_overflow_error,
    message_from_cause,
)
from motionsdk.limiter import (
    MemoryRateLimiter,
    RateLimiter,
    RateLimiterQueue,
    RateLimiterQueueError,
    RateLimiterRes,
    RateLimitRejected,
    limit_with,
)
from motionsdk.types import RequestInit

__all__ = [
    "MOTION_RATE_LIMITS",
    "RECOMMENDED_RATE_LIMITS",
    "ArgumentError",
    "ClientConfig",
    "ClosedError",
    "ErrorType",
    "FetchError",
    "LimitExceededError",
    "LimiterError",
    "MemoryRateLimiter",
    "Motion",
    "MotionError",
    "MotionRateLimits",
    "MultiError",
    "QueueOverflowError",
    "RateLimitRejected",
    "RateLimiter",
    "RateLimiterQueue",
    "RateLimiterQueueError",
    "RateLimiterRes",
    "RateLimits",
    "RequestInit",
    "bundle_errors",
    "client_from_environment",
    "is_argument_error",
    "is_closed_error",
    "is_fetch_error",
    "is_limit_exceeded_error",
    "is_limiter_error",
    "is_motion_error",
    "is_multi_error",
    "is_queue_overflow_error",
    "limit_with",
    "message_from_cause",
]
