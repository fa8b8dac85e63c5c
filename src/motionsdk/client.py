"""
Motion API client.

Every request passes the rate limit gate before it reaches the transport. A
429 from Motion closes the client for good and records an overrun, since
repeated overruns get the API key disabled. Failures come back as return
values (see motionsdk.errors); nothing here raises for them.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

import aiohttp
from yarl import URL

from motionsdk.config import ClientConfig
from motionsdk.constants import LIMIT_EXCEEDED_STATUS, RECOMMENDED_RATE_LIMITS
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
)
from motionsdk.gate import RateLimitGate
from motionsdk.headers import with_required_headers
from motionsdk.lifecycle import ClosedReason, Lifecycle
from motionsdk.limiter import MemoryRateLimiter
from motionsdk.types import FetchRequest, RequestInit

if TYPE_CHECKING:
    from collections.abc import Mapping

    from motionsdk.limiter import RateLimiter
    from motionsdk.types import RequestInput, Transport

logger = logging.getLogger(__name__)

# Collapse repeated slashes, except the pair following the scheme colon
_DUPLICATE_SLASHES = re.compile(r"([^:]/)/+")

ABSOLUTE_URL_SCHEMES = frozenset({"http", "https"})

OVERRUN_ON_START_REASON = "Already had an overrun today; refusing to start"
UNREADABLE_OVERRUNS_REASON = "Could not read overrun limiter; refusing to start"

UnsafeFetchResult = aiohttp.ClientResponse | ArgumentError | FetchError | LimitExceededError
FetchResult = (
    aiohttp.ClientResponse
    | ArgumentError
    | FetchError
    | LimiterError
    | QueueOverflowError
    | ClosedError
    | LimitExceededError
    | MultiError[LimitExceededError | LimiterError]
)


def join_url(base_url: str, path: str) -> str:
    """Prefix a bare path with the base URL, collapsing doubled slashes."""
    return _DUPLICATE_SLASHES.sub(r"\1", f"{base_url}/{path}")


def resolve_url(base_url: str, request_input: RequestInput) -> str:
    """
    Resolve a request target.

    yarl.URL values and http(s) URL strings are used as is; anything else,
    including paths with a colon such as "tasks:search", is a path under
    base_url.
    """
    if isinstance(request_input, URL):
        return str(request_input)
    if URL(request_input).scheme in ABSOLUTE_URL_SCHEMES:
        return request_input
    return join_url(base_url, request_input)


class AiohttpTransport:
    """Default transport: one owned aiohttp session, created on first use."""

    def __init__(self, request_timeout_ms: int) -> None:
        self._request_timeout_ms = request_timeout_ms
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._request_timeout_ms / 1000)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def __call__(self, url: RequestInput, init: RequestInit) -> aiohttp.ClientResponse:
        session = await self._get_session()
        return await session.request(
            init.method,
            str(url),
            headers=init.headers,
            params=init.params,
            json=init.json,
            data=init.data,
        )

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class Motion:
    """
    Rate-governed Motion API client.

    Usage:
        async with Motion(ClientConfig(user_id="u1", api_key="...")) as motion:
            result = await motion.fetch("/users/me")
            if isinstance(result, MotionError):
                ...
            data = await result.json()

    Once closed (deliberately, after a 429, or at birth for missing
    credentials) every guarded call returns ClosedError.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        request_limiter: RateLimiter | None = None,
        overrun_limiter: RateLimiter | None = None,
        transport: Transport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Identity, credential and tuning. Missing identity or
                credential leaves the client closed.
            request_limiter: Admission limiter (default: in-process,
                recommended request limits).
            overrun_limiter: Overrun record (default: in-process,
                recommended overrun limits).
            transport: Fetch-shaped callable (default: aiohttp session owned
                by this client).
        """
        self.config = config or ClientConfig()
        self.user_id = self.config.user_id
        self.base_url = self.config.base_url

        key_prefix = f"user_{self.user_id if self.user_id is not None else 'null'}"
        self.request_key = f"{key_prefix}:requests"
        self.overrun_key = f"{key_prefix}:overruns"

        self.gate = RateLimitGate(
            request_limiter or MemoryRateLimiter.from_limits(RECOMMENDED_RATE_LIMITS.requests),
            overrun_limiter or MemoryRateLimiter.from_limits(RECOMMENDED_RATE_LIMITS.overruns),
            max_queue_size=self.config.max_queue_size,
        )
        self._lifecycle = Lifecycle()

        self._owned_transport: AiohttpTransport | None = None
        if transport is None:
            self._owned_transport = AiohttpTransport(self.config.request_timeout_ms)
            transport = self._owned_transport
        self._transport = transport

        self._requests_sent = 0
        self._requests_refused_closed = 0
        self._overruns = 0

        if self.config.user_id is None:
            error = ArgumentError(
                "user_id",
                None,
                "No user ID set; expected 'user_id' option, or MOTION_USER_ID environment variable",
            )
            self._lifecycle.close(error.message, error)
        elif self.config.api_key is None:
            error = ArgumentError(
                "api_key",
                None,
                "No API key set; expected 'api_key' option, or MOTION_API_KEY environment variable",
            )
            self._lifecycle.close(error.message, error)

    def is_open(self) -> bool:
        return self._lifecycle.is_open()

    @property
    def closed_reason(self) -> ClosedReason | None:
        """Why the client closed, or None while it is open."""
        return self._lifecycle.closed_reason

    def close(self, reason: str, cause: MotionError | None = None) -> ClosedError | None:
        """
        Permanently stop accepting requests.

        Returns:
            None when this call closed the client, otherwise a ClosedError
            describing the original closure.
        """
        return self._lifecycle.close(reason, cause)

    async def aclose(self) -> None:
        """Close the client if still open and release the owned HTTP session."""
        if self.is_open():
            self.close("Client shut down")
        if self._owned_transport is not None:
            await self._owned_transport.close()

    async def __aenter__(self) -> Motion:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _refuse_closed(self) -> ClosedError:
        self._requests_refused_closed += 1
        error = self._lifecycle.closed_error()
        assert error is not None  # Only called while closed
        return error

    async def fetch(
        self,
        request_input: RequestInput,
        init: RequestInit | None = None,
    ) -> FetchResult:
        """
        Send a request through the rate limit gate.

        Args:
            request_input: Path under the base URL, or an absolute URL.
            init: Method, headers and body.

        Returns:
            The response for any status other than 429, or an error value.
        """
        if not self.is_open():
            return self._refuse_closed()

        admitted = await self.gate.admit(self.request_key)
        if isinstance(admitted, MotionError):
            return admitted

        # Closed while waiting for admission
        if not self.is_open():
            return self._refuse_closed()

        result = await self.unsafe_fetch(request_input, init)
        if isinstance(result, LimitExceededError):
            return await self._handle_limit_exceeded(result)
        return result

    async def _handle_limit_exceeded(
        self,
        error: LimitExceededError,
    ) -> LimitExceededError | MultiError[LimitExceededError | LimiterError]:
        self._overruns += 1
        logger.error(
            "Motion rate limit exceeded, closing client",
            extra={"limiter_key": self.overrun_key},
        )
        self.close(error.message, error)
        # Status and headers stay readable; the connection goes back to the pool
        error.response.release()

        errors: list[LimitExceededError | LimiterError] = [error]
        penalty_error = await self.gate.penalize(self.overrun_key)
        if penalty_error is not None:
            errors.append(penalty_error)
        return bundle_errors(errors)

    async def unsafe_fetch(
        self,
        request_input: RequestInput,
        init: RequestInit | None = None,
    ) -> UnsafeFetchResult:
        """
        Send a request with credentials but without rate limiting.

        A 429 is reported as LimitExceededError but neither closes the client
        nor records an overrun. The response it carries is not released; the
        caller owns it, as with any other response returned here.
        """
        init = init or RequestInit()

        api_key = self.config.api_key
        if api_key is None:
            return ArgumentError("api_key", None, "No API key set")

        try:
            headers = with_required_headers(init.headers, api_key)
        except (TypeError, ValueError) as e:
            return ArgumentError("headers", init.headers, str(e))

        url = resolve_url(self.base_url, request_input)
        sent = RequestInit(
            method=init.method,
            headers=headers,
            params=init.params,
            json=init.json,
            data=init.data,
        )

        self._requests_sent += 1
        try:
            response = await self._transport(url, sent)
        except Exception as e:
            logger.warning(
                "Request failed",
                extra={"method": sent.method, "url": url, "error": str(e)},
            )
            return FetchError(e, FetchRequest(input=url, init=sent))

        if response.status == LIMIT_EXCEEDED_STATUS:
            return LimitExceededError(response)
        return response

    def get_status(self) -> dict[str, Any]:
        """Get current client status for observability."""
        closed = self.closed_reason
        return {
            "open": self.is_open(),
            "closed_reason": closed.reason if closed is not None else None,
            "requests_sent": self._requests_sent,
            "requests_refused_closed": self._requests_refused_closed,
            "overruns": self._overruns,
            **self.gate.get_status(),
        }


async def client_from_environment(
    environ: Mapping[str, str] | None = None,
    request_limiter: RateLimiter | None = None,
    overrun_limiter: RateLimiter | None = None,
    transport: Transport | None = None,
    **overrides: Any,
) -> Motion:
    """
    Build a client from MOTION_* environment variables and check its history.

    The returned client is already closed if the overrun limiter shows an
    overrun inside the current window, or if it cannot be read at all.

    Raises:
        ValueError: The environment holds structurally invalid settings.
    """
    config = ClientConfig.from_env(environ, **overrides)
    motion = Motion(
        config,
        request_limiter=request_limiter,
        overrun_limiter=overrun_limiter,
        transport=transport,
    )
    if not motion.is_open():
        return motion

    snapshot = await motion.gate.peek(motion.overrun_key)
    if isinstance(snapshot, LimiterError):
        motion.close(UNREADABLE_OVERRUNS_REASON, snapshot)
    elif snapshot.consumed_points > 0:
        logger.warning(
            "Overrun already recorded, client starts closed",
            extra={"consumed_points": snapshot.consumed_points},
        )
        motion.close(OVERRUN_ON_START_REASON)
    return motion
