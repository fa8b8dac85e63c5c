"""
Error values returned by the Motion client.

The client does not raise for anticipated failures. Every operation returns
either its result or one of the errors below. They subclass Exception so a
caller can choose to raise them, but discrimination is done on `error_type`:
any object (or mapping) carrying an `error_type` counts as a MotionError,
including plain data read back from storage.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from motionsdk.constants import ErrorType

if TYPE_CHECKING:
    from collections.abc import Sequence

    from motionsdk.limiter import RateLimiter, RateLimiterQueue
    from motionsdk.types import FetchRequest

NO_MESSAGE = "(no message)"

LIMIT_EXCEEDED_MESSAGE = (
    "We exceeded Motion's rate limit. Continuing to exceed the rate limit will "
    "cause them to disable your API access. See also: "
    "https://docs.usemotion.com/docs/motion-rest-api/44e37c461ba67-motion-rest-api"
    "#rate-limit-information"
)


def message_from_cause(cause: object) -> str:
    """
    Summarize an arbitrary failure value as display text.

    Strings are used verbatim. Objects (or mappings) with a non-empty string
    `message` use that. Exceptions without one fall back to str(exc). Anything
    else becomes "(no message)".
    """
    if isinstance(cause, str):
        return cause

    if isinstance(cause, Mapping):
        message = cause.get("message")
    else:
        message = getattr(cause, "message", None)
    if isinstance(message, str) and message:
        return message

    if isinstance(cause, BaseException) and str(cause):
        return str(cause)

    return NO_MESSAGE


class MotionError(Exception):
    """
    Base class for all errors returned by the client.

    Only subclasses are instantiated: they set `error_type`, which is what
    the is_* predicates look at.
    """

    error_type: ErrorType

    def __init__(self, message: str) -> None:
        if type(self) is MotionError:
            raise TypeError("MotionError is a base class; use one of its subclasses")
        super().__init__(message)
        self.message = message


class ArgumentError(MotionError):
    """A configuration value is missing or invalid."""

    error_type = ErrorType.ARGUMENT

    def __init__(self, argument_name: str, argument_value: Any, message: str) -> None:
        super().__init__(message)
        self.argument_name = argument_name
        self.argument_value = argument_value


class FetchError(MotionError):
    """The transport call itself failed (network, DNS, timeout, ...)."""

    error_type = ErrorType.FETCH

    def __init__(self, cause: object, request: FetchRequest) -> None:
        super().__init__(message_from_cause(cause))
        self.cause = cause
        self.request = request


class LimiterError(MotionError):
    """
    The rate limiter itself failed.

    This is an infrastructure failure (storage unreachable and the like),
    not a rate limit rejection.
    """

    error_type = ErrorType.LIMITER

    def __init__(
        self,
        limiter: RateLimiter,
        cause: object,
        attempted_key: str | int | None = None,
    ) -> None:
        super().__init__(f"Error from rate limiter: {message_from_cause(cause)}")
        self.limiter = limiter
        self.cause = cause
        self.attempted_key = attempted_key


class QueueOverflowError(MotionError):
    """The bounded admission queue was already full."""

    error_type = ErrorType.QUEUE_OVERFLOW

    def __init__(
        self,
        queue: RateLimiterQueue,
        cause: object,
        attempted_key: str | int,
    ) -> None:
        super().__init__(message_from_cause(cause))
        self.queue = queue
        self.cause = cause
        self.attempted_key = attempted_key


class ClosedError(MotionError):
    """The client is closed and refuses all further traffic."""

    error_type = ErrorType.CLOSED

    def __init__(self, reason: str, cause: MotionError | None = None) -> None:
        super().__init__(f"Client is already closed. Closure reason: {reason}")
        self.reason = reason
        self.cause = cause


class LimitExceededError(MotionError):
    """Motion answered 429: the remote rate limit was exceeded."""

    error_type = ErrorType.LIMIT_EXCEEDED

    def __init__(self, response: Any) -> None:
        super().__init__(LIMIT_EXCEEDED_MESSAGE)
        self.response = response


E = TypeVar("E", bound=MotionError)


class MultiError(MotionError, Generic[E]):
    """Several errors from one logical operation, in the order they occurred."""

    error_type = ErrorType.MULTI

    def __init__(self, errors: Sequence[E]) -> None:
        if not errors:
            raise ValueError("MultiError requires at least one error")
        super().__init__(f"{len(errors)} errors occurred.")
        self.errors: list[E] = list(errors)


def bundle_errors(errors: Sequence[E]) -> E | MultiError[E]:
    """
    Collate one or more errors into a single reportable value.

    Args:
        errors: Errors to collate, in order. Must not be empty.

    Returns:
        The sole error unchanged, or a MultiError wrapping all of them.

    Raises:
        ValueError: If errors is empty (caller bug, not a runtime condition).
    """
    if not errors:
        raise ValueError("bundle_errors() requires at least one error")
    if len(errors) == 1:
        return errors[0]
    return MultiError(errors)


def error_type_of(o: object) -> str | None:
    """Return the `error_type` tag of an error-shaped value, or None."""
    if isinstance(o, Mapping):
        tag = o.get("error_type")
    else:
        tag = getattr(o, "error_type", None)
    if tag is None:
        return None
    return tag.value if isinstance(tag, ErrorType) else str(tag)


def is_motion_error(o: object) -> bool:
    """True for anything carrying an `error_type`, whatever its class."""
    return error_type_of(o) is not None


def is_argument_error(o: object) -> bool:
    return error_type_of(o) == ErrorType.ARGUMENT.value


def is_fetch_error(o: object) -> bool:
    return error_type_of(o) == ErrorType.FETCH.value


def is_limiter_error(o: object) -> bool:
    return error_type_of(o) == ErrorType.LIMITER.value


def is_queue_overflow_error(o: object) -> bool:
    return error_type_of(o) == ErrorType.QUEUE_OVERFLOW.value


def is_closed_error(o: object) -> bool:
    return error_type_of(o) == ErrorType.CLOSED.value


def is_limit_exceeded_error(o: object) -> bool:
    return error_type_of(o) == ErrorType.LIMIT_EXCEEDED.value


def is_multi_error(o: object) -> bool:
    return error_type_of(o) == ErrorType.MULTI.value
