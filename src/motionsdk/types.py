"""
Request types shared by the client, the transport and the error model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, Union

from yarl import URL

if TYPE_CHECKING:
    import aiohttp

    from motionsdk.headers import HeadersInit

RequestInput = Union[str, URL]


@dataclass
class RequestInit:
    """
    Parameters for one HTTP request.

    Attributes:
        method: HTTP method.
        headers: Caller headers as a mapping, a list of (name, value) pairs or a
            plain dict. The client adds its own headers to these.
        params: Query parameters.
        json: JSON body.
        data: Raw body.
    """

    method: str = "GET"
    headers: HeadersInit | None = None
    params: dict[str, str] | None = None
    json: Any = None
    data: Any = None


@dataclass
class FetchRequest:
    """The request that was attempted when a transport call failed."""

    input: RequestInput
    init: RequestInit


class Transport(Protocol):
    """A fetch-shaped callable: sends one request and returns the response."""

    async def __call__(self, url: RequestInput, init: RequestInit) -> aiohttp.ClientResponse: ...
