"""
Header normalization at the client boundary.

Callers may pass headers in any of three shapes. They are converted once to a
case-insensitive multidict, and everything past this module only deals with
that representation.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Union

from multidict import CIMultiDict

from motionsdk.constants import ACCEPT_HEADER_VALUE, API_KEY_HEADER

HeadersInit = Union[Mapping[str, str], Sequence[tuple[str, str]]]


class HeaderShape(str, Enum):
    """Shape of a caller-supplied header container."""

    MAPPING = "MAPPING"  # multidict, aiohttp headers, any non-dict Mapping
    PAIRS = "PAIRS"  # list/tuple of (name, value)
    RECORD = "RECORD"  # plain dict


def header_shape(headers: object) -> HeaderShape:
    """
    Classify a header container.

    Raises:
        TypeError: If the container is none of the supported shapes.
    """
    if isinstance(headers, dict):
        return HeaderShape.RECORD
    if isinstance(headers, Mapping):
        return HeaderShape.MAPPING
    if isinstance(headers, Sequence) and not isinstance(headers, (str, bytes)):
        return HeaderShape.PAIRS
    raise TypeError(f"Unsupported headers container: {type(headers).__name__}")


def normalize_headers(headers: HeadersInit | None) -> CIMultiDict[str]:
    """
    Copy caller headers into a CIMultiDict, keeping repeated names.

    Raises:
        TypeError: Unsupported container.
        ValueError: A pair that is not (name, value).
    """
    result: CIMultiDict[str] = CIMultiDict()
    if headers is None:
        return result

    shape = header_shape(headers)
    if shape == HeaderShape.PAIRS:
        for pair in headers:  # type: ignore[union-attr]
            if isinstance(pair, (str, bytes)) or len(pair) != 2:
                raise ValueError(f"Header pair must be (name, value), got {pair!r}")
            name, value = pair
            result.add(str(name), str(value))
    else:
        for name, value in headers.items():  # type: ignore[union-attr]
            result.add(str(name), str(value))
    return result


def with_required_headers(headers: HeadersInit | None, api_key: str) -> CIMultiDict[str]:
    """
    Normalize caller headers and set the API key and Accept headers.

    Caller headers are kept, except that the required ones replace any value
    the caller gave for the same name.
    """
    merged = normalize_headers(headers)
    merged[API_KEY_HEADER] = api_key
    merged["Accept"] = ACCEPT_HEADER_VALUE
    return merged
