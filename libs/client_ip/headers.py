"""Header lookup, occurrence selection and the ASCII guard.

Header containers differ between frameworks, so `header_values` reads the
raw bytes of every occurrence from whatever the caller hands in:

- Starlette/FastAPI `Headers` (and `httpx.Headers`) through their `.raw`
  list of byte pairs
- raw ASGI header lists: ``[(b"x-real-ip", b"1.2.3.4"), ...]``
- any iterable of ``(name, value)`` pairs of `str` or `bytes`
- a plain mapping (one occurrence per name)

`AsciiHeaderValue` is the only way to turn those bytes into text. Every
parser downstream works on its `text`, so non-ASCII input is rejected
before any structural parsing happens.
"""

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union

from libs.client_ip.errors import (
    AbsentHeaderError,
    NonAsciiHeaderValueError,
    SingleHeaderRequiredError,
)


class ClientIpHeader(str, enum.Enum):
    """Headers carrying the client IP, one per supported proxy convention."""

    CF_CONNECTING_IP = "cf-connecting-ip"
    CLOUDFRONT_VIEWER_ADDRESS = "cloudfront-viewer-address"
    FLY_CLIENT_IP = "fly-client-ip"
    FORWARDED = "forwarded"
    TRUE_CLIENT_IP = "true-client-ip"
    X_FORWARDED_FOR = "x-forwarded-for"
    X_REAL_IP = "x-real-ip"


HeaderName = Union[ClientIpHeader, str]


class SelectionPolicy(str, enum.Enum):
    """Which occurrence of a repeated header is trusted."""

    # Repeats are a proxy misconfiguration and fail the extraction
    REQUIRE_SINGLE = "require_single"
    # Only the outermost hop counts; earlier occurrences are ignored unread
    TAKE_LAST = "take_last"


def normalize_header_name(name: HeaderName) -> str:
    """Return the lower-case wire name for a header."""
    if isinstance(name, ClientIpHeader):
        return name.value
    return name.lower()


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, bytearray):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    raise TypeError(
        f"Header names and values must be str or bytes, got {type(value).__name__}"
    )


def _iter_pairs(headers: Any) -> Iterable[tuple[Any, Any]]:
    raw = getattr(headers, "raw", None)
    if isinstance(raw, list):
        return raw
    if isinstance(headers, Mapping):
        return headers.items()
    if isinstance(headers, Iterable) and not isinstance(headers, (str, bytes)):
        return headers
    raise TypeError(
        f"Unsupported header container: {type(headers).__name__}. "
        "Expected Starlette Headers, an ASGI header list, a mapping, "
        "or an iterable of (name, value) pairs."
    )


def header_values(headers: Any, name: HeaderName) -> list[bytes]:
    """Return the raw value of every occurrence of a header.

    Args:
        headers: Header container (see module docstring for accepted shapes).
        name: Header name, matched case-insensitively.

    Returns:
        Raw values in insertion order; empty if the header is absent.

    Raises:
        TypeError: If the container or one of its entries has an unsupported type.
    """
    wanted = normalize_header_name(name).encode("latin-1")
    return [
        _as_bytes(value)
        for key, value in _iter_pairs(headers)
        if _as_bytes(key).lower() == wanted
    ]


@dataclass(frozen=True)
class AsciiHeaderValue:
    """A header value proven to be printable ASCII (visible characters and space).

    Attributes:
        header_name: Lower-case name of the header the value came from.
        text: The decoded value, safe to split and strip byte-for-byte.
    """

    header_name: str
    text: str

    @classmethod
    def validate(cls, raw: bytes, header_name: HeaderName) -> "AsciiHeaderValue":
        """Decode a raw header value, rejecting anything but printable ASCII.

        Raises:
            NonAsciiHeaderValueError: If a byte is outside 0x20-0x7E.
        """
        name = normalize_header_name(header_name)
        try:
            text = raw.decode("ascii")
        except UnicodeDecodeError:
            raise NonAsciiHeaderValueError(name) from None
        # For ASCII text isprintable() admits exactly 0x20-0x7E
        if not text.isprintable():
            raise NonAsciiHeaderValueError(name)
        return cls(header_name=name, text=text)

    @classmethod
    def of_single_header(cls, headers: Any, header_name: HeaderName) -> "AsciiHeaderValue":
        """Return the value of a header that must occur exactly once.

        Multiple occurrences are treated as a critical proxy configuration
        error rather than resolved silently.

        Raises:
            AbsentHeaderError: The header is missing.
            SingleHeaderRequiredError: The header occurs more than once.
            NonAsciiHeaderValueError: The value is not printable ASCII.
        """
        name = normalize_header_name(header_name)
        values = header_values(headers, name)
        if not values:
            raise AbsentHeaderError(name)
        if len(values) > 1:
            raise SingleHeaderRequiredError(name)
        return cls.validate(values[0], name)

    @classmethod
    def of_last_header(cls, headers: Any, header_name: HeaderName) -> "AsciiHeaderValue":
        """Return the value of the last occurrence of a header.

        Earlier occurrences are not inspected, so garbage injected by
        untrusted hops before the trusted proxy cannot affect the result.

        Raises:
            AbsentHeaderError: The header is missing.
            NonAsciiHeaderValueError: The last value is not printable ASCII.
        """
        name = normalize_header_name(header_name)
        values = header_values(headers, name)
        if not values:
            raise AbsentHeaderError(name)
        return cls.validate(values[-1], name)


def select_header_value(
    headers: Any, header_name: HeaderName, policy: SelectionPolicy
) -> AsciiHeaderValue:
    """Pick the trusted occurrence of a header according to a selection policy."""
    if policy is SelectionPolicy.REQUIRE_SINGLE:
        return AsciiHeaderValue.of_single_header(headers, header_name)
    if policy is SelectionPolicy.TAKE_LAST:
        return AsciiHeaderValue.of_last_header(headers, header_name)
    raise ValueError(f"Unknown selection policy: {policy!r}")
