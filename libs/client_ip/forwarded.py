"""RFC 7239 `Forwarded` header support.

The header is a comma-separated list of elements ("stanzas"), one per
proxy hop, each a semicolon-separated list of ``name=value`` pairs:

    Forwarded: for=192.0.2.60;proto=http;by=203.0.113.43, for="[2001:db8::1]:4711"

`parse_forwarded` turns a header value into `ForwardedStanza` objects and
`forwarded_ip` picks the client address out of the rightmost one. Node
identifiers (the ``for`` and ``by`` values) are modelled as a closed set
of variants:

- `SocketAddress`: an IP with a port (``192.0.2.43:47011``, ``"[::1]:80"``)
- `IpAddressOnly`: a bare IP (``192.0.2.43``, ``"[2001:db8::1]"``)
- `ObfuscatedToken`: an opaque identifier (``_hidden``), Section 6.3
- `UnknownToken`: the literal ``unknown``, Section 6.2

Unquoted values are accepted even where the RFC requires quoting
(``for=2001:db8::1``), since proxies commonly emit them that way.

Reference:
    https://www.rfc-editor.org/rfc/rfc7239.html
"""

import ipaddress
import string
from dataclasses import dataclass
from typing import Optional, Union, assert_never

from libs.client_ip.errors import (
    ForwardedNoForError,
    ForwardedObfuscatedError,
    ForwardedUnknownError,
    MalformedHeaderValueError,
)
from libs.client_ip.headers import AsciiHeaderValue
from libs.client_ip.parsing import IpAddress, ip_from_text

# RFC 7230 token characters
_TCHARS = frozenset(string.ascii_letters + string.digits + "!#$%&'*+-.^_`|~")
# RFC 7239 obfnode / obfport characters (after the leading underscore)
_OBFCHARS = frozenset(string.ascii_letters + string.digits + "._-")

MAX_PORT = 65535


class ForwardedSyntaxError(ValueError):
    """Raised when a `Forwarded` header value does not follow RFC 7239 syntax."""

    pass


@dataclass(frozen=True)
class SocketAddress:
    """An IP address with a port; the port may itself be obfuscated."""

    ip: IpAddress
    port: Union[int, str]


@dataclass(frozen=True)
class IpAddressOnly:
    """A bare IP address."""

    ip: IpAddress


@dataclass(frozen=True)
class ObfuscatedToken:
    """An opaque identifier hiding the real address."""

    value: str


@dataclass(frozen=True)
class UnknownToken:
    """The hop did not disclose its address."""


NodeIdentifier = Union[SocketAddress, IpAddressOnly, ObfuscatedToken, UnknownToken]


@dataclass(frozen=True)
class ForwardedStanza:
    """One forwarded-element, i.e. the parameters added by one proxy hop."""

    forwarded_for: Optional[NodeIdentifier] = None
    forwarded_by: Optional[NodeIdentifier] = None
    host: Optional[str] = None
    proto: Optional[str] = None
    extensions: tuple[tuple[str, str], ...] = ()


def _is_token(text: str) -> bool:
    return bool(text) and all(char in _TCHARS for char in text)


def _is_obfuscated(text: str) -> bool:
    return len(text) > 1 and text[0] == "_" and all(c in _OBFCHARS for c in text[1:])


def _split_unquoted(text: str, separator: str) -> list[str]:
    """Split on `separator`, leaving quoted-strings intact."""
    parts: list[str] = []
    current: list[str] = []
    in_quotes = False
    escaped = False

    for char in text:
        if escaped:
            escaped = False
        elif in_quotes:
            if char == "\\":
                escaped = True
            elif char == '"':
                in_quotes = False
        elif char == '"':
            in_quotes = True
        elif char == separator:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)

    if in_quotes:
        raise ForwardedSyntaxError(f"Unterminated quoted-string: {text!r}")
    parts.append("".join(current))
    return parts


def _unquote(value: str) -> str:
    if not value.startswith('"'):
        if not value or '"' in value or any(c.isspace() for c in value):
            raise ForwardedSyntaxError(f"Invalid parameter value: {value!r}")
        return value

    if len(value) < 2 or not value.endswith('"'):
        raise ForwardedSyntaxError(f"Invalid quoted-string: {value!r}")

    result: list[str] = []
    chars = iter(value[1:-1])
    for char in chars:
        if char == "\\":
            escaped = next(chars, None)
            if escaped is None:
                raise ForwardedSyntaxError(f"Dangling escape in: {value!r}")
            result.append(escaped)
        elif char == '"':
            raise ForwardedSyntaxError(f"Unescaped quote in: {value!r}")
        else:
            result.append(char)
    return "".join(result)


def _parse_port(text: str) -> Union[int, str]:
    if _is_obfuscated(text):
        return text
    if not text.isdigit() or len(text) > 5 or int(text) > MAX_PORT:
        raise ForwardedSyntaxError(f"Invalid node port: {text!r}")
    return int(text)


def parse_node(value: str) -> NodeIdentifier:
    """Parse a ``for``/``by`` node identifier.

    Raises:
        ForwardedSyntaxError: If `value` is not a valid node.
    """
    if value.startswith("["):
        address, bracket, rest = value[1:].partition("]")
        if not bracket:
            raise ForwardedSyntaxError(f"Unterminated IPv6 bracket: {value!r}")
        try:
            if "%" in address:
                raise ValueError("zone identifier")
            ip = ipaddress.IPv6Address(address)
        except ValueError:
            raise ForwardedSyntaxError(f"Invalid IPv6 node: {value!r}") from None
        if not rest:
            return IpAddressOnly(ip)
        if not rest.startswith(":"):
            raise ForwardedSyntaxError(f"Unexpected text after IPv6 node: {value!r}")
        return SocketAddress(ip, _parse_port(rest[1:]))

    # Bare IPv6 has colons of its own, so try the whole value first
    try:
        return IpAddressOnly(ip_from_text(value))
    except ValueError:
        pass

    name, sep, port_text = value.partition(":")
    port = _parse_port(port_text) if sep else None

    if name.lower() == "unknown":
        return UnknownToken()
    if _is_obfuscated(name):
        return ObfuscatedToken(name)
    try:
        ipv4 = ipaddress.IPv4Address(name)
    except ValueError:
        raise ForwardedSyntaxError(f"Invalid node: {value!r}") from None
    if port is None:
        return IpAddressOnly(ipv4)
    return SocketAddress(ipv4, port)


def _parse_element(element: str) -> ForwardedStanza:
    params: dict[str, str] = {}
    for pair in _split_unquoted(element, ";"):
        pair = pair.strip()
        if not pair:
            continue
        name, sep, raw_value = pair.partition("=")
        if not sep or not _is_token(name):
            raise ForwardedSyntaxError(f"Invalid forwarded-pair: {pair!r}")
        name = name.lower()
        if name in params:
            raise ForwardedSyntaxError(f"Duplicate parameter {name!r} in: {element!r}")
        params[name] = _unquote(raw_value)

    if not params:
        raise ForwardedSyntaxError(f"Empty forwarded-element: {element!r}")

    forwarded_for = params.pop("for", None)
    forwarded_by = params.pop("by", None)
    return ForwardedStanza(
        forwarded_for=parse_node(forwarded_for) if forwarded_for is not None else None,
        forwarded_by=parse_node(forwarded_by) if forwarded_by is not None else None,
        host=params.pop("host", None),
        proto=params.pop("proto", None),
        extensions=tuple(params.items()),
    )


def parse_forwarded(text: str) -> list[ForwardedStanza]:
    """Parse a `Forwarded` header value into stanzas, leftmost hop first.

    Every element must hold at least one forwarded-pair. A blank element, or
    one made only of ``;`` separators, names a hop with nothing recorded for
    it and is rejected rather than skipped.

    Raises:
        ForwardedSyntaxError: If the value is not valid RFC 7239 syntax.
    """
    return [_parse_element(element) for element in _split_unquoted(text, ",")]


def forwarded_ip(value: AsciiHeaderValue) -> IpAddress:
    """Extract the client IP from the rightmost stanza of a `Forwarded` value.

    Args:
        value: The selected (last) occurrence of the `Forwarded` header.

    Returns:
        The IP of the rightmost stanza's ``for`` node; any port is discarded.

    Raises:
        MalformedHeaderValueError: The value is not valid syntax.
        ForwardedNoForError: The rightmost stanza has no ``for`` parameter.
        ForwardedObfuscatedError: The ``for`` node is obfuscated.
        ForwardedUnknownError: The ``for`` node is ``unknown``.
    """
    try:
        stanzas = parse_forwarded(value.text)
    except ForwardedSyntaxError:
        raise MalformedHeaderValueError(value.header_name, value.text) from None

    node = stanzas[-1].forwarded_for
    if node is None:
        raise ForwardedNoForError(value.text)
    if isinstance(node, (SocketAddress, IpAddressOnly)):
        return node.ip
    if isinstance(node, ObfuscatedToken):
        raise ForwardedObfuscatedError(value.text)
    if isinstance(node, UnknownToken):
        raise ForwardedUnknownError(value.text)
    assert_never(node)
