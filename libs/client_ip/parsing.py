"""IP address parsing for the plain-text proxy header conventions."""

import ipaddress
from typing import Union

from libs.client_ip.errors import MalformedHeaderValueError
from libs.client_ip.headers import AsciiHeaderValue

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def ip_from_text(text: str) -> IpAddress:
    """Parse an IPv4 or IPv6 literal, with nothing before or after it.

    Zone identifiers (``fe80::1%eth0``) are rejected along with ports,
    brackets and any other residue.

    Raises:
        ValueError: If `text` is not exactly one IP literal.
    """
    if "%" in text:
        raise ValueError(f"Zone identifiers are not allowed: {text!r}")
    return ipaddress.ip_address(text)


def _malformed(value: AsciiHeaderValue) -> MalformedHeaderValueError:
    return MalformedHeaderValueError(value.header_name, value.text)


def parse_ip(value: AsciiHeaderValue) -> IpAddress:
    """Parse the whole (stripped) header value as an IP address.

    Used by the single-address conventions: Cloudflare, Akamai, Fly.io
    and Nginx.
    """
    try:
        return ip_from_text(value.text.strip())
    except ValueError:
        raise _malformed(value) from None


def parse_ip_with_port(value: AsciiHeaderValue) -> IpAddress:
    """Parse an ``ip:port`` value, discarding the port.

    CloudFront never brackets IPv6, so the split happens at the last
    colon; the port itself is not validated.
    """
    ip_text, sep, _port = value.text.rpartition(":")
    if not sep:
        raise _malformed(value)
    try:
        return ip_from_text(ip_text.strip())
    except ValueError:
        raise _malformed(value) from None


def parse_rightmost_ip(value: AsciiHeaderValue) -> IpAddress:
    """Parse the rightmost entry of a comma-separated address list.

    Entries to the left are not inspected, so garbage from untrusted hops
    does not affect the result.
    """
    rightmost = value.text.split(",")[-1]
    try:
        return ip_from_text(rightmost.strip())
    except ValueError:
        raise _malformed(value) from None
