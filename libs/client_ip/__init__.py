"""Client IP extraction from reverse-proxy headers.

Each supported proxy convention has one extractor. Pick the one matching
the proxy actually deployed in front of the service: every other header
can be forged by clients.

Usage:
    from libs.client_ip import ClientIpError, cf_connecting_ip

    try:
        ip = cf_connecting_ip(request.headers)
    except ClientIpError as e:
        ...  # proxy misconfiguration: reject or fall back

Extractors accept Starlette/FastAPI `Headers`, raw ASGI header lists,
mappings or iterables of ``(name, value)`` pairs, and return
`ipaddress.IPv4Address` / `ipaddress.IPv6Address`.

The FastAPI middleware and dependency live in `libs.client_ip.middleware`
and are configured through `libs.client_ip.config`.
"""

from libs.client_ip.errors import (
    AbsentHeaderError,
    ClientIpError,
    ForwardedHeaderError,
    ForwardedNoForError,
    ForwardedObfuscatedError,
    ForwardedUnknownError,
    MalformedHeaderValueError,
    NonAsciiHeaderValueError,
    SingleHeaderRequiredError,
)
from libs.client_ip.extractors import (
    cf_connecting_ip,
    cloudfront_viewer_address,
    fly_client_ip,
    rightmost_forwarded,
    rightmost_x_forwarded_for,
    true_client_ip,
    x_real_ip,
)
from libs.client_ip.headers import ClientIpHeader, SelectionPolicy
from libs.client_ip.parsing import IpAddress
from libs.client_ip.source import ClientIpSource

__all__ = [
    "AbsentHeaderError",
    "ClientIpError",
    "ClientIpHeader",
    "ClientIpSource",
    "ForwardedHeaderError",
    "ForwardedNoForError",
    "ForwardedObfuscatedError",
    "ForwardedUnknownError",
    "IpAddress",
    "MalformedHeaderValueError",
    "NonAsciiHeaderValueError",
    "SelectionPolicy",
    "SingleHeaderRequiredError",
    "cf_connecting_ip",
    "cloudfront_viewer_address",
    "fly_client_ip",
    "rightmost_forwarded",
    "rightmost_x_forwarded_for",
    "true_client_ip",
    "x_real_ip",
]
