"""Client IP extractors, one per proxy convention.

Each extractor is a pure function of the request headers: it selects the
trusted occurrence of its header, checks that the value is printable
ASCII and decodes it with the convention's syntax. It either returns an
`ipaddress.IPv4Address`/`IPv6Address` or raises a `ClientIpError`.

| Header                      | Occurrence     | Value syntax                |
|-----------------------------|----------------|-----------------------------|
| `CF-Connecting-IP`          | single         | IP                          |
| `True-Client-IP`            | single         | IP                          |
| `X-Real-IP`                 | single         | IP                          |
| `Fly-Client-IP`             | single         | IP                          |
| `CloudFront-Viewer-Address` | last           | ip:port                     |
| `X-Forwarded-For`           | last           | rightmost of comma list     |
| `Forwarded`                 | last           | rightmost RFC 7239 stanza   |

The occurrence policy is fixed per convention on purpose: it encodes which
proxy hop is trusted and is not a per-call option.
"""

from typing import Any, Callable

from libs.client_ip.forwarded import forwarded_ip
from libs.client_ip.headers import (
    AsciiHeaderValue,
    ClientIpHeader,
    SelectionPolicy,
    select_header_value,
)
from libs.client_ip.parsing import (
    IpAddress,
    parse_ip,
    parse_ip_with_port,
    parse_rightmost_ip,
)

REQUIRE_SINGLE = SelectionPolicy.REQUIRE_SINGLE
TAKE_LAST = SelectionPolicy.TAKE_LAST


def _extract(
    headers: Any,
    header: ClientIpHeader,
    policy: SelectionPolicy,
    decode: Callable[[AsciiHeaderValue], IpAddress],
) -> IpAddress:
    return decode(select_header_value(headers, header, policy))


def cf_connecting_ip(headers: Any) -> IpAddress:
    """Extract the client IP from the `CF-Connecting-IP` (Cloudflare) header."""
    return _extract(headers, ClientIpHeader.CF_CONNECTING_IP, REQUIRE_SINGLE, parse_ip)


def cloudfront_viewer_address(headers: Any) -> IpAddress:
    """Extract the client IP from the `CloudFront-Viewer-Address` (AWS) header.

    The value is ``ip:port`` with IPv6 left unbracketed, e.g.
    ``2001:db8::1:46532``.

    Reference:
        https://docs.aws.amazon.com/AmazonCloudFront/latest/DeveloperGuide/adding-cloudfront-headers.html
    """
    return _extract(
        headers,
        ClientIpHeader.CLOUDFRONT_VIEWER_ADDRESS,
        TAKE_LAST,
        parse_ip_with_port,
    )


def fly_client_ip(headers: Any) -> IpAddress:
    """Extract the client IP from the `Fly-Client-IP` (Fly.io) header.

    Fly.io health checks do not go through the proxy, so either add the
    header to the check definition or skip the health check path.
    """
    return _extract(headers, ClientIpHeader.FLY_CLIENT_IP, REQUIRE_SINGLE, parse_ip)


def rightmost_forwarded(headers: Any) -> IpAddress:
    """Extract the rightmost ``for`` IP from the last `Forwarded` header."""
    return _extract(headers, ClientIpHeader.FORWARDED, TAKE_LAST, forwarded_ip)


def rightmost_x_forwarded_for(headers: Any) -> IpAddress:
    """Extract the rightmost IP from the last `X-Forwarded-For` header."""
    return _extract(
        headers, ClientIpHeader.X_FORWARDED_FOR, TAKE_LAST, parse_rightmost_ip
    )


def true_client_ip(headers: Any) -> IpAddress:
    """Extract the client IP from the `True-Client-IP` (Akamai, Cloudflare) header."""
    return _extract(headers, ClientIpHeader.TRUE_CLIENT_IP, REQUIRE_SINGLE, parse_ip)


def x_real_ip(headers: Any) -> IpAddress:
    """Extract the client IP from the `X-Real-IP` (Nginx) header."""
    return _extract(headers, ClientIpHeader.X_REAL_IP, REQUIRE_SINGLE, parse_ip)
