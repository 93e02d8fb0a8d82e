"""Configurable choice of client IP source.

Deployments sit behind exactly one kind of proxy, so the extractor is
usually picked from configuration rather than hard-coded:

    from libs.client_ip.source import ClientIpSource

    source = ClientIpSource("cf_connecting_ip")
    ip = source.extract(request.headers)
"""

import enum
from typing import Any, Callable

from libs.client_ip import extractors
from libs.client_ip.parsing import IpAddress


class ClientIpSource(str, enum.Enum):
    """Names of the available client IP extractors."""

    CF_CONNECTING_IP = "cf_connecting_ip"
    CLOUDFRONT_VIEWER_ADDRESS = "cloudfront_viewer_address"
    FLY_CLIENT_IP = "fly_client_ip"
    RIGHTMOST_FORWARDED = "rightmost_forwarded"
    RIGHTMOST_X_FORWARDED_FOR = "rightmost_x_forwarded_for"
    TRUE_CLIENT_IP = "true_client_ip"
    X_REAL_IP = "x_real_ip"

    @classmethod
    def _missing_(cls, value: object) -> "ClientIpSource | None":
        # Accept "CF_CONNECTING_IP", "cf-connecting-ip" and similar spellings
        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_")
            for member in cls:
                if member.value == normalized:
                    return member
        return None

    @property
    def extractor(self) -> Callable[[Any], IpAddress]:
        """The extractor function backing this source."""
        return _EXTRACTORS[self]

    def extract(self, headers: Any) -> IpAddress:
        """Extract the client IP from `headers` with this source's extractor.

        Raises:
            ClientIpError: If extraction fails.
        """
        return self.extractor(headers)


_EXTRACTORS: dict[ClientIpSource, Callable[[Any], IpAddress]] = {
    ClientIpSource.CF_CONNECTING_IP: extractors.cf_connecting_ip,
    ClientIpSource.CLOUDFRONT_VIEWER_ADDRESS: extractors.cloudfront_viewer_address,
    ClientIpSource.FLY_CLIENT_IP: extractors.fly_client_ip,
    ClientIpSource.RIGHTMOST_FORWARDED: extractors.rightmost_forwarded,
    ClientIpSource.RIGHTMOST_X_FORWARDED_FOR: extractors.rightmost_x_forwarded_for,
    ClientIpSource.TRUE_CLIENT_IP: extractors.true_client_ip,
    ClientIpSource.X_REAL_IP: extractors.x_real_ip,
}
