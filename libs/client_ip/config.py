"""
Client IP resolution settings.

Loaded from environment variables (or a `.env` file):

    CLIENT_IP_SOURCE=cf_connecting_ip
    CLIENT_IP_SKIP_PATHS='["/health"]'
    CLIENT_IP_EXPOSE_ERRORS=false
"""

from typing import Any, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from libs.client_ip.source import ClientIpSource


class ClientIpSettings(BaseSettings):
    """Client IP settings loaded from environment variables."""

    # Which proxy header to trust. Must match the proxy actually deployed in
    # front of the service; any other header can be forged by clients.
    CLIENT_IP_SOURCE: ClientIpSource = Field(
        default=ClientIpSource.RIGHTMOST_X_FORWARDED_FOR,
        description="Extractor used to resolve the client IP",
    )
    # Paths served without resolving the client IP (e.g. health checks that
    # reach the app directly, bypassing the proxy)
    CLIENT_IP_SKIP_PATHS: List[str] = []
    # Include the extraction error in 500 responses. Development only: the
    # message echoes raw header values back to the client.
    CLIENT_IP_EXPOSE_ERRORS: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in ClientIpSettings
    )

    @field_validator("CLIENT_IP_SOURCE", mode="before")
    @classmethod
    def normalize_source(cls, value: Any) -> Any:
        """Accept any spelling of a source name ("CF-Connecting-IP", "X_REAL_IP")."""
        if isinstance(value, str):
            try:
                return ClientIpSource(value)
            except ValueError:
                valid = ", ".join(source.value for source in ClientIpSource)
                raise ValueError(
                    f"Unknown client IP source {value!r}. Expected one of: {valid}"
                ) from None
        return value


settings = ClientIpSettings()
