"""
FastAPI integration for client IP resolution.

`ClientIpMiddleware` resolves the client IP once per request and stores it
on ``request.state.client_ip``; `get_client_ip` is a dependency returning
it to endpoints.

Example:
    ```python
    from fastapi import Depends, FastAPI
    from libs.client_ip.middleware import ClientIpMiddleware, get_client_ip

    app = FastAPI()
    app.add_middleware(ClientIpMiddleware)

    @app.get("/whoami")
    async def whoami(client_ip=Depends(get_client_ip)):
        return {"ip": str(client_ip)}
    ```

A failed extraction answers 500, not 400: with a correctly configured
proxy the header is always present and well-formed, so a failure means the
deployment (not the client) is broken.
"""
import logging
from typing import Awaitable, Callable, Optional

from fastapi import HTTPException, Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from libs.client_ip.config import ClientIpSettings
from libs.client_ip.config import settings as default_settings
from libs.client_ip.errors import ClientIpError
from libs.client_ip.parsing import IpAddress
from libs.client_ip.source import ClientIpSource

logger = logging.getLogger(__name__)

CLIENT_IP_UNAVAILABLE = "client_ip_unavailable"
CLIENT_IP_UNAVAILABLE_MESSAGE = "Unable to determine client IP address."


def _error_message(error: ClientIpError, expose_errors: bool) -> str:
    if expose_errors:
        return f"{CLIENT_IP_UNAVAILABLE_MESSAGE} {error}"
    return CLIENT_IP_UNAVAILABLE_MESSAGE


class ClientIpMiddleware(BaseHTTPMiddleware):
    """
    Resolves the client IP for every request.

    Requests on `skip_paths` pass through untouched. On failure the request
    is answered with a 500 JSON error and the handler is not called.
    """

    def __init__(
        self,
        app,
        source: Optional[ClientIpSource] = None,
        skip_paths: Optional[list[str]] = None,
        expose_errors: Optional[bool] = None,
        settings: Optional[ClientIpSettings] = None,
    ):
        """
        Initialize client IP middleware.

        Args:
            app: ASGI application
            source: Extractor to use (default: CLIENT_IP_SOURCE setting)
            skip_paths: Paths to skip (default: CLIENT_IP_SKIP_PATHS setting)
            expose_errors: Put the extraction error in the response body
                           (default: CLIENT_IP_EXPOSE_ERRORS setting)
            settings: Settings to read defaults from (default: module settings)
        """
        super().__init__(app)
        if settings is None:
            settings = default_settings
        self.source = source or settings.CLIENT_IP_SOURCE
        self.skip_paths = (
            skip_paths if skip_paths is not None else settings.CLIENT_IP_SKIP_PATHS
        )
        self.expose_errors = (
            expose_errors
            if expose_errors is not None
            else settings.CLIENT_IP_EXPOSE_ERRORS
        )

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.url.path in self.skip_paths:
            return await call_next(request)

        try:
            client_ip = self.source.extract(request.headers)
        except ClientIpError as e:
            logger.warning(
                "Client IP extraction failed for %s via %s: %s",
                request.url.path,
                self.source.value,
                e,
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": CLIENT_IP_UNAVAILABLE,
                    "message": _error_message(e, self.expose_errors),
                },
            )

        logger.debug("Resolved client IP %s via %s", client_ip, self.source.value)
        request.state.client_ip = client_ip
        return await call_next(request)


def resolve_client_ip(
    request: Request, settings: Optional[ClientIpSettings] = None
) -> IpAddress:
    """
    Return the client IP for a request.

    Uses the value stored by `ClientIpMiddleware` when present, otherwise
    extracts it with the configured source.

    Raises:
        ClientIpError: If the IP was not stored and extraction fails.
    """
    client_ip = getattr(request.state, "client_ip", None)
    if client_ip is not None:
        return client_ip
    if settings is None:
        settings = default_settings
    return settings.CLIENT_IP_SOURCE.extract(request.headers)


def get_client_ip(request: Request) -> IpAddress:
    """
    FastAPI dependency returning the client IP.

    Raises:
        HTTPException: 500 if the client IP cannot be determined.
    """
    try:
        return resolve_client_ip(request)
    except ClientIpError as e:
        logger.warning("Client IP extraction failed for %s: %s", request.url.path, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_error_message(e, default_settings.CLIENT_IP_EXPOSE_ERRORS),
        ) from e
