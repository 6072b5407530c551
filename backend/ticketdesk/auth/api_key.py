"""Shared-secret header check in front of every non-public route."""
import hmac
import logging
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from ticketdesk.schemas.error import ErrorOut

logger = logging.getLogger(__name__)

# Every authenticated caller gets the same identity; there are no per-user permissions.
API_PRINCIPAL = "api-user"
API_ROLE = "ROLE_API_USER"

PUBLIC_PREFIXES = ("/v3/api-docs", "/swagger-ui")
PUBLIC_PATHS = ("/test", "/health")


def is_public_path(path: str) -> bool:
    if path in PUBLIC_PATHS:
        return True
    return any(path == p or path.startswith(p + "/") for p in PUBLIC_PREFIXES)


def api_key_matches(received: str | None, expected: str) -> bool:
    if not received or not expected:
        return False
    return hmac.compare_digest(received.encode(), expected.encode())


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Reject requests without the configured key with 401; tag the rest with the API principal."""

    def __init__(self, app: ASGIApp, api_key: str, header_name: str = "X-API-KEY") -> None:
        super().__init__(app)
        self.api_key = api_key
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if is_public_path(path):
            return await call_next(request)

        if not api_key_matches(request.headers.get(self.header_name), self.api_key):
            logger.warning(
                "Rejected %s %s: %s header missing or invalid",
                request.method,
                path,
                self.header_name,
            )
            return JSONResponse(
                status_code=401,
                content=ErrorOut(message="Invalid API Key").model_dump(exclude_none=True),
                headers={"WWW-Authenticate": "ApiKey"},
            )

        request.state.principal = API_PRINCIPAL
        request.state.roles = [API_ROLE]
        logger.debug("Authenticated %s %s as %s", request.method, path, API_PRINCIPAL)
        return await call_next(request)
