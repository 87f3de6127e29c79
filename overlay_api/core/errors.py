"""Error taxonomy for the relay and its HTTP mapping.

Every failure the services raise derives from ``RelayError`` and carries
the status code the routing layer answers with.  ``AuthorizationError`` is
an internal signal consumed by the user token refresh protocol; if one ever
reaches the HTTP layer it is answered as a generic upstream failure.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

INVALID_TOKEN = "INVALID_TOKEN"


class RelayError(Exception):
    """Base class for failures surfaced to the routing layer."""

    status_code: int = 500
    default_message: str = "Upstream request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(RelayError):
    """No such channel or user."""

    status_code = 404
    default_message = "Channel not found"


class UpstreamError(RelayError):
    """Any non-success upstream response not covered by a narrower error."""

    status_code = 500

    def __init__(self, message: str | None = None, status: int | None = None):
        super().__init__(message)
        self.status = status


class AccountStoreError(UpstreamError):
    """The account store could not be read or written."""

    default_message = "Account store unavailable"


class AuthorizationError(UpstreamError):
    """Upstream answered 401 for the access token used."""

    default_message = "Upstream rejected the access token"

    def __init__(self, message: str | None = None):
        super().__init__(message, status=401)


class InvalidRefreshToken(RelayError):
    """Upstream answered 400 to a refresh; the user must re-authorize."""

    status_code = 400
    default_message = INVALID_TOKEN


class MissingRefreshToken(RelayError):
    """No refresh token is stored for the account; the user must re-authorize."""

    status_code = 400
    default_message = INVALID_TOKEN


def register_exception_handlers(app: FastAPI) -> None:
    """Map relay errors and unexpected failures to JSON responses"""

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        if isinstance(exc, AuthorizationError):
            logger.error(f"Authorization failure escaped on {request.url.path}: {exc.message}")
            return JSONResponse({"message": UpstreamError.default_message}, status_code=500)

        log = logger.warning if exc.status_code < 500 else logger.error
        log(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return JSONResponse({"message": exc.message}, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        if exc.status_code == 404 and exc.detail == "Not Found":
            return JSONResponse({"error": "Route Not Found"}, status_code=404)
        return JSONResponse(
            {"message": exc.detail}, status_code=exc.status_code, headers=exc.headers
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse({"message": "An unexpected error occurred"}, status_code=500)
