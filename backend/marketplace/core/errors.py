"""Error taxonomy and the handlers that render it as JSON."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger


class MarketplaceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Internal server error"
    hint: Optional[str] = None

    def __init__(
        self,
        error: Optional[str] = None,
        *,
        hint: Optional[str] = None,
        details: Any = None,
    ) -> None:
        if error is not None:
            self.error = error
        if hint is not None:
            self.hint = hint
        self.details = details
        super().__init__(self.error)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error}
        if self.hint:
            body["hint"] = self.hint
        if self.details is not None:
            body["details"] = self.details
        return body


class AuthenticationMissing(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Authentication required"
    hint = "Please log in first"


class SessionExpired(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Session expired"
    hint = "Please log in again"


class RoleUnresolved(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "User role not found"
    hint = "Contact support"


class RoleForbidden(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Forbidden"


class ValidationFailed(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Validation failed"


class SlotUnavailable(ValidationFailed):
    error = "Ad slot is no longer available"


class NotFoundOrForbidden(MarketplaceError):
    """Raised both for missing rows and for rows owned by someone else."""

    status_code = status.HTTP_404_NOT_FOUND
    error = "Not found"


class LockConflict(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    error = "Resource is locked by another request. Please retry shortly."


class Internal(MarketplaceError):
    pass


class DatabaseUnavailable(MarketplaceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error = "Database not reachable"


def _validation_details(exc: RequestValidationError) -> list[dict[str, Any]]:
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        details.append({"field": ".".join(loc), "message": err.get("msg", "")})
    return details


def register_exception_handlers(app: FastAPI) -> None:
    """Attach JSON renderers for the error taxonomy to the app."""

    async def marketplace_error_handler(request: Request, exc: MarketplaceError):
        if exc.status_code >= 500:
            logger.bind(path=request.url.path, error=exc.error).error("request_failed")
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_body()))

    async def validation_error_handler(request: Request, exc: RequestValidationError):
        err = ValidationFailed(details=_validation_details(exc))
        return JSONResponse(status_code=err.status_code, content=jsonable_encoder(err.to_body()))

    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.opt(exception=exc).bind(path=request.url.path).error("unhandled_exception")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=Internal().to_body(),
        )

    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
