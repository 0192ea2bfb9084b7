"""
FastAPI adapter: request -> Identity, and registry errors -> HTTP.

Authentication itself happens upstream. Whatever middleware validates the
token is expected to set:
    request.state.user_id   int, absent or None when not signed in
    request.state.roles     iterable of role names

Usage:
    from gpat.security.identity import get_identity, install_error_handlers

    app = FastAPI()
    install_error_handlers(app)

    @app.patch("/measures/{measure_id}")
    def update_measure(measure_id: int, body: dict, identity: Identity = Depends(get_identity)):
        return service.update(identity, Kind.MEASURE, measure_id, body)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from gpat.errors import (
    AuthenticationRequired,
    AuthorizationError,
    ConcurrencyConflict,
    ReferenceNotFound,
    ValidationError,
)
from gpat.security.roles import Identity, parse_roles
from gpat.utils import generate_request_id

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Error body. Authorization failures never say which rule failed."""

    error: str
    request_id: str
    errors: dict[str, list[str]] = Field(default_factory=dict)


async def get_identity(request: Request) -> Identity:
    """Dependency building the acting identity from request.state."""
    user_id = getattr(request.state, "user_id", None)
    roles = parse_roles(getattr(request.state, "roles", None))
    request_id = request.headers.get("X-Request-ID") or generate_request_id()
    identity = Identity(user_id=int(user_id) if user_id is not None else None, roles=roles, request_id=request_id)
    request.state.identity = identity
    return identity


def _request_id(request: Request) -> str:
    identity = getattr(request.state, "identity", None)
    if identity is not None:
        return identity.request_id
    return request.headers.get("X-Request-ID") or generate_request_id()


def _respond(request: Request, status_code: int, error: str, errors: dict | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, request_id=_request_id(request), errors=errors or {})
    return JSONResponse(status_code=status_code, content=body.model_dump())


def install_error_handlers(app: FastAPI) -> None:
    """Map registry errors to 401/403/404/409/422."""

    @app.exception_handler(AuthenticationRequired)
    async def _unauthenticated(request: Request, exc: AuthenticationRequired):
        return _respond(request, 401, "authentication required")

    @app.exception_handler(AuthorizationError)
    async def _forbidden(request: Request, exc: AuthorizationError):
        logger.warning(f"Forbidden: {request.method} {request.url.path}")
        return _respond(request, 403, "not authorized")

    @app.exception_handler(ReferenceNotFound)
    async def _not_found(request: Request, exc: ReferenceNotFound):
        return _respond(request, 404, str(exc))

    @app.exception_handler(ConcurrencyConflict)
    async def _conflict(request: Request, exc: ConcurrencyConflict):
        return _respond(request, 409, str(exc))

    @app.exception_handler(ValidationError)
    async def _invalid(request: Request, exc: ValidationError):
        return _respond(request, 422, "validation failed", exc.errors())
