"""
Tests for the FastAPI identity adapter and error handlers.
"""

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from gpat.errors import (
    AuthenticationRequired,
    AuthorizationError,
    ConcurrencyConflict,
    ReferenceNotFound,
    ValidationError,
    Violation,
)
from gpat.security.identity import get_identity, install_error_handlers
from gpat.security.roles import Identity, Role


@pytest.fixture
def app():
    app = FastAPI()
    install_error_handlers(app)

    @app.middleware("http")
    async def fake_auth(request: Request, call_next):
        """Stands in for the token middleware."""
        if "X-User" in request.headers:
            request.state.user_id = request.headers["X-User"]
            request.state.roles = request.headers.get("X-Roles", "").split(",")
        return await call_next(request)

    @app.get("/whoami")
    def whoami(identity: Identity = Depends(get_identity)):
        return {
            "user_id": identity.user_id,
            "roles": sorted(identity.roles),
            "request_id": identity.request_id,
        }

    errors = {
        "unauthenticated": AuthenticationRequired(),
        "forbidden": AuthorizationError(),
        "missing": ReferenceNotFound("measure", 7),
        "stale": ConcurrencyConflict(),
        "invalid": ValidationError([Violation("public_api", "and draft cannot both be true")]),
    }

    @app.get("/fail/{name}")
    def fail(name: str, identity: Identity = Depends(get_identity)):
        raise errors[name]

    return app


@pytest.fixture
def client(app):
    return TestClient(app)


class TestGetIdentity:
    def test_signed_in(self, client):
        response = client.get("/whoami", headers={"X-User": "3", "X-Roles": "manager,bogus"})

        body = response.json()
        assert body["user_id"] == 3
        assert body["roles"] == [Role.MANAGER]

    def test_anonymous(self, client):
        body = client.get("/whoami").json()
        assert body["user_id"] is None
        assert body["roles"] == []

    def test_request_id_forwarded(self, client):
        body = client.get("/whoami", headers={"X-Request-ID": "req-abc"}).json()
        assert body["request_id"] == "req-abc"


class TestErrorHandlers:
    @pytest.mark.parametrize(
        "name,status",
        [("unauthenticated", 401), ("forbidden", 403), ("missing", 404), ("stale", 409), ("invalid", 422)],
    )
    def test_status_codes(self, client, name, status):
        assert client.get(f"/fail/{name}").status_code == status

    def test_forbidden_body_is_generic(self, client):
        body = client.get("/fail/forbidden", headers={"X-Request-ID": "req-1"}).json()
        assert body == {"error": "not authorized", "request_id": "req-1", "errors": {}}

    def test_conflict_message(self, client):
        assert client.get("/fail/stale").json()["error"] == "Record outdated"

    def test_validation_errors_grouped(self, client):
        body = client.get("/fail/invalid").json()
        assert body["errors"] == {"public_api": ["and draft cannot both be true"]}
