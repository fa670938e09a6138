# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for token validation and the authentication decorators.
"""

import jwt
import pytest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from flask import Flask, g

from bridgehope.exceptions import AuthenticationException, AuthorizationException
from bridgehope.middleware.auth import AuthMiddleware, require_party
from bridgehope.models.entities import Party
from bridgehope.models.enums import PartyRole
from bridgehope.services.auth import AuthService, TokenValidationError


@pytest.fixture
def ngo():
    return Party(role=PartyRole.NGO, name="Helping Hands", email="team@helpinghands.org")


def _encode(auth_service, **claims):
    now = datetime.now(timezone.utc)
    payload = {"sub": "p1", "role": "ngo", "iat": now, "exp": now + timedelta(minutes=5), "type": "access"}
    payload.update(claims)
    return jwt.encode(payload, auth_service.private_key, algorithm="RS256")


class TestAuthService:
    """Test access token issuance and validation."""

    def test_generated_token_validates(self, auth_service, ngo):
        issued = auth_service.generate_access_token(ngo)

        payload = auth_service.validate_token(issued["access_token"])

        assert issued["token_type"] == "Bearer"
        assert issued["expires_in"] == auth_service.access_token_expire_minutes * 60
        assert payload["sub"] == ngo.id
        assert payload["role"] == "ngo"
        assert payload["name"] == "Helping Hands"
        assert payload["type"] == "access"

    def test_expired_token(self, auth_service):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        token = _encode(auth_service, iat=past - timedelta(minutes=5), exp=past)

        with pytest.raises(TokenValidationError) as exc_info:
            auth_service.validate_token(token)

        assert str(exc_info.value) == "Token has expired"

    def test_token_signed_by_other_key(self, auth_service, ngo):
        other = AuthService()
        token = other.generate_access_token(ngo)["access_token"]

        with pytest.raises(TokenValidationError) as exc_info:
            auth_service.validate_token(token)

        assert "Invalid token" in str(exc_info.value)

    def test_wrong_token_type(self, auth_service):
        token = _encode(auth_service, type="refresh")

        with pytest.raises(TokenValidationError) as exc_info:
            auth_service.validate_token(token)

        assert "Invalid token type" in str(exc_info.value)

    def test_missing_role(self, auth_service):
        token = _encode(auth_service, role=None)

        with pytest.raises(TokenValidationError):
            auth_service.validate_token(token)

    def test_garbage_token(self, auth_service):
        with pytest.raises(TokenValidationError):
            auth_service.validate_token("not.a.token")

    def test_verify_only_service_cannot_sign(self, auth_service, ngo):
        verifier = AuthService(public_key=auth_service.public_key)

        with pytest.raises(TokenValidationError):
            verifier.generate_access_token(ngo)

        token = auth_service.generate_access_token(ngo)["access_token"]
        assert verifier.validate_token(token)["sub"] == ngo.id


@pytest.fixture
def flask_app(auth_service):
    app = Flask(__name__)
    app.auth_middleware = AuthMiddleware(auth_service)
    return app


def _bearer(auth_service, party):
    return {"Authorization": f"Bearer {auth_service.generate_access_token(party)['access_token']}"}


class TestAuthMiddleware:
    """Test request authentication."""

    def test_extracts_bearer_token_only(self, flask_app):
        middleware = flask_app.auth_middleware

        with flask_app.test_request_context(headers={"Authorization": "Bearer abc"}):
            assert middleware.extract_token_from_request() == "abc"

        with flask_app.test_request_context(headers={"Authorization": "Basic abc"}):
            assert middleware.extract_token_from_request() is None

        with flask_app.test_request_context(headers={"Authorization": "Bearer   "}):
            assert middleware.extract_token_from_request() is None

    def test_authenticate_sets_user_context(self, flask_app, auth_service, ngo):
        headers = _bearer(auth_service, ngo)
        headers.update({"User-Agent": "pytest", "X-Request-ID": "req-1"})

        with flask_app.test_request_context(headers=headers):
            context = flask_app.auth_middleware.authenticate()

            assert g.user_context is context
            assert context.party_id == ngo.id
            assert context.role == "ngo"
            assert context.user_agent == "pytest"
            assert context.request_id == "req-1"

    def test_missing_token(self, flask_app):
        with flask_app.test_request_context():
            with pytest.raises(AuthenticationException) as exc_info:
                flask_app.auth_middleware.authenticate()

        assert exc_info.value.message == "Missing authorization token"
        assert exc_info.value.status_code == 401

    def test_unknown_role_claim(self, flask_app, auth_service):
        token = _encode(auth_service, role="admin")

        with flask_app.test_request_context(headers={"Authorization": f"Bearer {token}"}):
            with pytest.raises(AuthenticationException) as exc_info:
                flask_app.auth_middleware.authenticate()

        assert "Invalid token claims" in exc_info.value.message


class TestDecorators:
    """Test role and identity decorators."""

    def test_require_party_authenticates_caller(self, flask_app, auth_service, ngo):
        @require_party(PartyRole.NGO)
        def handler():
            return g.user_context.party_id

        with flask_app.test_request_context(headers=_bearer(auth_service, ngo)):
            assert handler() == ngo.id

        with flask_app.test_request_context():
            with pytest.raises(AuthenticationException):
                handler()

    def test_require_party_checks_role(self, flask_app, auth_service, ngo):
        donor = Party(role=PartyRole.DONOR, name="Ana")

        @require_party(PartyRole.NGO)
        def handler():
            return "ok"

        with flask_app.test_request_context(headers=_bearer(auth_service, ngo)):
            assert handler() == "ok"

        with flask_app.test_request_context(headers=_bearer(auth_service, donor)):
            with pytest.raises(AuthorizationException) as exc_info:
                handler()

        assert exc_info.value.message == "Only ngo accounts can perform this action"

    def test_require_party_checks_path_identity(self, flask_app, auth_service, ngo):
        @require_party(PartyRole.NGO, path_field="ngo_id")
        def handler(path):
            return path.ngo_id

        with flask_app.test_request_context(headers=_bearer(auth_service, ngo)):
            assert handler(path=SimpleNamespace(ngo_id=ngo.id)) == ngo.id

            with pytest.raises(AuthorizationException) as exc_info:
                handler(path=SimpleNamespace(ngo_id="someone-else"))

        assert exc_info.value.message == "You can only act on your own account"
