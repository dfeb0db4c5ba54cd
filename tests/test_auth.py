"""Tests for OIDC JWT authentication."""

from __future__ import annotations

import time
from unittest.mock import patch

import pytest
import requests

from api_support import build_client
from helpers import (
    ADMIN_ID,
    GUEST_ID,
    TEST_AUDIENCE,
    TEST_ISSUER,
    TEST_JWKS_URL,
    _create_jwks,
    _create_token,
    _generate_rsa_keypair,
)
from hotelbook.api.auth import CurrentUser


@pytest.fixture
def rsa_keypair():
    """Fixture providing RSA key pair."""
    return _generate_rsa_keypair()


@pytest.fixture
def jwks(rsa_keypair):
    """Fixture providing JWKS."""
    _, public_key = rsa_keypair
    return _create_jwks(public_key)


@pytest.fixture
def oidc_env():
    """Fixture providing OIDC environment variables."""
    env = {
        "OIDC_ISSUER": TEST_ISSUER,
        "OIDC_AUDIENCE": TEST_AUDIENCE,
        "OIDC_JWKS_URL": TEST_JWKS_URL,
    }
    with patch.dict("os.environ", env):
        yield env


@pytest.fixture
def mock_jwks_fetch(jwks):
    """Fixture that mocks JWKS fetch."""
    with patch("hotelbook.api.auth._fetch_jwks") as mock:
        mock.return_value = jwks
        yield mock


@pytest.fixture
def client(store, provider, notifier, settings):
    return build_client(store, provider, notifier, settings)


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestAuthNoToken:
    """Test 401 when no Authorization header."""

    def test_missing_auth_header(self, oidc_env, client):
        response = client.get("/bookings/mine")
        assert response.status_code == 401
        assert "Missing authorization header" in response.json()["detail"]

    def test_invalid_bearer_format(self, oidc_env, client):
        response = client.get("/bookings/mine", headers={"Authorization": "Basic abc"})
        assert response.status_code == 401
        assert "Invalid authorization header" in response.json()["detail"]

    def test_public_endpoints_need_no_token(self, client):
        assert client.get("/health").status_code == 200


class TestAuthInvalidToken:
    """Test 401 for invalid tokens."""

    def test_malformed_token(self, oidc_env, mock_jwks_fetch, client):
        response = client.get("/bookings/mine", headers=_bearer("abc"))
        assert response.status_code == 401
        assert "Invalid token" in response.json()["detail"]

    def test_expired_token(self, oidc_env, rsa_keypair, mock_jwks_fetch, client):
        private_key, _ = rsa_keypair
        token = _create_token(private_key, exp=int(time.time()) - 3600)

        response = client.get("/bookings/mine", headers=_bearer(token))
        assert response.status_code == 401
        assert "Token expired" in response.json()["detail"]

    def test_wrong_issuer(self, oidc_env, rsa_keypair, mock_jwks_fetch, client):
        private_key, _ = rsa_keypair
        token = _create_token(private_key, iss="https://wrong-issuer.com")

        response = client.get("/bookings/mine", headers=_bearer(token))
        assert response.status_code == 401
        assert "Invalid token" in response.json()["detail"]

    def test_wrong_audience(self, oidc_env, rsa_keypair, mock_jwks_fetch, client):
        private_key, _ = rsa_keypair
        token = _create_token(private_key, aud="wrong-audience")

        response = client.get("/bookings/mine", headers=_bearer(token))
        assert response.status_code == 401

    def test_signed_by_unknown_key(self, oidc_env, mock_jwks_fetch, client):
        other_private, _ = _generate_rsa_keypair()
        token = _create_token(other_private)

        response = client.get("/bookings/mine", headers=_bearer(token))
        assert response.status_code == 401
        # signature mismatch triggers one forced refetch
        assert mock_jwks_fetch.call_count == 2

    def test_oidc_not_configured(self, rsa_keypair, client, monkeypatch):
        for name in ("OIDC_ISSUER", "OIDC_AUDIENCE", "OIDC_JWKS_URL"):
            monkeypatch.delenv(name, raising=False)
        private_key, _ = rsa_keypair

        response = client.get("/bookings/mine", headers=_bearer(_create_token(private_key)))
        assert response.status_code == 401
        assert "OIDC not configured" in response.json()["detail"]

    def test_jwks_unreachable_is_503(self, oidc_env, rsa_keypair, client):
        private_key, _ = rsa_keypair
        with patch("hotelbook.api.auth._fetch_jwks", side_effect=requests.ConnectionError("down")):
            response = client.get("/bookings/mine", headers=_bearer(_create_token(private_key)))
        assert response.status_code == 503


class TestAuthValidToken:
    def test_guest_token(self, oidc_env, rsa_keypair, mock_jwks_fetch, client):
        private_key, _ = rsa_keypair

        response = client.get("/bookings/mine", headers=_bearer(_create_token(private_key)))

        assert response.status_code == 200
        assert response.json()["pagination"]["total"] == 0

    def test_jwks_is_cached(self, oidc_env, rsa_keypair, mock_jwks_fetch, client):
        private_key, _ = rsa_keypair
        headers = _bearer(_create_token(private_key))

        client.get("/bookings/mine", headers=headers)
        client.get("/bookings/mine", headers=headers)

        assert mock_jwks_fetch.call_count == 1

    def test_guest_cannot_reach_staff_routes(self, oidc_env, rsa_keypair, mock_jwks_fetch, client):
        private_key, _ = rsa_keypair

        response = client.get("/bookings", headers=_bearer(_create_token(private_key)))

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "forbidden"

    def test_admin_role_claim(self, oidc_env, rsa_keypair, mock_jwks_fetch, client):
        private_key, _ = rsa_keypair
        token = _create_token(private_key, sub=ADMIN_ID, role="admin")

        response = client.get("/bookings", headers=_bearer(token))

        assert response.status_code == 200

    def test_custom_admin_role(self, oidc_env, rsa_keypair, mock_jwks_fetch, client, monkeypatch):
        monkeypatch.setenv("OIDC_ADMIN_ROLE", "front-desk")
        private_key, _ = rsa_keypair

        admin_claim = client.get("/bookings", headers=_bearer(_create_token(private_key, role="admin")))
        desk_claim = client.get("/bookings", headers=_bearer(_create_token(private_key, role="front-desk")))

        assert admin_claim.status_code == 403
        assert desk_claim.status_code == 200


class TestCurrentUser:
    def test_to_actor(self):
        actor = CurrentUser(id=GUEST_ID).to_actor()
        assert actor.user_id == GUEST_ID
        assert not actor.is_admin

    def test_roles_list_claim(self):
        user = CurrentUser(id=ADMIN_ID, roles=frozenset({"viewer", "admin"}))
        assert user.to_actor().is_admin
