import time
from types import SimpleNamespace

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from compliance.config import settings
from compliance.services import identity_service


@pytest.fixture
def idp_key(monkeypatch):
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    class StaticJWKClient:
        def get_signing_key_from_jwt(self, token):
            return SimpleNamespace(key=private_key.public_key())

    monkeypatch.setattr(settings, "idp_jwks_url", "https://idp.example.com/certs")
    monkeypatch.setattr(settings, "idp_audience", "compliance-api")
    monkeypatch.setattr(identity_service, "_get_jwks_client", lambda url: StaticJWKClient())
    return private_key


def _idp_token(key, email, audience="compliance-api"):
    now = int(time.time())
    return jwt.encode(
        {"sub": "idp|42", "email": email, "aud": audience, "iat": now, "exp": now + 300},
        key,
        algorithm="RS256",
    )


class TestIdentityProviderTokens:
    def test_assertion_header_maps_to_local_user(self, client, owner, idp_key):
        r = client.get("/api/auth/me", headers={
            settings.idp_assertion_header: _idp_token(idp_key, owner.email),
        })
        assert r.status_code == 200
        assert r.json()["user"]["id"] == owner.id

    def test_bearer_fallback(self, client, owner, idp_key):
        token = _idp_token(idp_key, owner.email)
        r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 200

    def test_unknown_email(self, client, idp_key):
        r = client.get("/api/auth/me", headers={
            settings.idp_assertion_header: _idp_token(idp_key, "ghost@example.com"),
        })
        assert r.status_code == 401

    def test_wrong_audience(self, client, owner, idp_key):
        r = client.get("/api/auth/me", headers={
            settings.idp_assertion_header: _idp_token(idp_key, owner.email, audience="other"),
        })
        assert r.status_code == 401

    def test_disabled_without_jwks_url(self, client, owner, idp_key, monkeypatch):
        monkeypatch.setattr(settings, "idp_jwks_url", None)
        r = client.get("/api/auth/me", headers={
            settings.idp_assertion_header: _idp_token(idp_key, owner.email),
        })
        assert r.status_code == 401
