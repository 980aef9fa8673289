"""
tests/test_auth.py -- Identity verifiers and the Auth Guard.

Coverage:
  - LocalIdentityVerifier: valid, expired, tampered, wrong secret
  - FirebaseIdentityVerifier: RS256 against a mocked JWKS endpoint --
    valid token, wrong audience, wrong issuer, unknown kid, HS256 downgrade,
    key-set caching, key-fetch failure -> Internal
  - Auth Guard over HTTP: missing / malformed header -> 401 {"message"},
    checked before a malformed body is parsed

The JWKS HTTP call is mocked; no test touches the network.
"""

from __future__ import annotations

import time
from unittest.mock import MagicMock

import pytest
import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from jose import jwk, jwt

from auth.tokens import create_identity_token
from auth.verifier import FirebaseIdentityVerifier, LocalIdentityVerifier
from core.errors import Internal, Unauthorized

from conftest import auth_headers

_PROJECT = "bookorbit-test"
_ISSUER = f"https://securetoken.google.com/{_PROJECT}"

# ---------------------------------------------------------------------------
# Local verifier
# ---------------------------------------------------------------------------


class TestLocalIdentityVerifier:
    def test_valid_token_yields_claims(self):
        token = create_identity_token("a@x.com", name="A", picture="https://img/a.png")
        claims = LocalIdentityVerifier().verify(token)
        assert claims.email == "a@x.com"
        assert claims.uid == "a@x.com"
        assert claims.name == "A"
        assert claims.picture == "https://img/a.png"

    def test_expired_token_rejected(self):
        token = create_identity_token("a@x.com", expire_seconds=-60)
        with pytest.raises(Unauthorized):
            LocalIdentityVerifier().verify(token)

    def test_tampered_token_rejected(self):
        token = create_identity_token("a@x.com")
        with pytest.raises(Unauthorized):
            LocalIdentityVerifier().verify(token[:-4] + "AAAA")

    def test_token_signed_with_other_secret_rejected(self):
        forged = jwt.encode(
            {"iss": "bookorbit-local", "sub": "a@x.com", "email": "a@x.com", "exp": int(time.time()) + 60},
            "x" * 64,
            algorithm="HS256",
        )
        with pytest.raises(Unauthorized):
            LocalIdentityVerifier().verify(forged)

    def test_garbage_rejected(self):
        with pytest.raises(Unauthorized):
            LocalIdentityVerifier().verify("not-a-jwt")


# ---------------------------------------------------------------------------
# Firebase verifier
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def rsa_keys() -> tuple[str, dict]:
    """Return (private PEM, public JWK with kid 'k1')."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    public_jwk = jwk.construct(public_pem, "RS256").to_dict()
    public_jwk["kid"] = "k1"
    public_jwk["use"] = "sig"
    return private_pem, public_jwk


def _firebase_token(private_pem: str, kid: str = "k1", **overrides) -> str:
    now = int(time.time())
    claims = {
        "iss": _ISSUER,
        "aud": _PROJECT,
        "sub": "firebase-uid-1",
        "email": "a@x.com",
        "iat": now,
        "exp": now + 300,
    }
    claims.update(overrides)
    return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": kid})


def _jwks_session(public_jwk: dict) -> MagicMock:
    resp = MagicMock()
    resp.json.return_value = {"keys": [public_jwk]}
    resp.headers = {"Cache-Control": "public, max-age=19000, must-revalidate, no-transform"}
    resp.raise_for_status.return_value = None
    session = MagicMock()
    session.get.return_value = resp
    return session


class TestFirebaseIdentityVerifier:
    def test_valid_token_yields_claims(self, rsa_keys):
        private_pem, public_jwk = rsa_keys
        verifier = FirebaseIdentityVerifier(_PROJECT, session=_jwks_session(public_jwk))
        claims = verifier.verify(_firebase_token(private_pem))
        assert claims.email == "a@x.com"
        assert claims.uid == "firebase-uid-1"

    def test_signing_keys_cached_between_requests(self, rsa_keys):
        private_pem, public_jwk = rsa_keys
        session = _jwks_session(public_jwk)
        verifier = FirebaseIdentityVerifier(_PROJECT, session=session)
        verifier.verify(_firebase_token(private_pem))
        verifier.verify(_firebase_token(private_pem))
        assert session.get.call_count == 1

    @pytest.mark.parametrize(
        "overrides",
        [
            {"aud": "some-other-project"},
            {"iss": "https://securetoken.google.com/some-other-project"},
            {"exp": int(time.time()) - 10},
            {"sub": ""},
            {"email": None},
        ],
    )
    def test_bad_claims_rejected(self, rsa_keys, overrides):
        private_pem, public_jwk = rsa_keys
        verifier = FirebaseIdentityVerifier(_PROJECT, session=_jwks_session(public_jwk))
        with pytest.raises(Unauthorized):
            verifier.verify(_firebase_token(private_pem, **overrides))

    def test_unknown_kid_rejected(self, rsa_keys):
        private_pem, public_jwk = rsa_keys
        verifier = FirebaseIdentityVerifier(_PROJECT, session=_jwks_session(public_jwk))
        with pytest.raises(Unauthorized):
            verifier.verify(_firebase_token(private_pem, kid="rotated-away"))

    def test_hs256_token_rejected(self, rsa_keys):
        _, public_jwk = rsa_keys
        verifier = FirebaseIdentityVerifier(_PROJECT, session=_jwks_session(public_jwk))
        with pytest.raises(Unauthorized):
            verifier.verify(create_identity_token("a@x.com"))

    def test_malformed_token_rejected(self, rsa_keys):
        _, public_jwk = rsa_keys
        verifier = FirebaseIdentityVerifier(_PROJECT, session=_jwks_session(public_jwk))
        with pytest.raises(Unauthorized):
            verifier.verify("definitely.not.ajwt")

    def test_key_fetch_failure_is_internal(self, rsa_keys):
        private_pem, _ = rsa_keys
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("down")
        verifier = FirebaseIdentityVerifier(_PROJECT, session=session)
        with pytest.raises(Internal, match="Identity provider unavailable"):
            verifier.verify(_firebase_token(private_pem))


# ---------------------------------------------------------------------------
# Auth Guard over HTTP
# ---------------------------------------------------------------------------


class TestAuthGuard:
    """Protected routes must return 401 {"message"} before any handler runs."""

    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"Authorization": ""},
            {"Authorization": "Bearer"},
            {"Authorization": "Bearer "},
            {"Authorization": "Token abc"},
            {"Authorization": "bearer abc"},
            {"Authorization": "Bearer abc def"},
            {"Authorization": "Bearer not-a-jwt"},
        ],
    )
    def test_rejected_headers(self, api_client: tuple[TestClient, object], headers) -> None:
        client, _ = api_client
        resp = client.get("/users/role", headers=headers)
        assert resp.status_code == 401, f"Expected 401, got {resp.status_code}: {resp.text}"
        assert resp.json() == {"message": "Unauthorized access"}

    def test_expired_token_rejected(self, api_client) -> None:
        client, _ = api_client
        token = create_identity_token("a@x.com", expire_seconds=-60)
        resp = client.get("/users/role", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_rejected_request_has_no_side_effect(self, api_client) -> None:
        """POST /orders without auth must not create an order for anyone."""
        client, _ = api_client
        resp = client.post("/orders", json={"userEmail": "victim@x.com"})
        assert resp.status_code == 401
        mine = client.get("/orders/my", headers=auth_headers("victim@x.com"))
        assert mine.json() == []

    @pytest.mark.parametrize(
        "method, path",
        [("post", "/books"), ("patch", "/books/" + "0" * 24), ("post", "/orders")],
    )
    def test_missing_token_beats_malformed_body(self, api_client, method, path) -> None:
        client, _ = api_client
        resp = client.request(
            method.upper(), path, content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert resp.status_code == 401
        assert resp.json() == {"message": "Unauthorized access"}

    def test_malformed_body_with_valid_token_is_400(self, api_client) -> None:
        client, _ = api_client
        headers = {**auth_headers("body@x.com"), "Content-Type": "application/json"}
        resp = client.post("/orders", content=b"{not json", headers=headers)
        assert resp.status_code == 400
        assert resp.json() == {"message": "Invalid request body"}

    def test_valid_token_passes(self, api_client) -> None:
        client, _ = api_client
        resp = client.get("/users/role", headers=auth_headers("guard@x.com"))
        assert resp.status_code == 200
