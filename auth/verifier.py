"""
auth/verifier.py -- Identity verification for bearer tokens.

Pattern: Strategy. The Auth Guard (auth/dependencies.py) only knows the
IdentityVerifier interface; the concrete verifier is chosen once at startup
by build_verifier() from Settings.identity_provider and stored on
app.state.verifier. Tests swap in the local verifier the same way.

  FirebaseIdentityVerifier -- Firebase Authentication ID tokens.
      RS256, signed by one of Google's rotating keys. The key set is fetched
      from Settings.firebase_jwks_url and kept until the Cache-Control max-age
      the endpoint advertises runs out. Only the signing KEYS are cached;
      every token is verified in full on every request.
      aud must equal the Firebase project id;
      iss must be https://securetoken.google.com/<project id>.

  LocalIdentityVerifier -- HS256 tokens minted by auth.tokens (dev, tests).

Failure mapping:
  bad / expired / malformed token, unknown kid, no email claim -> Unauthorized
  key set cannot be fetched                                     -> Internal

Layer rule: no imports from api/, users/, catalog/, or orders/.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from typing import Protocol

import requests
from jose import JWTError, jwt

from auth.models import Claims
from auth.tokens import decode_identity_token
from core.config import Settings
from core.errors import Internal, Unauthorized

logger = logging.getLogger("bookorbit.auth")

_FIREBASE_ISSUER = "https://securetoken.google.com/{project_id}"
_DEFAULT_KEY_TTL = 60 * 60  # used when the JWKS response has no max-age
_MAX_AGE_RE = re.compile(r"max-age=(\d+)")


class IdentityVerifier(Protocol):
    """Interface for bearer-token verification."""

    def verify(self, token: str) -> Claims:
        ...


def _claims_from_payload(payload: dict) -> Claims:
    email = payload.get("email")
    if not email:
        raise Unauthorized()
    return Claims(
        email=email,
        uid=payload.get("sub") or payload.get("user_id"),
        name=payload.get("name"),
        picture=payload.get("picture"),
        raw=payload,
    )


class LocalIdentityVerifier:
    """Verifies HS256 tokens signed with SECRET_KEY."""

    def verify(self, token: str) -> Claims:
        payload = decode_identity_token(token)
        if payload is None:
            raise Unauthorized()
        return _claims_from_payload(payload)


class FirebaseIdentityVerifier:
    """Verifies Firebase ID tokens against Google's published signing keys.

    Usage:
        verifier = FirebaseIdentityVerifier(project_id="bookorbit-prod")
        claims = verifier.verify(id_token)   # raises Unauthorized / Internal
    """

    def __init__(
        self,
        project_id: str,
        jwks_url: str = (
            "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
        ),
        session: requests.Session | None = None,
    ) -> None:
        self.project_id = project_id
        self.issuer = _FIREBASE_ISSUER.format(project_id=project_id)
        self.jwks_url = jwks_url
        self._session = session or requests.Session()
        self._session.max_redirects = 3
        self._keys: dict[str, dict] = {}
        self._keys_expire_at = 0.0
        # Handlers run in FastAPI's thread pool; one refresh at a time.
        self._lock = threading.Lock()

    def verify(self, token: str) -> Claims:
        try:
            header = jwt.get_unverified_header(token)
        except JWTError:
            raise Unauthorized()
        if header.get("alg") != "RS256":
            raise Unauthorized()

        key = self._signing_keys().get(header.get("kid", ""))
        if key is None:
            raise Unauthorized()

        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=["RS256"],
                audience=self.project_id,
                issuer=self.issuer,
            )
        except JWTError as e:
            logger.info("Firebase token rejected: %s", e)
            raise Unauthorized()

        if not payload.get("sub"):
            raise Unauthorized()
        return _claims_from_payload(payload)

    def _signing_keys(self) -> dict[str, dict]:
        """Return {kid: jwk}, refreshing from the JWKS endpoint once the cached set expires."""
        with self._lock:
            if self._keys and time.monotonic() < self._keys_expire_at:
                return self._keys
            try:
                resp = self._session.get(self.jwks_url, timeout=10)
                resp.raise_for_status()
                body = resp.json()
            except (requests.RequestException, ValueError) as e:
                logger.error("Could not fetch Firebase signing keys: %s", e)
                raise Internal("Identity provider unavailable")

            self._keys = {k["kid"]: k for k in body.get("keys", []) if "kid" in k}
            match = _MAX_AGE_RE.search(resp.headers.get("Cache-Control", ""))
            ttl = int(match.group(1)) if match else _DEFAULT_KEY_TTL
            self._keys_expire_at = time.monotonic() + ttl
            logger.info("Loaded %d Firebase signing keys (ttl=%ds)", len(self._keys), ttl)
            return self._keys


def build_verifier(settings: Settings) -> IdentityVerifier:
    """Pick the verifier for the configured identity provider."""
    if settings.identity_provider == "firebase":
        return FirebaseIdentityVerifier(settings.firebase_project_id, jwks_url=settings.firebase_jwks_url)
    return LocalIdentityVerifier()
