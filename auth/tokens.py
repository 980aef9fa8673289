"""
auth/tokens.py -- Locally signed identity tokens (development and tests).

Production callers present Firebase ID tokens, which BookOrbit never mints.
For local development and the test suite, the "local" identity provider
accepts HS256 JWTs signed with SECRET_KEY that carry the same claims a
Firebase token does (sub, email, name, picture).

  JWT: python-jose with HS256. decode_identity_token() returns None on any
       failure -- the verifier turns that into Unauthorized.

  SECRET_KEY: sourced from core.config.get_settings(). Dev mode (DEBUG=true)
       auto-generates a random key with a warning; production mode refuses to
       start without one.

Layer rule: no imports from api/, users/, catalog/, or orders/. Import from
core/ is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from core.config import get_settings

logger = logging.getLogger("bookorbit.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"
_ISSUER = "bookorbit-local"


def create_identity_token(
    email: str,
    name: str | None = None,
    picture: str | None = None,
    expire_seconds: int = 0,
) -> str:
    """Encode a signed identity token for the given email.

    Args:
        email:          Email claim; also used as the subject.
        name:           Optional display name claim.
        picture:        Optional photo URL claim.
        expire_seconds: Token lifetime. If 0 (default), uses
                        Settings.identity_token_expire_seconds. Negative values
                        produce an already-expired token (useful in tests).
    """
    duration = expire_seconds if expire_seconds != 0 else _settings.identity_token_expire_seconds
    now = datetime.now(timezone.utc)
    payload = {
        "iss": _ISSUER,
        "sub": email,
        "email": email,
        "iat": now,
        "exp": now + timedelta(seconds=duration),
    }
    if name:
        payload["name"] = name
    if picture:
        payload["picture"] = picture
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_identity_token(token: str) -> dict | None:
    """Decode and verify a local identity token. Returns the payload dict or None on any failure."""
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM], issuer=_ISSUER)
    except JWTError as e:
        logger.debug("Local identity token rejected: %s", e)
        return None
    if not payload.get("email"):
        return None
    return payload
