"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The Auth Guard. One auth method only:
  Authorization: Bearer <identity token>

The token is handed to the verifier on app.state.verifier (see
auth/verifier.py). On success the verified Claims are attached to
request.state.claims and returned to the route. On any failure the request
ends with 401 before the handler body runs, so no side effect happens.

Stateless: nothing is cached between requests and nothing is retried.

Layer rule: no imports from users/, catalog/, or orders/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import Claims
from core.errors import Unauthorized


def _bearer_token(request: Request) -> str:
    """Return the token from an exactly "Bearer <token>" header, else raise Unauthorized."""
    auth_header = request.headers.get("Authorization", "")
    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise Unauthorized()
    return parts[1]


def get_current_claims(request: Request) -> Claims:
    """Require a valid bearer token. Raises Unauthorized (HTTP 401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: Claims = Depends(get_current_claims)): ...
    """
    token = _bearer_token(request)
    claims = request.app.state.verifier.verify(token)
    request.state.claims = claims
    return claims
