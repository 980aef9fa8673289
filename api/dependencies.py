"""
api/dependencies.py -- Request body dependency for authenticated routes.

FastAPI parses a declared Body() parameter before any dependency runs, so a
malformed body would be rejected with 400 even when the caller has no token.
Protected routes take their free-form JSON payload from json_object_body
instead: it depends on the Auth Guard, so the caller is verified first and
only then is the body read.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import Depends, Request

from auth.dependencies import get_current_claims
from auth.models import Claims
from core.errors import InvalidInput


async def json_object_body(request: Request, claims: Claims = Depends(get_current_claims)) -> dict[str, Any]:
    """Return the request body as a JSON object. An empty body or null is {}.

    Raises InvalidInput("Invalid request body") for malformed JSON or any
    other top-level JSON value.
    """
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        raise InvalidInput("Invalid request body")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInput("Invalid request body")
    return data
