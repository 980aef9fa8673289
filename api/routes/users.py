"""
api/routes/users.py -- User Directory endpoints.

Routes:
  PUT /users        -- upsert profile on login/register (public)
  GET /users/role   -- caller's role (requires auth)

PUT /users is public: the frontend calls it right after the identity
provider signs the user in. It can only ever create "user" accounts and
refresh name/photo, so it grants nothing.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.errors import store_errors
from api.models import RoleResponse, UpdateResponse, UserUpsert
from auth.dependencies import get_current_claims
from auth.models import Claims
from users.store import UserDirectory

router = APIRouter()


@router.put("/users", response_model=UpdateResponse)
def upsert_user(request: Request, body: Optional[UserUpsert] = None) -> UpdateResponse:
    """Create the user on first login, refresh name/email/photo afterwards. Role is never touched."""
    users: UserDirectory = request.app.state.users
    body = body or UserUpsert()
    with store_errors("Failed to save user"):
        result = users.upsert_user(body.email, name=body.name, photo_url=body.photo_url)
    return UpdateResponse.from_result(result)


@router.get("/users/role", response_model=RoleResponse)
def get_role(request: Request, claims: Claims = Depends(get_current_claims)) -> RoleResponse:
    """Return the caller's stored role ("user" if they never upserted)."""
    users: UserDirectory = request.app.state.users
    with store_errors("Failed to fetch role"):
        role = users.get_role(claims.email)
    return RoleResponse(role=role)
