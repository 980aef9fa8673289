"""
API request and response models for BookOrbit REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/, users/,
catalog/ and orders/, which own the internal domain representation. Route
handlers map between the two.

Wire field names are camelCase (insertedId, photoURL, ...) because that is
what existing clients consume. Python attributes stay snake_case; the alias
generator does the translation and FastAPI serializes response models by alias.

Book and order payloads are free-form JSON objects and have no model here.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.models import InsertResult, UpdateResult

_WIRE_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class UserUpsert(BaseModel):
    """Request body for PUT /users (login/register sync).

    Every field is optional at the model level: a missing email is reported
    by the User Directory as "Email required", not as a validation error.
    Unknown keys (role, createdAt, ...) are ignored.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    email: Optional[str] = None
    name: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoURL")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class InsertResponse(BaseModel):
    """Outcome of a create (POST /books, POST /orders)."""

    model_config = _WIRE_CONFIG

    acknowledged: bool = True
    inserted_id: str

    @classmethod
    def from_result(cls, result: InsertResult) -> "InsertResponse":
        return cls(acknowledged=result.acknowledged, inserted_id=result.inserted_id)


class UpdateResponse(BaseModel):
    """Outcome of an update or upsert (PUT /users, PATCH /books/{id}, PATCH /orders/{id}/cancel)."""

    model_config = _WIRE_CONFIG

    acknowledged: bool = True
    matched_count: int
    modified_count: int
    upserted_count: int = 0
    upserted_id: Optional[str] = None

    @classmethod
    def from_result(cls, result: UpdateResult) -> "UpdateResponse":
        """Factory Method -- the mapping lives next to the output model, not in each route."""
        return cls(
            acknowledged=result.acknowledged,
            matched_count=result.matched_count,
            modified_count=result.modified_count,
            upserted_count=1 if result.upserted_id else 0,
            upserted_id=result.upserted_id,
        )


class RoleResponse(BaseModel):
    """Response for GET /users/role."""

    model_config = ConfigDict(frozen=True)

    role: str


class MessageResponse(BaseModel):
    """Plain {"message": ...} body. Also the shape of every error response."""

    model_config = ConfigDict(frozen=True)

    message: str


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
