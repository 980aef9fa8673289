"""
core/errors.py -- Error taxonomy shared by every BookOrbit component.

Components (users/, catalog/, orders/, auth/) raise these; api/main.py owns
the exception handlers that turn them into HTTP responses. Each subclass
carries its HTTP status so the mapping lives in one place.

Clients only ever see {"message": str}. There are no structured error codes.
"""


class BookOrbitError(Exception):
    """Base class. status_code is the HTTP status the API layer responds with."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str = "") -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(BookOrbitError):
    """Missing, malformed, expired or otherwise invalid bearer token."""

    status_code = 401
    default_message = "Unauthorized access"


class InvalidInput(BookOrbitError):
    """A required field is missing or cannot be coerced."""

    status_code = 400
    default_message = "Invalid input"


class Forbidden(BookOrbitError):
    """Role or ownership check failed."""

    status_code = 403
    default_message = "Forbidden"


class NotFound(BookOrbitError):
    status_code = 404
    default_message = "Not found"


class InvalidState(BookOrbitError):
    """Illegal status transition (e.g. cancelling a non-pending order)."""

    status_code = 400
    default_message = "Invalid state transition"


class Internal(BookOrbitError):
    """Unexpected store or identity provider failure."""

    status_code = 500
