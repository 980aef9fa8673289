"""
auth/models.py -- Verified identity produced by an IdentityVerifier.

Pattern: Data class (pure data container, zero logic).

Layer rule: no imports from api/, users/, catalog/, or orders/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Claims:
    """The caller's verified identity attributes.

    email is the only field every downstream check relies on: roles are looked
    up by email, and book/order ownership is recorded as the caller's email.
    raw keeps the full decoded token payload for anything provider-specific.
    """

    email: str
    uid: str | None = None  # provider's stable subject ("sub")
    name: str | None = None
    picture: str | None = None
    raw: dict = field(default_factory=dict)
