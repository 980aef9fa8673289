"""
users/models.py -- Domain dataclass for the User Directory.

Pure data container, zero logic. All behaviour lives in users/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class User:
    """A BookOrbit account, keyed by email.

    role is the single source of truth for catalog permissions. The upsert
    path sets it to "user" on insert and never touches it afterwards; nothing
    in the API changes it (librarians and admins are promoted out of band).

    id is None before the record is written to the database.
    """

    email: str
    name: str = ""
    photo_url: str = ""
    role: str = "user"  # "user" | "librarian" | "admin"
    id: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
