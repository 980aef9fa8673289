"""
catalog/models.py -- Domain dataclass for the Catalog Store.

Pure data container, zero logic. Authorization predicates, price coercion and
the document mapping live in catalog/store.py.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

STATUS_PUBLISHED = "published"
STATUS_UNPUBLISHED = "unpublished"


@dataclass
class Book:
    """A catalog entry owned by the librarian who created it.

    status is the visibility flag ("published" | "unpublished").
    librarian_email is set from the authenticated caller at creation and
    never changes afterwards, whatever a patch contains.

    extra holds fields a patch added beyond the base shape; they are stored
    and returned verbatim.

    id is None before the record is written to the database.
    """

    name: Optional[str]
    author: Optional[str]
    price: Optional[float]
    librarian_email: str
    image: Optional[str] = None
    status: str = STATUS_UNPUBLISHED
    description: str = ""
    id: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    extra: dict[str, Any] = field(default_factory=dict)
