"""
core/models.py -- Domain constants and write-result dataclasses.

Pure data containers with zero logic, shared by users/, catalog/ and orders/.
api/models.py maps these onto the wire contract.
"""

from dataclasses import dataclass
from typing import Optional

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

ROLE_USER = "user"
ROLE_LIBRARIAN = "librarian"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_LIBRARIAN, ROLE_ADMIN)


# ---------------------------------------------------------------------------
# Write results
#
# Write endpoints answer with the raw outcome of the store operation.
# ---------------------------------------------------------------------------


@dataclass
class InsertResult:
    inserted_id: str
    acknowledged: bool = True


@dataclass
class UpdateResult:
    matched_count: int
    modified_count: int
    upserted_id: Optional[str] = None  # set only when an upsert inserted a new record
    acknowledged: bool = True
