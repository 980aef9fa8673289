"""
catalog/store.py -- Book catalog: persistence plus the authorization rules around it.

Each book is stored as a JSON document with a few columns pulled out for
querying (owner, status, created_at). The document keeps the wire field names
(camelCase) so arbitrary patch fields round-trip without a schema change.

Authorization (pure functions, independently testable):
  can_create_book(role)                        -- librarian or admin
  can_modify_book(email, role, book)           -- admin, or the owning librarian

Roles always come from the User Directory, never from the request.

Usage:
    catalog = CatalogStore(engine, users)
    result = catalog.create_book("lib@x.com", {"name": "Foo", "price": "9.99"})
    catalog.update_book("lib@x.com", result.inserted_id, {"status": "published"})
    catalog.list_books(status="published")

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Optional

from sqlalchemy import Column, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from catalog.models import STATUS_PUBLISHED, STATUS_UNPUBLISHED, Book
from core.database import new_object_id, now_iso
from core.errors import Forbidden, NotFound
from core.models import ROLE_ADMIN, ROLE_LIBRARIAN, InsertResult, UpdateResult
from users.store import UserDirectory

logger = logging.getLogger("bookorbit.catalog")

# Patches may not rewrite identity or ownership.
_IMMUTABLE_FIELDS = frozenset({"_id", "librarianEmail"})

# Document keys that map onto Book attributes; everything else lands in Book.extra.
_BASE_FIELDS = {
    "name": "name",
    "author": "author",
    "image": "image",
    "price": "price",
    "status": "status",
    "description": "description",
    "librarianEmail": "librarian_email",
    "createdAt": "created_at",
}

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_books = Table(
    "books",
    _metadata,
    Column("id", String(24), primary_key=True),
    Column("librarian_email", String(320), nullable=False, index=True),
    Column("status", String(30), nullable=False, server_default=STATUS_UNPUBLISHED, index=True),
    Column("created_at", String(32), nullable=False),
    Column("document", Text, nullable=False),  # JSON object, wire field names
)


# ---------------------------------------------------------------------------
# Authorization predicates
# ---------------------------------------------------------------------------


def can_create_book(role: str) -> bool:
    return role in (ROLE_LIBRARIAN, ROLE_ADMIN)


def can_modify_book(caller_email: str, caller_role: str, book: Book) -> bool:
    """Admins may modify any book; librarians only the books they own.

    Ownership is the only thing that counts for non-admins -- a plain "user"
    who somehow owns a book (demoted librarian) keeps control of it.
    """
    return caller_role == ROLE_ADMIN or book.librarian_email == caller_email


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def coerce_price(value: Any) -> Optional[float]:
    """Convert a client-supplied price ("9.99", 9.99, 10) to a number.

    Never rejects. A blank string counts as 0. Anything that does not convert
    to a finite number becomes None, which is stored and returned as null.
    """
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0.0
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if math.isfinite(price) else None


def book_to_document(book: Book) -> dict[str, Any]:
    """Serialize a Book to its wire/document form (camelCase keys, "_id")."""
    doc: dict[str, Any] = {"_id": book.id}
    for key, attr in _BASE_FIELDS.items():
        doc[key] = getattr(book, attr)
    doc.update(book.extra)
    return doc


def _document_to_book(book_id: str, doc: dict[str, Any]) -> Book:
    base = {attr: doc.get(key) for key, attr in _BASE_FIELDS.items()}
    return Book(
        id=book_id,
        name=base["name"],
        author=base["author"],
        image=base["image"],
        price=base["price"],
        status=base["status"],
        description=base["description"],
        librarian_email=base["librarian_email"],
        created_at=base["created_at"] or "",
        extra={k: v for k, v in doc.items() if k not in _BASE_FIELDS and k != "_id"},
    )


def _row_to_book(row) -> Book:
    return _document_to_book(row.id, json.loads(row.document))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CatalogStore:
    """Repository for Book records. Role checks go through the injected UserDirectory."""

    def __init__(self, engine: Engine, users: UserDirectory) -> None:
        self.engine = engine
        self.users = users
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_book(self, caller_email: str, payload: dict[str, Any]) -> InsertResult:
        """Create a book owned by the caller.

        Raises Forbidden unless the caller is a librarian or admin. The price
        is coerced with coerce_price. A librarianEmail in the payload is
        ignored.
        """
        role = self.users.get_role(caller_email)
        if not can_create_book(role):
            raise Forbidden()

        book = Book(
            id=new_object_id(),
            name=payload.get("name"),
            author=payload.get("author"),
            image=payload.get("image"),
            price=coerce_price(payload.get("price")),
            status=payload.get("status") or STATUS_UNPUBLISHED,
            description=payload.get("description") or "",
            librarian_email=caller_email,
            created_at=now_iso(),
        )
        doc = book_to_document(book)
        del doc["_id"]
        with self.engine.connect() as conn:
            conn.execute(
                _books.insert().values(
                    id=book.id,
                    librarian_email=book.librarian_email,
                    status=book.status,
                    created_at=book.created_at,
                    document=json.dumps(doc),
                )
            )
            conn.commit()
        logger.info("Book %s created by %s", book.id, caller_email)
        return InsertResult(inserted_id=book.id)

    def update_book(self, caller_email: str, book_id: str, patch: dict[str, Any]) -> UpdateResult:
        """Apply patch fields verbatim (except _id / librarianEmail).

        Raises NotFound if the book does not exist, Forbidden unless the
        caller is an admin or the owning librarian. The write only applies if
        the stored document is still the one that was read; otherwise nothing
        changes and matched_count is 0.
        """
        row = self._fetch_row(book_id)
        book = _row_to_book(row)
        if not can_modify_book(caller_email, self.users.get_role(caller_email), book):
            raise Forbidden()

        current = book_to_document(book)
        del current["_id"]
        merged = {**current, **{k: v for k, v in patch.items() if k not in _IMMUTABLE_FIELDS}}
        if merged == current:
            return UpdateResult(matched_count=1, modified_count=0)

        status = merged.get("status")
        with self.engine.connect() as conn:
            result = conn.execute(
                _books.update()
                .where((_books.c.id == book_id) & (_books.c.document == row.document))
                .values(
                    status=str(status) if status is not None else STATUS_UNPUBLISHED,
                    document=json.dumps(merged),
                )
            )
            conn.commit()
        if result.rowcount == 0:
            logger.info("Book %s changed before the update by %s could apply", book_id, caller_email)
        else:
            logger.info("Book %s updated by %s (%s)", book_id, caller_email, ", ".join(sorted(patch)))
        return UpdateResult(matched_count=result.rowcount, modified_count=result.rowcount)

    def delete_book(self, caller_email: str, book_id: str) -> bool:
        """Remove a book. Same authorization rule as update_book.

        Returns True if the record was removed (False only if it vanished
        between the lookup and the delete).
        """
        book = self.get_book(book_id)
        if not can_modify_book(caller_email, self.users.get_role(caller_email), book):
            raise Forbidden()
        with self.engine.connect() as conn:
            result = conn.execute(_books.delete().where(_books.c.id == book_id))
            conn.commit()
        logger.info("Book %s deleted by %s", book_id, caller_email)
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _fetch_row(self, book_id: str):
        with self.engine.connect() as conn:
            row = conn.execute(_books.select().where(_books.c.id == book_id)).fetchone()
        if row is None:
            raise NotFound("Book not found")
        return row

    def get_book(self, book_id: str) -> Book:
        """Return the book or raise NotFound. Malformed ids simply do not resolve."""
        return _row_to_book(self._fetch_row(book_id))

    def list_books(self, status: Optional[str] = None) -> list[Book]:
        """Return books in creation order.

        status="published" restricts the result to published books. Any other
        value, or none, returns every book regardless of visibility.
        """
        query = _books.select()
        if status == STATUS_PUBLISHED:
            query = query.where(_books.c.status == STATUS_PUBLISHED)
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_books.c.created_at, _books.c.id)).fetchall()
        return [_row_to_book(r) for r in rows]

    def list_mine(self, caller_email: str) -> list[Book]:
        """Return the books owned by caller_email, in creation order."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _books.select().where(_books.c.librarian_email == caller_email).order_by(_books.c.created_at, _books.c.id)
            ).fetchall()
        return [_row_to_book(r) for r in rows]
