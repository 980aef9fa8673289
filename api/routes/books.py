"""
api/routes/books.py -- Catalog endpoints.

Routes (in registration order to avoid FastAPI path capture conflicts):
  POST   /books          -- create book (librarian/admin)
  GET    /books          -- list books; ?status=published restricts to published (public)
  GET    /books/mine     -- caller's own books (requires auth)
  GET    /books/{id}     -- one book (public)
  PATCH  /books/{id}     -- update (owning librarian or admin)
  DELETE /books/{id}     -- delete (owning librarian or admin)

Authorization decisions live in catalog/store.py; these handlers only pass
the verified caller email through.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request

from api.dependencies import json_object_body
from api.errors import store_errors
from api.models import InsertResponse, MessageResponse, UpdateResponse
from auth.dependencies import get_current_claims
from auth.models import Claims
from catalog.store import CatalogStore, book_to_document

router = APIRouter()


# ---------------------------------------------------------------------------
# POST /books -- create
# ---------------------------------------------------------------------------


@router.post("/books", response_model=InsertResponse)
def create_book(
    request: Request,
    payload: dict[str, Any] = Depends(json_object_body),
    claims: Claims = Depends(get_current_claims),
) -> InsertResponse:
    """Create a book owned by the caller. price is coerced to a number; status defaults to unpublished."""
    catalog: CatalogStore = request.app.state.catalog
    with store_errors("Failed to add book"):
        result = catalog.create_book(claims.email, payload)
    return InsertResponse.from_result(result)


# ---------------------------------------------------------------------------
# GET /books, GET /books/mine -- lists (/mine must be before /books/{book_id})
# ---------------------------------------------------------------------------


@router.get("/books")
def list_books(request: Request, status: Optional[str] = None) -> list[dict[str, Any]]:
    """List books. Without ?status=published every book is returned, unpublished included."""
    catalog: CatalogStore = request.app.state.catalog
    with store_errors("Failed to fetch books"):
        books = catalog.list_books(status=status)
    return [book_to_document(b) for b in books]


@router.get("/books/mine")
def list_my_books(request: Request, claims: Claims = Depends(get_current_claims)) -> list[dict[str, Any]]:
    catalog: CatalogStore = request.app.state.catalog
    with store_errors("Failed to fetch books"):
        books = catalog.list_mine(claims.email)
    return [book_to_document(b) for b in books]


# ---------------------------------------------------------------------------
# /books/{book_id}
# ---------------------------------------------------------------------------


@router.get("/books/{book_id}")
def get_book(request: Request, book_id: str) -> dict[str, Any]:
    catalog: CatalogStore = request.app.state.catalog
    with store_errors("Failed to fetch book"):
        book = catalog.get_book(book_id)
    return book_to_document(book)


@router.patch("/books/{book_id}", response_model=UpdateResponse)
def update_book(
    request: Request,
    book_id: str,
    patch: dict[str, Any] = Depends(json_object_body),
    claims: Claims = Depends(get_current_claims),
) -> UpdateResponse:
    """Apply the patch verbatim. _id and librarianEmail are immutable and silently dropped."""
    catalog: CatalogStore = request.app.state.catalog
    with store_errors("Update failed"):
        result = catalog.update_book(claims.email, book_id, patch)
    return UpdateResponse.from_result(result)


@router.delete("/books/{book_id}", response_model=MessageResponse)
def delete_book(request: Request, book_id: str, claims: Claims = Depends(get_current_claims)) -> MessageResponse:
    catalog: CatalogStore = request.app.state.catalog
    with store_errors("Delete failed"):
        catalog.delete_book(claims.email, book_id)
    return MessageResponse(message="Book deleted successfully")
