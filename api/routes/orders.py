"""
api/routes/orders.py -- Order Ledger endpoints. All routes require auth.

Routes:
  POST  /orders              -- place an order (pending, unpaid)
  GET   /orders/my           -- caller's orders, newest first
  PATCH /orders/{id}/cancel  -- cancel a pending order the caller placed
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from api.dependencies import json_object_body
from api.errors import store_errors
from api.models import InsertResponse, UpdateResponse
from auth.dependencies import get_current_claims
from auth.models import Claims
from orders.store import OrderLedger, order_to_document

# Router-level dependency applies to every route registered on this router.
router = APIRouter(dependencies=[Depends(get_current_claims)])


@router.post("/orders", response_model=InsertResponse)
def create_order(
    request: Request,
    payload: dict[str, Any] = Depends(json_object_body),
    claims: Claims = Depends(get_current_claims),
) -> InsertResponse:
    """Store the payload with server-set owner, status, paymentStatus and orderDate."""
    ledger: OrderLedger = request.app.state.orders
    with store_errors("Server error"):
        result = ledger.create_order(claims.email, payload)
    return InsertResponse.from_result(result)


@router.get("/orders/my")
def list_my_orders(request: Request, claims: Claims = Depends(get_current_claims)) -> list[dict[str, Any]]:
    ledger: OrderLedger = request.app.state.orders
    with store_errors("Failed to fetch orders"):
        orders = ledger.list_mine(claims.email)
    return [order_to_document(o) for o in orders]


@router.patch("/orders/{order_id}/cancel", response_model=UpdateResponse)
def cancel_order(request: Request, order_id: str, claims: Claims = Depends(get_current_claims)) -> UpdateResponse:
    """pending -> cancelled. 404 unknown order, 403 not the owner, 400 not pending."""
    ledger: OrderLedger = request.app.state.orders
    with store_errors("Failed to cancel order"):
        result = ledger.cancel_order(claims.email, order_id)
    return UpdateResponse.from_result(result)
