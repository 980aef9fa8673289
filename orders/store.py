"""
orders/store.py -- Order Ledger: persistence and the order status state machine.

State machine (the only one in BookOrbit):

    pending --cancel--> cancelled

  cancelled and fulfilled are terminal. fulfilled is declared for the data
  model but no exposed action reaches it. next_status() is the single place
  transitions are decided; anything not in _TRANSITIONS raises InvalidState.

Cancellation is a read-then-write: cancel_order() loads the order to check
ownership and status, then issues an UPDATE guarded by the status it just
read. Of two racing cancellations only one reports modified_count == 1; the
other matches nothing and reports 0.

Orders are stored as JSON documents (caller payload merged with server
fields) with owner, status and order_date pulled out into columns.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import Column, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from core.database import new_object_id, now_iso
from core.errors import Forbidden, InvalidState, NotFound
from core.models import InsertResult, UpdateResult
from orders.models import PAYMENT_UNPAID, STATUS_CANCELLED, STATUS_PENDING, Order

logger = logging.getLogger("bookorbit.orders")

ACTION_CANCEL = "cancel"

_TRANSITIONS: dict[tuple[str, str], str] = {
    (STATUS_PENDING, ACTION_CANCEL): STATUS_CANCELLED,
}

_ILLEGAL_TRANSITION_MESSAGES = {
    ACTION_CANCEL: "Only pending orders can be cancelled",
}

# Server-owned document keys. Same-named keys in the client payload are overwritten.
_SERVER_FIELDS = ("_id", "userEmail", "status", "paymentStatus", "orderDate")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_orders = Table(
    "orders",
    _metadata,
    Column("id", String(24), primary_key=True),
    Column("user_email", String(320), nullable=False, index=True),
    Column("status", String(30), nullable=False, server_default=STATUS_PENDING),
    Column("order_date", String(32), nullable=False, index=True),
    Column("document", Text, nullable=False),  # JSON object, wire field names
)

# Reserved for payment processing, which BookOrbit does not implement.
# Created with the rest of the schema; nothing reads or writes it.
_payments = Table(
    "payments",
    _metadata,
    Column("id", String(24), primary_key=True),
    Column("order_id", String(24), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("document", Text, nullable=False),
)


# ---------------------------------------------------------------------------
# State machine and authorization
# ---------------------------------------------------------------------------


def next_status(current: str, action: str) -> str:
    """Return the status an action moves an order to, or raise InvalidState."""
    try:
        return _TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidState(_ILLEGAL_TRANSITION_MESSAGES.get(action, ""))


def can_cancel_order(caller_email: str, order: Order) -> bool:
    """Only the user who placed an order may cancel it. Roles grant nothing here."""
    return order.user_email == caller_email


# ---------------------------------------------------------------------------
# Mappers
# ---------------------------------------------------------------------------


def order_to_document(order: Order) -> dict[str, Any]:
    """Serialize an Order to its wire/document form. Server fields override payload keys."""
    return {
        **order.items,
        "_id": order.id,
        "userEmail": order.user_email,
        "status": order.status,
        "paymentStatus": order.payment_status,
        "orderDate": order.order_date,
    }


def _row_to_order(row) -> Order:
    doc = json.loads(row.document)
    return Order(
        id=row.id,
        user_email=row.user_email,
        status=row.status,
        payment_status=doc.get("paymentStatus", PAYMENT_UNPAID),
        order_date=row.order_date,
        items={k: v for k, v in doc.items() if k not in _SERVER_FIELDS},
    )


def _stored_document(order: Order) -> str:
    doc = order_to_document(order)
    del doc["_id"]
    return json.dumps(doc)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrderLedger:
    """Repository for Order records.

    Usage:
        ledger = OrderLedger(engine)
        result = ledger.create_order("a@x.com", {"bookId": "...", "quantity": 1})
        ledger.cancel_order("a@x.com", result.inserted_id)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def create_order(self, caller_email: str, payload: dict[str, Any]) -> InsertResult:
        """Store a new pending, unpaid order for the caller."""
        order = Order(
            id=new_object_id(),
            user_email=caller_email,
            status=STATUS_PENDING,
            payment_status=PAYMENT_UNPAID,
            order_date=now_iso(),
            items={k: v for k, v in payload.items() if k not in _SERVER_FIELDS},
        )
        with self.engine.connect() as conn:
            conn.execute(
                _orders.insert().values(
                    id=order.id,
                    user_email=order.user_email,
                    status=order.status,
                    order_date=order.order_date,
                    document=_stored_document(order),
                )
            )
            conn.commit()
        logger.info("Order %s created by %s", order.id, caller_email)
        return InsertResult(inserted_id=order.id)

    def get_order(self, order_id: str) -> Order:
        """Return the order or raise NotFound."""
        with self.engine.connect() as conn:
            row = conn.execute(_orders.select().where(_orders.c.id == order_id)).fetchone()
        if row is None:
            raise NotFound("Order not found")
        return _row_to_order(row)

    def list_mine(self, caller_email: str) -> list[Order]:
        """Return the caller's orders, most recent first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _orders.select()
                .where(_orders.c.user_email == caller_email)
                .order_by(_orders.c.order_date.desc(), _orders.c.id.desc())
            ).fetchall()
        return [_row_to_order(r) for r in rows]

    def cancel_order(self, caller_email: str, order_id: str) -> UpdateResult:
        """Move a pending order to cancelled.

        Raises NotFound if the order does not exist, Forbidden if the caller
        did not place it (checked before status, so a stranger learns nothing
        about its state), InvalidState if it is no longer pending.
        """
        order = self.get_order(order_id)
        if not can_cancel_order(caller_email, order):
            raise Forbidden()
        new_status = next_status(order.status, ACTION_CANCEL)

        from_status = order.status
        order.status = new_status
        with self.engine.connect() as conn:
            result = conn.execute(
                _orders.update()
                .where((_orders.c.id == order_id) & (_orders.c.status == from_status))
                .values(status=new_status, document=_stored_document(order))
            )
            conn.commit()
        if result.rowcount == 0:
            logger.info("Order %s changed state before cancellation could apply", order_id)
        else:
            logger.info("Order %s cancelled by %s", order_id, caller_email)
        return UpdateResult(matched_count=result.rowcount, modified_count=result.rowcount)
