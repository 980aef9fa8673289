"""
orders/models.py -- Domain dataclass and status constants for the Order Ledger.

Pure data container, zero logic. The state machine lives in orders/store.py.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

STATUS_PENDING = "pending"
STATUS_CANCELLED = "cancelled"
STATUS_FULFILLED = "fulfilled"  # declared; no exposed transition reaches it

PAYMENT_UNPAID = "unpaid"


@dataclass
class Order:
    """An order placed by an authenticated user.

    items is whatever line-item payload the client sent (book ids, quantities,
    shipping details...). It is stored verbatim; the server-set fields below
    always win over same-named keys in it.

    id is None before the record is written to the database.
    """

    user_email: str
    status: str = STATUS_PENDING
    payment_status: str = PAYMENT_UNPAID  # declared; never transitioned
    order_date: str = ""  # ISO 8601, set by store on insert
    id: Optional[str] = None
    items: dict[str, Any] = field(default_factory=dict)
