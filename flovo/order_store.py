from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel

from .models import OrderDraft, OrderSummary

CANCELLABLE_STATUSES = {"NEW", "PENDING"}


class OrderStatus(str, Enum):
    NEW = "NEW"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class OrderNotFoundError(LookupError):
    """The order does not exist or belongs to another customer."""


class OrderNotCancellableError(ValueError):
    """The order's status no longer allows cancellation."""


class StoredOrder(BaseModel):
    """Persisted order record."""
    id: int
    customer_id: str
    status: OrderStatus = OrderStatus.NEW
    customer_name: str
    phone: str
    items: str
    notes: str = ""
    total_price: float = 0.0
    created_at: datetime
    updated_at: datetime
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None


class OrderStore:
    """Order records backed by a JSON file; ids increase from 1."""

    def __init__(self, path: Optional[Path] = None) -> None:
        """Purpose: Initialize the order store and hydrate it from disk if available.
        Inputs/Outputs: Input is an optional file path; no return value.
        Side Effects / State: Loads orders and the id counter into memory.
        Dependencies: Calls _load; relies on the StoredOrder model.
        Failure Modes: JSON decode errors are swallowed and leave an empty store.
        If Removed: Order intents have nowhere to be recorded.
        Testing Notes: Create orders, reopen the file, confirm ids keep increasing.
        """
        self._path = path
        self._orders: Dict[int, StoredOrder] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if not self._path or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return
        for raw in data.get("orders", []):
            order = StoredOrder(**raw)
            self._orders[order.id] = order
        self._next_id = max(self._orders, default=0) + 1

    def _persist(self) -> None:
        # Caller holds the lock; IO errors propagate.
        if not self._path:
            return
        payload = {"orders": [order.model_dump(mode="json") for order in self._orders.values()]}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    def create_order(self, customer_id: str, draft: OrderDraft) -> StoredOrder:
        """Purpose: Record a new order from a create-order intent.
        Inputs/Outputs: Inputs are customer_id and the parsed OrderDraft; output is the
            stored order with status NEW.
        Side Effects / State: Assigns the next id and persists to disk under the store lock.
        Dependencies: StoredOrder, _persist.
        Failure Modes: Persist can raise IO errors.
        If Removed: The dispatcher cannot fulfil CREATE_ORDER.
        Testing Notes: Two orders get ids 1 and 2 with status NEW.
        """
        with self._lock:
            now = datetime.now(timezone.utc)
            order = StoredOrder(
                id=self._next_id,
                customer_id=customer_id,
                customer_name=draft.customer_name,
                phone=draft.customer_contact,
                items=draft.items,
                notes=draft.notes,
                created_at=now,
                updated_at=now,
            )
            self._orders[order.id] = order
            self._next_id += 1
            self._persist()
        return order

    def get_order(self, order_id: int) -> Optional[StoredOrder]:
        with self._lock:
            return self._orders.get(order_id)

    def get_orders_for_customer(self, customer_id: str, limit: int = 5) -> List[StoredOrder]:
        """Return the customer's orders, newest first."""
        with self._lock:
            orders = [order for order in self._orders.values() if order.customer_id == customer_id]
        orders.sort(key=lambda order: (order.created_at, order.id), reverse=True)
        return orders[:limit]

    def summaries_for_prompt(self, customer_id: str, limit: int = 10) -> List[OrderSummary]:
        """Condensed orders for the prompt's order-history block."""
        return [
            OrderSummary(id=order.id, status=order.status.value, items=order.items or None)
            for order in self.get_orders_for_customer(customer_id, limit)
        ]

    def update_status(self, order_id: int, status: OrderStatus) -> StoredOrder:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise OrderNotFoundError(f"Order {order_id} not found")
            updated = order.model_copy(update={"status": status, "updated_at": datetime.now(timezone.utc)})
            self._orders[order_id] = updated
            self._persist()
        return updated

    def cancel_order(self, order_id: int, customer_id: str) -> StoredOrder:
        """Purpose: Cancel one of the customer's own orders.
        Inputs/Outputs: Inputs are order_id and customer_id; output is the updated order.
        Side Effects / State: Sets status CANCELLED, stamps cancelled_at/by, persists.
        Dependencies: _persist.
        Failure Modes: OrderNotFoundError when the id is unknown or owned by another
            customer; OrderNotCancellableError unless the status is NEW or PENDING.
        If Removed: The dispatcher cannot fulfil CANCEL_ORDER.
        Testing Notes: Cancelling twice raises OrderNotCancellableError the second time.
        """
        with self._lock:
            order = self._orders.get(order_id)
            if order is None or order.customer_id != customer_id:
                raise OrderNotFoundError("Order not found or does not belong to customer")
            if order.status.value not in CANCELLABLE_STATUSES:
                raise OrderNotCancellableError(f"Cannot cancel order with status: {order.status.value}")
            now = datetime.now(timezone.utc)
            cancelled = order.model_copy(
                update={
                    "status": OrderStatus.CANCELLED,
                    "updated_at": now,
                    "cancelled_at": now,
                    "cancelled_by": "AI_INTENT",
                }
            )
            self._orders[order_id] = cancelled
            self._persist()
        return cancelled
