from __future__ import annotations

import logging
import re
from typing import List, Optional

from .confirmation import ConfirmedOrder, OrderConfirmationRenderer
from .models import (
    CancelOrderIntent,
    CreateOrderIntent,
    FetchOrdersIntent,
    GenerationResult,
    PlainReply,
    ProcessedReply,
)
from .order_store import OrderNotCancellableError, OrderNotFoundError, OrderStore, StoredOrder
from .utils import mask_contact_value

logger = logging.getLogger("flovo.intents")

ORDER_REF_RE = re.compile(r"order\s*#?(\d+)", re.IGNORECASE)

PROCESSING_ERROR_REPLY = "I'm sorry, I encountered an error processing your request. Please try again."
CREATE_FAILED_REPLY = (
    "I'm sorry, I couldn't process your order right now. Please try again or contact our support team."
)
FETCH_FAILED_REPLY = "I'm having trouble retrieving your orders right now. Please try again later."
ASK_WHICH_ORDER_REPLY = (
    "I'd be happy to help you cancel an order! Could you please tell me which order you'd like to cancel? "
    "You can provide the order number."
)
ORDER_NOT_FOUND_REPLY = "I couldn't find that order. Please check the order number and try again."
NOT_CANCELLABLE_REPLY = (
    "I'm sorry, but that order cannot be cancelled at this time. Please contact our support team for assistance."
)
CANCEL_FAILED_REPLY = (
    "I'm sorry, I couldn't cancel your order right now. Please try again or contact our support team."
)
NO_ORDERS_REPLY = """📋 <b>Your Orders</b>

You don't have any orders yet. Would you like to place your first order? I can help you find the perfect products!"""

STATUS_EMOJI = {
    "new": "🆕",
    "pending": "⏳",
    "confirmed": "✅",
    "shipped": "🚚",
    "delivered": "📦",
    "cancelled": "❌",
}


class IntentDispatcher:
    """Execute a parsed intent against the order store and build the final reply."""

    def __init__(
        self,
        order_store: OrderStore,
        renderer: OrderConfirmationRenderer,
        orders_limit: int = 5,
    ) -> None:
        self._orders = order_store
        self._renderer = renderer
        self._orders_limit = orders_limit

    def process(self, result: GenerationResult, customer_id: str, customer_message: str = "") -> ProcessedReply:
        """Purpose: Dispatch on the result variant and produce what the customer sees.
        Inputs/Outputs: Inputs are the parsed result, the customer id and the original
            message (for confirmation language); output is a ProcessedReply.
        Side Effects / State: May create or cancel an order in the OrderStore.
        Dependencies: OrderStore, OrderConfirmationRenderer.
        Failure Modes: Never raises; unexpected errors fall back to the result text.
        If Removed: Order intents are shown to the customer but never executed.
        Testing Notes: One test per variant plus store failures.
        """
        try:
            if isinstance(result, CreateOrderIntent):
                return self._handle_create_order(result, customer_id, customer_message)
            if isinstance(result, FetchOrdersIntent):
                return self._handle_fetch_orders(customer_id)
            if isinstance(result, CancelOrderIntent):
                return self._handle_cancel_order(result, customer_id)
            if isinstance(result, PlainReply):
                return ProcessedReply(text=result.text, images=result.images, intent=result.kind)
        except Exception:
            logger.exception("intents customer=%s kind=%s processing failed", customer_id, result.kind)
            return ProcessedReply(text=result.text or PROCESSING_ERROR_REPLY, intent=result.kind)
        return ProcessedReply(text=result.text, intent=result.kind)

    def _handle_create_order(
        self, result: CreateOrderIntent, customer_id: str, customer_message: str
    ) -> ProcessedReply:
        try:
            order = self._orders.create_order(customer_id, result.order)
        except OSError:
            logger.exception("intents customer=%s create order failed", customer_id)
            return ProcessedReply(text=CREATE_FAILED_REPLY, intent=result.kind)

        logger.info(
            "intents customer=%s order=%s created contact=%s",
            customer_id,
            order.id,
            mask_contact_value(order.phone),
        )
        confirmation = self._renderer.render(
            ConfirmedOrder(id=order.id, items=order.items, phone=order.phone, notes=order.notes),
            customer_message,
        )
        return ProcessedReply(
            text=confirmation.text,
            intent=result.kind,
            order_created=True,
            order_id=order.id,
        )

    def _handle_fetch_orders(self, customer_id: str) -> ProcessedReply:
        try:
            orders = self._orders.get_orders_for_customer(customer_id, self._orders_limit)
        except OSError:
            logger.exception("intents customer=%s fetch orders failed", customer_id)
            return ProcessedReply(text=FETCH_FAILED_REPLY, intent="FETCH_ORDERS")
        logger.info("intents customer=%s orders fetched=%d", customer_id, len(orders))
        return ProcessedReply(
            text=build_orders_list_message(orders),
            intent="FETCH_ORDERS",
            orders_fetched=True,
        )

    def _handle_cancel_order(self, result: CancelOrderIntent, customer_id: str) -> ProcessedReply:
        order_id = result.order_id if result.order_id is not None else extract_order_id(result.text)
        if order_id is None:
            return ProcessedReply(text=ASK_WHICH_ORDER_REPLY, intent=result.kind)

        try:
            order = self._orders.cancel_order(order_id, customer_id)
        except OrderNotFoundError:
            logger.info("intents customer=%s order=%s cancel rejected: not found", customer_id, order_id)
            return ProcessedReply(text=ORDER_NOT_FOUND_REPLY, intent=result.kind)
        except OrderNotCancellableError as exc:
            logger.info("intents customer=%s order=%s cancel rejected: %s", customer_id, order_id, exc)
            return ProcessedReply(text=NOT_CANCELLABLE_REPLY, intent=result.kind)
        except OSError:
            logger.exception("intents customer=%s order=%s cancel failed", customer_id, order_id)
            return ProcessedReply(text=CANCEL_FAILED_REPLY, intent=result.kind)

        logger.info("intents customer=%s order=%s cancelled", customer_id, order.id)
        return ProcessedReply(
            text=build_cancellation_message(order),
            intent=result.kind,
            order_cancelled=True,
            order_id=order.id,
        )


def extract_order_id(text: str) -> Optional[int]:
    """Find an "order #12" style reference in free text."""
    match = ORDER_REF_RE.search(text or "")
    return int(match.group(1)) if match else None


def status_emoji(status: str) -> str:
    return STATUS_EMOJI.get(status.lower(), "📋")


def build_orders_list_message(orders: List[StoredOrder]) -> str:
    """Purpose: Render the customer's recent orders as a Telegram HTML message.
    Inputs/Outputs: Input is a list of StoredOrder (newest first); output is the text.
    Side Effects / State: None.
    Dependencies: status_emoji.
    Failure Modes: None; an empty list renders the no-orders invitation.
    If Removed: FETCH_ORDERS has nothing to show.
    Testing Notes: Check numbering, emoji per status and the empty case.
    """
    if not orders:
        return NO_ORDERS_REPLY

    parts = ["📋 <b>Your Recent Orders</b>\n\n"]
    for index, order in enumerate(orders, start=1):
        parts.append(f"{index}. {status_emoji(order.status.value)} <b>Order #{order.id}</b>\n")
        parts.append(f"   📅 {order.created_at.date().isoformat()}\n")
        parts.append(f"   🛍️ {order.items or 'No items specified'}\n")
        parts.append(f"   💰 ${order.total_price:g}\n\n")
    parts.append("Would you like to know more about any specific order or place a new one?")
    return "".join(parts)


def build_cancellation_message(order: StoredOrder) -> str:
    return (
        "❌ <b>Order Cancelled</b>\n\n"
        f"📋 <b>Order #{order.id}</b> has been successfully cancelled.\n\n"
        "If you change your mind, you can always place a new order! Is there anything else I can help you with?"
    )
