from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

NOT_PROVIDED = "Not provided"


class Sender(str, Enum):
    USER = "USER"
    BOT = "BOT"


class ConversationTurn(BaseModel):
    """One stored message of a customer conversation."""
    model_config = ConfigDict(frozen=True)

    sender: Sender
    content: str
    created_at: datetime


class OrderSummary(BaseModel):
    """Past order as listed in the prompt's order-history block."""
    id: int
    status: str
    items: Optional[str] = None

    @field_validator("items", mode="before")
    @classmethod
    def _join_items(cls, value: Any) -> Any:
        if isinstance(value, list):
            return ", ".join(str(item) for item in value if item is not None)
        return value


class GenerationRequest(BaseModel):
    """Everything the prompt builder needs for one reply."""
    user_text: str
    history: List[ConversationTurn] = Field(default_factory=list)
    product_context: Optional[str] = None
    past_orders: Optional[List[OrderSummary]] = None


class OrderDraft(BaseModel):
    """Order payload recovered from a create-order intent.

    The model emits camelCase keys; missing contact fields are kept as
    "Not provided" so the order can still be recorded and followed up.
    """
    model_config = ConfigDict(populate_by_name=True)

    customer_name: str = Field(default=NOT_PROVIDED, alias="customerName")
    customer_contact: str = Field(default=NOT_PROVIDED, alias="customerContact")
    items: str = ""
    notes: str = ""

    @field_validator("customer_name", "customer_contact", mode="before")
    @classmethod
    def _default_contact(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return NOT_PROVIDED
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("notes", mode="before")
    @classmethod
    def _default_notes(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("items", mode="before")
    @classmethod
    def _coerce_items(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, list):
            return ", ".join(_describe_item(item) for item in value if item is not None)
        if isinstance(value, dict):
            return _describe_item(value)
        return value if isinstance(value, str) else str(value)


def _describe_item(item: Any) -> str:
    # Structured line items become "<name> x<quantity>".
    if isinstance(item, dict):
        name = item.get("name") or item.get("productName") or item.get("productId") or "item"
        quantity = item.get("quantity")
        return f"{name} x{quantity}" if quantity else str(name)
    return str(item)


class PlainReply(BaseModel):
    kind: Literal["PLAIN_REPLY"] = "PLAIN_REPLY"
    text: str
    images: Optional[List[str]] = None


class CreateOrderIntent(BaseModel):
    kind: Literal["CREATE_ORDER"] = "CREATE_ORDER"
    text: str
    order: OrderDraft


class FetchOrdersIntent(BaseModel):
    kind: Literal["FETCH_ORDERS"] = "FETCH_ORDERS"
    text: str


class CancelOrderIntent(BaseModel):
    kind: Literal["CANCEL_ORDER"] = "CANCEL_ORDER"
    text: str
    order_id: Optional[int] = None


class OrderConfirmation(BaseModel):
    kind: Literal["ORDER_CONFIRMATION"] = "ORDER_CONFIRMATION"
    text: str


GenerationResult = Union[
    PlainReply,
    CreateOrderIntent,
    FetchOrdersIntent,
    CancelOrderIntent,
    OrderConfirmation,
]


class ProcessedReply(BaseModel):
    """Outcome of dispatching a GenerationResult against the order store."""
    text: str
    images: Optional[List[str]] = None
    intent: Optional[str] = None
    order_created: bool = False
    order_id: Optional[int] = None
    orders_fetched: bool = False
    order_cancelled: bool = False


class ChatRequest(BaseModel):
    """Request payload for the chat API."""
    customer_id: str
    message: str


class ChatResponse(BaseModel):
    """Response payload returned by the chat API."""
    text: str
    images: List[str]
    intent: Optional[str] = None
    order_id: Optional[int] = None
