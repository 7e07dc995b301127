from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .gemini_client import GeminiClient
from .models import OrderConfirmation
from .prompt_loader import render_prompt

DEFAULT_CONFIRMATION_PROMPT = Path(__file__).resolve().parent / "prompts" / "order_confirmation.txt"

FALLBACK_CONFIRMATION_TEMPLATE = """✅ <b>Order Confirmed!</b>

📋 <b>Order #{order_id}</b>
🛍️ <b>Items:</b> {items}
📞 <b>Contact:</b> {phone}
📝 <b>Notes:</b> {notes}

Your order has been received and is being processed. We'll contact you soon with more details!

Is there anything else I can help you with?"""


@dataclass(frozen=True)
class ConfirmedOrder:
    """Fields of a stored order that the confirmation message shows."""
    id: int
    items: str = ""
    phone: str = ""
    notes: str = ""


class OrderConfirmationRenderer:
    """Render the customer-facing confirmation for a freshly created order."""

    def __init__(
        self,
        gemini: GeminiClient,
        prompt_path: Path = DEFAULT_CONFIRMATION_PROMPT,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._gemini = gemini
        self._prompt_path = prompt_path
        self._logger = logger or logging.getLogger("flovo.confirmation")

    def render(self, order: ConfirmedOrder, customer_message: str) -> OrderConfirmation:
        """Purpose: Produce the confirmation text in the customer's language.
        Inputs/Outputs: Inputs are the stored order and the customer's message (used only
            for language matching); output is an OrderConfirmation used verbatim.
        Side Effects / State: One generator call; logs on fallback.
        Dependencies: GeminiClient.generate_text and the order_confirmation template.
        Failure Modes: Generator errors or empty output fall back to the English
            template; nothing is raised.
        If Removed: Created orders are acknowledged without their details.
        Testing Notes: A generator that raises must yield the English template with
            the order fields interpolated.
        """
        prompt = render_prompt(
            self._prompt_path,
            order_id=str(order.id),
            items=order.items or "To be specified",
            phone=order.phone or "Not provided",
            notes=order.notes or "None",
            customer_message=customer_message or "",
        )
        try:
            text = self._gemini.generate_text(prompt)
        except Exception:
            self._logger.exception("confirmation order=%s generator failed, using fallback", order.id)
            return OrderConfirmation(text=fallback_confirmation(order))
        if not text or not text.strip():
            self._logger.warning("confirmation order=%s empty generator output, using fallback", order.id)
            return OrderConfirmation(text=fallback_confirmation(order))
        return OrderConfirmation(text=text.strip())


def fallback_confirmation(order: ConfirmedOrder) -> str:
    return FALLBACK_CONFIRMATION_TEMPLATE.format(
        order_id=order.id,
        items=order.items or "To be specified",
        phone=order.phone or "Not provided",
        notes=order.notes or "None",
    )
