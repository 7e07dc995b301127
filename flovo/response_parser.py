"""Recover a typed GenerationResult from raw model output.

Rules are tried in a fixed order and the first match wins:

    1. structured JSON reply (```json fence, or text starting with "{")
    2. [INTENT:CREATE_ORDER] followed by a JSON payload
    3. [INTENT:FETCH_ORDERS]
    4. [INTENT:CANCEL_ORDER] followed by a JSON payload
    5. the raw text as a plain reply

A rule that fails to parse never raises; it hands over to the next rule.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from .models import (
    CancelOrderIntent,
    CreateOrderIntent,
    FetchOrdersIntent,
    GenerationResult,
    OrderDraft,
    PlainReply,
)
from .utils import decode_object_at, extract_fenced_json, safe_json_loads, truncate

CREATE_ORDER_MARKER = "[INTENT:CREATE_ORDER]"
FETCH_ORDERS_MARKER = "[INTENT:FETCH_ORDERS]"
CANCEL_ORDER_MARKER = "[INTENT:CANCEL_ORDER]"

CREATE_ORDER_RE = re.compile(re.escape(CREATE_ORDER_MARKER) + r"\s*(?=\{)")
CANCEL_ORDER_RE = re.compile(re.escape(CANCEL_ORDER_MARKER) + r"\s*(?=\{)")

CREATE_ORDER_FALLBACK = (
    "Great! I've got your order down. What's your name and phone number so we can get in touch with you?"
)
FETCH_ORDERS_FALLBACK = "Let me check your orders for you."
CANCEL_ORDER_FALLBACK = "I can help you cancel an order. Which order would you like to cancel?"
EMPTY_REPLY_FALLBACK = "Sorry, I didn't catch that. Could you say it again?"

ORDER_ID_RE = re.compile(r"^\s*#?(\d+)\s*$")


class ResponseParser:
    """Classify generator output into exactly one GenerationResult variant."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger("flovo.parser")

    def parse(self, raw: str) -> GenerationResult:
        """Purpose: Turn one raw model reply into a typed result.
        Inputs/Outputs: Input is the raw text; output is PlainReply, CreateOrderIntent,
            FetchOrdersIntent or CancelOrderIntent, always with non-empty text.
        Side Effects / State: Logs a warning for each malformed intent payload.
        Dependencies: _parse_structured_reply, _parse_create_order,
            _parse_fetch_orders, _parse_cancel_order.
        Failure Modes: None raised; the worst case is the raw text as a PlainReply.
        If Removed: Callers cannot tell replies from order actions.
        Testing Notes: Cover precedence (JSON before markers) and malformed payloads.
        """
        raw = raw or ""
        for rule in (
            self._parse_structured_reply,
            self._parse_create_order,
            self._parse_fetch_orders,
            self._parse_cancel_order,
        ):
            result = rule(raw)
            if result is not None:
                self._logger.debug("parser rule=%s kind=%s", rule.__name__, result.kind)
                return result

        if not raw.strip():
            self._logger.warning("parser empty model output, using fallback reply")
            return PlainReply(text=EMPTY_REPLY_FALLBACK)
        return PlainReply(text=raw)

    def _parse_structured_reply(self, raw: str) -> Optional[PlainReply]:
        # Fenced block first; otherwise the whole reply must itself be JSON.
        candidate = extract_fenced_json(raw)
        if candidate is None:
            stripped = raw.strip()
            if not stripped.startswith("{"):
                return None
            candidate = stripped

        data = safe_json_loads(candidate)
        if not isinstance(data, dict):
            self._logger.debug("parser structured reply is not a JSON object, falling through")
            return None
        text = data.get("text")
        if not isinstance(text, str) or not text.strip():
            self._logger.debug("parser structured reply has no usable text field, falling through")
            return None
        return PlainReply(text=text, images=_filter_images(data.get("images")))

    def _parse_create_order(self, raw: str) -> Optional[CreateOrderIntent]:
        found = self._find_marker_payload(raw, CREATE_ORDER_RE, CREATE_ORDER_MARKER, OrderDraft.model_validate)
        if found is None:
            return None
        order, preceding = found
        return CreateOrderIntent(text=preceding or CREATE_ORDER_FALLBACK, order=order)

    def _parse_fetch_orders(self, raw: str) -> Optional[FetchOrdersIntent]:
        if FETCH_ORDERS_MARKER not in raw:
            return None
        remainder = raw.replace(FETCH_ORDERS_MARKER, "", 1).strip()
        return FetchOrdersIntent(text=remainder or FETCH_ORDERS_FALLBACK)

    def _parse_cancel_order(self, raw: str) -> Optional[CancelOrderIntent]:
        found = self._find_marker_payload(raw, CANCEL_ORDER_RE, CANCEL_ORDER_MARKER)
        if found is None:
            return None
        payload, preceding = found
        return CancelOrderIntent(
            text=preceding or CANCEL_ORDER_FALLBACK,
            order_id=_coerce_order_id(payload.get("orderId")),
        )

    def _find_marker_payload(
        self,
        raw: str,
        pattern: re.Pattern,
        marker: str,
        validate: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ) -> Optional[Tuple[Any, str]]:
        """Return (payload, text before the marker) for the first marker that carries a
        decodable JSON object, or None. When validate is given the payload is replaced by
        its return value. Undecodable or invalid payloads are logged and skipped."""
        for match in pattern.finditer(raw):
            decoded = decode_object_at(raw, match.end())
            if decoded is None:
                self._logger.warning(
                    "parser marker=%s malformed JSON payload=%s", marker, truncate(raw[match.end():], 80)
                )
                continue
            payload, _ = decoded
            if validate is not None:
                try:
                    payload = validate(payload)
                except ValidationError as exc:
                    self._logger.warning(
                        "parser marker=%s invalid payload errors=%d", marker, exc.error_count()
                    )
                    continue
            return payload, raw[: match.start()].strip()
        return None


def _filter_images(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    return [item for item in value if isinstance(item, str)]


def _coerce_order_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        match = ORDER_ID_RE.match(value)
        if match:
            return int(match.group(1))
    return None
