"""Prompt construction for the sales assistant.

The prompt is a pure function of the request and the static policy template in
``prompts/sales_assistant.txt``: persona, business and pricing rules, the
conversation-flow guide, the intent-marker grammar, then the live inventory,
the optional order history, the recent transcript and the new message.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

from .models import ConversationTurn, GenerationRequest, OrderSummary
from .prompt_loader import render_prompt

DEFAULT_HISTORY_LIMIT = 6
NO_PRODUCTS_TEXT = "No products are currently available in inventory."
ORDER_HISTORY_HEADER = "CUSTOMER'S ORDER HISTORY:"
MATCH_LANGUAGE_RULE = (
    "Always reply in the language of the customer's last message "
    "(for example Uzbek, Russian or English). If they switch language, switch with them."
)
FIXED_LANGUAGE_RULE = "Always reply in {language}, whatever language the customer writes in."

DEFAULT_PROMPT_PATH = Path(__file__).resolve().parent / "prompts" / "sales_assistant.txt"


def build_prompt(
    request: GenerationRequest,
    reply_language: Optional[str] = None,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
    prompt_path: Path = DEFAULT_PROMPT_PATH,
) -> str:
    """Purpose: Render the full generation prompt for one customer message.
    Inputs/Outputs: Inputs are the GenerationRequest, an optional fixed reply language,
        the history window size and the template path; output is the prompt string.
    Side Effects / State: None beyond the cached template read.
    Dependencies: render_prompt, window_history, render_transcript, render_order_history.
    Failure Modes: Raises ValueError for an empty user_text; KeyError only if the
        template gains a placeholder this function does not fill.
    If Removed: The generator receives no policy, inventory or context.
    Testing Notes: Check the inventory fallback, the optional order block and that
        only the last six turns appear oldest first.
    """
    if not request.user_text or not request.user_text.strip():
        raise ValueError("user_text must not be empty")

    turns = window_history(request.history, history_limit)
    return render_prompt(
        prompt_path,
        language_rule=language_rule(reply_language),
        inventory=request.product_context or NO_PRODUCTS_TEXT,
        order_history=render_order_history(request.past_orders),
        history=render_transcript(turns),
        user_text=request.user_text,
    )


def language_rule(reply_language: Optional[str]) -> str:
    if reply_language:
        return FIXED_LANGUAGE_RULE.format(language=reply_language)
    return MATCH_LANGUAGE_RULE


def window_history(history: Sequence[ConversationTurn], limit: int = DEFAULT_HISTORY_LIMIT) -> List[ConversationTurn]:
    """Purpose: Pick the most recent turns and put them in reading order.
    Inputs/Outputs: Input is turns in any order (normally most recent first) and the
        window size; output is at most `limit` turns, oldest first.
    Side Effects / State: None; the input sequence is not mutated.
    Dependencies: ConversationTurn.created_at.
    Failure Modes: A non-positive limit yields an empty window.
    If Removed: Prompts grow without bound and the model repeats old answers.
    Testing Notes: Ten turns in, six most recent out, chronological.
    """
    if limit <= 0:
        return []
    # Stable sort keeps the caller's order for turns sharing a timestamp.
    newest_first = sorted(history, key=lambda turn: turn.created_at, reverse=True)
    return list(reversed(newest_first[:limit]))


def render_transcript(turns: Sequence[ConversationTurn]) -> str:
    return "\n".join(f"{turn.sender.value}: {turn.content}" for turn in turns)


def render_order_history(past_orders: Optional[Sequence[OrderSummary]]) -> str:
    """Render the order-history block, or an empty string when there are no orders."""
    if not past_orders:
        return ""
    lines = [ORDER_HISTORY_HEADER]
    for order in past_orders:
        lines.append(f"- Order #{order.id}: {order.items or 'N/A'} ({order.status})")
    return "\n".join(lines)
