"""Chat pipeline orchestration for one incoming customer message.

Step contracts:
    Load Context:
        Reads the recent history, past orders and inventory; builds the
        GenerationRequest.
    Generation:
        Calls the SalesAssistant once; sets result.
    Intent Dispatch:
        Executes the result's intent against the OrderStore; sets reply.
    Finalize:
        Stores the customer turn (unless blank) and the bot reply. Always runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .assistant import SalesAssistant
from .catalog import CatalogLoader, render_inventory
from .conversation_store import ConversationStore
from .intent_handler import IntentDispatcher
from .models import (
    ConversationTurn,
    GenerationRequest,
    GenerationResult,
    OrderSummary,
    PlainReply,
    ProcessedReply,
    Sender,
)
from .order_store import OrderStore
from .pipeline_runtime import PipelineStep, StepRunner
from .utils import truncate

logger = logging.getLogger("flovo.pipeline")

EMPTY_MESSAGE_REPLY = "Hi! How can I help you today?"


@dataclass
class ChatContext:
    """Mutable context passed through each pipeline step."""
    customer_id: str
    user_message: str
    history: List[ConversationTurn] = field(default_factory=list)
    past_orders: List[OrderSummary] = field(default_factory=list)
    product_context: Optional[str] = None
    request: Optional[GenerationRequest] = None
    result: Optional[GenerationResult] = None
    reply: Optional[ProcessedReply] = None


class ChatPipeline:
    def __init__(
        self,
        assistant: SalesAssistant,
        dispatcher: IntentDispatcher,
        conversations: ConversationStore,
        orders: OrderStore,
        catalog: CatalogLoader,
        history_fetch_limit: int = 10,
    ) -> None:
        """Purpose: Wire the stores, assistant and dispatcher into an ordered runner.
        Inputs/Outputs: Inputs are the collaborators and the history fetch size.
        Side Effects / State: Builds a StepRunner with the four steps.
        Dependencies: StepRunner/PipelineStep and the step methods below.
        Failure Modes: None at init.
        If Removed: The chat endpoint has no way to handle a message.
        Testing Notes: Build with a fake generator and temp-file stores.
        """
        self._assistant = assistant
        self._dispatcher = dispatcher
        self._conversations = conversations
        self._orders = orders
        self._catalog = catalog
        self._history_fetch_limit = history_fetch_limit
        self._runner = StepRunner(
            steps=[
                PipelineStep("load_context", self._step_load_context, skip_if=_is_blank),
                PipelineStep("generation", self._step_generation, skip_if=_is_blank),
                PipelineStep("intent_dispatch", self._step_intent_dispatch, skip_if=_is_blank),
                PipelineStep("finalize", self._step_finalize, always_run=True),
            ]
        )

    def handle_message(self, customer_id: str, user_message: str) -> ChatContext:
        """Run the pipeline for one message and return the populated context."""
        context = ChatContext(customer_id=customer_id, user_message=user_message)
        logger.info("pipeline customer=%s question=%s", customer_id, user_message)
        self._runner.run(context)
        return context

    def _step_load_context(self, context: ChatContext) -> None:
        # History excludes the message being handled; it is stored in finalize.
        context.history = self._conversations.get_last_turns(context.customer_id, self._history_fetch_limit)
        context.past_orders = self._orders.summaries_for_prompt(context.customer_id)
        context.product_context = render_inventory(self._catalog.load())
        context.request = GenerationRequest(
            user_text=context.user_message,
            history=context.history,
            product_context=context.product_context,
            past_orders=context.past_orders or None,
        )
        logger.debug(
            "pipeline customer=%s history=%d orders=%d",
            context.customer_id,
            len(context.history),
            len(context.past_orders),
        )

    def _step_generation(self, context: ChatContext) -> None:
        context.result = self._assistant.generate_response(context.request)
        logger.info("pipeline customer=%s intent=%s", context.customer_id, context.result.kind)

    def _step_intent_dispatch(self, context: ChatContext) -> None:
        context.reply = self._dispatcher.process(context.result, context.customer_id, context.user_message)

    def _step_finalize(self, context: ChatContext) -> None:
        if context.reply is None:
            fallback = PlainReply(text=EMPTY_MESSAGE_REPLY)
            context.result = fallback
            context.reply = ProcessedReply(text=fallback.text, intent=fallback.kind)
        if not _is_blank(context):
            self._conversations.add_turn(context.customer_id, Sender.USER, context.user_message)
        self._conversations.add_turn(context.customer_id, Sender.BOT, context.reply.text)
        logger.info("pipeline customer=%s answer=%s", context.customer_id, truncate(context.reply.text))


def _is_blank(context: ChatContext) -> bool:
    return not context.user_message or not context.user_message.strip()
