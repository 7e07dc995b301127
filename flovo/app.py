from __future__ import annotations

import logging
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI

from .assistant import SalesAssistant
from .catalog import CatalogLoader
from .chat_pipeline import ChatPipeline
from .config import BASE_DIR, Settings, load_settings
from .confirmation import OrderConfirmationRenderer
from .conversation_store import ConversationStore
from .gemini_client import GeminiClient
from .intent_handler import IntentDispatcher
from .models import ChatRequest, ChatResponse
from .order_store import OrderStore
from .response_parser import ResponseParser

ENV_PATH = BASE_DIR / ".env"


def configure_logging(level_name: str) -> None:
    """Install the root handler once and set the flovo logger level."""
    log_level = getattr(logging, level_name.upper(), logging.INFO)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
    logging.getLogger("flovo").setLevel(log_level)


def create_app(settings: Optional[Settings] = None, gemini: Optional[GeminiClient] = None) -> FastAPI:
    """Purpose: Build the FastAPI app with its stores, assistant and pipeline.
    Inputs/Outputs: Optional Settings and generator overrides; returns a FastAPI app.
    Side Effects / State: Loads .env, configures logging, creates the data directory.
    Dependencies: load_settings, GeminiClient, the stores, SalesAssistant,
        IntentDispatcher and ChatPipeline.
    Failure Modes: A missing GEMINI_API_KEY raises ValueError when no generator is
        injected; invalid numeric env values raise ValueError.
    If Removed: The service cannot be started.
    Testing Notes: Inject Settings pointing at a temp dir and a fake generator.
        Run with: uvicorn flovo.app:create_app --factory
    """
    if settings is None:
        if ENV_PATH.exists():
            load_dotenv(ENV_PATH, override=True)
        else:
            load_dotenv()
        settings = load_settings()
    configure_logging(settings.log_level)
    settings.data_dir.mkdir(parents=True, exist_ok=True)

    gemini = gemini or GeminiClient(settings)
    conversations = ConversationStore(settings.data_dir / "conversations.json")
    orders = OrderStore(settings.data_dir / "orders.json")
    assistant = SalesAssistant(
        gemini=gemini,
        parser=ResponseParser(logging.getLogger("flovo.parser")),
        prompt_path=settings.prompts_dir / "sales_assistant.txt",
        reply_language=settings.reply_language,
        history_limit=settings.history_limit,
    )
    renderer = OrderConfirmationRenderer(gemini, settings.prompts_dir / "order_confirmation.txt")
    pipeline = ChatPipeline(
        assistant=assistant,
        dispatcher=IntentDispatcher(orders, renderer, orders_limit=settings.orders_fetch_limit),
        conversations=conversations,
        orders=orders,
        catalog=CatalogLoader(settings.catalog_path),
        history_fetch_limit=settings.history_fetch_limit,
    )

    app = FastAPI(title="Flovo Sales Assistant")

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.post("/api/chat", response_model=ChatResponse)
    def chat(request: ChatRequest) -> ChatResponse:
        """Purpose: Handle one customer message end to end.
        Inputs/Outputs: Input is ChatRequest; output is ChatResponse with the reply text,
            images, detected intent and affected order id.
        Side Effects / State: Stores both turns; may create or cancel an order.
        Dependencies: ChatPipeline.handle_message.
        Failure Modes: Store IO errors propagate as 500 errors; generator errors do not.
        If Removed: Core chat functionality is unavailable.
        Testing Notes: Send a message with a fake generator and check the response.
        """
        context = pipeline.handle_message(request.customer_id, request.message)
        reply = context.reply
        return ChatResponse(
            text=reply.text,
            images=reply.images or [],
            intent=reply.intent,
            order_id=reply.order_id,
        )

    @app.get("/api/customers/{customer_id}/orders")
    def list_orders(customer_id: str) -> List[dict]:
        return [order.model_dump(mode="json") for order in orders.get_orders_for_customer(customer_id, limit=50)]

    @app.get("/api/customers/{customer_id}/messages")
    def list_messages(customer_id: str) -> dict:
        return {
            "customer_id": customer_id,
            "messages": [turn.model_dump(mode="json") for turn in conversations.get_conversation(customer_id)],
        }

    return app
