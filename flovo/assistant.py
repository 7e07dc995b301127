from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .gemini_client import GeminiClient
from .models import GenerationRequest, GenerationResult, PlainReply
from .prompt_builder import DEFAULT_HISTORY_LIMIT, DEFAULT_PROMPT_PATH, build_prompt
from .response_parser import ResponseParser
from .utils import truncate

logger = logging.getLogger("flovo.assistant")

GENERATION_FAILED_REPLY = (
    "I apologize, but I'm having trouble processing your request right now. Please try again in a moment."
)


class SalesAssistant:
    """Prompt, generate, parse: one model call per customer message."""

    def __init__(
        self,
        gemini: GeminiClient,
        parser: Optional[ResponseParser] = None,
        prompt_path: Path = DEFAULT_PROMPT_PATH,
        reply_language: Optional[str] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        self._gemini = gemini
        self._parser = parser or ResponseParser()
        self._prompt_path = prompt_path
        self._reply_language = reply_language
        self._history_limit = history_limit

    def generate_response(self, request: GenerationRequest) -> GenerationResult:
        """Purpose: Generate and classify the assistant's reply to one message.
        Inputs/Outputs: Input is a GenerationRequest; output is a GenerationResult.
        Side Effects / State: One generator call; info/exception logs.
        Dependencies: build_prompt, GeminiClient.generate_text, ResponseParser.parse.
        Failure Modes: Generator errors (network, quota, blocked output) are mapped to
            a PlainReply apology. An empty user_text raises ValueError before any call.
        If Removed: The chat pipeline has no way to talk to the model.
        Testing Notes: Use a fake generator returning marker text or raising.
        """
        prompt = build_prompt(
            request,
            reply_language=self._reply_language,
            history_limit=self._history_limit,
            prompt_path=self._prompt_path,
        )
        logger.info("assistant generating reply history=%d", len(request.history))
        try:
            raw = self._gemini.generate_text(prompt)
        except Exception:
            logger.exception("assistant generation failed")
            return PlainReply(text=GENERATION_FAILED_REPLY)

        logger.info("assistant raw reply=%s", truncate(raw))
        return self._parser.parse(raw)
