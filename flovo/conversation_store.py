from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .models import ConversationTurn, Sender


class ConversationStore:
    """Per-customer message history backed by a JSON file."""

    def __init__(self, path: Optional[Path] = None, max_turns: Optional[int] = 200) -> None:
        """Purpose: Initialize the store and hydrate it from disk if available.
        Inputs/Outputs: Inputs are an optional file path and a per-customer turn cap.
        Side Effects / State: Loads turns into an in-memory cache.
        Dependencies: Calls _load; relies on the ConversationTurn model.
        Failure Modes: JSON decode errors are swallowed and leave an empty cache.
        If Removed: The assistant loses conversation context between messages.
        Testing Notes: Write turns, build a new store on the same path, read them back.
        """
        self._path = path
        self._max_turns = max_turns
        self._turns: Dict[str, List[ConversationTurn]] = {}
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        # Read and decode persisted JSON if present.
        if not self._path or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return
        conversations = data.get("conversations", {})
        if not isinstance(conversations, dict):
            return
        for customer_id, turns in conversations.items():
            self._turns[customer_id] = [ConversationTurn(**turn) for turn in turns]

    def _persist(self) -> None:
        """Purpose: Write all conversations to disk.
        Inputs/Outputs: Writes to self._path; no return value.
        Side Effects / State: Overwrites the JSON file; the caller holds the lock.
        Dependencies: json.dumps with pydantic's JSON-mode dump for datetimes.
        Failure Modes: IO errors raise exceptions (not caught here).
        If Removed: History is lost on restart.
        Testing Notes: Ensure the file is created and reloadable.
        """
        if not self._path:
            return
        payload = {
            "conversations": {
                customer_id: [turn.model_dump(mode="json") for turn in turns]
                for customer_id, turns in self._turns.items()
            }
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    def add_turn(
        self,
        customer_id: str,
        sender: Sender,
        content: str,
        created_at: Optional[datetime] = None,
    ) -> ConversationTurn:
        """Append a turn, trim the customer's history to the cap, and persist."""
        turn = ConversationTurn(
            sender=sender,
            content=content,
            created_at=created_at or datetime.now(timezone.utc),
        )
        with self._lock:
            turns = self._turns.setdefault(customer_id, [])
            turns.append(turn)
            if self._max_turns and len(turns) > self._max_turns:
                del turns[: len(turns) - self._max_turns]
            self._persist()
        return turn

    def get_last_turns(self, customer_id: str, limit: int = 10) -> List[ConversationTurn]:
        """Return up to `limit` turns for a customer, most recent first."""
        with self._lock:
            turns = list(self._turns.get(customer_id, []))
        # Turns sharing a timestamp keep reverse insertion order.
        newest_first = sorted(reversed(turns), key=lambda turn: turn.created_at, reverse=True)
        return newest_first[:limit]

    def get_conversation(self, customer_id: str) -> List[ConversationTurn]:
        """Return the full stored conversation in chronological order."""
        with self._lock:
            return list(self._turns.get(customer_id, []))
