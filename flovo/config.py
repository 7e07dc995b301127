from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

BASE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class Settings:
    """Configuration container for the generator, storage paths, and context limits."""
    gemini_api_key: str
    gemini_model: str
    prompts_dir: Path
    data_dir: Path
    catalog_path: Path
    reply_language: Optional[str]
    history_limit: int
    history_fetch_limit: int
    orders_fetch_limit: int
    log_level: str


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables.
    Dependencies: Uses os.getenv and BASE_DIR for default paths.
    Failure Modes: Non-integer HISTORY_LIMIT/HISTORY_FETCH_LIMIT/ORDERS_FETCH_LIMIT
        raise ValueError; a non-positive limit raises ValueError too.
    If Removed: The app cannot configure the generator or its stores.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Resolve storage paths first, then the numeric limits.
    data_dir_env = os.getenv("DATA_DIR")
    data_dir = Path(data_dir_env) if data_dir_env else (BASE_DIR / "data").resolve()

    catalog_env = os.getenv("CATALOG_PATH")
    catalog_path = Path(catalog_env) if catalog_env else data_dir / "products.json"

    reply_language = os.getenv("REPLY_LANGUAGE", "").strip() or None

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        prompts_dir=(BASE_DIR / "prompts").resolve(),
        data_dir=data_dir,
        catalog_path=catalog_path,
        reply_language=reply_language,
        history_limit=_positive_int("HISTORY_LIMIT", "6"),
        history_fetch_limit=_positive_int("HISTORY_FETCH_LIMIT", "10"),
        orders_fetch_limit=_positive_int("ORDERS_FETCH_LIMIT", "5"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def _positive_int(name: str, default: str) -> int:
    value = int(os.getenv(name, default))
    if value <= 0:
        raise ValueError(f"{name} must be a positive integer")
    return value
