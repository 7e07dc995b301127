from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from string import Template


def load_prompt(prompt_path: Path) -> str:
    """Purpose: Load a prompt file as UTF-8 text and strip BOM if present.
    Inputs/Outputs: Input is a Path to the prompt file; output is the decoded string.
    Side Effects / State: None; reads the filesystem.
    Dependencies: Uses Path.read_text/read_bytes; used by the prompt builder and
        the confirmation renderer.
    Failure Modes: UnicodeDecodeError triggers a fallback decode with errors ignored,
        which can drop invalid bytes. A missing file raises FileNotFoundError.
    If Removed: No prompt can be rendered and every generation call fails.
    Testing Notes: Validate BOM-stripping on a temp file.
    """
    # Read as UTF-8 and fall back to a tolerant decode if needed.
    try:
        return prompt_path.read_text(encoding="utf-8").lstrip("\ufeff")
    except UnicodeDecodeError:
        raw = prompt_path.read_bytes()
        text = raw.decode("utf-8", errors="ignore")
        return text.lstrip("\ufeff")


@lru_cache(maxsize=16)
def load_template(prompt_path: Path) -> Template:
    """Load a prompt file once and wrap it as a ``$name`` substitution template."""
    return Template(load_prompt(prompt_path))


def render_prompt(prompt_path: Path, **values: str) -> str:
    """Substitute values into a prompt template; a missing placeholder raises KeyError."""
    return load_template(prompt_path).substitute(**values)
