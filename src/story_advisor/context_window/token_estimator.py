"""
Token estimation utilities for context window budget management.

Uses a fixed character-per-token heuristic instead of a real tokenizer.
The estimate is approximate: dense prose or non-Latin scripts may need more
tokens than estimated (undercounting is the real risk), which is why the
budget calculator applies its own safety margin on top.

Swapping in a real tokenizer only requires replacing ``estimate_tokens``;
the budget arithmetic never looks at characters directly.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Optional

# Average characters per token across common LLM providers.
CHARS_PER_TOKEN = 4


def estimate_tokens(text: Optional[str]) -> int:
    """
    Estimate token count for a text string.

    Args:
        text: The text to estimate tokens for.

    Returns:
        ``ceil(len(text) / CHARS_PER_TOKEN)``, or 0 for empty input.
    """
    if not text or not isinstance(text, str):
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def tokens_to_chars(tokens: int) -> int:
    """Convert a token budget to an approximate character budget."""
    if tokens <= 0:
        return 0
    return int(tokens * CHARS_PER_TOKEN)


def estimate_conversation_tokens(messages: Optional[Iterable[Any]]) -> int:
    """
    Estimate total tokens for a list of chat messages.

    Each message is a dict with 'role' and 'content' keys. Content may be a
    string or a list of parts (e.g., ``{"type": "text", "text": ...}``).
    Entries that are not dicts contribute nothing.
    """
    if not messages:
        return 0

    total = 0
    for msg in messages:
        if not isinstance(msg, dict):
            continue
        content = msg.get("content", "")
        if isinstance(content, str):
            total += estimate_tokens(content)
        elif isinstance(content, list):
            # Multi-part content (e.g., vision messages)
            for part in content:
                if isinstance(part, dict) and "text" in part:
                    total += estimate_tokens(part["text"])

    return total
