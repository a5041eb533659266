"""
Token budget calculation for Story Advisor context assembly.

Answers one question: how many characters of screenplay text can still be
placed in the prompt for a given model, once the system prompt, the user's
message, the conversation so far, and fixed reserves are accounted for.

The model table is data. New models are added to ``MODEL_CONTEXT_WINDOWS``
(or to a JSON override file, see ``load_model_context_windows``) without
touching the arithmetic.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from .token_estimator import (
    CHARS_PER_TOKEN,
    estimate_conversation_tokens,
    estimate_tokens,
)

logger = logging.getLogger("quart.app")


# ---------------------------------------------------------------------------
# Model context windows (tokens, input + output combined)
# ---------------------------------------------------------------------------

MODEL_CONTEXT_WINDOWS: Dict[str, int] = {
    # Anthropic
    "claude-sonnet-4-5-20250929": 200_000,
    "claude-opus-4-1-20250805": 200_000,
    "claude-haiku-4-5-20251001": 200_000,
    "claude-3-5-sonnet-20241022": 200_000,
    "claude-3-haiku-20240307": 200_000,
    # OpenAI
    "gpt-5": 400_000,
    "gpt-4.5-turbo": 128_000,
    "gpt-4o": 128_000,
    "gpt-4o-mini": 128_000,
    "gpt-4-turbo": 128_000,
    "gpt-4": 8_192,
    # Google
    "gemini-2.5-pro": 1_048_576,
    "gemini-2.5-flash": 1_048_576,
    "gemini-2.0-flash-001": 1_048_576,
    "gemini-1.5-pro": 2_097_152,
    "gemini-1.5-flash": 1_048_576,
}

# Used for any model id not in the table. Fail-open: a typo'd id silently
# gets this window instead of an error.
DEFAULT_CONTEXT_WINDOW = 128_000

# Fixed reserves (tokens) subtracted from every window.
SYSTEM_PROMPT_RESERVE = 2_000
USER_MESSAGE_RESERVE = 1_000
RESPONSE_RESERVE = 4_000
FORMATTING_OVERHEAD_RESERVE = 1_000
RESERVED_OVERHEAD = (
    SYSTEM_PROMPT_RESERVE
    + USER_MESSAGE_RESERVE
    + RESPONSE_RESERVE
    + FORMATTING_OVERHEAD_RESERVE
)

# Only 80% of the remaining tokens are converted to characters; the rest
# absorbs estimation error in estimate_tokens().
SAFETY_MARGIN = 0.8

MIN_CONTENT_CHARS = 10_000
MAX_CONTENT_CHARS = 1_000_000


@dataclass(frozen=True)
class TokenBudget:
    """Intermediate numbers of one budget calculation."""

    model_id: str
    context_window: int
    system_prompt_tokens: int
    user_message_tokens: int
    conversation_tokens: int
    reserved_overhead: int
    available_tokens: int
    max_content_chars: int

    @property
    def consumed_tokens(self) -> int:
        """Tokens already spoken for before any screenplay content is added."""
        return self.system_prompt_tokens + self.user_message_tokens + self.conversation_tokens

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def get_model_context_window(
    model_id: Optional[str],
    context_windows: Optional[Mapping[str, int]] = None,
) -> int:
    """
    Look up the context window for a model id.

    Args:
        model_id: Model identifier (e.g., 'gpt-4o').
        context_windows: Table to consult. Defaults to MODEL_CONTEXT_WINDOWS.

    Returns:
        Token ceiling for the model, or DEFAULT_CONTEXT_WINDOW when the id is
        missing, not a string, or not in the table.
    """
    table = MODEL_CONTEXT_WINDOWS if context_windows is None else context_windows
    if not isinstance(model_id, str) or not model_id:
        return DEFAULT_CONTEXT_WINDOW

    window = table.get(model_id)
    if window is None:
        logger.debug(
            f"Unknown model id '{model_id}', using default context window {DEFAULT_CONTEXT_WINDOW}"
        )
        return DEFAULT_CONTEXT_WINDOW
    return window


def load_model_context_windows(path: Optional[Union[str, Path]]) -> Dict[str, int]:
    """
    Build the effective model table from the built-in table plus an optional
    JSON override file of the form ``{"model-id": 123456, ...}``.

    Entries whose value is not a positive integer are ignored. A missing or
    unreadable file leaves the built-in table unchanged.
    """
    table = dict(MODEL_CONTEXT_WINDOWS)
    if not path:
        return table

    override_path = Path(path)
    if not override_path.exists():
        logger.warning(f"Model context window file not found: {override_path}. Using built-in table.")
        return table

    try:
        with open(override_path, "r", encoding="utf-8") as f:
            overrides = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to load model context window file {override_path}: {e}. Using built-in table.")
        return table

    if not isinstance(overrides, dict):
        logger.warning(f"Model context window file {override_path} must contain a JSON object. Using built-in table.")
        return table

    for model_id, window in overrides.items():
        if isinstance(window, int) and not isinstance(window, bool) and window > 0:
            table[str(model_id)] = window
        else:
            logger.warning(f"Ignoring invalid context window for '{model_id}': {window!r}")

    logger.info(f"Loaded {len(overrides)} model context window override(s) from {override_path}")
    return table


def calculate_token_budget(
    model_id: Optional[str],
    conversation_history: Optional[List[Dict[str, Any]]] = None,
    system_prompt_base: Optional[str] = "",
    user_message: Optional[str] = "",
    context_windows: Optional[Mapping[str, int]] = None,
) -> TokenBudget:
    """
    Calculate how much screenplay content fits in the model's context window.

    available = window - (system + user + conversation) - RESERVED_OVERHEAD
    chars     = floor(available * CHARS_PER_TOKEN * SAFETY_MARGIN)

    The character result is clamped to [MIN_CONTENT_CHARS, MAX_CONTENT_CHARS]
    so that a nearly full conversation still gets a usable slice.
    """
    context_window = get_model_context_window(model_id, context_windows)
    system_tokens = estimate_tokens(system_prompt_base)
    user_tokens = estimate_tokens(user_message)
    conversation_tokens = estimate_conversation_tokens(conversation_history)

    available = context_window - (system_tokens + user_tokens + conversation_tokens) - RESERVED_OVERHEAD
    raw_chars = math.floor(available * CHARS_PER_TOKEN * SAFETY_MARGIN)
    max_chars = max(MIN_CONTENT_CHARS, min(MAX_CONTENT_CHARS, raw_chars))

    return TokenBudget(
        model_id=model_id if isinstance(model_id, str) else "",
        context_window=context_window,
        system_prompt_tokens=system_tokens,
        user_message_tokens=user_tokens,
        conversation_tokens=conversation_tokens,
        reserved_overhead=RESERVED_OVERHEAD,
        available_tokens=available,
        max_content_chars=max_chars,
    )


def calculate_max_content_chars(
    model_id: Optional[str],
    conversation_history: Optional[List[Dict[str, Any]]] = None,
    system_prompt_base: Optional[str] = "",
    user_message: Optional[str] = "",
    context_windows: Optional[Mapping[str, int]] = None,
) -> int:
    """Maximum screenplay characters that can be included. Always in [10000, 1000000]."""
    return calculate_token_budget(
        model_id,
        conversation_history,
        system_prompt_base,
        user_message,
        context_windows,
    ).max_content_chars
