"""
Context Budget Snapshot: metrics dataclass for observability.

ContextBudgetSnapshot captures one Story Advisor context build: which model
window applied, how much of it the conversation already consumed, which
strategy was chosen, and how large the rendered context turned out.

Used for:
  - the ``snapshot`` block of the context API response
  - one-line INFO log summaries
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from .budget import TokenBudget
from .context_builder import StoryAdvisorContext
from .token_estimator import estimate_tokens


@dataclass(frozen=True)
class ContextBudgetSnapshot:
    """Complete snapshot of a context build."""

    # --- Budget summary ---
    model_id: str
    """Model identifier the budget was computed for ('' if none)."""

    context_window: int
    """Model's maximum context window in tokens."""

    reserved_overhead: int
    """Tokens reserved for system prompt, user message, response and formatting."""

    consumed_tokens: int
    """System prompt + user message + conversation tokens."""

    max_content_chars: int
    """Screenplay character allowance after clamping."""

    # --- Result ---
    context_type: str
    """Strategy chosen: empty, full, structured, retrieval."""

    estimated_pages: int
    """Document size in estimated pages."""

    context_chars: int
    """Length of the rendered context string."""

    context_tokens: int
    """Estimated tokens of the rendered context string."""

    relevant_scene_count: int = 0
    """Scenes retrieved for the query (retrieval mode only)."""

    @property
    def utilization_pct(self) -> float:
        """Rendered context as a share of the character allowance."""
        if self.max_content_chars <= 0:
            return 0.0
        return self.context_chars / self.max_content_chars * 100

    def to_event(self) -> Dict[str, Any]:
        """Format as a JSON-ready dict."""
        return {
            "type": "story_advisor_context_snapshot",
            "model_id": self.model_id,
            "budget": {
                "context_window": self.context_window,
                "reserved_overhead": self.reserved_overhead,
                "consumed_tokens": self.consumed_tokens,
                "max_content_chars": self.max_content_chars,
                "utilization_pct": round(self.utilization_pct, 1),
            },
            "context": {
                "type": self.context_type,
                "estimated_pages": self.estimated_pages,
                "chars": self.context_chars,
                "tokens": self.context_tokens,
                "relevant_scenes": self.relevant_scene_count,
            },
        }

    def to_summary_text(self) -> str:
        """
        Format as compact text for logging.

        Example: "Context: structured 58p | 41.2K/614K chars (6.7%) | window 200K"
        """
        chars_k = self.context_chars / 1000
        budget_k = self.max_content_chars / 1000
        window_k = self.context_window / 1000
        return (
            f"Context: {self.context_type} {self.estimated_pages}p | "
            f"{chars_k:.1f}K/{budget_k:.0f}K chars ({self.utilization_pct:.1f}%) | "
            f"window {window_k:.0f}K"
        )


def build_context_snapshot(
    context: StoryAdvisorContext,
    budget: TokenBudget,
    rendered: str,
) -> ContextBudgetSnapshot:
    return ContextBudgetSnapshot(
        model_id=budget.model_id,
        context_window=budget.context_window,
        reserved_overhead=budget.reserved_overhead,
        consumed_tokens=budget.consumed_tokens,
        max_content_chars=budget.max_content_chars,
        context_type=context.type,
        estimated_pages=context.estimated_pages,
        context_chars=len(rendered),
        context_tokens=estimate_tokens(rendered),
        relevant_scene_count=len(context.relevant_scenes or []),
    )
