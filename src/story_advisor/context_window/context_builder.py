"""
Context Builder: single entry point for Story Advisor context assembly.

Decides how much of a screenplay goes into the advisor prompt:

    empty       no document
    full        < 50 pages AND fits the model budget → verbatim text
    structured  < 120 pages → outline + current scene in full
    retrieval   >= 120 pages → outline + current scene + query-relevant scenes

The strategy is chosen once per call. Every path returns a well-typed
StoryAdvisorContext; callers branch on ``type`` before reading ``content``
or ``relevant_scenes``.

Usage:
    ctx = build_story_advisor_context(text, cursor, query, model_id, history, system_prompt)
    prompt = system_prompt + build_context_prompt_string(ctx)
"""

from __future__ import annotations

import hashlib
import logging
import math
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from ..screenplay.retrieval import RelevantScene, retrieve_relevant_scenes
from ..screenplay.scene_detection import SceneContext, detect_current_scene
from ..screenplay.structure import ScreenplayStructure, extract_screenplay_structure
from .budget import TokenBudget, calculate_token_budget

logger = logging.getLogger("quart.app")

CHARS_PER_PAGE = 2000
SHORT_SCREENPLAY_PAGES = 50
MEDIUM_SCREENPLAY_PAGES = 120

CONTEXT_TYPE_EMPTY = "empty"
CONTEXT_TYPE_FULL = "full"
CONTEXT_TYPE_STRUCTURED = "structured"
CONTEXT_TYPE_RETRIEVAL = "retrieval"


@dataclass(frozen=True)
class StoryAdvisorContext:
    """
    Context payload for one advisor request.

    ``content`` is the raw document for ``full``, a ScreenplayStructure for
    ``structured`` and ``retrieval``, and None for ``empty``.
    ``relevant_scenes`` is a list only for ``retrieval``.
    """

    type: str
    content: Union[str, ScreenplayStructure, None] = None
    current_scene: Optional[SceneContext] = None
    relevant_scenes: Optional[List[RelevantScene]] = None
    estimated_pages: int = 0

    def to_dict(self) -> Dict[str, Any]:
        if isinstance(self.content, ScreenplayStructure):
            content: Any = self.content.to_dict()
        else:
            content = self.content

        data: Dict[str, Any] = {
            "type": self.type,
            "content": content,
            "current_scene": self.current_scene.to_dict() if self.current_scene else None,
            "estimated_pages": self.estimated_pages,
        }
        if self.relevant_scenes is not None:
            data["relevant_scenes"] = [scene.to_dict() for scene in self.relevant_scenes]
        return data


class StructureCache:
    """
    Caller-owned LRU cache of screenplay outlines, keyed by document hash.

    Outline extraction is linear in document length; a request handler that
    builds context repeatedly for an unchanged draft can pass one of these in
    to extract it once.
    """

    def __init__(self, max_entries: int = 32):
        self.max_entries = max(0, max_entries)
        self._entries: "OrderedDict[str, ScreenplayStructure]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def document_key(content: str) -> str:
        return hashlib.sha256(content.encode("utf-8", errors="surrogatepass")).hexdigest()

    def get_or_extract(self, content: str) -> ScreenplayStructure:
        if self.max_entries == 0:
            self.misses += 1
            return extract_screenplay_structure(content)

        key = self.document_key(content)
        structure = self._entries.get(key)
        if structure is not None:
            self._entries.move_to_end(key)
            self.hits += 1
            return structure

        self.misses += 1
        structure = extract_screenplay_structure(content)
        self._entries[key] = structure
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return structure

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def get_status(self) -> Dict[str, Any]:
        return {
            "entries": len(self._entries),
            "max_entries": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
        }


def estimate_pages(content: Optional[str]) -> int:
    """``ceil(len(content) / CHARS_PER_PAGE)``."""
    if not content:
        return 0
    return math.ceil(len(content) / CHARS_PER_PAGE)


def build_story_advisor_context(
    editor_content: Optional[str],
    cursor_position: Optional[int],
    query: Optional[str] = None,
    model_id: Optional[str] = None,
    conversation_history: Optional[List[Dict[str, Any]]] = None,
    system_prompt_base: Optional[str] = None,
    context_windows: Optional[Mapping[str, int]] = None,
    structure_cache: Optional[StructureCache] = None,
    budget: Optional[TokenBudget] = None,
) -> StoryAdvisorContext:
    """
    Build the advisor context for a screenplay.

    Args:
        editor_content: Full screenplay text.
        cursor_position: 0-based cursor offset (None if unknown).
        query: The user's message, used for budgeting and scene retrieval.
        model_id: Selected model; unknown ids use the default window.
        conversation_history: Prior turns as {'role', 'content'} dicts.
        system_prompt_base: Base system prompt the context will be appended to.
        context_windows: Optional model table overriding the built-in one.
        structure_cache: Optional outline cache owned by the caller.
        budget: Precomputed budget for the same model and conversation. When
            given, the model/conversation arguments are not re-estimated.

    Returns:
        StoryAdvisorContext. Never raises for malformed input.
    """
    if not editor_content:
        return StoryAdvisorContext(type=CONTEXT_TYPE_EMPTY)

    screenplay_length = len(editor_content)
    pages = estimate_pages(editor_content)
    current_scene = detect_current_scene(editor_content, cursor_position)

    if budget is None:
        budget = calculate_token_budget(
            model_id,
            conversation_history,
            system_prompt_base or "",
            query or "",
            context_windows,
        )
    max_content_chars = budget.max_content_chars
    logger.debug(
        f"Story advisor budget: model={budget.model_id or '<none>'} window={budget.context_window} "
        f"consumed={budget.consumed_tokens} available={budget.available_tokens} "
        f"max_content_chars={max_content_chars}"
    )

    if pages < SHORT_SCREENPLAY_PAGES and screenplay_length <= max_content_chars:
        logger.info(f"Story advisor context: full ({pages} pages, {screenplay_length} chars)")
        return StoryAdvisorContext(
            type=CONTEXT_TYPE_FULL,
            content=editor_content,
            current_scene=current_scene,
            estimated_pages=pages,
        )

    if structure_cache is not None:
        structure = structure_cache.get_or_extract(editor_content)
    else:
        structure = extract_screenplay_structure(editor_content)

    if pages < MEDIUM_SCREENPLAY_PAGES:
        logger.info(
            f"Story advisor context: structured ({pages} pages, {structure.total_scenes} scenes)"
        )
        return StoryAdvisorContext(
            type=CONTEXT_TYPE_STRUCTURED,
            content=structure,
            current_scene=current_scene,
            estimated_pages=pages,
        )

    relevant_scenes = retrieve_relevant_scenes(editor_content, query, max_content_chars)
    logger.info(
        f"Story advisor context: retrieval ({pages} pages, {structure.total_scenes} scenes, "
        f"{len(relevant_scenes)} relevant)"
    )
    return StoryAdvisorContext(
        type=CONTEXT_TYPE_RETRIEVAL,
        content=structure,
        current_scene=current_scene,
        relevant_scenes=relevant_scenes,
        estimated_pages=pages,
    )
