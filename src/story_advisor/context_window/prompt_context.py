"""
Prompt rendering for Story Advisor context payloads.

Turns a StoryAdvisorContext into the plain-text block appended to the
advisor's system prompt. Output is deterministic for a given payload.
"""

from __future__ import annotations

from typing import List, Optional

from ..screenplay.structure import SceneHeading, ScreenplayStructure
from .context_builder import (
    CONTEXT_TYPE_FULL,
    CONTEXT_TYPE_RETRIEVAL,
    CONTEXT_TYPE_STRUCTURED,
    StoryAdvisorContext,
)

# Retrieval mode lists only the first and last N headings past this count.
ABBREVIATE_HEADINGS_OVER = 20
ABBREVIATED_HEADINGS_EACH_SIDE = 10

FULL_INSTRUCTION = (
    "Use this complete screenplay to provide comprehensive analysis, identify plot holes, "
    "analyze character arcs, and provide structure feedback."
)
STRUCTURED_INSTRUCTION = (
    "Use this structured overview and current scene context to provide specific, "
    "relevant advice about the screenplay."
)
RETRIEVAL_INSTRUCTION = (
    "Use this structure overview, current scene, and relevant scenes to provide "
    "comprehensive analysis."
)


def build_context_prompt_string(context: Optional[StoryAdvisorContext]) -> str:
    """Render a context payload. Empty string for ``empty`` or missing payloads."""
    if context is None:
        return ""

    if context.type == CONTEXT_TYPE_FULL:
        return _render_full(context)
    if context.type == CONTEXT_TYPE_STRUCTURED:
        return _render_outline(context, abbreviate=False) + STRUCTURED_INSTRUCTION
    if context.type == CONTEXT_TYPE_RETRIEVAL:
        return _render_outline(context, abbreviate=True) + RETRIEVAL_INSTRUCTION
    return ""


def _render_full(context: StoryAdvisorContext) -> str:
    text = f"\n\nFULL SCREENPLAY CONTENT:\n{context.content}\n\n"
    text += FULL_INSTRUCTION

    scene = context.current_scene
    if scene is not None:
        text += (
            f"\n\nYou are currently focused on: {scene.heading} "
            f"(Act {scene.act}, Page {scene.page_number})"
        )
    return text


def _render_outline(context: StoryAdvisorContext, abbreviate: bool) -> str:
    structure = context.content
    if not isinstance(structure, ScreenplayStructure):
        structure = ScreenplayStructure()

    parts: List[str] = [
        "\n\nSCREENPLAY STRUCTURE:\n",
        f"Total Scenes: {structure.total_scenes}\n",
        f"Estimated Pages: {context.estimated_pages}\n\n",
    ]

    headings = structure.scene_headings
    if headings:
        if abbreviate:
            parts.append(f"SCENE HEADINGS ({len(headings)} total):\n")
        else:
            parts.append("SCENE HEADINGS:\n")
        parts.extend(_render_headings(headings, abbreviate))
        parts.append("\n")

    if structure.characters:
        parts.append(f"CHARACTERS:\n{', '.join(structure.characters)}\n\n")

    if structure.act_summaries:
        parts.append("ACT SUMMARIES:\n")
        for act in structure.act_summaries:
            parts.append(
                f"Act {act.act} (Pages {act.page_range}): {act.scene_count} scenes. "
                f"Key scenes: {', '.join(act.key_scenes)}\n"
            )
        parts.append("\n")

    scene = context.current_scene
    if scene is not None and scene.content:
        parts.append(f"CURRENT SCENE (Full Detail):\n{scene.content}\n\n")

    if context.type == CONTEXT_TYPE_RETRIEVAL and context.relevant_scenes:
        parts.append("RELEVANT SCENES (Based on Your Query):\n")
        for index, relevant in enumerate(context.relevant_scenes, start=1):
            parts.append(
                f"\n{index}. {relevant.heading} (Page {relevant.page_number}):\n{relevant.content}\n"
            )
        parts.append("\n")

    return "".join(parts)


def _render_headings(headings: List[SceneHeading], abbreviate: bool) -> List[str]:
    def line(number: int, scene: SceneHeading) -> str:
        return f"{number}. {scene.heading} (Page {scene.page_number})\n"

    if not abbreviate or len(headings) <= ABBREVIATE_HEADINGS_OVER:
        return [line(i, scene) for i, scene in enumerate(headings, start=1)]

    each = ABBREVIATED_HEADINGS_EACH_SIDE
    first = [line(i, scene) for i, scene in enumerate(headings[:each], start=1)]
    omitted = [f"... ({len(headings) - 2 * each} scenes) ...\n"]
    last = [
        line(i, scene)
        for i, scene in enumerate(headings[-each:], start=len(headings) - each + 1)
    ]
    return first + omitted + last
