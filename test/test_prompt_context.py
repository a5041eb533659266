"""
Unit tests for rendering Story Advisor context payloads into prompt text,
and for the budget snapshot built alongside them.
"""
import math
import os
import sys

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from story_advisor.context_window.budget import calculate_token_budget
from story_advisor.context_window.context_builder import (
    StoryAdvisorContext,
    build_story_advisor_context,
)
from story_advisor.context_window.prompt_context import (
    FULL_INSTRUCTION,
    RETRIEVAL_INSTRUCTION,
    STRUCTURED_INSTRUCTION,
    build_context_prompt_string,
)
from story_advisor.context_window.snapshot import build_context_snapshot
from story_advisor.screenplay.retrieval import RelevantScene
from story_advisor.screenplay.scene_detection import detect_current_scene
from story_advisor.screenplay.structure import ActSummary, SceneHeading, ScreenplayStructure

from screenplay_fixtures import TWO_SCENE_SCREENPLAY, long_screenplay

CLAUDE = "claude-sonnet-4-5-20250929"


def _outline_context(context_type, heading_count=30):
    headings = [
        SceneHeading(heading=f"INT. ROOM {i} - DAY", line_number=i * 10 - 9, page_number=1)
        for i in range(1, heading_count + 1)
    ]
    structure = ScreenplayStructure(
        scene_headings=headings,
        characters=["JOHN", "MARY"],
        act_summaries=[ActSummary(act=3, page_range="1-1", scene_count=heading_count,
                                  key_scenes=["INT. ROOM 1 - DAY"])],
        total_scenes=heading_count,
    )
    doc = "INT. ROOM 1 - DAY\n\nJOHN\nHello.\n"
    relevant = [RelevantScene(heading="INT. ROOM 5 - DAY", content="INT. ROOM 5 - DAY\nQuiet.",
                              line_number=41, page_number=1)]
    return StoryAdvisorContext(
        type=context_type,
        content=structure,
        current_scene=detect_current_scene(doc, len(doc) - 2),
        relevant_scenes=relevant if context_type == "retrieval" else None,
        estimated_pages=130,
    )


def test_empty_context_renders_nothing():
    assert build_context_prompt_string(StoryAdvisorContext(type="empty")) == ""
    assert build_context_prompt_string(None) == ""


def test_full_render_includes_document_and_focus():
    doc = TWO_SCENE_SCREENPLAY
    ctx = build_story_advisor_context(doc, doc.index("Stop"), "", CLAUDE, [], "")
    text = build_context_prompt_string(ctx)

    assert text.startswith("\n\nFULL SCREENPLAY CONTENT:\n" + doc)
    assert FULL_INSTRUCTION in text
    assert text.endswith("You are currently focused on: EXT. STREET - NIGHT (Act 3, Page 1)")


def test_full_render_without_scene_has_no_focus_note():
    ctx = build_story_advisor_context(TWO_SCENE_SCREENPLAY, None, "", CLAUDE, [], "")
    text = build_context_prompt_string(ctx)

    assert text.endswith(FULL_INSTRUCTION)
    assert "currently focused" not in text


def test_structured_render_lists_every_heading():
    doc = long_screenplay(150_000)
    ctx = build_story_advisor_context(doc, 0, "", CLAUDE, [], "")
    text = build_context_prompt_string(ctx)
    total = ctx.content.total_scenes

    assert ctx.type == "structured"
    assert f"Total Scenes: {total}\n" in text
    assert "Estimated Pages: 75\n" in text
    assert "SCENE HEADINGS:\n" in text
    assert f"\n{total}. {ctx.content.scene_headings[-1].heading}" in text
    assert "scenes) ..." not in text
    assert text.endswith(STRUCTURED_INSTRUCTION)


def test_retrieval_render_abbreviates_long_heading_list():
    text = build_context_prompt_string(_outline_context("retrieval"))

    assert "SCENE HEADINGS (30 total):\n" in text
    assert "10. INT. ROOM 10 - DAY (Page 1)\n... (10 scenes) ...\n21. INT. ROOM 21 - DAY (Page 1)\n" in text
    assert "\n11. " not in text
    assert "30. INT. ROOM 30 - DAY (Page 1)\n" in text
    assert text.endswith(RETRIEVAL_INSTRUCTION)


def test_retrieval_render_keeps_short_heading_list():
    text = build_context_prompt_string(_outline_context("retrieval", heading_count=20))

    assert "SCENE HEADINGS (20 total):\n" in text
    assert "scenes) ..." not in text
    assert "11. INT. ROOM 11 - DAY (Page 1)\n" in text


def test_structured_render_does_not_abbreviate():
    text = build_context_prompt_string(_outline_context("structured"))

    assert "SCENE HEADINGS:\n" in text
    assert "11. INT. ROOM 11 - DAY (Page 1)\n" in text
    assert "RELEVANT SCENES" not in text


def test_outline_sections_in_order():
    text = build_context_prompt_string(_outline_context("retrieval"))

    markers = [
        "SCREENPLAY STRUCTURE:",
        "Total Scenes: 30",
        "Estimated Pages: 130",
        "SCENE HEADINGS (30 total):",
        "CHARACTERS:\nJOHN, MARY",
        "ACT SUMMARIES:\nAct 3 (Pages 1-1): 30 scenes. Key scenes: INT. ROOM 1 - DAY",
        "CURRENT SCENE (Full Detail):\nINT. ROOM 1 - DAY",
        "RELEVANT SCENES (Based on Your Query):\n\n1. INT. ROOM 5 - DAY (Page 1):\nINT. ROOM 5 - DAY\nQuiet.",
        RETRIEVAL_INSTRUCTION,
    ]
    positions = [text.index(marker) for marker in markers]
    assert positions == sorted(positions)


def test_empty_outline_sections_are_omitted():
    ctx = StoryAdvisorContext(type="structured", content=ScreenplayStructure(), estimated_pages=60)
    text = build_context_prompt_string(ctx)

    assert "Total Scenes: 0\n" in text
    assert "SCENE HEADINGS" not in text
    assert "CHARACTERS" not in text
    assert "ACT SUMMARIES" not in text
    assert "CURRENT SCENE" not in text


def test_snapshot_matches_rendered_prompt():
    doc = TWO_SCENE_SCREENPLAY
    ctx = build_story_advisor_context(doc, 0, "notes?", CLAUDE, [], "")
    rendered = build_context_prompt_string(ctx)
    budget = calculate_token_budget(CLAUDE, [], "", "notes?")

    snapshot = build_context_snapshot(ctx, budget, rendered)
    event = snapshot.to_event()

    assert event["type"] == "story_advisor_context_snapshot"
    assert event["model_id"] == CLAUDE
    assert event["budget"]["context_window"] == 200_000
    assert event["budget"]["max_content_chars"] == budget.max_content_chars
    assert event["context"]["type"] == "full"
    assert event["context"]["chars"] == len(rendered)
    assert event["context"]["tokens"] == math.ceil(len(rendered) / 4)
    assert event["context"]["relevant_scenes"] == 0
    assert snapshot.to_summary_text().startswith("Context: full 1p | ")
