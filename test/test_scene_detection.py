"""
Unit tests for cursor-based scene detection.

Validates that detect_current_scene():
1. Finds the heading enclosing the cursor and the scene's line range
2. Scopes character detection to the located scene
3. Keeps the heading out of the before-cursor window
4. Degrades to None / "Unknown Scene" instead of raising
"""
import os
import sys

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from story_advisor.screenplay.patterns import SCENE_HEADING_PATTERN, UNKNOWN_SCENE
from story_advisor.screenplay.structure import extract_all_characters
from story_advisor.screenplay.scene_detection import (
    build_scene_context_prompt,
    detect_act,
    detect_current_scene,
    extract_characters,
    extract_previous_scene,
    extract_recent_dialogue,
    extract_scene_action,
    extract_selection_context,
)

from screenplay_fixtures import TWO_SCENE_SCREENPLAY, long_screenplay


def test_cursor_in_second_scene():
    doc = TWO_SCENE_SCREENPLAY
    scene = detect_current_scene(doc, doc.index("Stop right there."))

    assert scene.heading == "EXT. STREET - NIGHT"
    assert scene.start_line == 8
    assert scene.end_line == len(doc.split("\n")) - 1
    assert scene.characters == ["DETECTIVE"]
    assert scene.content.startswith("EXT. STREET - NIGHT")
    assert "JOHN" not in scene.content
    # 15 lines is a single page; page 1 of 1 is the last quarter
    assert scene.total_pages == 1
    assert scene.page_number == 1
    assert scene.act == 3


def test_cursor_in_first_scene():
    doc = TWO_SCENE_SCREENPLAY
    scene = detect_current_scene(doc, doc.index("Where is it?"))

    assert scene.heading == "INT. OFFICE - DAY"
    assert scene.start_line == 0
    assert scene.end_line == 7
    assert scene.characters == ["JOHN", "MARY"]
    assert scene.page_number == 0
    assert scene.act == 1


def test_context_windows_exclude_heading():
    doc = TWO_SCENE_SCREENPLAY
    scene = detect_current_scene(doc, doc.index("Stop right there."))

    assert "EXT. STREET" not in scene.context_before_cursor
    assert scene.context_before_cursor.endswith("DETECTIVE")
    assert "Rain hammers the pavement." in scene.context_before_cursor
    assert scene.context_after_cursor == "Stop right there."


def test_context_windows_are_bounded():
    doc = "INT. HALLWAY - DAY\n\n" + ("a" * 400 + "\n") * 3
    cursor = len(doc) // 2
    scene = detect_current_scene(doc, cursor)

    assert 0 < len(scene.context_before_cursor) <= 150
    assert 0 < len(scene.context_after_cursor) <= 200


def test_line_invariants_hold_for_every_cursor():
    doc = TWO_SCENE_SCREENPLAY + "\nINT. CAR - CONTINUOUS\n\nMARY\nDrive.\n"
    for cursor in range(0, len(doc) + 5):
        scene = detect_current_scene(doc, cursor)
        assert scene is not None
        assert scene.start_line <= scene.current_line <= scene.end_line
        assert scene.heading == UNKNOWN_SCENE or SCENE_HEADING_PATTERN.match(scene.heading)
        assert scene.act in (1, 2, 3)


def test_empty_document_or_missing_cursor_returns_none():
    assert detect_current_scene("", 0) is None
    assert detect_current_scene(None, 0) is None
    assert detect_current_scene(TWO_SCENE_SCREENPLAY, None) is None
    assert detect_current_scene(TWO_SCENE_SCREENPLAY, "12") is None


def test_no_headings_gives_unknown_scene():
    doc = "Just some notes.\nJOHN\nHello.\n"
    scene = detect_current_scene(doc, 5)

    assert scene.heading == UNKNOWN_SCENE
    assert scene.start_line == 0
    assert scene.characters == ["JOHN"]


def test_cursor_past_end_falls_through_to_last_scene():
    doc = TWO_SCENE_SCREENPLAY
    scene = detect_current_scene(doc, len(doc) + 1000)

    assert scene.heading == "EXT. STREET - NIGHT"
    assert scene.current_line == len(doc.split("\n")) - 1
    assert scene.context_after_cursor == ""


def test_negative_cursor_lands_on_first_line():
    scene = detect_current_scene(TWO_SCENE_SCREENPLAY, -10)
    assert scene.current_line == 0
    assert scene.heading == "INT. OFFICE - DAY"


def test_lowercase_heading_prefix_is_detected():
    doc = "int. kitchen - day\n\nANNA\nCoffee?\n"
    scene = detect_current_scene(doc, len(doc) - 2)
    assert scene.heading == "int. kitchen - day"


def test_transitions_are_not_characters():
    scene_text = "INT. LAB - NIGHT\n\nFADE TO BLACK\nCUT TO\nTHE END\nCONTINUED\nMARY\n"
    characters = extract_characters(scene_text)

    assert "FADE" not in characters
    assert "BLACK" not in characters
    assert "FADE TO BLACK" not in characters
    assert "THE END" not in characters
    assert characters == ["MARY"]


def test_stoplist_rejects_any_cue_opening_with_a_stop_word():
    scene_text = "INT. LAB - NIGHT\n\nINTERCUT\nBLACKOUT\nEXTREME CLOSE UP\nTOM\nCUTTER\n"
    assert extract_characters(scene_text) == []
    assert extract_all_characters(scene_text) == []


def test_character_length_limits_and_dedupe():
    scene_text = "A\nBOB\nBOB\n" + "X" * 31 + "\nSARAH (30s)\n"
    assert extract_characters(scene_text) == ["BOB"]


def test_detect_act_thresholds():
    assert detect_act(0, 100) == 1
    assert detect_act(24, 100) == 1
    assert detect_act(25, 100) == 2
    assert detect_act(74, 100) == 2
    assert detect_act(75, 100) == 3
    assert detect_act(100, 100) == 3


def test_act_follows_page_position_in_long_document():
    doc = long_screenplay(200_000)
    lines = doc.split("\n")
    middle_offset = sum(len(line) + 1 for line in lines[:len(lines) // 2])
    scene = detect_current_scene(doc, middle_offset)

    assert scene.total_pages > 20
    assert scene.act == 2


def test_selection_context():
    doc = "0123456789" * 30
    selection = extract_selection_context(doc, 150, 160)

    assert selection.selected_text == doc[150:160]
    assert selection.before_context == doc[50:150]
    assert selection.after_context == doc[160:260]
    assert extract_selection_context(doc, None, 10) is None
    assert extract_selection_context("", 0, 1) is None


def test_previous_scene():
    doc = TWO_SCENE_SCREENPLAY
    previous = extract_previous_scene(doc, 8)

    assert previous.heading == "INT. OFFICE - DAY"
    assert previous.start_line == 0
    assert previous.end_line == 7
    assert previous.characters == ["JOHN", "MARY"]
    assert extract_previous_scene(doc, 0) is None


def test_recent_dialogue_and_action():
    scene_text = (
        "INT. OFFICE - DAY\n\n"
        "Papers everywhere.\n\n"
        "JOHN\n(quietly)\nWhere is it?\n\n"
        "MARY\nGone.\nFor good.\n\n"
        "She slams the drawer.\n"
    )
    dialogue = extract_recent_dialogue(scene_text)

    assert [(d.character, d.line) for d in dialogue] == [
        ("JOHN", "Where is it?"),
        ("MARY", "Gone. For good."),
    ]
    assert [d.character for d in extract_recent_dialogue(scene_text, count=1)] == ["MARY"]
    assert extract_scene_action(scene_text) == ["Papers everywhere.", "She slams the drawer."]


def test_scene_context_prompt():
    doc = TWO_SCENE_SCREENPLAY
    scene = detect_current_scene(doc, doc.index("Where"))
    prompt = build_scene_context_prompt(scene)

    assert "[SCENE CONTEXT]" in prompt
    assert "Scene: INT. OFFICE - DAY" in prompt
    assert "Characters in scene: JOHN, MARY" in prompt
    assert build_scene_context_prompt(None) == ""


def test_dialogue_block_runs_until_blank_line():
    scene_text = (
        "INT. OFFICE - DAY\n"
        "JOHN\nWhere is it?\nStill here somewhere.\n\n"
        "He opens the safe.\n"
    )

    assert [(d.character, d.line) for d in extract_recent_dialogue(scene_text)] == [
        ("JOHN", "Where is it? Still here somewhere."),
    ]
    assert extract_scene_action(scene_text) == ["He opens the safe."]
