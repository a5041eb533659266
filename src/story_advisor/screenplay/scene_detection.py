"""
Scene detection.

Locates the scene that encloses a cursor position in a screenplay and
extracts the short-horizon context around it: the scene heading, the act,
the characters present, and a small text window before and after the
cursor.

Positions are plain character offsets into the document. Lines are split on
"\\n" and every line accounts for one extra character (the newline).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .patterns import (
    NON_CHARACTER_PATTERN,
    SCENE_CHARACTER_PATTERN,
    UNKNOWN_SCENE,
    count_pages,
    is_scene_heading,
    page_for_line,
)

CONTEXT_BEFORE_CHARS = 150
CONTEXT_AFTER_CHARS = 200
SELECTION_CONTEXT_CHARS = 100

# Dialogue parsing accepts cues like "GUARD #2" or "O'NEIL".
_DIALOGUE_CUE_CHARS = set("ABCDEFGHIJKLMNOPQRSTUVWXYZ#0123456789' \t")


@dataclass(frozen=True)
class SceneContext:
    """Where the cursor is: the enclosing scene and its surroundings."""

    heading: str
    act: int
    characters: List[str] = field(default_factory=list)
    content: str = ""
    context_before_cursor: str = ""
    context_after_cursor: str = ""
    start_line: int = 0
    end_line: int = 0
    current_line: int = 0
    page_number: int = 0
    total_pages: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SelectionContext:
    selected_text: str
    before_context: str
    after_context: str
    start: int
    end: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PreviousScene:
    heading: str
    content: str
    characters: List[str]
    start_line: int
    end_line: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DialogueLine:
    character: str
    line: str


def detect_current_scene(content: Optional[str], cursor_position: Optional[int]) -> Optional[SceneContext]:
    """
    Detect the scene that contains ``cursor_position``.

    Args:
        content: Full screenplay text.
        cursor_position: 0-based character offset of the cursor.

    Returns:
        SceneContext, or None when there is no content or no integer cursor.
        A cursor beyond the end of the document resolves to the last line.
    """
    if not content or not isinstance(cursor_position, int):
        return None

    lines = content.split("\n")
    current_line = _line_at_offset(lines, cursor_position)

    # Nearest heading at or above the cursor line
    heading = None
    start_line = 0
    for i in range(current_line, -1, -1):
        if is_scene_heading(lines[i]):
            heading = lines[i].strip()
            start_line = i
            break

    # Next heading below the cursor line closes the scene
    end_line = len(lines) - 1
    for i in range(current_line + 1, len(lines)):
        if is_scene_heading(lines[i]):
            end_line = i - 1
            break

    scene_content = "\n".join(lines[start_line:end_line + 1])
    scene_start_offset = sum(len(line) + 1 for line in lines[:start_line])
    cursor_in_scene = cursor_position - scene_start_offset

    context_before = ""
    if cursor_in_scene > 0:
        window = scene_content[max(0, cursor_in_scene - CONTEXT_BEFORE_CHARS):cursor_in_scene].strip()
        # The model must not see (and echo) the heading
        context_before = "\n".join(
            line for line in window.split("\n") if not is_scene_heading(line.strip())
        ).strip()

    context_after = ""
    if 0 <= cursor_in_scene < len(scene_content):
        context_after = scene_content[cursor_in_scene:cursor_in_scene + CONTEXT_AFTER_CHARS].strip()

    total_pages = count_pages(len(lines))
    page_number = page_for_line(start_line)

    return SceneContext(
        heading=heading or UNKNOWN_SCENE,
        act=detect_act(page_number, total_pages),
        characters=extract_characters(scene_content),
        content=scene_content,
        context_before_cursor=context_before,
        context_after_cursor=context_after,
        start_line=start_line,
        end_line=end_line,
        current_line=current_line,
        page_number=page_number,
        total_pages=total_pages,
    )


def _line_at_offset(lines: List[str], offset: int) -> int:
    char_count = 0
    for i, line in enumerate(lines):
        char_count += len(line) + 1
        if char_count >= offset:
            return i
    return len(lines) - 1


def extract_characters(scene_content: Optional[str]) -> List[str]:
    """
    Character cues in a scene: standalone all-caps lines, 2-30 chars,
    not opening with a transition/heading word. Deduplicated, in order of
    first appearance.
    """
    if not scene_content:
        return []

    characters: List[str] = []
    for line in scene_content.split("\n"):
        if not SCENE_CHARACTER_PATTERN.fullmatch(line):
            continue
        name = line.strip()
        if len(name) < 2 or len(name) > 30:
            continue
        if NON_CHARACTER_PATTERN.match(name):
            continue
        if name not in characters:
            characters.append(name)
    return characters


def detect_act(current_page: int, total_pages: int) -> int:
    """Act 1 for the first 25% of pages, act 2 up to 75%, act 3 after."""
    if total_pages <= 0:
        return 1
    position = current_page / total_pages
    if position < 0.25:
        return 1
    if position < 0.75:
        return 2
    return 3


def extract_selection_context(
    content: Optional[str],
    selection_start: Optional[int],
    selection_end: Optional[int],
) -> Optional[SelectionContext]:
    """Selected text plus up to 100 characters either side, for rewrites."""
    if not content or selection_start is None or selection_end is None:
        return None

    start = max(0, min(selection_start, selection_end))
    end = max(0, max(selection_start, selection_end))
    return SelectionContext(
        selected_text=content[start:end],
        before_context=content[max(0, start - SELECTION_CONTEXT_CHARS):start],
        after_context=content[end:end + SELECTION_CONTEXT_CHARS],
        start=start,
        end=end,
    )


def extract_previous_scene(content: Optional[str], current_scene_start_line: Optional[int]) -> Optional[PreviousScene]:
    """The scene immediately before the one starting at ``current_scene_start_line``."""
    if not content or current_scene_start_line is None or current_scene_start_line <= 0:
        return None

    lines = content.split("\n")
    current_scene_start_line = min(current_scene_start_line, len(lines))

    for i in range(current_scene_start_line - 1, -1, -1):
        if is_scene_heading(lines[i]):
            previous_content = "\n".join(lines[i:current_scene_start_line])
            return PreviousScene(
                heading=lines[i].strip(),
                content=previous_content,
                characters=extract_characters(previous_content),
                start_line=i,
                end_line=current_scene_start_line - 1,
            )
    return None


def _is_dialogue_cue(line: str) -> bool:
    if len(line) < 2 or len(line) > 30 or not ("A" <= line[0] <= "Z"):
        return False
    if any(ch not in _DIALOGUE_CUE_CHARS for ch in line):
        return False
    if is_scene_heading(line):
        return False
    return not NON_CHARACTER_PATTERN.match(line) and not line.startswith(("I/E", "INT/EXT"))


def extract_recent_dialogue(scene_content: Optional[str], count: int = 5) -> List[DialogueLine]:
    """
    Last ``count`` (character, dialogue) exchanges of a scene.

    An exchange ends at the next cue or at the first blank line, so action
    written after a speech is not folded into it. Parentheticals are skipped.
    """
    if not scene_content or count <= 0:
        return []

    exchanges: List[DialogueLine] = []
    current_character = None
    current_dialogue: List[str] = []

    for raw_line in scene_content.split("\n"):
        line = raw_line.strip()
        if not line or _is_dialogue_cue(line):
            # A blank line or a new cue closes the current exchange
            if current_character and current_dialogue:
                exchanges.append(DialogueLine(current_character, " ".join(current_dialogue).strip()))
            current_character = line or None
            current_dialogue = []
        elif current_character:
            if not (line.startswith("(") and line.endswith(")")):
                current_dialogue.append(line)

    if current_character and current_dialogue:
        exchanges.append(DialogueLine(current_character, " ".join(current_dialogue).strip()))

    return exchanges[-count:]


def extract_scene_action(scene_content: Optional[str]) -> List[str]:
    """
    Action lines of a scene: everything outside headings and dialogue blocks.

    A dialogue block runs from a cue to the next blank line or heading.
    Lines in a block are never reported as action, whatever their case.
    """
    if not scene_content:
        return []

    action_lines: List[str] = []
    in_dialogue = False

    for raw_line in scene_content.split("\n"):
        line = raw_line.strip()
        if not line or is_scene_heading(line):
            # Dialogue blocks end at the first blank line
            in_dialogue = False
            continue

        if _is_dialogue_cue(line):
            in_dialogue = True
            continue

        if not in_dialogue:
            action_lines.append(line)

    return action_lines


def build_scene_context_prompt(scene: Optional[SceneContext]) -> str:
    """Short [SCENE CONTEXT] block used by the non-advisor agent modes."""
    if scene is None:
        return ""

    context = "\n\n[SCENE CONTEXT]\n"
    context += f"Scene: {scene.heading}\n"
    context += f"Act: {scene.act}\n"
    context += f"Page: {scene.page_number} of {scene.total_pages}\n"
    if scene.characters:
        context += f"Characters in scene: {', '.join(scene.characters)}\n"
    return context
