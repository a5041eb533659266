"""
Screenplay structure extraction.

Builds the outline that stands in for the full text when a screenplay is
too long to include verbatim: every scene heading with its position, the
full cast, and a three-act breakdown by page.
"""

from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .patterns import (
    DOCUMENT_CHARACTER_PATTERN,
    DOCUMENT_NON_CHARACTER_PATTERN,
    count_pages,
    is_scene_heading,
    page_for_line,
)

KEY_SCENES_PER_ACT = 3

_LOWERCASE = re.compile(r"[a-z]")
_PARENTHETICAL = re.compile(r"\([^)]+\)")


@dataclass(frozen=True)
class SceneHeading:
    heading: str
    line_number: int
    """1-based line of the heading."""
    page_number: int


@dataclass(frozen=True)
class ActSummary:
    act: int
    page_range: str
    scene_count: int
    key_scenes: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ScreenplayStructure:
    scene_headings: List[SceneHeading] = field(default_factory=list)
    characters: List[str] = field(default_factory=list)
    act_summaries: List[ActSummary] = field(default_factory=list)
    total_scenes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def extract_screenplay_structure(content: Optional[str]) -> ScreenplayStructure:
    """Outline of the whole document. Empty structure for empty input."""
    if not content:
        return ScreenplayStructure()

    headings = [
        SceneHeading(
            heading=line.strip(),
            line_number=index + 1,
            page_number=page_for_line(index + 1),
        )
        for index, line in enumerate(content.split("\n"))
        if is_scene_heading(line.strip())
    ]

    return ScreenplayStructure(
        scene_headings=headings,
        characters=extract_all_characters(content),
        act_summaries=generate_act_summaries(content, headings),
        total_scenes=len(headings),
    )


def extract_all_characters(content: Optional[str]) -> List[str]:
    """
    Every character-like cue in the document, sorted and deduplicated.

    Accepts all-caps lines (digits, '#' and "'" allowed) of 2-50 chars that do
    not open with a transition/heading word.
    """
    if not content:
        return []

    names = set()
    for line in content.split("\n"):
        if not DOCUMENT_CHARACTER_PATTERN.fullmatch(line):
            continue
        name = line.strip()
        if len(name) < 2 or len(name) > 50:
            continue
        if DOCUMENT_NON_CHARACTER_PATTERN.match(name):
            continue
        if _LOWERCASE.search(name) or _PARENTHETICAL.search(name):
            continue
        names.add(name)
    return sorted(names)


def generate_act_summaries(content: str, scene_headings: List[SceneHeading]) -> List[ActSummary]:
    """
    Split headings into three acts at 25% and 75% of the page count.

    Acts without scenes are left out. Short documents can have an empty act 1
    because the boundary page rounds down to 0.
    """
    if not scene_headings:
        return []

    total_pages = count_pages(len(content.split("\n")))
    act1_end = math.floor(total_pages * 0.25)
    act2_end = math.floor(total_pages * 0.75)

    acts = (
        (1, f"1-{act1_end}", [s for s in scene_headings if s.page_number <= act1_end]),
        (2, f"{act1_end + 1}-{act2_end}", [s for s in scene_headings if act1_end < s.page_number <= act2_end]),
        (3, f"{act2_end + 1}-{total_pages}", [s for s in scene_headings if s.page_number > act2_end]),
    )

    return [
        ActSummary(
            act=act,
            page_range=page_range,
            scene_count=len(scenes),
            key_scenes=[s.heading for s in scenes[:KEY_SCENES_PER_ACT]],
        )
        for act, page_range, scenes in acts
        if scenes
    ]
