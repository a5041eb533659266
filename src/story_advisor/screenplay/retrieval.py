"""
Query-driven scene retrieval for very long screenplays.

Keyword matching, not embeddings: a scene is relevant when its heading names
a character or location the query mentions, when it falls in an act the
query mentions, or when the query uses a generic craft term. The craft-term
rule matches almost every scene, so results favour recall over precision.

Scenes are returned in document order, first matches first. They are not
ranked by how strongly they match.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .patterns import is_scene_heading, page_for_line
from .structure import extract_all_characters

logger = logging.getLogger("quart.app")

MAX_RELEVANT_SCENES = 3
RELEVANT_SCENES_BUDGET_SHARE = 0.3
MIN_TRUNCATED_SCENE_CHARS = 500
TRUNCATION_MARKER = "\n\n[... scene continues ...]"

# Fixed page cutoffs. Scene detection uses page ratios instead; the two
# conventions are kept separate.
ACT_ONE_LAST_PAGE = 25
ACT_TWO_LAST_PAGE = 75

ACT_PHRASES = {
    1: ("act 1", "first act"),
    2: ("act 2", "second act", "middle"),
    3: ("act 3", "third act", "final act"),
}
COMMON_LOCATIONS = (
    "office", "house", "car", "street", "room", "shop", "restaurant", "park", "hospital", "school",
)
SCENE_TERMS = ("scene", "pacing", "dialogue", "conflict", "tension", "moment")


@dataclass(frozen=True)
class RelevantScene:
    heading: str
    content: str
    line_number: int
    page_number: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class QueryAnalysis:
    """Keywords pulled out of a user query."""

    query_lower: str
    mentioned_characters: List[str] = field(default_factory=list)
    act_mentions: List[int] = field(default_factory=list)
    location_keywords: List[str] = field(default_factory=list)


def analyze_query(query: str, characters: List[str]) -> QueryAnalysis:
    query_lower = (query or "").lower()
    return QueryAnalysis(
        query_lower=query_lower,
        mentioned_characters=[c for c in characters if c.lower() in query_lower],
        act_mentions=[
            act for act, phrases in ACT_PHRASES.items()
            if any(phrase in query_lower for phrase in phrases)
        ],
        location_keywords=[loc for loc in COMMON_LOCATIONS if loc in query_lower],
    )


def act_for_page(page_number: int) -> int:
    if page_number <= ACT_ONE_LAST_PAGE:
        return 1
    if page_number <= ACT_TWO_LAST_PAGE:
        return 2
    return 3


def is_scene_relevant(heading: str, page_number: int, analysis: QueryAnalysis) -> bool:
    heading_lower = heading.lower()

    if any(c.lower() in heading_lower for c in analysis.mentioned_characters):
        return True

    if analysis.act_mentions and act_for_page(page_number) in analysis.act_mentions:
        return True

    if any(loc in heading_lower for loc in analysis.location_keywords):
        return True

    return any(term in analysis.query_lower for term in SCENE_TERMS)


def retrieve_relevant_scenes(
    content: Optional[str],
    query: Optional[str],
    max_chars: int,
) -> List[RelevantScene]:
    """
    Pick up to MAX_RELEVANT_SCENES scenes relevant to ``query``.

    All scenes together use at most RELEVANT_SCENES_BUDGET_SHARE of
    ``max_chars``. The first scene that does not fit whole is truncated to the
    remaining allowance (marked with TRUNCATION_MARKER) if more than
    MIN_TRUNCATED_SCENE_CHARS remain, otherwise dropped; no later scene is
    considered after it.
    """
    if not query or not content:
        return []

    analysis = analyze_query(query, extract_all_characters(content))
    lines = content.split("\n")

    candidates: List[RelevantScene] = []
    for start, heading, scene_lines in _iter_scenes(lines):
        if len(candidates) >= MAX_RELEVANT_SCENES:
            break
        line_number = start + 1
        page_number = page_for_line(line_number)
        if is_scene_relevant(heading, page_number, analysis):
            candidates.append(RelevantScene(
                heading=heading,
                content="\n".join(scene_lines),
                line_number=line_number,
                page_number=page_number,
            ))

    allowance = max_chars * RELEVANT_SCENES_BUDGET_SHARE
    total_chars = 0
    selected: List[RelevantScene] = []

    for scene in candidates:
        if total_chars + len(scene.content) <= allowance:
            selected.append(scene)
            total_chars += len(scene.content)
            continue

        remaining = int(max(0, allowance - total_chars))
        if remaining > MIN_TRUNCATED_SCENE_CHARS:
            selected.append(RelevantScene(
                heading=scene.heading,
                content=scene.content[:remaining] + TRUNCATION_MARKER,
                line_number=scene.line_number,
                page_number=scene.page_number,
            ))
        break

    logger.debug(
        f"Scene retrieval: {len(selected)} of {len(candidates)} candidate(s) kept "
        f"(allowance {int(allowance)} chars, acts={analysis.act_mentions}, "
        f"locations={analysis.location_keywords}, characters={analysis.mentioned_characters})"
    )
    return selected


def _iter_scenes(lines: List[str]):
    """Yield (start_index, heading, lines) per scene. Text before the first heading is skipped."""
    start = -1
    heading = ""
    scene_lines: List[str] = []

    for i, line in enumerate(lines):
        if is_scene_heading(line.strip()):
            if start >= 0:
                yield start, heading, scene_lines
            start = i
            heading = line.strip()
            scene_lines = [line]
        elif start >= 0:
            scene_lines.append(line)

    if start >= 0:
        yield start, heading, scene_lines
