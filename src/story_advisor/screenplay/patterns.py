"""
Heuristic screenplay patterns shared by scene detection, structure
extraction and retrieval.

These are deliberately loose text patterns, not a screenplay grammar. They
over-detect (transition words missing from the stoplist read as characters)
and under-detect (cues with age parentheticals like "SARAH (30s)" are
skipped). Free-form drafts depend on that tolerance.
"""

from __future__ import annotations

import math
import re

SCENE_HEADING_PATTERN = re.compile(r"^(INT\.|EXT\.|INT/EXT\.|I/E\.)\s+", re.IGNORECASE)

# Character cue inside a single scene.
SCENE_CHARACTER_PATTERN = re.compile(r"[A-Z][A-Z\s]+")
# Character cue anywhere in the document; also allows digits, '#' and "'".
DOCUMENT_CHARACTER_PATTERN = re.compile(r"[A-Z][A-Z\s#0-9']+")

NON_CHARACTER_WORDS = (
    "INT", "EXT", "FADE", "CUT", "DISSOLVE", "TO", "BLACK", "CONTINUED", "THE END",
)
DOCUMENT_NON_CHARACTER_WORDS = NON_CHARACTER_WORDS + ("I/E",)

LINES_PER_PAGE = 55
UNKNOWN_SCENE = "Unknown Scene"


def _stoplist_pattern(words):
    alternatives = "|".join(re.escape(word) for word in words)
    return re.compile(rf"^(?:{alternatives})")


# Prefix match: any cue opening with a stoplist token is rejected, so
# "INTERCUT", "BLACKOUT" and "EXTREME CLOSE UP" are dropped, and so are names
# that happen to share a prefix ("TOM", "CUTTER").
NON_CHARACTER_PATTERN = _stoplist_pattern(NON_CHARACTER_WORDS)
DOCUMENT_NON_CHARACTER_PATTERN = _stoplist_pattern(DOCUMENT_NON_CHARACTER_WORDS)


def is_scene_heading(line: str) -> bool:
    return bool(SCENE_HEADING_PATTERN.match(line))


def page_for_line(line_number: int) -> int:
    """Page of a 1-based line number at LINES_PER_PAGE lines per page."""
    return math.ceil(line_number / LINES_PER_PAGE)


def count_pages(line_count: int) -> int:
    return math.ceil(line_count / LINES_PER_PAGE)
