"""Heuristic screenplay text analysis: scenes, characters, outline, retrieval."""
