"""Line-oriented pattern search used by the reference backends.

Patterns are literal strings. ``whole_words`` requires that no word character
sits directly before or after a hit; ``ignore_case`` case-folds both the
patterns and each line before matching. Lines are split on ``\\n`` only. With
``match_all`` a resource only contributes hits if every pattern occurs
somewhere in it; the hits are always the lines matching any pattern.
"""

from __future__ import annotations

import re
from typing import Iterable

from filestore.types import SearchMatch, SearchQuery


def compile_query(query: SearchQuery) -> list[re.Pattern[str]]:
    """Compile each query pattern into a regular expression.

    With ``ignore_case`` the patterns are case-folded, so they must be
    applied to case-folded text (see ``split_lines``).
    """
    compiled = []
    for pattern in query.patterns:
        if query.ignore_case:
            pattern = pattern.casefold()
        expr = re.escape(pattern)
        if query.whole_words:
            expr = rf"(?<!\w){expr}(?!\w)"
        compiled.append(re.compile(expr))
    return compiled


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, dropping one trailing ``\\r`` per line."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def search_text(
    resource_name: str,
    text: str,
    query: SearchQuery,
    compiled: list[re.Pattern[str]] | None = None,
) -> list[SearchMatch]:
    """Search one resource's text.

    Args:
        resource_name: Name reported in each match.
        text: Decoded resource content.
        query: Search configuration.
        compiled: Precompiled patterns from ``compile_query`` (optional).

    Returns:
        Matches in line order; empty if the query has no patterns.
    """
    patterns = compiled if compiled is not None else compile_query(query)
    if not patterns:
        return []

    seen = [False] * len(patterns)
    hits: list[SearchMatch] = []
    for number, line in enumerate(split_lines(text), start=1):
        subject = line.casefold() if query.ignore_case else line
        line_hit = False
        for i, pattern in enumerate(patterns):
            if pattern.search(subject):
                seen[i] = True
                line_hit = True
        if line_hit:
            hits.append(SearchMatch(resource_name, number, line))

    if query.match_all and not all(seen):
        return []
    return hits


def search_resources(
    resources: Iterable[tuple[str, bytes]],
    query: SearchQuery,
) -> list[SearchMatch]:
    """Search ``(name, content)`` pairs; content that is not UTF-8 is skipped."""
    compiled = compile_query(query)
    if not compiled:
        return []
    matches: list[SearchMatch] = []
    for name, data in sorted(resources, key=lambda item: item[0]):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            continue
        matches.extend(search_text(name, text, query, compiled))
    return matches
