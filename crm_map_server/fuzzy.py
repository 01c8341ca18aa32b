"""Loose, typo-tolerant matching of search terms against contact and place fields."""

from collections.abc import Iterable


def matches(haystack: str | None, needle: str | None) -> bool:
    """Case-insensitive substring or ordered-subsequence match.

    "austn" matches "Austin" because its characters appear in order. This is a
    yes/no predicate; ranking is left to the caller. Empty input never matches.
    """
    if not haystack or not needle:
        return False

    text = haystack.lower()
    query = needle.lower()

    if query in text:
        return True

    query_index = 0
    for char in text:
        if char == query[query_index]:
            query_index += 1
            if query_index == len(query):
                return True
    return False


def matches_any(fields: Iterable[str | None], needle: str) -> bool:
    """True if any non-empty field matches."""
    return any(matches(f, needle) for f in fields)
