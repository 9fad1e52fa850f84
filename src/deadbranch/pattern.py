"""Single-wildcard branch name patterns.

Only ``*`` is special: it matches any run of characters, including none.
Matching is case-sensitive and anchored at both ends, so ``wip/*`` matches
``wip/x`` but not ``my-wip/x``. Characters such as ``?`` and ``[`` are
literal, unlike :mod:`fnmatch`.
"""

from typing import Iterable

WILDCARD = "*"


def glob_match(pattern: str, text: str) -> bool:
    """Check whether text matches a single-wildcard pattern.

    Args:
        pattern: Pattern where each ``*`` stands for any substring
        text: Text to test

    Returns:
        True if the whole text matches the pattern
    """
    if WILDCARD not in pattern:
        return pattern == text

    tokens = pattern.split(WILDCARD)
    head, middle, tail = tokens[0], tokens[1:-1], tokens[-1]

    if not text.startswith(head):
        return False
    pos = len(head)

    for token in middle:
        if not token:
            continue
        found = text.find(token, pos)
        if found < 0:
            return False
        pos = found + len(token)

    # The tail must fit in what is left after the last consumed token
    return len(text) - pos >= len(tail) and text.endswith(tail)


def matches_any(patterns: Iterable[str], text: str) -> bool:
    """Check whether text matches at least one pattern."""
    return any(glob_match(pattern, text) for pattern in patterns)
