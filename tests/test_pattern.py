"""Tests for single-wildcard branch patterns."""

import re

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from deadbranch.pattern import glob_match, matches_any


@pytest.mark.parametrize(
    ("pattern", "text", "expected"),
    [
        ("wip/*", "wip/x", True),
        ("wip/*", "wip/", True),
        ("wip/*", "my-wip/x", False),
        ("*/wip", "feature/wip", True),
        ("*/wip", "feature/wip-2", False),
        ("feature/*/old", "feature/a/b/old", True),
        ("a*b*c", "abc", True),
        ("a*b*c", "acb", False),
        ("ab*ba", "aba", False),
        ("*", "", True),
        ("**", "anything", True),
        ("main", "main", True),
        ("main", "Main", False),
        ("release-?", "release-1", False),
        ("release-?", "release-?", True),
        ("[abc]", "a", False),
    ],
)
def test_glob_match(pattern: str, text: str, expected: bool) -> None:
    assert glob_match(pattern, text) is expected


def test_matches_any() -> None:
    patterns = ["wip/*", "draft/*", "*/wip", "*/draft"]
    assert matches_any(patterns, "draft/idea")
    assert matches_any(patterns, "me/wip")
    assert not matches_any(patterns, "feature/wipe")
    assert not matches_any([], "anything")


alphabet = st.sampled_from("ab*/.-?[")


@settings(max_examples=300)
@given(pattern=st.text(alphabet, max_size=8), text=st.text(st.sampled_from("ab/.-?["), max_size=10))
def test_glob_match_agrees_with_regex(pattern: str, text: str) -> None:
    regex = "^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$"
    assert glob_match(pattern, text) == bool(re.match(regex, text, re.DOTALL))
