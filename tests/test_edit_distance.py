"""Tests for the edit distance scorer."""

import itertools

import pytest

from campaign_search.engine.edit_distance import distance, max_distance


def test_known_distances():
    assert distance("gandalf", "gandalf") == 0
    assert distance("gandalf", "gandlf") == 1
    assert distance("abc", "xyz") == 3
    assert distance("kitten", "sitting") == 3


def test_empty_strings():
    assert distance("", "abc") == 3
    assert distance("abc", "") == 3
    assert distance("", "") == 0


WORDS = ["gandalf", "gandlf", "shadowheart", "shadowhrat", "dragon", "", "a", "abc", "xyz"]


@pytest.mark.parametrize("a,b", list(itertools.combinations(WORDS, 2)))
def test_symmetry(a, b):
    assert distance(a, b) == distance(b, a)


def test_triangle_inequality():
    for a, b, c in itertools.permutations(["dragon", "drag", "wagon", "gandalf"], 3):
        assert distance(a, c) <= distance(a, b) + distance(b, c)


def test_typo_within_long_term_tolerance():
    assert distance("shadowhrat", "shadowheart") <= max_distance("shadowhrat")


def test_max_distance_tiers():
    assert max_distance("a") == 2
    assert max_distance("abc") == 2
    assert max_distance("abcd") == 3
    assert max_distance("abcdef") == 3
    assert max_distance("abcdefg") == 4
    assert max_distance("shadowhrat") == 4
