"""Tests for the candidate-source transition policy."""

from campaign_search.engine.query_parser import parse
from campaign_search.engine.strategy import SearchStrategy, next_strategy


def test_simple_query_starts_indexed():
    assert next_strategy(None, 0, parse("dragon")) is SearchStrategy.INDEXED


def test_boolean_and_empty_queries_bypass_lexical():
    assert next_strategy(None, 0, parse("dragon AND cave")) is SearchStrategy.FULL_SCAN
    assert next_strategy(None, 0, parse("dragon OR cave")) is SearchStrategy.FULL_SCAN
    assert next_strategy(None, 0, parse("   ")) is SearchStrategy.FULL_SCAN


def test_candidates_end_the_cascade():
    plan = parse("dragon")
    assert next_strategy(SearchStrategy.INDEXED, 3, plan) is None
    assert next_strategy(SearchStrategy.PREFIX_RETRY, 1, plan) is None


def test_empty_indexed_attempt_retries_once():
    plan = parse("dragon cave")
    assert next_strategy(SearchStrategy.INDEXED, 0, plan) is SearchStrategy.PREFIX_RETRY
    assert next_strategy(SearchStrategy.PREFIX_RETRY, 0, plan) is SearchStrategy.FULL_SCAN


def test_long_queries_skip_prefix_retry():
    plan = parse("old dragon cave")
    assert next_strategy(SearchStrategy.INDEXED, 0, plan) is SearchStrategy.FULL_SCAN


def test_full_scan_is_final():
    plan = parse("dragon")
    assert next_strategy(SearchStrategy.FULL_SCAN, 0, plan) is None
    assert next_strategy(SearchStrategy.FULL_SCAN, 10, plan) is None
