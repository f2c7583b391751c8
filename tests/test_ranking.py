"""Tests for the ranking engine."""

import pytest

from campaign_search.engine.expansion import TermExpander
from campaign_search.engine.models import Candidate
from campaign_search.engine.query_parser import QueryParser, parse
from campaign_search.engine.ranking import RESULT_LIMIT, RankingEngine


def _candidates(*names):
    return [Candidate(id=str(i), name=name) for i, name in enumerate(names, start=1)]


@pytest.fixture
def engine():
    return RankingEngine()


def test_prefix_matches_beat_unrelated(engine):
    candidates = _candidates("Dragon Cave", "Dragon Slayer Sword", "Unrelated")
    assert engine.rank(candidates, parse("dragon")) == ["1", "2"]


def test_exact_name_ranks_first(engine):
    candidates = _candidates("Gandalf the Grey", "Gandalf")
    assert engine.rank(candidates, parse("gandalf")) == ["2", "1"]


def test_exact_beats_contains(engine):
    candidates = _candidates("Old Sword", "Sword")
    assert engine.rank(candidates, parse("sword")) == ["2", "1"]


def test_and_requires_every_term(engine):
    candidates = _candidates("Dragon Cave", "Dragon Slayer Sword")
    assert engine.rank(candidates, parse("dragon AND sword")) == ["2"]

    candidates = _candidates("Alpha Tower")
    assert engine.rank(candidates, parse("a AND b")) == []


def test_and_results_are_subset_of_or(engine):
    candidates = _candidates(
        "Dragon Cave", "Dragon Slayer Sword", "Sword of Dawn", "Cave Troll", "Mill", "Dragonfly",
    )
    for terms in (("dragon", "sword"), ("cave", "troll"), ("mill", "dawn")):
        and_ids = set(engine.rank(candidates, parse(" AND ".join(terms))))
        or_ids = set(engine.rank(candidates, parse(" OR ".join(terms))))
        assert and_ids <= or_ids


def test_typo_within_tolerance_is_admitted(engine):
    candidates = _candidates("Shadowheart", "Lae'zel")
    assert engine.rank(candidates, parse("shadowhrat")) == ["1"]


def test_empty_query_lists_everything(engine):
    candidates = _candidates("Cave", "Tower", "Mill")
    assert sorted(engine.rank(candidates, parse(""))) == ["1", "2", "3"]


def test_results_are_capped(engine):
    candidates = [Candidate(id=f"g{i:03d}", name=f"Goblin {i}") for i in range(80)]
    assert len(engine.rank(candidates, parse(""))) == RESULT_LIMIT
    assert len(engine.rank(candidates, parse("goblin"))) == RESULT_LIMIT


def test_custom_limit():
    candidates = _candidates("Cave", "Tower", "Mill")
    assert len(RankingEngine(limit=2).rank(candidates, parse(""))) == 2
    with pytest.raises(ValueError):
        RankingEngine(limit=0)
    with pytest.raises(ValueError):
        RankingEngine(limit=RESULT_LIMIT + 1)


def test_description_match_scores_without_edit_distance(engine):
    candidate = Candidate(id="t", name="Dusty Tome", description="Written by Gandalf")
    [scored] = engine.rank_scored([candidate], parse("gandalf"))
    assert scored.edit_distance == 0
    assert scored.final_score == -10.0


def test_metadata_mapping_is_searchable(engine):
    candidate = Candidate(id="r", name="Ring", metadata_blob={"rarity": "Légendaire"})
    [scored] = engine.rank_scored([candidate], parse("legendaire"))
    assert scored.final_score == -25.0


def test_related_names_admit_and_score(engine):
    candidate = Candidate(id="k", name="Iron Key", related_names=("Gandalf", "Frodo"))
    [scored] = engine.rank_scored([candidate], parse("gandalf"))
    assert scored.edit_distance == 0
    assert scored.final_score == -30.0

    # A typo still reaches the owner through the fuzzy related-name check.
    assert engine.rank([candidate], parse("gandalv")) == ["k"]


def test_foreign_key_does_not_match_metadata(engine):
    candidate = Candidate(id="x", name="Excalibur", metadata_blob='{"type": "weapon"}')
    assert engine.rank([candidate], parse("weapon")) == ["x"]

    expander = TermExpander({"de": {"waffe": ["weapon"]}, "en": {"weapon": ["weapon"]}}, locale="de")
    parser = QueryParser(expander)
    assert engine.rank([candidate], parser.parse("weapon")) == []
    assert engine.rank([candidate], parser.parse("Waffe")) == ["x"]


def test_lexical_score_breaks_equal_names(engine):
    candidates = [
        Candidate(id="a", name="Dragon Cave", lexical_score=-1.0),
        Candidate(id="b", name="Dragon Cave", lexical_score=-5.0),
    ]
    assert engine.rank(candidates, parse("dragon")) == ["b", "a"]


def test_ties_are_deterministic(engine):
    candidates = [Candidate(id=str(i), name="Cave") for i in range(5)]
    forward = engine.rank(candidates, parse("cave"))
    backward = engine.rank(list(reversed(candidates)), parse("cave"))
    assert forward == backward == ["0", "1", "2", "3", "4"]


def test_multi_term_keeps_best_term_score(engine):
    candidate = Candidate(id="c", name="Cave")
    single = engine.score(candidate, parse("cave"))
    multi = engine.score(candidate, parse("dragon cave"))
    assert multi.final_score == single.final_score


def test_admits(engine):
    candidate = Candidate(id="c", name="Cave")
    assert engine.admits(candidate, parse(""))
    assert engine.admits(candidate, parse("cave"))
    assert not engine.admits(candidate, parse("lighthouse"))
