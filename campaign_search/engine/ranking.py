"""Ranking engine: fuzzy admission, scoring, and ordering of candidates.

Lower scores rank first. A candidate's score starts from its lexical score
(0 for full-scan rows), adds half its edit distance to the term, and
subtracts fixed bonuses for exact, prefix, substring, and non-name field
hits. Multi-term plans score each term separately and keep the best.
"""

import json
from dataclasses import dataclass
from typing import Hashable, List, NamedTuple, Sequence, Tuple

import structlog

from .edit_distance import distance, max_distance
from .models import BooleanMode, Candidate, MetadataBlob, QueryPlan, ScoredCandidate
from .normalizer import normalize

logger = structlog.get_logger("campaign_search.ranking")

RESULT_LIMIT = 50


@dataclass(frozen=True)
class RankingWeights:
    """Score weights; bonuses are subtracted, so larger means better."""
    edit_distance_weight: float = 0.5
    exact_bonus: float = 1000.0
    starts_with_bonus: float = 100.0
    contains_bonus: float = 50.0
    related_bonus: float = 30.0
    metadata_bonus: float = 25.0
    description_bonus: float = 10.0


class _Fields(NamedTuple):
    name: str
    description: str
    metadata: str
    related: Tuple[str, ...]


def _metadata_text(blob: MetadataBlob) -> str:
    if blob is None:
        return ""
    if isinstance(blob, str):
        return blob
    return json.dumps(blob, sort_keys=True, ensure_ascii=False)


def _fields(candidate: Candidate) -> _Fields:
    return _Fields(
        name=normalize(candidate.name or ""),
        description=normalize(candidate.description or ""),
        metadata=normalize(_metadata_text(candidate.metadata_blob)),
        related=tuple(
            name for name in (normalize(r.strip()) for r in candidate.related_names or ()) if name
        ),
    )


class RankingEngine:
    """Scores, filters, and orders candidates against a query plan.

    Parameters
    - weights: Score weights and bonuses
    - limit: Maximum number of identifiers returned by ``rank``, at most 50
    """

    def __init__(self, weights: RankingWeights = RankingWeights(), limit: int = RESULT_LIMIT):
        if not 0 < limit <= RESULT_LIMIT:
            raise ValueError(f"limit must be between 1 and {RESULT_LIMIT}")
        self.weights = weights
        self.limit = limit

    def _term_score(self, fields: _Fields, plan: QueryPlan, index: int, lexical: float) -> Tuple[float, int]:
        term = plan.terms[index]
        variants = plan.variants_for(index)
        weights = self.weights

        exact = fields.name == term
        starts_with = fields.name.startswith(term)
        contains = term in fields.name
        metadata_match = plan.metadata_allowed(index) and any(v in fields.metadata for v in variants)
        description_match = any(v in fields.description for v in variants)
        related_match = any(v in related for v in variants for related in fields.related)
        non_name_match = (metadata_match or description_match or related_match) and not contains

        if non_name_match:
            edit = 0
        elif starts_with:
            edit = len(fields.name) - len(term)
        else:
            edit = distance(term, fields.name)

        score = lexical + weights.edit_distance_weight * edit
        if exact:
            score -= weights.exact_bonus
        if starts_with:
            score -= weights.starts_with_bonus
        if contains:
            score -= weights.contains_bonus
        if related_match:
            score -= weights.related_bonus
        if metadata_match:
            score -= weights.metadata_bonus
        if description_match:
            score -= weights.description_bonus
        return score, edit

    def score(self, candidate: Candidate, plan: QueryPlan) -> ScoredCandidate:
        """Score one candidate; the best-scoring term wins."""
        return self._score(candidate, _fields(candidate), plan)

    def _score(self, candidate: Candidate, fields: _Fields, plan: QueryPlan) -> ScoredCandidate:
        lexical = candidate.lexical_score or 0.0
        if plan.is_empty:
            return ScoredCandidate(candidate, edit_distance=0, final_score=lexical, sort_name=fields.name)

        best_score, best_edit = min(
            self._term_score(fields, plan, index, lexical) for index in range(len(plan.terms))
        )
        return ScoredCandidate(candidate, edit_distance=best_edit, final_score=best_score, sort_name=fields.name)

    @staticmethod
    def _variant_admitted(fields: _Fields, variant: str, check_metadata: bool) -> bool:
        if variant in fields.name or variant in fields.description:
            return True
        if any(variant in related for related in fields.related):
            return True
        if check_metadata and variant in fields.metadata:
            return True
        if fields.name.startswith(variant):
            return True

        tolerance = max_distance(variant)
        if distance(variant, fields.name) <= tolerance:
            return True
        return any(distance(variant, related) <= tolerance for related in fields.related)

    def _term_admitted(self, fields: _Fields, plan: QueryPlan, index: int) -> bool:
        check_metadata = plan.metadata_allowed(index)
        return any(
            self._variant_admitted(fields, variant, check_metadata)
            for variant in plan.variants_for(index)
        )

    def admits(self, candidate: Candidate, plan: QueryPlan) -> bool:
        """Whether ``candidate`` survives the plan's boolean filter."""
        return self._admits(_fields(candidate), plan)

    def _admits(self, fields: _Fields, plan: QueryPlan) -> bool:
        if plan.is_empty:
            return True
        indexes = range(len(plan.terms))
        if plan.mode is BooleanMode.AND:
            return all(self._term_admitted(fields, plan, i) for i in indexes)
        return any(self._term_admitted(fields, plan, i) for i in indexes)

    def rank_scored(self, candidates: Sequence[Candidate], plan: QueryPlan) -> List[ScoredCandidate]:
        """Filter, score, and order candidates, truncated to ``limit``."""
        scored: List[ScoredCandidate] = []
        for candidate in candidates:
            fields = _fields(candidate)
            if not self._admits(fields, plan):
                continue
            scored.append(self._score(candidate, fields, plan))

        scored.sort(key=lambda s: (s.final_score, s.sort_name, str(s.candidate.id)))

        logger.debug(
            "Candidates ranked",
            candidates=len(candidates),
            admitted=len(scored),
            mode=plan.mode.value,
            terms=len(plan.terms),
        )
        return scored[:self.limit]

    def rank(self, candidates: Sequence[Candidate], plan: QueryPlan) -> List[Hashable]:
        """Ordered candidate identifiers, best first, at most ``limit`` long."""
        return [s.candidate.id for s in self.rank_scored(candidates, plan)]
