"""Fallback controller for hybrid search.

Decides which candidate source to trust for a query (lexical prefilter,
one prefix retry, or a full scope scan), then hands the candidates to the
ranking engine. Lexical backend failures degrade to "no rows" and the
cascade continues. A failed full scan yields no candidates, so callers
always receive a (possibly empty) list.
"""

import time
from dataclasses import dataclass, field
from typing import Hashable, List, Optional

import structlog

from ..backends.base import EntityRow, FullScan, LexicalPrefilter
from ..common.metrics import MetricsCollector
from .models import Candidate, QueryPlan, Scope
from .query_parser import QueryParser, prefix_retry_query
from .ranking import RankingEngine
from .strategy import SearchStrategy, next_strategy

logger = structlog.get_logger("campaign_search.controller")

PREFILTER_LIMIT = 100


@dataclass
class SearchOutcome:
    """Ranked identifiers plus how they were obtained."""
    ids: List[Hashable]
    plan: QueryPlan
    strategies: List[SearchStrategy] = field(default_factory=list)
    candidate_count: int = 0
    lexical_errors: int = 0
    full_scan_errors: int = 0

    @property
    def final_strategy(self) -> Optional[SearchStrategy]:
        return self.strategies[-1] if self.strategies else None


def _candidate(row: EntityRow, lexical: bool) -> Candidate:
    return Candidate(
        id=row.id,
        name=row.name,
        description=row.description,
        metadata_blob=row.metadata,
        related_names=tuple(row.related_names or ()),
        lexical_score=(row.relevance or 0.0) if lexical else None,
    )


class FallbackController:
    """Runs the indexed → prefix-retry → full-scan cascade.

    Parameters
    - prefilter: Lexical full-text collaborator
    - full_scan: Row store collaborator listing a whole scope
    - parser: ``QueryParser`` (a plain one when omitted)
    - ranking: ``RankingEngine`` (default weights and limit when omitted)
    - prefilter_limit: Rows requested from the prefilter, at most 100
    - metrics: Optional ``MetricsCollector``
    """

    def __init__(
        self,
        prefilter: LexicalPrefilter,
        full_scan: FullScan,
        parser: Optional[QueryParser] = None,
        ranking: Optional[RankingEngine] = None,
        prefilter_limit: int = PREFILTER_LIMIT,
        metrics: Optional[MetricsCollector] = None,
    ):
        if not 0 < prefilter_limit <= PREFILTER_LIMIT:
            raise ValueError(f"prefilter_limit must be between 1 and {PREFILTER_LIMIT}")
        self.prefilter = prefilter
        self.full_scan = full_scan
        self.parser = parser or QueryParser()
        self.ranking = ranking or RankingEngine()
        self.prefilter_limit = prefilter_limit
        self.metrics = metrics

    async def search(self, raw_query: str, scope: Scope) -> List[Hashable]:
        """Ordered record identifiers for ``raw_query`` within ``scope``."""
        outcome = await self.search_with_outcome(raw_query, scope)
        return outcome.ids

    async def search_with_outcome(self, raw_query: str, scope: Scope) -> SearchOutcome:
        """Like ``search`` but also reports the strategies that ran."""
        start_time = time.perf_counter()
        plan = self.parser.parse(raw_query)
        outcome = SearchOutcome(ids=[], plan=plan)

        candidates: List[Candidate] = []
        strategy = next_strategy(None, 0, plan)
        while strategy is not None:
            outcome.strategies.append(strategy)
            if strategy is SearchStrategy.FULL_SCAN:
                candidates = await self._full_scan(scope, outcome)
            else:
                candidates = await self._lexical(strategy, plan, scope, outcome)
            strategy = next_strategy(strategy, len(candidates), plan)

        outcome.candidate_count = len(candidates)
        outcome.ids = self.ranking.rank(candidates, plan)

        duration = time.perf_counter() - start_time
        final = outcome.final_strategy.value if outcome.final_strategy else "none"
        if self.metrics is not None:
            self.metrics.record_search(
                strategy=final,
                duration=duration,
                candidates=outcome.candidate_count,
                results=len(outcome.ids),
            )

        logger.info(
            "Search completed",
            query=raw_query[:50],
            scope=scope.campaign_id,
            entity_type=scope.entity_type,
            mode=plan.mode.value,
            strategies=[s.value for s in outcome.strategies],
            candidates=outcome.candidate_count,
            results_count=len(outcome.ids),
            duration_ms=duration * 1000,
        )
        return outcome

    async def _lexical(
        self,
        strategy: SearchStrategy,
        plan: QueryPlan,
        scope: Scope,
        outcome: SearchOutcome,
    ) -> List[Candidate]:
        if strategy is SearchStrategy.PREFIX_RETRY:
            backend_query = prefix_retry_query(plan)
        else:
            backend_query = plan.prefilter_query

        if not backend_query:
            return []

        try:
            rows = await self.prefilter.query(backend_query, scope, self.prefilter_limit)
        except Exception as e:
            outcome.lexical_errors += 1
            if self.metrics is not None:
                self.metrics.record_lexical_error(strategy.value)
            logger.warning(
                "Lexical prefilter failed, treating as no rows",
                strategy=strategy.value,
                backend_query=backend_query,
                scope=scope.campaign_id,
                error=str(e),
            )
            return []

        return [_candidate(row, lexical=True) for row in rows[:self.prefilter_limit]]

    async def _full_scan(self, scope: Scope, outcome: SearchOutcome) -> List[Candidate]:
        try:
            rows = await self.full_scan.list_all(scope)
        except Exception as e:
            outcome.full_scan_errors += 1
            if self.metrics is not None:
                self.metrics.record_full_scan_error()
            logger.warning(
                "Full scan failed, returning no candidates",
                scope=scope.campaign_id,
                entity_type=scope.entity_type,
                error=str(e),
            )
            return []
        return [_candidate(row, lexical=False) for row in rows]
