"""Candidate-source strategies and the transition policy between them.

The cascade is indexed attempt, then one prefix retry, then a full scope
scan. ``next_strategy`` is a pure function of the previous step, how many
candidates it produced, and the plan, so the policy can be tested without
any backend.
"""

from enum import Enum
from typing import Optional

from .models import BooleanMode, QueryPlan


class SearchStrategy(Enum):
    """Where the candidate set of a search step comes from."""
    INDEXED = "indexed"
    PREFIX_RETRY = "prefix_retry"
    FULL_SCAN = "full_scan"


def next_strategy(
    previous: Optional[SearchStrategy],
    candidate_count: int,
    plan: QueryPlan,
) -> Optional[SearchStrategy]:
    """Pick the next candidate source, or ``None`` when ranking can start.

    - Empty plans and boolean plans go straight to a full scan; the lexical
      grammar cannot express this engine's AND/OR semantics exactly.
    - Any step that produced candidates ends the cascade.
    - An empty indexed attempt is retried once as a prefix query when the
      plan is short and operator-free, otherwise it falls back to a scan.
    - A full scan is always final.
    """
    if previous is None:
        if plan.is_empty or plan.mode is not BooleanMode.NONE:
            return SearchStrategy.FULL_SCAN
        return SearchStrategy.INDEXED

    if previous is SearchStrategy.FULL_SCAN or candidate_count > 0:
        return None

    if previous is SearchStrategy.INDEXED and plan.try_exact_first:
        return SearchStrategy.PREFIX_RETRY

    return SearchStrategy.FULL_SCAN
