"""Query parsing for campaign search.

Turns a raw query string into a ``QueryPlan``: normalized terms, the boolean
mode, and the prefilter string handed to the lexical backend.

Boolean detection is presence-based and precedence-free: a whole-word
``AND`` anywhere makes the whole query an AND query, otherwise a whole-word
``OR`` makes it an OR query. Mixed operators therefore collapse to AND.
``NOT`` is recognized and kept out of the terms but carries no negation.
"""

import re
from typing import Iterable, Optional, Sequence, Tuple

import structlog

from .expansion import TermExpander
from .models import BooleanMode, QueryPlan
from .normalizer import normalize

logger = structlog.get_logger("campaign_search.query_parser")

OPERATORS = frozenset({"AND", "OR", "NOT"})

# Plans with at most this many plain terms try an exact pass first.
EXACT_FIRST_MAX_TERMS = 2

# Characters with meaning in the prefilter grammar; stripped from terms
# before they are written into a backend query.
_PREFILTER_RESERVED = re.compile(r'[()*"]')


def _prefilter_token(text: str) -> str:
    return _PREFILTER_RESERVED.sub("", text)


def _prefix_group(variants: Sequence[str]) -> str:
    tokens = [f"{token}*" for token in (_prefilter_token(v) for v in variants) if token]
    if not tokens:
        return ""
    if len(tokens) == 1:
        return tokens[0]
    return "(" + " OR ".join(tokens) + ")"


def build_prefilter_query(
    term_variants: Iterable[Sequence[str]],
    mode: BooleanMode,
) -> str:
    """Prefix-expand each term and join with the detected keyword.

    Multi-variant terms become ``(a* OR b*)`` groups. Implicit-mode plans
    are joined with ``OR``. Returns ``""`` when nothing is expressible.
    """
    groups = [group for group in (_prefix_group(v) for v in term_variants) if group]
    keyword = " AND " if mode is BooleanMode.AND else " OR "
    return keyword.join(groups)


def prefix_retry_query(plan: QueryPlan) -> str:
    """Unconditional prefix expansion of the plan's exact phrase.

    ``"dragon cave"`` becomes ``dragon cave*``: every term must be present
    and the last one may be a prefix.
    """
    tokens = [token for token in (_prefilter_token(t) for t in plan.terms) if token]
    if not tokens:
        return ""
    return " ".join(tokens) + "*"


class QueryParser:
    """Parses raw search strings into query plans.

    Parameters
    - expander: Optional ``TermExpander`` supplying term variants; without
      one every term is its own single variant
    """

    def __init__(self, expander: Optional[TermExpander] = None):
        self.expander = expander

    def parse(self, raw: str) -> QueryPlan:
        """Build the ``QueryPlan`` for ``raw``.

        Empty or whitespace-only input yields an empty plan ("no filtering").
        A query made only of operator words treats them as literal terms.
        """
        raw = raw or ""
        tokens = raw.split()

        operator_tokens = [t.upper() for t in tokens if t.upper() in OPERATORS]
        term_tokens = [t for t in tokens if t.upper() not in OPERATORS]
        if not term_tokens:
            term_tokens, operator_tokens = tokens, []

        # Tokens that normalize to nothing (bare combining marks) stay literal.
        terms: Tuple[str, ...] = tuple(normalize(t) or t for t in term_tokens)

        if "AND" in operator_tokens:
            mode = BooleanMode.AND
        elif "OR" in operator_tokens:
            mode = BooleanMode.OR
        else:
            mode = BooleanMode.NONE

        if self.expander is not None:
            term_variants, metadata_blocked = self.expander.expand_all(terms)
        else:
            term_variants = tuple((term,) for term in terms)
            metadata_blocked = tuple(False for _ in terms)

        plan = QueryPlan(
            terms=terms,
            mode=mode,
            raw_query=raw,
            try_exact_first=mode is BooleanMode.NONE and len(terms) <= EXACT_FIRST_MAX_TERMS,
            prefilter_query=build_prefilter_query(term_variants, mode),
            term_variants=term_variants,
            metadata_blocked=metadata_blocked,
        )

        logger.debug(
            "Query parsed",
            query=raw[:50],
            terms=len(terms),
            mode=mode.value,
            ignored_operators=[op for op in operator_tokens if op == "NOT"],
        )
        return plan


def parse(raw: str, expander: Optional[TermExpander] = None) -> QueryPlan:
    """Convenience wrapper around ``QueryParser(expander).parse(raw)``."""
    return QueryParser(expander).parse(raw)
