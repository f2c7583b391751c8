"""Data model shared by the search engine components.

Everything here lives for a single search call: plans and candidates are
created per invocation and never persisted.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable, Mapping, Optional, Sequence, Tuple, Union


class BooleanMode(Enum):
    """How query terms combine when filtering candidates."""
    NONE = "none"  # implicit fuzzy OR
    OR = "or"
    AND = "and"


@dataclass(frozen=True)
class Scope:
    """Tenant/entity-type boundary a search is confined to.

    ``campaign_id`` and ``entity_type`` identify e.g. "this campaign's
    Locations". ``entity_type`` may be ``None`` to cover every type in the
    campaign (global search).
    """
    campaign_id: str
    entity_type: Optional[str] = None


@dataclass(frozen=True)
class QueryPlan:
    """Parsed, normalized representation of a raw search string.

    ``term_variants`` is aligned with ``terms``: each entry holds the
    normalized spellings a term may match (the term itself unless an alias
    table rewrote it). ``metadata_blocked`` is aligned the same way.
    """
    terms: Tuple[str, ...]
    mode: BooleanMode
    raw_query: str
    try_exact_first: bool
    prefilter_query: str = ""
    term_variants: Tuple[Tuple[str, ...], ...] = ()
    metadata_blocked: Tuple[bool, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.terms

    def variants_for(self, index: int) -> Tuple[str, ...]:
        if index < len(self.term_variants):
            return self.term_variants[index]
        return (self.terms[index],)

    def metadata_allowed(self, index: int) -> bool:
        if index < len(self.metadata_blocked):
            return not self.metadata_blocked[index]
        return True


MetadataBlob = Union[str, Mapping[str, Any], None]


@dataclass
class Candidate:
    """One scope-owned record under consideration.

    ``lexical_score`` is set only for rows that came from the lexical
    prefilter (lower is better); full-scan rows leave it ``None``.
    """
    id: Hashable
    name: str
    description: Optional[str] = None
    metadata_blob: MetadataBlob = None
    related_names: Sequence[str] = field(default_factory=tuple)
    lexical_score: Optional[float] = None


@dataclass
class ScoredCandidate:
    """A candidate with its ranking signals; internal to the ranking engine."""
    candidate: Candidate
    edit_distance: int
    final_score: float
    sort_name: str = ""
