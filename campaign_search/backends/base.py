"""Candidate source interfaces.

Defines the two collaborator contracts the fallback controller depends on,
independent of the backing implementation (PostgreSQL full-text search,
OpenSearch, in-memory).

All methods are asynchronous; they are the only I/O points of a search.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Hashable, List, Optional, Sequence

from ..engine.models import MetadataBlob, Scope


@dataclass
class EntityRow:
    """A scope-owned record as returned by a candidate source.

    ``relevance`` is only set by lexical prefilters and follows the
    "lower is better" convention (e.g. ``-ts_rank`` or bm25).
    """
    id: Hashable
    name: str
    description: Optional[str] = None
    metadata: MetadataBlob = None
    related_names: Sequence[str] = field(default_factory=tuple)
    relevance: Optional[float] = None


def split_related_names(value: Any) -> Sequence[str]:
    """Accept related names as a list or a comma-separated string."""
    if not value:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return tuple(str(part) for part in value if part)


class LexicalPrefilter(ABC):
    """Full-text backend returning a relevance-ordered, capped candidate set."""

    @abstractmethod
    async def query(self, backend_query: str, scope: Scope, limit: int) -> List[EntityRow]:
        """Run a prefilter query within ``scope``.

        Returns at most ``limit`` rows ordered best first, and an empty list
        (not an error) when nothing matches. May raise
        ``LexicalQuerySyntaxError`` for a malformed ``backend_query``.
        """
        pass

    async def health_check(self) -> bool:
        """Check if the backend is reachable."""
        return True

    async def close(self) -> None:
        """Release backend resources."""
        return None


class FullScan(ABC):
    """Row store listing every live record of a scope."""

    @abstractmethod
    async def list_all(self, scope: Scope) -> List[EntityRow]:
        """Every non-deleted record within ``scope``, in no particular order.

        Unknown scopes yield an empty list.
        """
        pass

    async def health_check(self) -> bool:
        """Check if the row store is reachable."""
        return True

    async def close(self) -> None:
        """Release row store resources."""
        return None


class SearchBackendError(Exception):
    """Base exception for candidate source operations."""
    pass


class LexicalQuerySyntaxError(SearchBackendError):
    """The prefilter query could not be parsed by the backend."""
    pass


class SearchBackendConnectionError(SearchBackendError):
    """Connection error to the backing store."""
    pass


class SearchBackendQueryError(SearchBackendError):
    """The backing store failed while executing a query."""
    pass
