"""In-memory entity store implementing both candidate sources.

Used for tests, local development (``CS_SEARCH_BACKEND=memory``), and as a
reference for the semantics concrete backends are expected to follow.
Relevance mirrors a field-weighted bm25: name hits weigh 10, description 1,
metadata 0.5, and the sum is negated so lower is better.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Optional, Sequence, Tuple

import structlog

from ..engine.models import MetadataBlob, Scope
from ..engine.normalizer import normalize
from . import query_syntax
from .base import EntityRow, FullScan, LexicalPrefilter

logger = structlog.get_logger("campaign_search.backends.memory")

_WORD = re.compile(r"\w+")

FIELD_WEIGHTS = (("name", 10.0), ("description", 1.0), ("metadata", 0.5), ("related", 1.0))


@dataclass
class EntityRecord:
    """A stored campaign entity."""
    id: Hashable
    campaign_id: str
    entity_type: str
    name: str
    description: Optional[str] = None
    metadata: MetadataBlob = None
    related_names: Sequence[str] = field(default_factory=tuple)
    deleted: bool = False

    def to_row(self, relevance: Optional[float] = None) -> EntityRow:
        return EntityRow(
            id=self.id,
            name=self.name,
            description=self.description,
            metadata=self.metadata,
            related_names=tuple(self.related_names),
            relevance=relevance,
        )


def _words(text: str) -> Tuple[str, ...]:
    return tuple(_WORD.findall(normalize(text)))


def _metadata_text(metadata: MetadataBlob) -> str:
    if metadata is None:
        return ""
    if isinstance(metadata, str):
        return metadata
    return json.dumps(metadata, sort_keys=True, ensure_ascii=False)


def _term_hits(term: query_syntax.Term, words: Sequence[str]) -> int:
    """Occurrences of ``term`` in ``words``; multi-word terms match as a phrase."""
    parts = _words(term.text)
    if not parts:
        return 0
    hits = 0
    for i in range(len(words) - len(parts) + 1):
        window = words[i:i + len(parts)]
        head_ok = all(w == p for w, p in zip(window[:-1], parts[:-1]))
        last, want = window[-1], parts[-1]
        tail_ok = last.startswith(want) if term.prefix else last == want
        if head_ok and tail_ok:
            hits += 1
    return hits


class InMemoryEntityStore(LexicalPrefilter, FullScan):
    """Scope-partitioned entity store with a naive full-text prefilter."""

    def __init__(self, records: Optional[Sequence[EntityRecord]] = None):
        self._records: Dict[Hashable, EntityRecord] = {}
        for record in records or ():
            self.add(record)

    def add(self, record: EntityRecord) -> EntityRecord:
        self._records[record.id] = record
        return record

    def soft_delete(self, record_id: Hashable) -> bool:
        record = self._records.get(record_id)
        if record is None or record.deleted:
            return False
        record.deleted = True
        return True

    def _in_scope(self, scope: Scope) -> List[EntityRecord]:
        return [
            record for record in self._records.values()
            if not record.deleted
            and record.campaign_id == scope.campaign_id
            and (scope.entity_type is None or record.entity_type == scope.entity_type)
        ]

    @staticmethod
    def _fields(record: EntityRecord) -> Dict[str, Tuple[str, ...]]:
        return {
            "name": _words(record.name),
            "description": _words(record.description or ""),
            "metadata": _words(_metadata_text(record.metadata)),
            "related": _words(" ".join(record.related_names)),
        }

    async def query(self, backend_query: str, scope: Scope, limit: int) -> List[EntityRow]:
        """Evaluate ``backend_query`` against every live record in ``scope``."""
        node = query_syntax.parse(backend_query)
        all_terms = query_syntax.terms(node)

        matched: List[Tuple[float, str, EntityRecord]] = []
        for record in self._in_scope(scope):
            fields = self._fields(record)
            everything = tuple(w for words in fields.values() for w in words)
            if not query_syntax.evaluate(node, lambda term: _term_hits(term, everything) > 0):
                continue
            score = sum(
                weight * _term_hits(term, fields[name])
                for term in all_terms
                for name, weight in FIELD_WEIGHTS
            )
            matched.append((-score, str(record.id), record))

        matched.sort(key=lambda item: (item[0], item[1]))
        rows = [record.to_row(relevance=relevance) for relevance, _, record in matched[:limit]]

        logger.debug("Memory prefilter completed", backend_query=backend_query, results_count=len(rows))
        return rows

    async def list_all(self, scope: Scope) -> List[EntityRow]:
        return [record.to_row() for record in self._in_scope(scope)]
