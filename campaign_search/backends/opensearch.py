"""OpenSearch implementation of the candidate sources.

The prefilter renders the query as a ``query_string`` over boosted entity
fields (name ^10, description, metadata ^0.5, related names) and reports
``-_score`` as relevance so lower is better. Scope scans page through the
index with the scroll helper.
"""

import asyncio
import re
from typing import Any, Dict, List, Optional

import structlog
from opensearchpy import OpenSearch, exceptions
from opensearchpy.helpers import scan

from ..engine.models import Scope
from . import query_syntax
from .base import (
    EntityRow,
    FullScan,
    LexicalPrefilter,
    LexicalQuerySyntaxError,
    SearchBackendConnectionError,
    SearchBackendQueryError,
    split_related_names,
)

logger = structlog.get_logger("campaign_search.backends.opensearch")

SEARCH_FIELDS = ["name^10", "description", "metadata^0.5", "related_names"]

_RESERVED = re.compile(r'([+\-=&|><!(){}\[\]^"~*?:\\/])')


def _query_string_term(term: query_syntax.Term) -> str:
    escaped = _RESERVED.sub(r"\\\1", term.text)
    return f"{escaped}*" if term.prefix else escaped


def to_query_string(backend_query: str) -> str:
    """Render a prefilter query in OpenSearch ``query_string`` syntax."""
    node = query_syntax.parse(backend_query)
    return query_syntax.render(node, _query_string_term, " AND ", " OR ")


def _scope_filter(scope: Scope) -> Dict[str, Any]:
    filters: List[Dict[str, Any]] = [{"term": {"campaign_id": scope.campaign_id}}]
    if scope.entity_type is not None:
        filters.append({"term": {"entity_type": scope.entity_type}})
    return {
        "filter": filters,
        "must_not": [{"exists": {"field": "deleted_at"}}],
    }


def _row(hit: Dict[str, Any], lexical: bool) -> EntityRow:
    source = hit["_source"]
    return EntityRow(
        id=source.get("entity_id", hit.get("_id")),
        name=source.get("name", ""),
        description=source.get("description"),
        metadata=source.get("metadata"),
        related_names=split_related_names(source.get("related_names")),
        relevance=-float(hit.get("_score") or 0.0) if lexical else None,
    )


class OpenSearchEntityStore(LexicalPrefilter, FullScan):
    """OpenSearch-based prefilter and scope scan."""

    def __init__(
        self,
        hosts: List[str],
        index_name: str = "campaign_entities",
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify_certs: bool = False,
        client: Optional[OpenSearch] = None,
    ):
        """Initialize the OpenSearch entity store.

        Args:
            hosts: List of OpenSearch host URLs
            index_name: Name of the entity index
            username: OpenSearch username
            password: OpenSearch password
            verify_certs: Whether to verify SSL certificates
            client: Pre-built client (tests inject a stub here)
        """
        self.hosts = hosts
        self.index_name = index_name
        self.client = client or OpenSearch(
            hosts=hosts,
            http_auth=(username, password) if username and password else None,
            verify_certs=verify_certs,
            ssl_assert_hostname=False,
            ssl_show_warn=False,
            use_ssl=True if hosts[0].startswith('https') else False,
        )

    async def query(self, backend_query: str, scope: Scope, limit: int) -> List[EntityRow]:
        query_string = to_query_string(backend_query)
        body = {
            "size": limit,
            "query": {
                "bool": {
                    "must": [{
                        "query_string": {
                            "query": query_string,
                            "fields": SEARCH_FIELDS,
                            "default_operator": "AND",
                        }
                    }],
                    **_scope_filter(scope),
                }
            },
            "sort": ["_score", {"entity_id": "asc"}],
            "track_scores": True,
        }

        try:
            response = await asyncio.to_thread(self.client.search, index=self.index_name, body=body)
        except exceptions.RequestError as e:
            raise LexicalQuerySyntaxError(f"query_string rejected: {e}")
        except exceptions.ConnectionError as e:
            raise SearchBackendConnectionError(f"OpenSearch unreachable: {e}")
        except exceptions.OpenSearchException as e:
            raise SearchBackendQueryError(f"OpenSearch search failed: {e}")

        rows = [_row(hit, lexical=True) for hit in response["hits"]["hits"]]
        logger.info("Lexical prefilter completed", query_string=query_string, results_count=len(rows))
        return rows

    def _scan(self, scope: Scope) -> List[Dict[str, Any]]:
        return list(scan(
            self.client,
            index=self.index_name,
            query={"query": {"bool": _scope_filter(scope)}},
        ))

    async def list_all(self, scope: Scope) -> List[EntityRow]:
        try:
            hits = await asyncio.to_thread(self._scan, scope)
        except exceptions.NotFoundError:
            logger.warning("Entity index missing, scope is empty", index_name=self.index_name)
            return []
        except exceptions.ConnectionError as e:
            raise SearchBackendConnectionError(f"OpenSearch unreachable: {e}")
        return [_row(hit, lexical=False) for hit in hits]

    async def index_entity(
        self,
        entity_id: str,
        scope: Scope,
        name: str,
        description: Optional[str] = None,
        metadata: Optional[str] = None,
        related_names: Optional[List[str]] = None,
    ) -> None:
        """Index (or replace) one entity document."""
        document = {
            "entity_id": entity_id,
            "campaign_id": scope.campaign_id,
            "entity_type": scope.entity_type,
            "name": name,
            "description": description,
            "metadata": metadata,
            "related_names": list(related_names or []),
        }
        await asyncio.to_thread(
            self.client.index,
            index=self.index_name,
            id=f"{scope.campaign_id}:{entity_id}",
            body=document,
        )
        logger.info("Entity indexed", entity_id=entity_id, campaign_id=scope.campaign_id)

    async def health_check(self) -> bool:
        try:
            return bool(await asyncio.to_thread(self.client.ping))
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return False

    async def close(self) -> None:
        await asyncio.to_thread(self.client.close)
