"""PostgreSQL implementation of the candidate sources.

Entities live in the ``entities`` table created by
``scripts/init_db_dynamic.py``. The lexical prefilter matches the stored,
field-weighted ``search_vector`` against a ``to_tsquery`` rendering of the
prefilter query and reports ``-ts_rank`` as relevance so lower is better.

Connection management
- A shared asyncpg pool is created on demand and reused across calls
- Queries are funneled through ``_fetch`` for uniform error handling
"""

from typing import Any, List, Optional

import asyncpg
import structlog
from asyncpg import Pool

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

logger = structlog.get_logger("campaign_search.backends.postgres")

_PREFILTER_SQL = """
    SELECT id, name, description, metadata, related_names,
           -ts_rank(search_vector, to_tsquery($1::regconfig, $2)) AS relevance
    FROM entities
    WHERE campaign_id = $3
      AND ($4::text IS NULL OR entity_type = $4)
      AND deleted_at IS NULL
      AND search_vector @@ to_tsquery($1::regconfig, $2)
    ORDER BY relevance ASC, id ASC
    LIMIT $5
"""

_FULL_SCAN_SQL = """
    SELECT id, name, description, metadata, related_names
    FROM entities
    WHERE campaign_id = $1
      AND ($2::text IS NULL OR entity_type = $2)
      AND deleted_at IS NULL
"""


def _tsquery_term(term: query_syntax.Term) -> str:
    quoted = "'" + term.text.replace("\\", "\\\\").replace("'", "''") + "'"
    return f"{quoted}:*" if term.prefix else quoted


def to_tsquery(backend_query: str) -> str:
    """Render a prefilter query as PostgreSQL ``tsquery`` text.

    ``dragon* OR (waffe* OR weapon*)`` becomes
    ``('dragon':* | ('waffe':* | 'weapon':*))``.
    """
    node = query_syntax.parse(backend_query)
    return query_syntax.render(node, _tsquery_term, " & ", " | ")


def _row(record: Any, lexical: bool) -> EntityRow:
    return EntityRow(
        id=record["id"],
        name=record["name"],
        description=record["description"],
        metadata=record["metadata"],
        related_names=split_related_names(record["related_names"]),
        relevance=float(record["relevance"]) if lexical else None,
    )


class PostgresEntityStore(LexicalPrefilter, FullScan):
    """PostgreSQL full-text prefilter and scope scan over ``entities``."""

    def __init__(
        self,
        dsn: str,
        pool_size: int = 10,
        command_timeout: int = 60,
        text_search_config: str = "simple",
    ):
        """Configure a PostgreSQL-backed entity store.

        Parameters
        - dsn: PostgreSQL DSN including database and credentials
        - pool_size: Max size of asyncpg connection pool
        - command_timeout: Seconds to allow per DB command
        - text_search_config: ``regconfig`` used by ``to_tsquery``; must
          match the one the ``search_vector`` column was built with
        """
        self.dsn = dsn
        self.pool_size = pool_size
        self.command_timeout = command_timeout
        self.text_search_config = text_search_config
        self._pool: Optional[Pool] = None

    async def _get_pool(self) -> Pool:
        """Get or create connection pool.

        Lazily initializes an asyncpg pool so callers don't pay startup cost
        unless/until they make a call that requires the database.
        """
        if self._pool is None:
            try:
                self._pool = await asyncpg.create_pool(
                    self.dsn,
                    min_size=1,
                    max_size=self.pool_size,
                    command_timeout=self.command_timeout,
                )
                logger.info("Created PostgreSQL connection pool", pool_size=self.pool_size)
            except Exception as e:
                logger.error("Failed to create PostgreSQL connection pool", error=str(e))
                raise SearchBackendConnectionError(f"Failed to create connection pool: {e}")

        return self._pool

    async def _fetch(self, query: str, *args: Any) -> List[Any]:
        """Run a query, wrapping driver failures in backend exceptions."""
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetch(query, *args)
        except asyncpg.exceptions.PostgresSyntaxError as e:
            raise LexicalQuerySyntaxError(f"tsquery rejected: {e}")
        except Exception as e:
            logger.error("Query execution failed", error=str(e))
            raise SearchBackendQueryError(f"Query failed: {e}")

    async def query(self, backend_query: str, scope: Scope, limit: int) -> List[EntityRow]:
        tsquery = to_tsquery(backend_query)
        records = await self._fetch(
            _PREFILTER_SQL,
            self.text_search_config,
            tsquery,
            scope.campaign_id,
            scope.entity_type,
            limit,
        )
        rows = [_row(record, lexical=True) for record in records]
        logger.info("Lexical prefilter completed", tsquery=tsquery, results_count=len(rows))
        return rows

    async def list_all(self, scope: Scope) -> List[EntityRow]:
        records = await self._fetch(_FULL_SCAN_SQL, scope.campaign_id, scope.entity_type)
        return [_row(record, lexical=False) for record in records]

    async def health_check(self) -> bool:
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Closed PostgreSQL connection pool")
