"""Backend factory for creating candidate source implementations.

Centralizes creation of the lexical prefilter and full-scan collaborators
so callers don't depend on implementation details. Every concrete store
implements both contracts, so the factory returns the same object twice.
"""

from enum import Enum
from typing import Optional, Tuple

import structlog

from ..common.config import SearchConfig, load_term_aliases
from ..common.metrics import MetricsCollector
from ..engine.controller import FallbackController
from ..engine.expansion import TermExpander
from ..engine.query_parser import QueryParser
from ..engine.ranking import RankingEngine
from .base import FullScan, LexicalPrefilter
from .memory import InMemoryEntityStore
from .opensearch import OpenSearchEntityStore
from .postgres import PostgresEntityStore

logger = structlog.get_logger("campaign_search.backends.factory")


class BackendType(Enum):
    """Supported candidate source backends."""
    POSTGRES = "postgres"
    OPENSEARCH = "opensearch"
    MEMORY = "memory"


def create_backends(backend_type: BackendType, config: SearchConfig) -> Tuple[LexicalPrefilter, FullScan]:
    """Create ``(prefilter, full_scan)`` for a backend type."""
    if backend_type == BackendType.POSTGRES:
        store = PostgresEntityStore(
            dsn=config.cs_db_dsn,
            pool_size=config.cs_db_pool_size,
            command_timeout=config.cs_db_command_timeout,
            text_search_config=config.cs_text_search_config,
        )
    elif backend_type == BackendType.OPENSEARCH:
        hosts = config.opensearch_hosts
        if not hosts:
            raise ValueError("OpenSearch requires at least one host")
        store = OpenSearchEntityStore(
            hosts=hosts,
            index_name=config.cs_opensearch_index,
            username=config.cs_opensearch_username,
            password=config.cs_opensearch_password,
            verify_certs=config.cs_opensearch_verify_certs,
        )
    elif backend_type == BackendType.MEMORY:
        store = InMemoryEntityStore()
    else:
        raise ValueError(f"Unsupported search backend: {backend_type}")

    logger.info("Search backend created", backend=backend_type.value)
    return store, store


def create_backends_from_config(config: SearchConfig) -> Tuple[LexicalPrefilter, FullScan]:
    """Create the collaborators selected by ``CS_SEARCH_BACKEND``."""
    try:
        backend_type = BackendType(config.cs_search_backend)
    except ValueError:
        raise ValueError(f"Unsupported search backend: {config.cs_search_backend}")
    return create_backends(backend_type, config)


def create_term_expander(config: SearchConfig) -> Optional[TermExpander]:
    """Build the alias-driven term expander, or ``None`` without an alias table."""
    if not config.cs_term_aliases_file:
        return None
    aliases = load_term_aliases(config.cs_term_aliases_file)
    if not aliases:
        logger.warning("Term alias table empty or missing", path=config.cs_term_aliases_file)
        return None
    logger.info("Term aliases loaded", locales=sorted(aliases), locale=config.cs_term_locale)
    return TermExpander(aliases, locale=config.cs_term_locale)


def create_controller(
    config: SearchConfig,
    metrics: Optional[MetricsCollector] = None,
) -> FallbackController:
    """Wire backends, parser, and ranking engine into a ``FallbackController``."""
    prefilter, full_scan = create_backends_from_config(config)
    return FallbackController(
        prefilter=prefilter,
        full_scan=full_scan,
        parser=QueryParser(create_term_expander(config)),
        ranking=RankingEngine(limit=config.cs_search_result_limit),
        prefilter_limit=config.cs_search_prefilter_limit,
        metrics=metrics,
    )
