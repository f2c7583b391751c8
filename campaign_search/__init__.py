"""Hybrid search and ranking engine for campaign records.

Subpackages:
- ``campaign_search.common``: configuration, logging, and metrics.
- ``campaign_search.engine``: query parsing, fuzzy ranking, and the fallback
  cascade that decides which candidate source to trust.
- ``campaign_search.backends``: lexical prefilter and full-scan collaborators.

Usage:
- Build collaborators with ``backends.factory.create_backends_from_config``
  and hand them to ``engine.controller.FallbackController``.
"""

__version__ = "0.1.0"
