"""Common utilities shared by the engine and the search service.

Includes:
- ``config``: Pydantic-based configuration from environment variables.
- ``logging``: structured logging setup with structlog.
- ``metrics``: Prometheus metrics helpers.

Import pattern:
- from campaign_search.common.config import SearchConfig
- from campaign_search.common.logging import configure_logging
"""
