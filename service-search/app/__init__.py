"""Search service package.

Layout:
- ``api``: HTTP endpoint for campaign-scoped search.
- ``runtime``: service-local metrics and runtime helpers.
"""
