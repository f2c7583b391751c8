"""Utility scripts for operating campaign search.

Scripts include:
- ``init_db_dynamic.py``: create the PostgreSQL ``entities`` table and its
  full-text index.
- ``opensearch_bootstrap.py``: create the OpenSearch entity index.
"""
