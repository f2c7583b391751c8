"""Candidate source contracts and their PostgreSQL, OpenSearch and in-memory implementations."""
