"""Tests for campaign search components.

Everything here runs against in-memory stores and stub collaborators; no
live PostgreSQL or OpenSearch is required.
"""
