"""API subpackage for the search service.

The router exposes campaign-scoped search. Transport layer remains thin and
delegates to ``FallbackController``.
"""
