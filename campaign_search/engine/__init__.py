"""Query parsing, ranking and the fallback cascade."""
