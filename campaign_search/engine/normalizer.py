"""Text canonicalization for search comparisons."""

import unicodedata


def normalize(text: str) -> str:
    """Canonicalize ``text`` for comparison.

    Decomposes to NFD, strips combining marks, and lowercases, so
    ``normalize("André") == "andre"``. Total (``""`` maps to ``""``) and
    idempotent.
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    # Lowercasing can produce new decomposable sequences (e.g. "İ"), so the
    # result is decomposed and stripped once more to stay idempotent.
    lowered = unicodedata.normalize("NFD", stripped.lower())
    return "".join(ch for ch in lowered if not unicodedata.combining(ch))
