"""Term variant expansion.

Campaign records store some metadata as canonical keys ("weapon",
"legendary") while users type localized names ("Waffe", "legendär"). A
``TermExpander`` rewrites a query term to the canonical key(s) it names and
flags terms that are keys of another locale, so metadata matching can be
suppressed for them.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import structlog

from .edit_distance import distance
from .normalizer import normalize

logger = structlog.get_logger("campaign_search.expansion")

# Shorter user terms are too ambiguous to correct against the alias table.
FUZZY_ALIAS_MIN_LENGTH = 5


def _alias_tolerance(alias: str) -> int:
    if len(alias) <= 4:
        return 1
    if len(alias) <= 7:
        return 2
    return 3


class TermExpander:
    """Maps normalized terms to their variant spellings.

    Parameters
    - aliases: ``{locale: {alias: [canonical keys]}}``; aliases and keys are
      normalized on load
    - locale: The locale whose aliases rewrite terms; other locales only
      contribute to metadata blocking
    - fuzzy: Allow typo-tolerant alias lookup for terms of 5+ characters
    """

    def __init__(
        self,
        aliases: Optional[Mapping[str, Mapping[str, Iterable[str]]]] = None,
        locale: str = "en",
        fuzzy: bool = True,
    ):
        self.locale = locale
        self.fuzzy = fuzzy
        self._tables: Dict[str, Dict[str, Tuple[str, ...]]] = {}
        for table_locale, table in (aliases or {}).items():
            self._tables[table_locale] = {
                normalize(alias): tuple(dict.fromkeys(normalize(key) for key in keys))
                for alias, keys in table.items()
            }

    @property
    def has_aliases(self) -> bool:
        return bool(self._tables)

    def _lookup(self, term: str, locale: str, fuzzy: bool) -> Optional[Tuple[str, ...]]:
        table = self._tables.get(locale)
        if not table:
            return None
        exact = table.get(term)
        if exact:
            return exact
        if not fuzzy or len(term) < FUZZY_ALIAS_MIN_LENGTH:
            return None

        best: Optional[Tuple[int, str]] = None
        for alias in sorted(table):
            dist = distance(term, alias)
            if dist <= _alias_tolerance(alias) and (best is None or dist < best[0]):
                best = (dist, alias)
        return table[best[1]] if best else None

    def expand(self, term: str) -> Tuple[Tuple[str, ...], bool]:
        """Return ``(variants, metadata_blocked)`` for a normalized term.

        A term naming a key in the active locale is replaced by that key
        only. Otherwise the term stands for itself, and metadata matching is
        blocked when the term is an exact alias in any other locale.
        """
        keys = self._lookup(term, self.locale, self.fuzzy)
        if keys:
            logger.debug("Term expanded", term=term, variants=list(keys))
            return keys, False

        blocked = any(
            term in table
            for table_locale, table in self._tables.items()
            if table_locale != self.locale
        )
        return (term,), blocked

    def expand_all(self, terms: Iterable[str]) -> Tuple[Tuple[Tuple[str, ...], ...], Tuple[bool, ...]]:
        variants: List[Tuple[str, ...]] = []
        blocked: List[bool] = []
        for term in terms:
            term_variants, term_blocked = self.expand(term)
            variants.append(term_variants)
            blocked.append(term_blocked)
        return tuple(variants), tuple(blocked)
