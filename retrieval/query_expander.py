"""Synonym-based query expansion for improved recall."""

from __future__ import annotations

import logging
import re
from typing import Mapping

from core.config import DEFAULT_SYNONYMS

logger = logging.getLogger(__name__)


class QueryExpander:
    """Appends known synonyms for terms recognized in a question.

    Expansion only appends: the lower-cased question is always the prefix of
    the result. A key is matched as a whole word against the text expanded
    so far, so one key's synonyms can trigger another key and the same
    synonym text may appear more than once.
    """

    def __init__(
        self, synonym_map: Mapping[str, list[str]] | None = None, enabled: bool = True
    ):
        if synonym_map is None:
            synonym_map = DEFAULT_SYNONYMS
        self.enabled = enabled
        self._patterns = [
            (re.compile(rf"(?<!\w){re.escape(key)}(?!\w)", re.IGNORECASE), list(synonyms))
            for key, synonyms in synonym_map.items()
        ]

    def expand(self, question: str) -> str:
        if not self.enabled:
            return question

        expanded = question.lower()
        for pattern, synonyms in self._patterns:
            if synonyms and pattern.search(expanded):
                expanded = f"{expanded} {' '.join(synonyms)}"

        logger.debug("Expanded query: %s -> %s", question, expanded)
        return expanded
