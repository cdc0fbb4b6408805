from __future__ import annotations

import re
from typing import Final


class LanguageDetector:
    """Cheap script check used when the model's language verdict is unavailable."""

    _PLAIN_LATIN_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z\s.,!?'\"()-]+$")
    _LATIN_PATTERN: Final[re.Pattern[str]] = re.compile(r"[A-Za-z]")

    def looks_like_english(self, text: str) -> bool:
        """Return True when the text is only basic Latin letters and punctuation.

        Digits, accented letters and any non-Latin script make the text count as
        foreign, which sends it to the translation fallback.
        """
        normalized = text.strip() if text else ""
        if not normalized:
            return False
        if not self._LATIN_PATTERN.search(normalized):
            return False
        return self._PLAIN_LATIN_PATTERN.match(normalized) is not None
