"""Default text sanitizer applied to subjects and bodies."""

from __future__ import annotations

import re
from html import unescape
from typing import Final

_BLOCK_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL
)
_TAG_PATTERN: Final[re.Pattern[str]] = re.compile(r"</?[A-Za-z][^>]*>")
_CONTROL_PATTERN: Final[re.Pattern[str]] = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


class TextCleaner:
    """Strip markup from user supplied text.

    Script and style blocks are dropped with their content, remaining tags
    are removed, entities are decoded and control characters discarded.
    """

    def clean(self, text: str) -> str:
        if not text:
            return text
        cleaned = _BLOCK_PATTERN.sub("", text)
        cleaned = _TAG_PATTERN.sub("", cleaned)
        cleaned = unescape(cleaned)
        cleaned = _CONTROL_PATTERN.sub("", cleaned)
        return cleaned.strip()


text_cleaner = TextCleaner()


__all__ = ["TextCleaner", "text_cleaner"]
