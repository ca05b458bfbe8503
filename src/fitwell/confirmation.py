"""Yes/no classification of replies to a confirmation question."""

from __future__ import annotations

import re
from enum import StrEnum

POSITIVE_WORDS = ("yes", "yeah", "yep", "sure", "please", "affirmative", "do it", "confirm")
NEGATIVE_WORDS = ("no", "not now", "cancel", "don't", "dont", "nope")


def _lexicon(words: tuple[str, ...]) -> re.Pattern[str]:
    return re.compile(r"\b(" + "|".join(re.escape(word) for word in words) + r")\b")


POSITIVE_RE = _lexicon(POSITIVE_WORDS)
NEGATIVE_RE = _lexicon(NEGATIVE_WORDS)


class Confirmation(StrEnum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    UNCLEAR = "unclear"


def classify(text: str) -> Confirmation:
    """Positive wins when a reply matches both lexicons ("yes please, no rush")."""
    lowered = text.casefold()
    if POSITIVE_RE.search(lowered):
        return Confirmation.POSITIVE
    if NEGATIVE_RE.search(lowered):
        return Confirmation.NEGATIVE
    return Confirmation.UNCLEAR
