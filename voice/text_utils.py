"""String helpers shared by the intent parser and the TTS queue."""

from __future__ import annotations

import re

_NON_ALNUM = re.compile(r"[^a-z0-9\s.]")
_WHITESPACE = re.compile(r"\s+")

STOP_WORDS = frozenset({
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "is", "are", "was", "were", "be", "been", "have",
    "has", "had", "do", "does", "did", "will", "would", "could", "should",
    "can", "may", "might", "must", "shall", "i", "you", "he", "she", "it",
    "we", "they", "me", "him", "her", "us", "them", "my", "your", "his",
    "its", "our", "their", "this", "that", "these", "those", "just", "some",
})


def normalize_text(text: str) -> str:
    """Lowercase, drop everything but letters, digits and periods, collapse whitespace."""
    if not text:
        return ""
    cleaned = _NON_ALNUM.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def tokenize(text: str) -> list[str]:
    return [t for t in text.split() if t]


def compact(text: str) -> str:
    """'pull ups' -> 'pullups'. Used to compare spellings that differ only by spacing."""
    return re.sub(r"[\s\-.]", "", text)


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit costs, two-row dynamic programming."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """1 - levenshtein(a, b) / max(len(a), len(b)), in [0, 1]."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def contains_phrase(haystack: str, phrase: str) -> bool:
    """Whole-word containment: 'bench' is in 'barbell bench press', 'ben' is not."""
    if not phrase:
        return False
    return re.search(rf"(?:^|\s){re.escape(phrase)}(?:\s|$)", haystack) is not None


def is_numeric(token: str) -> bool:
    try:
        float(token)
    except ValueError:
        return False
    return True


def acronym(phrase: str) -> str:
    words = phrase.split()
    return "".join(w[0] for w in words if w)
