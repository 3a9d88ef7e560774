"""
Text similarity for alert deduplication.

Similarity is the Jaccard index of two normalized word sets: lower-cased,
punctuation replaced by spaces, and short tokens dropped.
"""

import re

NON_WORD_PATTERN = re.compile(r"[^\w\s]")

DEFAULT_MIN_TOKEN_LENGTH = 3


def tokenize(text: str | None, min_length: int = DEFAULT_MIN_TOKEN_LENGTH) -> set[str]:
    """Split text into a set of normalized words of at least ``min_length``."""
    if not text:
        return set()
    normalized = NON_WORD_PATTERN.sub(" ", text.lower())
    return {word for word in normalized.split() if len(word) >= min_length}


def jaccard_similarity(
    a: str | None,
    b: str | None,
    min_length: int = DEFAULT_MIN_TOKEN_LENGTH,
) -> float:
    """
    Jaccard similarity of the word sets of two strings.

    Returns |A ∩ B| / |A ∪ B|, or 0.0 when either set is empty.
    """
    words_a = tokenize(a, min_length)
    words_b = tokenize(b, min_length)
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)
