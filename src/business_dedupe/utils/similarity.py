"""Text similarity primitives shared by the field algorithms."""

from __future__ import annotations

from functools import lru_cache
from typing import AbstractSet, Hashable, Sequence

import jellyfish

from .helpers import ordered_pair
from .phonetic import token_codes

# Pairwise edit distances recur heavily within a batch; the cache stays within a few MiB.
_EDIT_CACHE_SIZE = 16384


@lru_cache(maxsize=_EDIT_CACHE_SIZE)
def _levenshtein_cached(text1: str, text2: str) -> int:
    return jellyfish.levenshtein_distance(text1, text2)


def edit_similarity(text1: str, text2: str) -> float:
    """Return ``1 - levenshtein / max(len)`` for two strings.

    Identical strings score 1.0 and an empty side scores 0.0.
    """

    if not text1 or not text2:
        return 0.0
    if text1 == text2:
        return 1.0
    left, right = ordered_pair(text1, text2)
    distance = _levenshtein_cached(left, right)
    longest = max(len(left), len(right))
    return max(0.0, 1.0 - distance / longest)


def set_jaccard(left: AbstractSet[Hashable], right: AbstractSet[Hashable]) -> float:
    """Jaccard coefficient of two sets; 0.0 when either is empty."""

    if not left or not right:
        return 0.0
    union = len(left | right)
    if union == 0:
        return 0.0
    return len(left & right) / union


def token_jaccard_similarity(tokens1: Sequence[str], tokens2: Sequence[str]) -> float:
    """Compute Jaccard similarity over token sets, ignoring order and repeats."""

    return set_jaccard(frozenset(tokens1), frozenset(tokens2))


def phonetic_token_similarity(tokens1: Sequence[str], tokens2: Sequence[str]) -> float:
    """Compare names by the Double Metaphone codes of their tokens.

    Equal code sequences score 1.0; otherwise the overlap of the code sets gives
    partial credit.
    """

    codes1 = token_codes(tokens1)
    codes2 = token_codes(tokens2)
    if not codes1 or not codes2:
        return 0.0
    if codes1 == codes2:
        return 1.0
    return set_jaccard(frozenset(codes1), frozenset(codes2))


__all__ = [
    "edit_similarity",
    "set_jaccard",
    "token_jaccard_similarity",
    "phonetic_token_similarity",
]
