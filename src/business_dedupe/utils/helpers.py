"""General-purpose helpers for deterministic record processing."""

from __future__ import annotations

import itertools
import re
import unicodedata
from typing import Iterable, Iterator, List, Tuple, TypeVar

T = TypeVar("T")
_WORD_BOUNDARY_PATTERN = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace into single spaces."""

    return _WORD_BOUNDARY_PATTERN.sub(" ", text.strip())


def fold_diacritics(text: str) -> str:
    """Remove diacritics by decomposing unicode characters."""

    normalized = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def chunked(iterable: Iterable[T], size: int) -> Iterator[List[T]]:
    """Yield lists of *size* items from *iterable* until exhausted."""

    if size <= 0:
        raise ValueError("size must be positive")
    iterator = iter(iterable)
    while True:
        chunk = list(itertools.islice(iterator, size))
        if not chunk:
            return
        yield chunk


def ordered_pair(left: str, right: str) -> Tuple[str, str]:
    """Return a deterministic ordering of two identifiers."""

    return (left, right) if left <= right else (right, left)


__all__ = ["normalize_whitespace", "fold_diacritics", "chunked", "ordered_pair"]
