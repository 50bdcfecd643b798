"""Utility helpers shared across deduplication modules."""

from .helpers import chunked, fold_diacritics, normalize_whitespace, ordered_pair
from .logging import configure_logging, get_logger, log_timing, logging_context
from .phonetic import (
    double_metaphone,
    generate_phonetic_key,
    normalize_for_phonetic,
    soundex,
    token_code,
    token_codes,
)
from .similarity import (
    edit_similarity,
    phonetic_token_similarity,
    set_jaccard,
    token_jaccard_similarity,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "logging_context",
    "log_timing",
    "normalize_whitespace",
    "fold_diacritics",
    "chunked",
    "ordered_pair",
    "normalize_for_phonetic",
    "double_metaphone",
    "token_code",
    "token_codes",
    "soundex",
    "generate_phonetic_key",
    "edit_similarity",
    "set_jaccard",
    "token_jaccard_similarity",
    "phonetic_token_similarity",
]
