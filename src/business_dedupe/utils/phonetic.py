"""Phonetic encoding helpers for name matching and blocking."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Optional, Tuple

import jellyfish
from metaphone import doublemetaphone

from .logging import get_logger


_LOGGER = get_logger(module=__name__)
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


@lru_cache(maxsize=2048)
def normalize_for_phonetic(text: str) -> str:
    """Lowercase *text* and reduce it to space separated alphanumeric runs."""

    if not text:
        return ""
    cleaned = _NON_ALNUM_RE.sub(" ", text.lower())
    return " ".join(cleaned.split())


@lru_cache(maxsize=4096)
def double_metaphone(text: str) -> Tuple[str, ...]:
    """Return the Double Metaphone codes for *text*."""

    normalized = normalize_for_phonetic(text)
    if not normalized:
        return tuple()
    primary, secondary = doublemetaphone(normalized)
    return tuple(code for code in (primary, secondary) if code)


@lru_cache(maxsize=8192)
def token_code(token: str) -> str:
    """Encode a single token, keeping numeric tokens literally.

    Tokens that produce no Double Metaphone code (for example a lone vowel
    sound) fall back to their Soundex code so that they still participate.
    """

    if not token:
        return ""
    if token.isdigit():
        return token
    codes = double_metaphone(token)
    if codes:
        return codes[0]
    return soundex(token)


def token_codes(tokens: Iterable[str]) -> Tuple[str, ...]:
    """Encode each token of an already tokenised name."""

    return tuple(code for code in (token_code(token) for token in tokens) if code)


@lru_cache(maxsize=4096)
def soundex(token: str) -> str:
    """Return the Soundex code for *token* or an empty string."""

    letters = "".join(ch for ch in token.lower() if "a" <= ch <= "z")
    if not letters:
        return ""
    return jellyfish.soundex(letters)


def generate_phonetic_key(token: str) -> Optional[str]:
    """Return a stable blocking key combining Metaphone and Soundex for *token*."""

    if not token:
        return None
    if token.isdigit():
        return f"#{token}"
    primary = token_code(token)
    secondary = soundex(token)
    if not primary and not secondary:
        return None
    key = f"{primary}:{secondary}"
    _LOGGER.debug("Computed phonetic key", token=token, key=key)
    return key


__all__ = [
    "normalize_for_phonetic",
    "double_metaphone",
    "token_code",
    "token_codes",
    "soundex",
    "generate_phonetic_key",
]
