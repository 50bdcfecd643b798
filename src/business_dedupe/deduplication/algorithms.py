"""Field similarity algorithms over normalized values.

Every scorer here is pure and symmetric, returns 1.0 for identical normalized
input and 0.0 when either side is missing. :data:`FIELD_ALGORITHMS` maps each
comparable field to the algorithm families that may score it.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Tuple

from business_dedupe.config.policies import AddressWeights
from business_dedupe.entities.core import Algorithm
from business_dedupe.utils.similarity import (
    edit_similarity,
    phonetic_token_similarity,
    set_jaccard,
    token_jaccard_similarity,
)

from .normalizer import (
    NormalizedAddress,
    NormalizedEmail,
    NormalizedName,
    NormalizedPhone,
    NormalizedWebsite,
)

_MAX_COUNTRY_CODE_DIGITS = 3
_MIN_NATIONAL_DIGITS = 10
_MIN_INITIALISM_LENGTH = 2
_INITIALISM_SCORE = 0.9
_SUBDOMAIN_SCORE = 0.9
_BASE_LABEL_FACTOR = 0.8
_POSTAL_PREFIX_LENGTH = 3
_POSTAL_PREFIX_SCORE = 0.5

FieldAlgorithm = Callable[[Any, Any], float]


def edit_distance_similarity(a: Optional[str], b: Optional[str]) -> float:
    return edit_similarity(a or "", b or "")


def exact_similarity(a: Any, b: Any) -> float:
    if a is None or b is None or a == "" or b == "":
        return 0.0
    return 1.0 if a == b else 0.0


def name_string_similarity(a: Optional[NormalizedName], b: Optional[NormalizedName]) -> float:
    if a is None or b is None:
        return 0.0
    return edit_similarity(a.stripped, b.stripped)


def name_phonetic_similarity(a: Optional[NormalizedName], b: Optional[NormalizedName]) -> float:
    if a is None or b is None:
        return 0.0
    return phonetic_token_similarity(a.tokens, b.tokens)


def name_token_similarity(a: Optional[NormalizedName], b: Optional[NormalizedName]) -> float:
    if a is None or b is None:
        return 0.0
    return token_jaccard_similarity(a.tokens, b.tokens)


def name_initials(name: Optional[NormalizedName]) -> Optional[str]:
    """Initial letters of a multi-word name whose words all start with a letter."""

    if name is None or len(name.tokens) < _MIN_INITIALISM_LENGTH:
        return None
    if not all(token[0].isalpha() for token in name.tokens):
        return None
    return "".join(token[0] for token in name.tokens)


def initialism_form(name: Optional[NormalizedName]) -> Optional[str]:
    """The single alphabetic word of a name that may abbreviate a longer one."""

    if name is None or len(name.tokens) != 1:
        return None
    token = name.tokens[0]
    if len(token) < _MIN_INITIALISM_LENGTH or not token.isalpha():
        return None
    return token


def name_initialism_similarity(
    a: Optional[NormalizedName],
    b: Optional[NormalizedName],
    score: float = _INITIALISM_SCORE,
) -> float:
    """Credit a one-word name that spells the initials of the other name."""

    if a is None or b is None:
        return 0.0
    if a.stripped == b.stripped:
        return 1.0
    for short, long in ((a, b), (b, a)):
        initials = name_initials(long)
        if initials is not None and initialism_form(short) == initials:
            return score
    return 0.0


def numeric_tokens_conflict(a: Optional[NormalizedName], b: Optional[NormalizedName]) -> bool:
    """True when both names carry numbers and the numbers differ ("Store 12" vs "Store 13")."""

    if a is None or b is None:
        return False
    numbers_a = a.numeric_tokens
    numbers_b = b.numeric_tokens
    return bool(numbers_a) and bool(numbers_b) and numbers_a != numbers_b


def phone_similarity(a: Optional[NormalizedPhone], b: Optional[NormalizedPhone]) -> float:
    """Equal digits, or equal once a 1-3 digit country code is ignored, score 1.0.

    The country-code allowance needs a full national number on the shorter side,
    so a local number never matches the same digits behind an area code.
    """

    if a is None or b is None or not a.digits or not b.digits:
        return 0.0
    if a.digits == b.digits:
        return 1.0
    shorter, longer = sorted((a.digits, b.digits), key=len)
    extra = len(longer) - len(shorter)
    if (
        1 <= extra <= _MAX_COUNTRY_CODE_DIGITS
        and len(shorter) >= _MIN_NATIONAL_DIGITS
        and longer.endswith(shorter)
    ):
        return 1.0
    return 0.0


def email_exact_similarity(a: Optional[NormalizedEmail], b: Optional[NormalizedEmail]) -> float:
    if a is None or b is None:
        return 0.0
    return exact_similarity(a.address, b.address)


def email_string_similarity(a: Optional[NormalizedEmail], b: Optional[NormalizedEmail]) -> float:
    """Same domain earns half credit plus half the local-part similarity."""

    if a is None or b is None or not a.domain or not b.domain:
        return 0.0
    if a.domain != b.domain:
        return 0.0
    return 0.5 + 0.5 * edit_similarity(a.local, b.local)


def website_exact_similarity(a: Optional[NormalizedWebsite], b: Optional[NormalizedWebsite]) -> float:
    if a is None or b is None:
        return 0.0
    return exact_similarity(a.host, b.host)


def website_string_similarity(a: Optional[NormalizedWebsite], b: Optional[NormalizedWebsite]) -> float:
    if a is None or b is None or not a.host or not b.host:
        return 0.0
    if a.host == b.host:
        return 1.0
    if a.host.endswith("." + b.host) or b.host.endswith("." + a.host):
        return _SUBDOMAIN_SCORE
    return _BASE_LABEL_FACTOR * edit_similarity(a.base, b.base)


def _street_similarity(a: str, b: str) -> float:
    return max(token_jaccard_similarity(a.split(), b.split()), edit_similarity(a, b))


def _postal_similarity(a: str, b: str) -> float:
    if a == b:
        return 1.0
    if len(a) >= _POSTAL_PREFIX_LENGTH and a[:_POSTAL_PREFIX_LENGTH] == b[:_POSTAL_PREFIX_LENGTH]:
        return _POSTAL_PREFIX_SCORE
    return 0.0


def shared_address_components(
    a: Optional[NormalizedAddress], b: Optional[NormalizedAddress]
) -> Tuple[str, ...]:
    if a is None or b is None:
        return ()
    return tuple(
        component
        for component in ("street", "city", "province", "postal_code")
        if getattr(a, component) and getattr(b, component)
    )


def address_similarity(
    a: Optional[NormalizedAddress],
    b: Optional[NormalizedAddress],
    weights: Optional[AddressWeights] = None,
) -> float:
    """Weighted combination over the address components present on both sides."""

    components = shared_address_components(a, b)
    if not components:
        return 0.0
    weights = weights or AddressWeights()
    scorers: Dict[str, Callable[[str, str], float]] = {
        "street": _street_similarity,
        "city": exact_similarity,
        "province": exact_similarity,
        "postal_code": _postal_similarity,
    }
    total_weight = 0.0
    weighted = 0.0
    for component in components:
        weight = getattr(weights, component)
        score = scorers[component](getattr(a, component), getattr(b, component))
        total_weight += weight
        weighted += weight * score
    if total_weight <= 0.0:
        return 0.0
    return min(1.0, weighted / total_weight)


def industry_similarity(a: Optional[frozenset], b: Optional[frozenset]) -> float:
    if not a or not b:
        return 0.0
    return set_jaccard(a, b)


FIELD_ALGORITHMS: Dict[str, Tuple[Tuple[Algorithm, FieldAlgorithm], ...]] = {
    "name": (
        (Algorithm.STRING, name_string_similarity),
        (Algorithm.PHONETIC, name_phonetic_similarity),
        (Algorithm.TOKEN, name_token_similarity),
        (Algorithm.TOKEN, name_initialism_similarity),
    ),
    "business_number": ((Algorithm.FIELD_EXACT, exact_similarity),),
    "phone": ((Algorithm.FIELD_EXACT, phone_similarity),),
    "email": (
        (Algorithm.FIELD_EXACT, email_exact_similarity),
        (Algorithm.STRING, email_string_similarity),
    ),
    "website": (
        (Algorithm.FIELD_EXACT, website_exact_similarity),
        (Algorithm.STRING, website_string_similarity),
    ),
    "address": ((Algorithm.ADDRESS, address_similarity),),
    "industry": ((Algorithm.TOKEN, industry_similarity),),
}


__all__ = [
    "FIELD_ALGORITHMS",
    "address_similarity",
    "edit_distance_similarity",
    "email_exact_similarity",
    "email_string_similarity",
    "exact_similarity",
    "industry_similarity",
    "initialism_form",
    "name_initialism_similarity",
    "name_initials",
    "name_phonetic_similarity",
    "name_string_similarity",
    "name_token_similarity",
    "numeric_tokens_conflict",
    "phone_similarity",
    "shared_address_components",
    "website_exact_similarity",
    "website_string_similarity",
]
