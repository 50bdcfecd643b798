"""Field normalization for business records prior to comparison."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple

from business_dedupe.config.policies import NormalizationPolicy
from business_dedupe.entities.core import Address, BusinessRecord
from business_dedupe.utils.helpers import fold_diacritics, normalize_whitespace
from business_dedupe.utils.logging import get_logger


_LOGGER = get_logger(module=__name__)

_APOSTROPHE_RE = re.compile(r"['‘’ʼ`]")
_INITIALISM_DOT_RE = re.compile(r"\b([a-z0-9])\.")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_DIGITS_RE = re.compile(r"\D+")
_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*://")
_SECOND_LEVEL_LABELS = frozenset({"co", "com", "org", "net", "gov", "ac", "edu", "ltd", "plc"})
_MIN_PHONE_KEY_DIGITS = 7


@dataclass(frozen=True)
class NormalizedName:
    """Name forms used by the string, token and phonetic algorithms."""

    display: str
    canonical: str
    stripped: str
    tokens: Tuple[str, ...]

    @property
    def compact(self) -> str:
        return self.stripped.replace(" ", "")

    @property
    def numeric_tokens(self) -> FrozenSet[str]:
        return frozenset(token for token in self.tokens if token.isdigit())


@dataclass(frozen=True)
class NormalizedPhone:
    digits: str
    key: Optional[str]


@dataclass(frozen=True)
class NormalizedEmail:
    address: str
    local: str
    domain: str
    valid: bool


@dataclass(frozen=True)
class NormalizedWebsite:
    host: str
    base: str

    @property
    def valid(self) -> bool:
        return "." in self.host


@dataclass(frozen=True)
class NormalizedAddress:
    street: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None

    def is_empty(self) -> bool:
        return not any((self.street, self.city, self.province, self.postal_code))


@dataclass(frozen=True)
class NormalizedRecord:
    """Every comparable field of one record, normalized once."""

    record: BusinessRecord
    name: Optional[NormalizedName] = None
    business_number: Optional[str] = None
    phone: Optional[NormalizedPhone] = None
    email: Optional[NormalizedEmail] = None
    website: Optional[NormalizedWebsite] = None
    address: Optional[NormalizedAddress] = None
    industry: Optional[FrozenSet[str]] = None
    description: Optional[str] = None

    @property
    def id(self) -> str:
        return self.record.id

    def get(self, field_name: str) -> Any:
        return getattr(self, field_name, None)

    def has(self, field_name: str) -> bool:
        return self.get(field_name) is not None

    def is_comparable(self) -> bool:
        return any(
            self.has(name)
            for name in ("name", "business_number", "phone", "email", "website", "address", "industry")
        )


class FieldNormalizer:
    """Canonicalize raw field values.

    Normalization is total: ``None`` or blank input yields ``None`` and any other
    input degrades to a best-effort canonical form instead of raising.
    """

    def __init__(self, policy: NormalizationPolicy | None = None) -> None:
        self.policy = policy or NormalizationPolicy()
        self._suffixes = frozenset(self.policy.legal_suffixes)
        self._connectors = frozenset(self.policy.connector_words)
        self._handlers: Dict[str, Callable[[Any], Any]] = {
            "name": self.normalize_name,
            "business_number": self.normalize_business_number,
            "phone": self.normalize_phone,
            "email": self.normalize_email,
            "website": self.normalize_website,
            "address": self.normalize_address,
            "industry": self.normalize_industry,
            "description": self.normalize_description,
        }

    def normalize(self, field_name: str, raw: Any) -> Any:
        """Dispatch *raw* to the normalizer registered for *field_name*."""

        try:
            handler = self._handlers[field_name]
        except KeyError:
            raise ValueError(f"Unsupported field: {field_name}") from None
        return handler(raw)

    def normalize_record(self, record: BusinessRecord) -> NormalizedRecord:
        normalized = NormalizedRecord(
            record=record,
            name=self.normalize_name(record.name),
            business_number=self.normalize_business_number(record.business_number),
            phone=self.normalize_phone(record.phone),
            email=self.normalize_email(record.email),
            website=self.normalize_website(record.website),
            address=self.normalize_address(record.address),
            industry=self.normalize_industry(record.industry),
            description=self.normalize_description(record.description),
        )
        _LOGGER.debug(
            "Normalized record",
            record_id=record.id,
            name=normalized.name.stripped if normalized.name else None,
        )
        return normalized

    # -- text helpers ------------------------------------------------------

    @staticmethod
    def _text(raw: Any) -> Optional[str]:
        if raw is None:
            return None
        text = raw if isinstance(raw, str) else str(raw)
        text = normalize_whitespace(text)
        return text or None

    @staticmethod
    def _simplify(text: str) -> str:
        lowered = fold_diacritics(text).lower()
        lowered = _APOSTROPHE_RE.sub("", lowered)
        lowered = _INITIALISM_DOT_RE.sub(r"\1", lowered)
        return " ".join(_NON_ALNUM_RE.sub(" ", lowered).split())

    # -- field normalizers -------------------------------------------------

    def normalize_name(self, raw: Any) -> Optional[NormalizedName]:
        display = self._text(raw)
        if display is None:
            return None
        simplified = self._simplify(display)
        tokens = simplified.split()
        if not tokens:
            lowered = display.lower()
            return NormalizedName(
                display=display, canonical=lowered, stripped=lowered, tokens=(lowered,)
            )

        meaningful = [token for token in tokens if token not in self._connectors]
        if meaningful:
            tokens = meaningful
        canonical = " ".join(tokens)

        stripped_tokens = list(tokens)
        while stripped_tokens and stripped_tokens[-1] in self._suffixes:
            stripped_tokens.pop()
        if not stripped_tokens:
            stripped_tokens = list(tokens)
        stripped = " ".join(stripped_tokens)
        return NormalizedName(
            display=display,
            canonical=canonical,
            stripped=stripped,
            tokens=tuple(stripped_tokens),
        )

    def normalize_business_number(self, raw: Any) -> Optional[str]:
        text = self._text(raw)
        if text is None:
            return None
        cleaned = "".join(ch for ch in fold_diacritics(text).upper() if ch.isalnum())
        return cleaned or None

    def normalize_phone(self, raw: Any) -> Optional[NormalizedPhone]:
        text = self._text(raw)
        if text is None:
            return None
        digits = _DIGITS_RE.sub("", text)
        if not digits:
            return None
        key_length = self.policy.phone_key_digits
        key = digits[-key_length:] if len(digits) >= _MIN_PHONE_KEY_DIGITS else None
        return NormalizedPhone(digits=digits, key=key)

    def normalize_email(self, raw: Any) -> Optional[NormalizedEmail]:
        text = self._text(raw)
        if text is None:
            return None
        address = "".join(text.lower().split())
        if address.startswith("mailto:"):
            address = address[len("mailto:") :]
        if not address:
            return None
        local, at, domain = address.rpartition("@")
        if not at:
            local, domain = address, ""
        domain = domain.strip(".")
        valid = bool(local) and bool(domain) and "." in domain and "@" not in local
        return NormalizedEmail(address=address, local=local, domain=domain, valid=valid)

    def normalize_website(self, raw: Any) -> Optional[NormalizedWebsite]:
        text = self._text(raw)
        if text is None:
            return None
        host = text.lower()
        host = _SCHEME_RE.sub("", host)
        if host.startswith("//"):
            host = host[2:]
        for separator in ("/", "?", "#"):
            host = host.split(separator, 1)[0]
        host = host.rsplit("@", 1)[-1]
        host = host.split(":", 1)[0]
        host = host.strip(".").strip()
        if host.startswith("www."):
            host = host[len("www.") :]
        if not host:
            return None
        return NormalizedWebsite(host=host, base=self._base_label(host))

    @staticmethod
    def _base_label(host: str) -> str:
        labels = host.split(".")
        if len(labels) == 1:
            return labels[0]
        if len(labels) >= 3 and labels[-2] in _SECOND_LEVEL_LABELS and len(labels[-1]) == 2:
            return labels[-3]
        return labels[-2]

    def normalize_address(self, raw: Any) -> Optional[NormalizedAddress]:
        if raw is None:
            return None
        if isinstance(raw, str):
            raw = Address(street=raw)
        elif isinstance(raw, dict):
            raw = Address.model_validate(raw)
        street = self._normalize_street(raw.street)
        city = self._simplify(raw.city) if raw.city else None
        province = self._normalize_province(raw.province)
        postal_code = None
        if raw.postal_code:
            postal_code = "".join(ch for ch in raw.postal_code.upper() if ch.isalnum()) or None
        normalized = NormalizedAddress(
            street=street or None,
            city=city or None,
            province=province or None,
            postal_code=postal_code,
        )
        if normalized.is_empty():
            return None
        return normalized

    def _normalize_street(self, street: Optional[str]) -> Optional[str]:
        if not street:
            return None
        table = self.policy.street_abbreviations
        tokens = [table.get(token, token) for token in self._simplify(street).split()]
        return " ".join(tokens) or None

    def _normalize_province(self, province: Optional[str]) -> Optional[str]:
        if not province:
            return None
        simplified = self._simplify(province)
        return self.policy.province_aliases.get(simplified, simplified) or None

    def normalize_industry(self, raw: Any) -> Optional[FrozenSet[str]]:
        if raw is None:
            return None
        if isinstance(raw, str):
            raw = raw.split(",")
        tags = frozenset(
            tag for tag in (self._simplify(str(item)) for item in raw if item is not None) if tag
        )
        return tags or None

    def normalize_description(self, raw: Any) -> Optional[str]:
        text = self._text(raw)
        if text is None:
            return None
        return text.lower()


__all__ = [
    "FieldNormalizer",
    "NormalizedAddress",
    "NormalizedEmail",
    "NormalizedName",
    "NormalizedPhone",
    "NormalizedRecord",
    "NormalizedWebsite",
]
