"""Normalization rule tables for business record fields."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from pydantic import BaseModel, Field, field_validator
from pydantic_core import PydanticUndefined


def _sanitize_string_sequence(value: Any) -> List[str]:
    """Normalise diverse inputs into a trimmed, lowercased list of strings."""

    if value is None or value is PydanticUndefined:
        return []
    if isinstance(value, str):
        items = [value]
    elif isinstance(value, Iterable) and not isinstance(value, (bytes, bytearray)):
        items = list(value)
    else:
        items = [value]

    cleaned: List[str] = []
    for item in items:
        if not isinstance(item, str):
            raise TypeError("Expected string entries, but received non-string input")
        stripped = item.strip().lower()
        if stripped:
            cleaned.append(stripped)
    return cleaned


def _sanitize_string_mapping(value: Any) -> Dict[str, str]:
    if value is None or value is PydanticUndefined:
        return {}
    if not isinstance(value, dict):
        raise TypeError("Expected a mapping of strings")
    cleaned: Dict[str, str] = {}
    for key, target in value.items():
        if not isinstance(key, str) or not isinstance(target, str):
            raise TypeError("Mapping keys and values must be strings")
        source = key.strip().lower()
        if source:
            cleaned[source] = target.strip().lower()
    return cleaned


class NormalizationPolicy(BaseModel):
    """Rule tables applied by the field normalizer.

    The defaults target English and French Canadian business naming. They are
    configuration rather than universal rules; deployments covering other
    jurisdictions are expected to extend them.
    """

    legal_suffixes: List[str] = Field(
        default_factory=lambda: [
            "inc",
            "incorporated",
            "ltd",
            "limited",
            "corp",
            "corporation",
            "co",
            "company",
            "llc",
            "llp",
            "lp",
            "plc",
            "ltee",
            "limitee",
            "enr",
            "ulc",
        ],
        description="Legal-form tokens stripped from the end of business names.",
    )
    connector_words: List[str] = Field(
        default_factory=lambda: ["and", "et", "the"],
        description="Connector tokens dropped anywhere in a business name.",
    )
    street_abbreviations: Dict[str, str] = Field(
        default_factory=lambda: {
            "st": "street",
            "str": "street",
            "ave": "avenue",
            "av": "avenue",
            "rd": "road",
            "blvd": "boulevard",
            "dr": "drive",
            "ln": "lane",
            "ct": "court",
            "cres": "crescent",
            "cir": "circle",
            "hwy": "highway",
            "pkwy": "parkway",
            "pl": "place",
            "sq": "square",
            "ter": "terrace",
            "trl": "trail",
            "ste": "suite",
            "apt": "apartment",
            "n": "north",
            "s": "south",
            "e": "east",
            "w": "west",
        },
        description="Address token expansions applied to street lines.",
    )
    province_aliases: Dict[str, str] = Field(
        default_factory=lambda: {
            "alberta": "ab",
            "british columbia": "bc",
            "manitoba": "mb",
            "new brunswick": "nb",
            "newfoundland and labrador": "nl",
            "newfoundland": "nl",
            "nova scotia": "ns",
            "northwest territories": "nt",
            "nunavut": "nu",
            "ontario": "on",
            "prince edward island": "pe",
            "quebec": "qc",
            "saskatchewan": "sk",
            "yukon": "yt",
        },
        description="Full province or state names mapped to their short codes.",
    )
    phone_key_digits: int = Field(
        default=10,
        ge=7,
        description="Trailing digits of a phone number used as its blocking key.",
    )

    @field_validator("legal_suffixes", "connector_words", mode="before")
    @classmethod
    def _normalize_terms(cls, value: Any) -> List[str]:
        return _sanitize_string_sequence(value)

    @field_validator("street_abbreviations", "province_aliases", mode="before")
    @classmethod
    def _normalize_tables(cls, value: Any) -> Dict[str, str]:
        return _sanitize_string_mapping(value)


__all__ = ["NormalizationPolicy"]
