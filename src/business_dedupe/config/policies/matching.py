"""Blocking and match scoring policy models."""

from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, Field, field_validator, model_validator

from .normalization import _sanitize_string_sequence


class BlockingPolicy(BaseModel):
    """Controls how the candidate index narrows comparisons."""

    prefix_length: int = Field(
        default=4,
        ge=1,
        description="Number of leading characters of the compact name used for prefix blocking.",
    )
    phonetic_enabled: bool = Field(
        default=True,
        description="Whether the leading name token is indexed by its phonetic code.",
    )
    max_block_size: int = Field(
        default=50,
        ge=1,
        description="Coarse keys holding more ids than this are skipped during candidate lookup.",
    )
    max_candidates: int = Field(
        default=500,
        ge=1,
        description="Upper bound on the candidate ids returned for a single record.",
    )
    shared_email_domains: List[str] = Field(
        default_factory=lambda: [
            "gmail.com",
            "googlemail.com",
            "yahoo.com",
            "yahoo.ca",
            "hotmail.com",
            "hotmail.ca",
            "outlook.com",
            "live.com",
            "icloud.com",
            "me.com",
            "aol.com",
            "protonmail.com",
            "shaw.ca",
            "rogers.com",
            "sympatico.ca",
            "telus.net",
        ],
        description="Free-mail domains that never act as a blocking key.",
    )

    @field_validator("shared_email_domains", mode="before")
    @classmethod
    def _normalize_domains(cls, value: Any) -> List[str]:
        return _sanitize_string_sequence(value)


class FieldWeights(BaseModel):
    """Relative weight of each field in the overall match score."""

    business_number: float = Field(default=0.30, ge=0.0)
    name: float = Field(default=0.25, ge=0.0)
    phone: float = Field(default=0.15, ge=0.0)
    email: float = Field(default=0.10, ge=0.0)
    website: float = Field(default=0.10, ge=0.0)
    address: float = Field(default=0.05, ge=0.0)
    industry: float = Field(default=0.05, ge=0.0)

    def for_field(self, field: str) -> float:
        return float(getattr(self, field, 0.0))


class AddressWeights(BaseModel):
    """Component weights used by the address similarity algorithm."""

    street: float = Field(default=0.4, ge=0.0)
    city: float = Field(default=0.2, ge=0.0)
    province: float = Field(default=0.1, ge=0.0)
    postal_code: float = Field(default=0.3, ge=0.0)


class MatchingPolicy(BaseModel):
    """Thresholds and weights governing pairwise comparison."""

    default_threshold: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Minimum overall score for a candidate to be reported as a duplicate.",
    )
    high_confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    medium_confidence: float = Field(default=0.75, ge=0.0, le=1.0)
    auto_merge_threshold: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Score at which a pair is suggested for merging outright.",
    )
    weights: FieldWeights = Field(default_factory=FieldWeights)
    address_weights: AddressWeights = Field(default_factory=AddressWeights)
    numeric_mismatch_cap: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Cap applied to name similarity when the names carry different numbers.",
    )
    initialism_score: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Name score when a one-word name spells the initials of the other name.",
    )
    ml_weight: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Share of the external scorer in a deep-check blended score.",
    )
    strong_identifiers: List[str] = Field(
        default_factory=lambda: ["business_number", "phone", "email", "website"],
        description="Fields whose exact match alone marks a pair as the same business.",
    )

    @model_validator(mode="after")
    def _validate_tiers(self) -> "MatchingPolicy":
        if self.medium_confidence > self.high_confidence:
            raise ValueError("medium_confidence must not exceed high_confidence")
        return self


__all__ = ["BlockingPolicy", "FieldWeights", "AddressWeights", "MatchingPolicy"]
