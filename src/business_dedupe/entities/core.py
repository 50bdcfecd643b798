"""Core domain entities used throughout the deduplication engine."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class Confidence(str, Enum):
    """Confidence tier attached to a match."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Algorithm(str, Enum):
    """Similarity algorithm families."""

    STRING = "string"
    PHONETIC = "phonetic"
    TOKEN = "token"
    FIELD_EXACT = "field-exact"
    ADDRESS = "address"
    ML = "ml"


class MergeAction(str, Enum):
    """Recommended handling for a scored pair."""

    MERGE = "merge"
    KEEP_BOTH = "keep_both"
    MARK_DUPLICATE = "mark_duplicate"
    MANUAL_REVIEW = "manual_review"


class MergeStrategy(str, Enum):
    """Rules for collapsing duplicate records into one."""

    PRESERVE_PRIMARY = "preserve_primary"
    QUALITY = "quality"
    COMPREHENSIVE = "comprehensive"


class Address(BaseModel):
    """Postal address attached to a business record."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    street: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = Field(default=None, alias="postalCode")

    @model_validator(mode="before")
    @classmethod
    def _accept_aliases(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"street": data}
        if isinstance(data, dict):
            payload = dict(data)
            if "state" in payload and "province" not in payload:
                payload["province"] = payload.pop("state")
            if "postal_code" not in payload and "postalCode" not in payload and "zip" in payload:
                payload["postal_code"] = payload.pop("zip")
            return payload
        return data

    @field_validator("street", "city", "province", "postal_code", mode="before")
    @classmethod
    def _strip_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)

    def is_empty(self) -> bool:
        return not any((self.street, self.city, self.province, self.postal_code))


class BusinessRecord(BaseModel):
    """Snapshot of one business as collected from a source.

    Instances are immutable; the engine compares them without defensive copies.
    Missing data is ``None`` and blank strings are coerced to ``None`` so the two
    are never conflated. CamelCase keys (``businessNumber``, ``postalCode``,
    ``type``) are accepted when records arrive as mappings.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1, description="Stable record identifier")
    name: str = Field(..., min_length=1, description="Business name as supplied")
    business_type: Optional[str] = Field(
        default=None,
        alias="type",
        description="Informational categorical tag; never used for matching.",
    )
    business_number: Optional[str] = Field(default=None, alias="businessNumber")
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    address: Optional[Address] = None
    description: Optional[str] = None
    industry: Tuple[str, ...] = Field(default_factory=tuple)
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator(
        "business_type",
        "business_number",
        "phone",
        "email",
        "website",
        "description",
        mode="before",
    )
    @classmethod
    def _strip_optional(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        return _blank_to_none(value)

    @field_validator("address", mode="before")
    @classmethod
    def _empty_address(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        if isinstance(value, Address) and value.is_empty():
            return None
        if isinstance(value, dict) and not any(_blank_to_none(item) for item in value.values()):
            return None
        return value

    @field_validator("industry", mode="before")
    @classmethod
    def _coerce_industry(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            value = value.split(",")
        cleaned = []
        for item in value:
            if not isinstance(item, str):
                raise TypeError("industry tags must be strings")
            stripped = item.strip()
            if stripped and stripped not in cleaned:
                cleaned.append(stripped)
        return tuple(cleaned)


RECORD_FIELDS: Tuple[str, ...] = (
    "name",
    "business_type",
    "business_number",
    "phone",
    "email",
    "website",
    "address",
    "description",
    "industry",
    "confidence",
)
MATCH_FIELDS: Tuple[str, ...] = (
    "name",
    "business_number",
    "phone",
    "email",
    "website",
    "address",
    "industry",
)


class MatchDetails(BaseModel):
    """Per-field similarity scores; ``None`` means the field was not compared."""

    name_match: Optional[float] = None
    business_number_match: Optional[float] = None
    phone_match: Optional[float] = None
    email_match: Optional[float] = None
    website_match: Optional[float] = None
    address_match: Optional[float] = None
    industry_match: Optional[float] = None

    @classmethod
    def from_scores(cls, scores: Dict[str, float]) -> "MatchDetails":
        return cls(**{f"{field}_match": value for field, value in scores.items()})

    def scored_fields(self) -> Dict[str, float]:
        scored: Dict[str, float] = {}
        for field in MATCH_FIELDS:
            value = getattr(self, f"{field}_match")
            if value is not None:
                scored[field] = value
        return scored


class MatchResult(BaseModel):
    """Outcome of comparing a probe record with one candidate."""

    candidate_id: str
    score: float = Field(..., ge=0.0, le=1.0)
    confidence: Confidence
    algorithm: Algorithm
    match_details: MatchDetails = Field(default_factory=MatchDetails)
    suggested_action: MergeAction = MergeAction.KEEP_BOTH
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PairEvidence(BaseModel):
    """Pairwise match that linked two members of a duplicate group."""

    left_id: str
    right_id: str
    score: float = Field(..., ge=0.0, le=1.0)
    algorithm: Algorithm
    confidence: Confidence


class DuplicateGroup(BaseModel):
    """Cluster of batch records believed to describe one business."""

    group_id: str
    record_ids: List[str] = Field(..., min_length=1)
    canonical_id: str
    evidence: List[PairEvidence] = Field(default_factory=list)
    existing_ids: List[str] = Field(
        default_factory=list,
        description="Previously indexed records linked to this group.",
    )

    @model_validator(mode="after")
    def _canonical_is_member(self) -> "DuplicateGroup":
        if self.canonical_id not in self.record_ids:
            raise ValueError("canonical_id must be one of record_ids")
        return self

    @property
    def is_duplicate(self) -> bool:
        return len(self.record_ids) > 1


class MergedRecord(BusinessRecord):
    """Business record produced by collapsing a duplicate cluster."""

    merged_from: Tuple[str, ...] = Field(..., min_length=1)
    strategy: MergeStrategy
    provenance: Dict[str, Tuple[str, ...]] = Field(default_factory=dict)


class DataQualityIssue(BaseModel):
    """Batch input problem that excluded or replaced a record."""

    index: int = Field(..., ge=0)
    record_id: Optional[str] = None
    reason: str


__all__ = [
    "Address",
    "Algorithm",
    "BusinessRecord",
    "Confidence",
    "DataQualityIssue",
    "DuplicateGroup",
    "MATCH_FIELDS",
    "MatchDetails",
    "MatchResult",
    "MergeAction",
    "MergeStrategy",
    "MergedRecord",
    "PairEvidence",
    "RECORD_FIELDS",
]
