"""Merge and engine execution policy models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class CompletenessWeights(BaseModel):
    """Points awarded per populated field when ranking record completeness."""

    name: float = Field(default=1.0, ge=0.0)
    business_number: float = Field(default=2.0, ge=0.0)
    phone: float = Field(default=1.0, ge=0.0)
    email: float = Field(default=1.0, ge=0.0)
    website: float = Field(default=1.0, ge=0.0)
    address: float = Field(default=1.0, ge=0.0)
    description: float = Field(default=1.0, ge=0.0)
    industry: float = Field(default=1.0, ge=0.0)


class MergePolicy(BaseModel):
    """Defaults for collapsing duplicate clusters into one record."""

    default_strategy: Literal["preserve_primary", "quality", "comprehensive"] = Field(
        default="preserve_primary"
    )
    default_confidence: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Confidence assumed for records that do not carry one.",
    )
    completeness_weights: CompletenessWeights = Field(default_factory=CompletenessWeights)


class EnginePolicy(BaseModel):
    """Execution limits for batch processing and external scoring."""

    batch_size: int = Field(default=100, ge=1)
    max_workers: int = Field(default=4, ge=1)
    scorer_timeout_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Upper bound on a single external scorer call before falling back.",
    )


__all__ = ["CompletenessWeights", "MergePolicy", "EnginePolicy"]
