"""Configuration utilities for the deduplication engine."""

from .policies import (
    BlockingPolicy,
    EnginePolicy,
    MatchingPolicy,
    MergePolicy,
    NormalizationPolicy,
    Policies,
    load_policies,
)
from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "Policies",
    "load_policies",
    "NormalizationPolicy",
    "BlockingPolicy",
    "MatchingPolicy",
    "MergePolicy",
    "EnginePolicy",
]
