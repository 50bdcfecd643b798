"""Domain entities for the deduplication engine."""

from .core import (
    MATCH_FIELDS,
    RECORD_FIELDS,
    Address,
    Algorithm,
    BusinessRecord,
    Confidence,
    DataQualityIssue,
    DuplicateGroup,
    MatchDetails,
    MatchResult,
    MergeAction,
    MergedRecord,
    MergeStrategy,
    PairEvidence,
)

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
