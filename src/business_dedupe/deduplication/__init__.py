"""Deduplication engine entry points and public interfaces."""

from .main import build_engine, deduplicate_batch, find_duplicates, merge_businesses
from .engine import (
    BatchResult,
    DeduplicationEngine,
    DuplicateSearchResult,
    RecordValidationError,
)
from .blocking import (
    BlockingStrategy,
    CandidateIndex,
    IdentifierBlocker,
    NameBlocker,
    PhoneticBlocker,
)
from .graph import MatchGraph, UnionFind
from .matcher import MatchScorer
from .merger import RecordMerger
from .normalizer import FieldNormalizer, NormalizedRecord
from .options import DedupOptions, MergeOptions, OptionsValidationError
from .scorers import GuardedScorer, PairScorer, ScorerOutcome
from .store import InMemoryRecordStore, RecordStore

__all__ = [
    "build_engine",
    "find_duplicates",
    "deduplicate_batch",
    "merge_businesses",
    "DeduplicationEngine",
    "DuplicateSearchResult",
    "BatchResult",
    "RecordValidationError",
    "BlockingStrategy",
    "CandidateIndex",
    "IdentifierBlocker",
    "NameBlocker",
    "PhoneticBlocker",
    "MatchGraph",
    "UnionFind",
    "MatchScorer",
    "RecordMerger",
    "FieldNormalizer",
    "NormalizedRecord",
    "DedupOptions",
    "MergeOptions",
    "OptionsValidationError",
    "GuardedScorer",
    "PairScorer",
    "ScorerOutcome",
    "InMemoryRecordStore",
    "RecordStore",
]
