"""Top-level package for the business deduplication engine."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("business-dedupe")
except PackageNotFoundError:  # pragma: no cover - running from a source checkout
    __version__ = "0.1.0"

from .config.settings import Settings, get_settings
from .deduplication import (
    BatchResult,
    DedupOptions,
    DeduplicationEngine,
    DuplicateSearchResult,
    MergeOptions,
    OptionsValidationError,
)
from .entities import (
    Address,
    BusinessRecord,
    DataQualityIssue,
    DuplicateGroup,
    MatchResult,
    MergedRecord,
)

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "DeduplicationEngine",
    "DedupOptions",
    "MergeOptions",
    "OptionsValidationError",
    "DuplicateSearchResult",
    "BatchResult",
    "Address",
    "BusinessRecord",
    "DataQualityIssue",
    "DuplicateGroup",
    "MatchResult",
    "MergedRecord",
]
