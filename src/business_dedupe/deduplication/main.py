"""One-shot entry points built on :class:`DeduplicationEngine`."""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from business_dedupe.config.settings import Settings, get_settings
from business_dedupe.entities.core import MergedRecord
from business_dedupe.utils.logging import get_logger, logging_context

from .engine import BatchResult, DeduplicationEngine, DuplicateSearchResult
from .scorers import ScorerLike
from .store import RecordStore


_LOGGER = get_logger(module=__name__)


def build_engine(
    settings: Settings | None = None,
    *,
    store: RecordStore | None = None,
    scorer: ScorerLike | None = None,
    populate: bool = False,
) -> DeduplicationEngine:
    """Create an engine from settings, optionally indexing everything in *store*."""

    cfg = settings or get_settings()
    engine = DeduplicationEngine(cfg.policies, store=store, scorer=scorer)
    if populate:
        engine.populate_from_store()
    _LOGGER.debug(
        "Built deduplication engine",
        policy_version=cfg.policy_version,
        populated=populate,
    )
    return engine


def find_duplicates(
    record: Any,
    options: Any = None,
    *,
    store: RecordStore,
    settings: Settings | None = None,
    scorer: ScorerLike | None = None,
) -> DuplicateSearchResult:
    """Index *store* and look up duplicates of *record* in one call."""

    with build_engine(settings, store=store, scorer=scorer, populate=True) as engine:
        return engine.find_duplicates(record, options)


def deduplicate_batch(
    records: Iterable[Any],
    options: Any = None,
    *,
    store: RecordStore | None = None,
    settings: Settings | None = None,
    scorer: ScorerLike | None = None,
) -> BatchResult:
    """Cluster *records*, also matching against *store* when one is supplied."""

    with logging_context(step="deduplicate_batch"):
        with build_engine(
            settings, store=store, scorer=scorer, populate=store is not None
        ) as engine:
            return engine.deduplicate_batch(records, options)


def merge_businesses(
    primary: Any,
    duplicates: Sequence[Any],
    options: Any = None,
    *,
    settings: Settings | None = None,
) -> MergedRecord:
    """Merge *duplicates* into *primary* using policy defaults from *settings*."""

    with build_engine(settings) as engine:
        return engine.merge_businesses(primary, duplicates, options)


__all__ = ["build_engine", "find_duplicates", "deduplicate_batch", "merge_businesses"]
