"""Deduplication engine orchestrating normalization, blocking, matching and merging."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from pydantic import ValidationError

from business_dedupe.config.policies import Policies
from business_dedupe.config.settings import get_settings
from business_dedupe.entities.core import (
    BusinessRecord,
    DataQualityIssue,
    DuplicateGroup,
    MatchResult,
    MergedRecord,
    PairEvidence,
)
from business_dedupe.utils.helpers import chunked
from business_dedupe.utils.logging import get_logger, log_timing, logging_context

from .blocking import CandidateIndex
from .graph import MatchGraph
from .matcher import MatchScorer
from .merger import RecordMerger
from .normalizer import FieldNormalizer, NormalizedRecord
from .options import DedupOptions, MergeOptions, coerce_options
from .scorers import GuardedScorer, ScorerLike
from .store import InMemoryRecordStore, RecordStore


_LOGGER = get_logger(module=__name__)


class RecordValidationError(ValueError):
    """Raised when a supplied record cannot be coerced into a BusinessRecord."""


@dataclass
class DuplicateSearchResult:
    """Result of looking up one record against the candidate index."""

    duplicates: List[MatchResult]
    config: DedupOptions
    error: Optional[str] = None
    stats: Dict[str, object] = field(default_factory=dict)


@dataclass
class BatchResult:
    """Aggregate result from batch deduplication.

    ``total_processed`` counts accepted records, after malformed records and
    superseded repeats of an id have been set aside as issues.
    """

    total_processed: int
    duplicates_found: int
    unique_businesses: int
    groups: List[DuplicateGroup]
    merged: List[MergedRecord] = field(default_factory=list)
    issues: List[DataQualityIssue] = field(default_factory=list)
    stats: Dict[str, object] = field(default_factory=dict)


@dataclass
class _RecordMatches:
    record_id: str
    matches: List[Tuple[MatchResult, bool]]
    compared: int = 0
    unresolved: int = 0


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "record"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


class DeduplicationEngine:
    """Public entry point for duplicate detection and merging.

    The long-lived mutable state is the shared :class:`CandidateIndex` and the
    normalized forms of the records it holds; probes and batch records are
    normalized per call and never retained.
    Candidate ids are resolved through the record store at comparison time;
    ids that no longer resolve are skipped and counted as ``unresolved``.
    """

    def __init__(
        self,
        policies: Policies | None = None,
        *,
        store: RecordStore | None = None,
        scorer: ScorerLike | None = None,
    ) -> None:
        self.policies = policies if policies is not None else get_settings().policies
        self.normalizer = FieldNormalizer(self.policies.normalization)
        self.index = CandidateIndex(self.policies.blocking, self.normalizer)
        self.matcher = MatchScorer(self.policies.matching)
        self.merger = RecordMerger(self.policies.merge, self.normalizer)
        self.store: RecordStore = store if store is not None else InMemoryRecordStore()
        self.scorer = scorer
        self._guards: Dict[float, GuardedScorer] = {}
        self._guard_lock = threading.Lock()
        self._normalized: Dict[str, Tuple[BusinessRecord, NormalizedRecord]] = {}
        self._cache_lock = threading.Lock()

    # -- helpers -------------------------------------------------------------

    @staticmethod
    def coerce_record(raw: Any) -> BusinessRecord:
        if isinstance(raw, BusinessRecord):
            return raw
        if not isinstance(raw, Mapping):
            raise RecordValidationError(
                f"record must be a mapping or BusinessRecord, got {type(raw).__name__}"
            )
        try:
            return BusinessRecord.model_validate(dict(raw))
        except ValidationError as exc:
            raise RecordValidationError(_describe_validation_error(exc)) from exc

    def _normalize(self, record: BusinessRecord) -> NormalizedRecord:
        """Normalize *record*, reusing the cached form of an indexed record."""

        with self._cache_lock:
            cached = self._normalized.get(record.id)
        if cached is not None and (cached[0] is record or cached[0] == record):
            return cached[1]
        return self.normalizer.normalize_record(record)

    def _index_normalized(self, record: BusinessRecord) -> None:
        normalized = self._normalize(record)
        with self._cache_lock:
            self._normalized[record.id] = (record, normalized)
        self.index.index(normalized)

    def _guard(self, options: DedupOptions) -> Optional[GuardedScorer]:
        if self.scorer is None or not options.deep_check:
            return None
        timeout = float(options.scorer_timeout_seconds or self.policies.engine.scorer_timeout_seconds)
        with self._guard_lock:
            guard = self._guards.get(timeout)
            if guard is None:
                guard = GuardedScorer(self.scorer, timeout_seconds=timeout)
                self._guards[timeout] = guard
            return guard

    def _resolve_options(self, options: Any) -> DedupOptions:
        return coerce_options(options, DedupOptions).resolve(self.policies)

    # -- index management ----------------------------------------------------

    def index_record(self, record: Any) -> BusinessRecord:
        """Index *record*; it is also stored when the engine owns its store."""

        business = self.coerce_record(record)
        if isinstance(self.store, InMemoryRecordStore):
            self.store.put(business)
        self._index_normalized(business)
        return business

    def index_records(self, records: Iterable[Any]) -> int:
        count = 0
        for record in records:
            self.index_record(record)
            count += 1
        return count

    def populate_from_store(self) -> int:
        """Index every record currently listed by the record store."""

        count = 0
        with logging_context(step="populate_index"):
            for record in self.store.list():
                self._index_normalized(record)
                count += 1
            _LOGGER.info("Populated candidate index from store", records=count)
        return count

    def remove_record(self, record_id: str) -> bool:
        removed = self.index.remove(record_id)
        if isinstance(self.store, InMemoryRecordStore):
            self.store.delete(record_id)
        with self._cache_lock:
            self._normalized.pop(record_id, None)
        return removed

    def stats(self) -> Dict[str, object]:
        """Sizes of the engine's long-lived state."""

        metrics = self.index.stats()
        with self._cache_lock:
            cached = len(self._normalized)
        with self._guard_lock:
            guards = len(self._guards)
        return {
            "indexed_records": metrics.records,
            "index_keys": metrics.total_keys,
            "active_locks": metrics.active_locks,
            "cached_records": cached,
            "scorer_guards": guards,
        }

    # -- comparison ----------------------------------------------------------

    def compare(self, record_a: Any, record_b: Any, options: Any = None) -> MatchResult:
        """Compare two records directly, bypassing the index."""

        resolved = self._resolve_options(options)
        left = self._normalize(self.coerce_record(record_a))
        right = self._normalize(self.coerce_record(record_b))
        return self.matcher.compare(left, right, resolved, scorer=self._guard(resolved))

    def find_duplicates(self, record: Any, options: Any = None) -> DuplicateSearchResult:
        """Find indexed records that duplicate *record*.

        Options are validated before anything else and raise
        :class:`OptionsValidationError`. A malformed record yields a result with
        ``error`` set and no duplicates.
        """

        resolved = self._resolve_options(options)
        start_time = perf_counter()
        try:
            business = self.coerce_record(record)
        except RecordValidationError as exc:
            _LOGGER.warning("Rejected malformed record", error=str(exc))
            return DuplicateSearchResult(duplicates=[], config=resolved, error=str(exc))

        probe = self._normalize(business)
        candidate_ids = sorted(self.index.candidates(probe))
        guard = self._guard(resolved)
        threshold = resolved.threshold
        duplicates: List[MatchResult] = []
        unresolved = 0
        for candidate_id in candidate_ids:
            candidate = self.store.get(candidate_id)
            if candidate is None:
                unresolved += 1
                continue
            result = self.matcher.compare(probe, self._normalize(candidate), resolved, scorer=guard)
            if result.score >= threshold:
                duplicates.append(result)
        duplicates.sort(key=lambda item: (-item.score, item.candidate_id))

        elapsed_seconds = perf_counter() - start_time
        stats: Dict[str, object] = {
            "candidates": len(candidate_ids),
            "compared": len(candidate_ids) - unresolved,
            "unresolved": unresolved,
            "duplicates": len(duplicates),
            "elapsed_seconds": elapsed_seconds,
        }
        if unresolved:
            _LOGGER.warning(
                "Skipped candidate ids missing from the record store",
                record_id=business.id,
                unresolved=unresolved,
            )
        _LOGGER.debug("Duplicate search finished", record_id=business.id, **stats)
        return DuplicateSearchResult(duplicates=duplicates, config=resolved, stats=stats)

    # -- batch ---------------------------------------------------------------

    def _accept_records(
        self, records: Iterable[Any]
    ) -> Tuple[Dict[str, BusinessRecord], List[DataQualityIssue]]:
        accepted: Dict[str, BusinessRecord] = {}
        issues: List[DataQualityIssue] = []
        for position, raw in enumerate(records):
            try:
                business = self.coerce_record(raw)
            except RecordValidationError as exc:
                raw_id = raw.get("id") if isinstance(raw, Mapping) else None
                issues.append(
                    DataQualityIssue(
                        index=position,
                        record_id=str(raw_id) if raw_id not in (None, "") else None,
                        reason=str(exc),
                    )
                )
                continue
            if business.id in accepted:
                issues.append(
                    DataQualityIssue(
                        index=position,
                        record_id=business.id,
                        reason="repeated id; this occurrence replaces the earlier one",
                    )
                )
            accepted[business.id] = business
        return accepted, issues

    def _compare_record(
        self,
        probe: NormalizedRecord,
        batch_candidates: Sequence[NormalizedRecord],
        existing_ids: Sequence[str],
        options: DedupOptions,
        guard: Optional[GuardedScorer],
    ) -> _RecordMatches:
        outcome = _RecordMatches(record_id=probe.id, matches=[])
        for candidate in batch_candidates:
            result = self.matcher.compare(probe, candidate, options, scorer=guard)
            outcome.compared += 1
            if result.score >= options.threshold:
                outcome.matches.append((result, False))
        for candidate_id in existing_ids:
            existing = self.store.get(candidate_id)
            if existing is None:
                outcome.unresolved += 1
                continue
            result = self.matcher.compare(probe, self._normalize(existing), options, scorer=guard)
            outcome.compared += 1
            if result.score >= options.threshold:
                outcome.matches.append((result, True))
        return outcome

    def deduplicate_batch(self, records: Iterable[Any], options: Any = None) -> BatchResult:
        """Group *records* into duplicate clusters.

        Each record is compared with earlier batch records that share a blocking
        key and with records already in the shared index. Comparisons run on a
        thread pool in ``batch_size`` chunks; clusters are then formed by a
        sequential union-find pass in input order, so output is reproducible.
        """

        resolved = self._resolve_options(options)
        batch_id = uuid4().hex[:12]
        with logging_context(batch_id=batch_id):
            start_time = perf_counter()
            accepted, issues = self._accept_records(records)
            if issues:
                _LOGGER.warning(
                    "Batch input contained data quality issues",
                    issue_count=len(issues),
                    sample=[issue.reason for issue in issues[:3]],
                )
            ordered = list(accepted.values())
            positions = {record.id: position for position, record in enumerate(ordered)}
            normalized = [self._normalize(record) for record in ordered]
            _LOGGER.info("Batch deduplication started", records=len(ordered))

            local_index = CandidateIndex(self.policies.blocking, self.normalizer)
            plans: List[Tuple[NormalizedRecord, List[NormalizedRecord], List[str]]] = []
            candidate_total = 0
            with log_timing("candidate_planning", logger_=_LOGGER):
                for probe in normalized:
                    earlier = sorted(local_index.candidates(probe), key=positions.__getitem__)
                    existing = sorted(
                        candidate
                        for candidate in self.index.candidates(probe)
                        if candidate not in positions
                    )
                    candidate_total += len(earlier) + len(existing)
                    plans.append((probe, [normalized[positions[cid]] for cid in earlier], existing))
                    local_index.index(probe)

            guard = self._guard(resolved)
            outcomes: List[_RecordMatches] = []
            with ThreadPoolExecutor(
                max_workers=resolved.max_workers, thread_name_prefix="dedupe-batch"
            ) as executor:
                for chunk_number, chunk in enumerate(chunked(plans, resolved.batch_size)):
                    futures = [
                        executor.submit(
                            self._compare_record, probe, earlier, existing, resolved, guard
                        )
                        for probe, earlier, existing in chunk
                    ]
                    outcomes.extend(future.result() for future in futures)
                    _LOGGER.debug(
                        "Compared batch chunk",
                        chunk=chunk_number,
                        size=len(chunk),
                    )

            graph = MatchGraph()
            for record in ordered:
                graph.add_node(record.id)
            existing_linked = 0
            for outcome in outcomes:
                for result, is_existing in outcome.matches:
                    existing_linked += int(is_existing)
                    graph.add_edge(
                        PairEvidence(
                            left_id=outcome.record_id,
                            right_id=result.candidate_id,
                            score=result.score,
                            algorithm=result.algorithm,
                            confidence=result.confidence,
                        )
                    )

            groups, merged = self._build_groups(graph, ordered, positions, resolved)
            unique_businesses = len(groups)
            total_processed = len(ordered)
            elapsed_seconds = perf_counter() - start_time
            local_metrics = local_index.stats()
            stats: Dict[str, object] = {
                "batch_id": batch_id,
                "input": {
                    "accepted": total_processed,
                    "issues": len(issues),
                },
                "candidates": candidate_total,
                "comparisons": sum(outcome.compared for outcome in outcomes),
                "matches": sum(len(outcome.matches) for outcome in outcomes),
                "existing_matches": existing_linked,
                "unresolved": sum(outcome.unresolved for outcome in outcomes),
                "graph": graph.stats(),
                "blocking": {
                    "max_block_size": local_metrics.max_block_size,
                    "purged_lookups": local_metrics.purged_lookups,
                },
                "timing": {"elapsed_seconds": elapsed_seconds},
            }
            _LOGGER.info(
                "Batch deduplication finished",
                total_processed=total_processed,
                unique_businesses=unique_businesses,
                comparisons=stats["comparisons"],
                merged=len(merged),
                elapsed_seconds=elapsed_seconds,
            )
            return BatchResult(
                total_processed=total_processed,
                duplicates_found=total_processed - unique_businesses,
                unique_businesses=unique_businesses,
                groups=groups,
                merged=merged,
                issues=issues,
                stats=stats,
            )

    def _build_groups(
        self,
        graph: MatchGraph,
        ordered: Sequence[BusinessRecord],
        positions: Mapping[str, int],
        options: DedupOptions,
    ) -> Tuple[List[DuplicateGroup], List[MergedRecord]]:
        edges = graph.edges_by_component()
        clusters: List[Tuple[List[BusinessRecord], BusinessRecord, List[str]]] = []
        for component in graph.connected_components():
            members = sorted(
                (node for node in component if node in positions), key=positions.__getitem__
            )
            if not members:
                continue
            existing = sorted(node for node in component if node not in positions)
            records = [ordered[positions[member]] for member in members]
            clusters.append((records, self.merger.select_canonical(records), existing))
        clusters.sort(key=lambda cluster: positions[cluster[0][0].id])

        groups: List[DuplicateGroup] = []
        merged: List[MergedRecord] = []
        for records, canonical, existing in clusters:
            first_id = records[0].id
            groups.append(
                DuplicateGroup(
                    group_id=f"group:{first_id}",
                    record_ids=[record.id for record in records],
                    canonical_id=canonical.id,
                    evidence=edges.get(graph.component_of(first_id), []),
                    existing_ids=existing,
                )
            )
            if options.auto_merge and len(records) > 1:
                duplicates = [record for record in records if record.id != canonical.id]
                merged.append(self.merger.merge(canonical, duplicates, options.merge_strategy))
        return groups, merged

    # -- merging -------------------------------------------------------------

    def merge_businesses(
        self, primary: Any, duplicates: Sequence[Any], options: Any = None
    ) -> MergedRecord:
        """Merge *duplicates* into *primary* with the selected strategy."""

        merge_options = coerce_options(options, MergeOptions)
        strategy = merge_options.resolve_strategy(self.policies)
        primary_record = self.coerce_record(primary)
        duplicate_records = [self.coerce_record(item) for item in duplicates]
        return self.merger.merge(primary_record, duplicate_records, strategy)

    def close(self) -> None:
        with self._guard_lock:
            self._guards.clear()

    def __enter__(self) -> "DeduplicationEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = [
    "BatchResult",
    "DeduplicationEngine",
    "DuplicateSearchResult",
    "RecordValidationError",
]
