"""Pairwise record comparison combining field algorithms into one score."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, List, Optional, Tuple

from business_dedupe.config.policies import MatchingPolicy
from business_dedupe.entities.core import (
    MATCH_FIELDS,
    Algorithm,
    Confidence,
    MatchDetails,
    MatchResult,
    MergeAction,
)
from business_dedupe.utils.logging import get_logger

from .algorithms import (
    FIELD_ALGORITHMS,
    FieldAlgorithm,
    address_similarity,
    name_initialism_similarity,
    numeric_tokens_conflict,
    shared_address_components,
)
from .normalizer import NormalizedRecord
from .options import DedupOptions
from .scorers import GuardedScorer


_LOGGER = get_logger(module=__name__)


@dataclass(frozen=True)
class FieldScore:
    """Best score for one field and the algorithm that produced it."""

    field: str
    score: float
    algorithm: Algorithm
    weight: float
    contributes: bool = True

    @property
    def weighted(self) -> float:
        return self.weight * self.score if self.contributes else 0.0


@dataclass
class PairScore:
    """Algorithmic breakdown for one pair before result assembly."""

    fields: Dict[str, FieldScore] = field(default_factory=dict)
    decisive_field: Optional[str] = None
    conflicts: List[str] = field(default_factory=list)

    def overall(self) -> float:
        if not self.fields:
            return 0.0
        total_weight = sum(item.weight for item in self.fields.values())
        if total_weight <= 0.0:
            contributing = [item.score if item.contributes else 0.0 for item in self.fields.values()]
            return sum(contributing) / len(contributing)
        return min(1.0, sum(item.weighted for item in self.fields.values()) / total_weight)

    def leading_algorithm(self) -> Algorithm:
        if not self.fields:
            return Algorithm.STRING
        ordered = sorted(
            self.fields.values(),
            key=lambda item: (-item.weighted, MATCH_FIELDS.index(item.field)),
        )
        return ordered[0].algorithm


class MatchScorer:
    """Compare two normalized records under the matching policy.

    Per field, every allowed algorithm is evaluated and the maximum wins. The
    overall score is the policy-weighted mean over fields present on both sides;
    an exact strong-identifier match makes the score 1.0 with high confidence.
    """

    def __init__(self, policy: MatchingPolicy | None = None) -> None:
        self.policy = policy or MatchingPolicy()
        self._strong = tuple(self.policy.strong_identifiers)
        self._algorithms: Dict[str, Tuple[Tuple[Algorithm, FieldAlgorithm], ...]] = dict(FIELD_ALGORITHMS)
        self._algorithms["address"] = (
            (Algorithm.ADDRESS, partial(address_similarity, weights=self.policy.address_weights)),
        )
        self._algorithms["name"] = tuple(
            (algorithm, partial(scorer, score=self.policy.initialism_score))
            if scorer is name_initialism_similarity
            else (algorithm, scorer)
            for algorithm, scorer in FIELD_ALGORITHMS["name"]
        )

    # -- field scoring -------------------------------------------------------

    @staticmethod
    def _comparable(field_name: str, a: NormalizedRecord, b: NormalizedRecord) -> bool:
        if not a.has(field_name) or not b.has(field_name):
            return False
        if field_name == "address":
            return bool(shared_address_components(a.address, b.address))
        return True

    def _custom_score(
        self,
        field_name: str,
        a: NormalizedRecord,
        b: NormalizedRecord,
        options: DedupOptions,
    ) -> Optional[Tuple[float, Algorithm]]:
        comparator = options.custom_comparators.get(field_name)
        if comparator is None:
            return None
        raw_a = getattr(a.record, field_name)
        raw_b = getattr(b.record, field_name)
        if raw_a is None or raw_b is None or raw_a == () or raw_b == ():
            return None
        score = min(1.0, max(0.0, float(comparator(raw_a, raw_b))))
        allowed = [alg for alg, _ in self._algorithms[field_name] if options.allows(alg)]
        algorithm = allowed[0] if allowed else self._algorithms[field_name][0][0]
        return score, algorithm

    def _builtin_score(
        self,
        field_name: str,
        a: NormalizedRecord,
        b: NormalizedRecord,
        options: DedupOptions,
    ) -> Optional[Tuple[float, Algorithm]]:
        best: Optional[Tuple[float, Algorithm]] = None
        value_a = a.get(field_name)
        value_b = b.get(field_name)
        for algorithm, scorer in self._algorithms[field_name]:
            if not options.allows(algorithm):
                continue
            score = scorer(value_a, value_b)
            if best is None or score > best[0]:
                best = (score, algorithm)
        return best

    def score_fields(
        self, a: NormalizedRecord, b: NormalizedRecord, options: DedupOptions
    ) -> PairScore:
        """Score every field present on both records."""

        pair = PairScore()
        for field_name in MATCH_FIELDS:
            if not options.checks(field_name) or not self._comparable(field_name, a, b):
                continue
            if field_name in options.custom_comparators:
                scored = self._custom_score(field_name, a, b, options)
            else:
                scored = self._builtin_score(field_name, a, b, options)
            if scored is None:
                continue
            score, algorithm = scored
            if field_name == "name" and numeric_tokens_conflict(a.name, b.name):
                score = min(score, self.policy.numeric_mismatch_cap)
            minimum = options.field_thresholds.get(field_name)
            contributes = minimum is None or score >= minimum
            pair.fields[field_name] = FieldScore(
                field=field_name,
                score=score,
                algorithm=algorithm,
                weight=self.policy.weights.for_field(field_name),
                contributes=contributes,
            )
            if field_name in self._strong and algorithm is Algorithm.FIELD_EXACT:
                if score >= 1.0 and pair.decisive_field is None:
                    pair.decisive_field = field_name
                elif score <= 0.0:
                    pair.conflicts.append(field_name)
        return pair

    # -- result assembly -----------------------------------------------------

    def _confidence(self, score: float, decisive: bool) -> Confidence:
        if decisive or score >= self.policy.high_confidence:
            return Confidence.HIGH
        if score >= self.policy.medium_confidence:
            return Confidence.MEDIUM
        return Confidence.LOW

    def _suggest(self, score: float, threshold: float, conflicts: List[str]) -> MergeAction:
        if score < threshold:
            return MergeAction.KEEP_BOTH
        if conflicts:
            return MergeAction.MANUAL_REVIEW
        if score >= self.policy.auto_merge_threshold:
            return MergeAction.MERGE
        return MergeAction.MARK_DUPLICATE

    def compare(
        self,
        a: NormalizedRecord,
        b: NormalizedRecord,
        options: DedupOptions | None = None,
        *,
        scorer: GuardedScorer | None = None,
    ) -> MatchResult:
        """Compare *a* against candidate *b* and return the match for *b*."""

        options = options or DedupOptions()
        threshold = options.threshold if options.threshold is not None else self.policy.default_threshold
        metadata: Dict[str, Any] = {}

        use_ml = options.deep_check and options.allows(Algorithm.ML) and scorer is not None
        if options.deep_check and scorer is None and options.allows(Algorithm.ML):
            metadata["deep_check_skipped"] = "no external scorer configured"

        ml_score: Optional[float] = None
        if use_ml:
            outcome = scorer.score(a.record, b.record)
            if outcome.ok:
                ml_score = outcome.score
                metadata["ml_score"] = ml_score
            else:
                metadata["scorer_error"] = outcome.error

        field_options = options
        if options.ml_only:
            field_options = options.model_copy(update={"algorithms": None})
        pair = self.score_fields(a, b, field_options)
        algorithmic = pair.overall()
        algorithm = pair.leading_algorithm()
        score = algorithmic

        if ml_score is not None:
            if options.ml_only:
                score = ml_score
                algorithm = Algorithm.ML
            else:
                weight = self.policy.ml_weight
                score = (1.0 - weight) * algorithmic + weight * ml_score
                if weight * ml_score >= (1.0 - weight) * algorithmic:
                    algorithm = Algorithm.ML
            metadata["algorithmic_score"] = algorithmic

        decisive = pair.decisive_field is not None
        if decisive:
            score = 1.0
            algorithm = Algorithm.FIELD_EXACT
            metadata["decisive_field"] = pair.decisive_field
        if pair.conflicts:
            metadata["conflicting_fields"] = list(pair.conflicts)

        score = min(1.0, max(0.0, score))
        details = MatchDetails.from_scores({name: item.score for name, item in pair.fields.items()})
        result = MatchResult(
            candidate_id=b.id,
            score=score,
            confidence=self._confidence(score, decisive),
            algorithm=algorithm,
            match_details=details,
            suggested_action=self._suggest(score, threshold, pair.conflicts),
            metadata=metadata,
        )
        _LOGGER.debug(
            "Compared records",
            left_id=a.id,
            right_id=b.id,
            score=round(score, 4),
            algorithm=algorithm.value,
            decisive_field=pair.decisive_field,
        )
        return result


__all__ = ["FieldScore", "MatchScorer", "PairScore"]
