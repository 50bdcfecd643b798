"""Pluggable external scorer contract and its timeout guard."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Union, runtime_checkable

from business_dedupe.entities.core import BusinessRecord
from business_dedupe.utils.logging import get_logger


_LOGGER = get_logger(module=__name__)


@runtime_checkable
class PairScorer(Protocol):
    """External model producing a similarity scalar for two full records."""

    def score(self, record_a: BusinessRecord, record_b: BusinessRecord) -> float:
        ...


ScorerLike = Union[PairScorer, Callable[[BusinessRecord, BusinessRecord], float]]


@dataclass(frozen=True)
class ScorerOutcome:
    """Result of one guarded scorer call; ``score`` is ``None`` on failure."""

    score: Optional[float]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.score is not None


class _ScorerCall:
    """One scorer invocation run on its own thread."""

    def __init__(
        self,
        func: Callable[[BusinessRecord, BusinessRecord], Any],
        left: BusinessRecord,
        right: BusinessRecord,
    ) -> None:
        self._func = func
        self._left = left
        self._right = right
        self.result: Any = None
        self.error: Optional[Exception] = None

    def run(self) -> None:
        try:
            self.result = self._func(self._left, self._right)
        except Exception as exc:
            self.error = exc


class GuardedScorer:
    """Run an external scorer with symmetric input, clamped output and a deadline.

    Each call starts on a dedicated daemon thread at once and is awaited for at
    most ``timeout_seconds``, so the deadline never includes time spent waiting
    for a free worker. Timeouts and exceptions become a :class:`ScorerOutcome`
    carrying the error; the caller falls back to algorithmic scoring. A call
    that times out keeps running on its thread until the scorer returns.
    """

    def __init__(self, scorer: ScorerLike, *, timeout_seconds: float = 2.0) -> None:
        if isinstance(scorer, PairScorer):
            self._call = scorer.score
        elif callable(scorer):
            self._call = scorer
        else:
            raise TypeError("scorer must implement score(record_a, record_b) or be callable")
        self.scorer = scorer
        self.timeout_seconds = timeout_seconds

    def score(self, record_a: BusinessRecord, record_b: BusinessRecord) -> ScorerOutcome:
        left, right = (record_a, record_b) if record_a.id <= record_b.id else (record_b, record_a)
        call = _ScorerCall(self._call, left, right)
        worker = threading.Thread(target=call.run, name="pair-scorer", daemon=True)
        worker.start()
        worker.join(self.timeout_seconds)
        if worker.is_alive():
            _LOGGER.warning(
                "External scorer timed out; using algorithmic score",
                left_id=left.id,
                right_id=right.id,
                timeout_seconds=self.timeout_seconds,
            )
            return ScorerOutcome(score=None, error=f"timeout after {self.timeout_seconds:.3f}s")
        if call.error is not None:
            exc = call.error
            _LOGGER.warning(
                "External scorer failed; using algorithmic score",
                left_id=left.id,
                right_id=right.id,
                error=repr(exc),
            )
            return ScorerOutcome(score=None, error=f"{type(exc).__name__}: {exc}")

        raw = call.result
        try:
            value = float(raw)
        except (TypeError, ValueError):
            _LOGGER.warning("External scorer returned a non-numeric value", value=repr(raw))
            return ScorerOutcome(score=None, error=f"non-numeric score: {raw!r}")
        if math.isnan(value):
            return ScorerOutcome(score=None, error="non-numeric score: nan")
        return ScorerOutcome(score=min(1.0, max(0.0, value)))


__all__ = ["PairScorer", "ScorerLike", "ScorerOutcome", "GuardedScorer"]
