"""Blocking keys and the concurrent candidate index."""

from __future__ import annotations

import threading
from collections import Counter, defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Set, Union

from business_dedupe.config.policies import BlockingPolicy
from business_dedupe.entities.core import BusinessRecord
from business_dedupe.utils.logging import get_logger
from business_dedupe.utils.phonetic import generate_phonetic_key

from .algorithms import initialism_form, name_initials
from .normalizer import FieldNormalizer, NormalizedRecord


_LOGGER = get_logger(module=__name__)

PRECISE_KINDS: FrozenSet[str] = frozenset({"bn", "phone", "email", "host", "name"})
COARSE_KINDS: FrozenSet[str] = frozenset({"domain", "prefix", "sound", "initials", "postal"})

_POSTAL_PREFIX_LENGTH = 3

RecordLike = Union[BusinessRecord, NormalizedRecord]


def key_kind(key: str) -> str:
    return key.split(":", 1)[0]


@dataclass
class IndexMetrics:
    """Snapshot statistics describing the candidate index."""

    records: int = 0
    total_keys: int = 0
    kind_counts: Dict[str, int] = field(default_factory=dict)
    max_block_size: int = 0
    largest_block: Optional[str] = None
    purged_lookups: int = 0
    active_locks: int = 0


class BlockingStrategy:
    """Base class for strategies deriving blocking keys from a normalized record."""

    def __init__(self, policy: BlockingPolicy, name: str) -> None:
        self.policy = policy
        self.name = name

    def keys(self, record: NormalizedRecord) -> List[str]:
        raise NotImplementedError


class IdentifierBlocker(BlockingStrategy):
    """Keys on business number, phone, email, email domain, website host and postal prefix."""

    def __init__(self, policy: BlockingPolicy) -> None:
        super().__init__(policy, name="identifier")
        self._shared_domains = frozenset(policy.shared_email_domains)

    def keys(self, record: NormalizedRecord) -> List[str]:
        keys: List[str] = []
        if record.business_number:
            keys.append(f"bn:{record.business_number}")
        if record.phone is not None and record.phone.key:
            keys.append(f"phone:{record.phone.key}")
        email = record.email
        if email is not None and email.valid:
            keys.append(f"email:{email.address}")
            if email.domain not in self._shared_domains:
                keys.append(f"domain:{email.domain}")
        if record.website is not None and record.website.valid:
            keys.append(f"host:{record.website.host}")
        postal_code = record.address.postal_code if record.address is not None else None
        if postal_code and len(postal_code) >= _POSTAL_PREFIX_LENGTH:
            keys.append(f"postal:{postal_code[:_POSTAL_PREFIX_LENGTH]}")
        return keys


class NameBlocker(BlockingStrategy):
    """Keys on the compact suffix-stripped name, its leading characters and its initials.

    A multi-word name is keyed by its initials and a one-word name by itself, so
    "ITS" and "Indigenous Tech Solutions" share an ``initials:`` block.
    """

    def __init__(self, policy: BlockingPolicy) -> None:
        super().__init__(policy, name="name")

    def keys(self, record: NormalizedRecord) -> List[str]:
        if record.name is None:
            return []
        compact = record.name.compact
        if not compact:
            return []
        keys = [f"name:{compact}", f"prefix:{compact[: self.policy.prefix_length]}"]
        initials = name_initials(record.name) or initialism_form(record.name)
        if initials:
            keys.append(f"initials:{initials}")
        return keys


class PhoneticBlocker(BlockingStrategy):
    """Keys on the phonetic code of the leading name token."""

    def __init__(self, policy: BlockingPolicy) -> None:
        super().__init__(policy, name="phonetic")

    def keys(self, record: NormalizedRecord) -> List[str]:
        if record.name is None or not record.name.tokens:
            return []
        code = generate_phonetic_key(record.name.tokens[0])
        return [f"sound:{code}"] if code else []


class _KeyLock:
    """A per-key lock plus the number of threads currently holding or awaiting it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class CandidateIndex:
    """Maps blocking keys to record ids and answers candidate lookups.

    Writes to a key's id-set are serialized by a lock owned by that key, so
    writers touching different keys never contend. Reads snapshot each key's set
    under the same lock and may miss a write that is still in flight. Key locks
    live only while some thread uses them. Coarse keys (email domain, postal
    prefix, name prefix, initials, phonetic code) whose set has grown beyond
    ``max_block_size`` are skipped during lookups.
    """

    def __init__(
        self,
        policy: BlockingPolicy | None = None,
        normalizer: FieldNormalizer | None = None,
        *,
        strategies: Sequence[BlockingStrategy] | None = None,
    ) -> None:
        self.policy = policy or BlockingPolicy()
        self.normalizer = normalizer or FieldNormalizer()
        if strategies is None:
            strategies = [IdentifierBlocker(self.policy), NameBlocker(self.policy)]
            if self.policy.phonetic_enabled:
                strategies.append(PhoneticBlocker(self.policy))
        self.strategies = list(strategies)
        self._blocks: Dict[str, Set[str]] = {}
        self._key_locks: Dict[str, _KeyLock] = {}
        self._record_keys: Dict[str, FrozenSet[str]] = {}
        self._registry_lock = threading.Lock()
        self._purged_lookups = 0

    # -- key derivation ------------------------------------------------------

    def _normalized(self, record: RecordLike) -> NormalizedRecord:
        if isinstance(record, NormalizedRecord):
            return record
        return self.normalizer.normalize_record(record)

    def keys_for(self, record: RecordLike) -> FrozenSet[str]:
        normalized = self._normalized(record)
        keys: Set[str] = set()
        for strategy in self.strategies:
            keys.update(strategy.keys(normalized))
        return frozenset(keys)

    @contextmanager
    def _hold(self, key: str) -> Iterator[None]:
        with self._registry_lock:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = _KeyLock()
                self._key_locks[key] = entry
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._registry_lock:
                entry.users -= 1
                if entry.users == 0 and self._key_locks.get(key) is entry:
                    del self._key_locks[key]

    # -- writes --------------------------------------------------------------

    def index(self, record: RecordLike) -> FrozenSet[str]:
        """Add *record* under all of its keys, moving it off keys it no longer has."""

        normalized = self._normalized(record)
        record_id = normalized.id
        with self._hold(f"\x00id:{record_id}"):
            new_keys = self.keys_for(normalized)
            with self._registry_lock:
                old_keys = self._record_keys.get(record_id, frozenset())
            for key in old_keys - new_keys:
                self._discard(key, record_id)
            for key in new_keys - old_keys:
                with self._hold(key):
                    self._blocks.setdefault(key, set()).add(record_id)
            with self._registry_lock:
                self._record_keys[record_id] = new_keys
        _LOGGER.debug("Indexed record", record_id=record_id, key_count=len(new_keys))
        return new_keys

    def index_many(self, records: Iterable[RecordLike]) -> int:
        count = 0
        for record in records:
            self.index(record)
            count += 1
        return count

    def _discard(self, key: str, record_id: str) -> None:
        with self._hold(key):
            members = self._blocks.get(key)
            if members is None:
                return
            members.discard(record_id)
            if not members:
                del self._blocks[key]

    def remove(self, record_id: str) -> bool:
        """Drop *record_id* from every key; returns False when it was not indexed."""

        with self._hold(f"\x00id:{record_id}"):
            with self._registry_lock:
                keys = self._record_keys.pop(record_id, None)
            if keys is None:
                return False
            for key in keys:
                self._discard(key, record_id)
        _LOGGER.debug("Removed record from index", record_id=record_id)
        return True

    def clear(self) -> None:
        with self._registry_lock:
            self._blocks.clear()
            self._record_keys.clear()
            self._purged_lookups = 0

    # -- reads ---------------------------------------------------------------

    def _snapshot(self, key: str) -> Optional[FrozenSet[str]]:
        if key not in self._blocks:
            return frozenset()
        with self._hold(key):
            members = self._blocks.get(key)
            if not members:
                return frozenset()
            if key_kind(key) in COARSE_KINDS and len(members) > self.policy.max_block_size:
                return None
            return frozenset(members)

    def candidates(self, record: RecordLike, *, exclude_id: str | None = None) -> Set[str]:
        """Return ids sharing at least one key with *record*, excluding its own id.

        At most ``max_candidates`` ids are returned, preferring ids that share
        the most keys and then the smallest id.
        """

        normalized = self._normalized(record)
        own_id = exclude_id if exclude_id is not None else normalized.id
        hits: Counter = Counter()
        purged = 0
        for key in sorted(self.keys_for(normalized)):
            members = self._snapshot(key)
            if members is None:
                purged += 1
                continue
            for member in members:
                if member != own_id:
                    hits[member] += 1
        if purged:
            with self._registry_lock:
                self._purged_lookups += purged
        if len(hits) <= self.policy.max_candidates:
            return set(hits)
        ranked = sorted(hits.items(), key=lambda item: (-item[1], item[0]))
        _LOGGER.debug(
            "Candidate set truncated",
            record_id=normalized.id,
            candidates=len(hits),
            limit=self.policy.max_candidates,
        )
        return {member for member, _ in ranked[: self.policy.max_candidates]}

    def __contains__(self, record_id: object) -> bool:
        with self._registry_lock:
            return record_id in self._record_keys

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._record_keys)

    def stats(self) -> IndexMetrics:
        with self._registry_lock:
            keys = list(self._blocks.keys())
            records = len(self._record_keys)
            purged = self._purged_lookups
            active_locks = len(self._key_locks)
        metrics = IndexMetrics(
            records=records,
            total_keys=len(keys),
            purged_lookups=purged,
            active_locks=active_locks,
        )
        kind_counts: Dict[str, int] = defaultdict(int)
        for key in keys:
            kind_counts[key_kind(key)] += 1
            members = self._snapshot_size(key)
            if members > metrics.max_block_size:
                metrics.max_block_size = members
                metrics.largest_block = key
        metrics.kind_counts = dict(sorted(kind_counts.items()))
        return metrics

    def _snapshot_size(self, key: str) -> int:
        with self._hold(key):
            return len(self._blocks.get(key, ()))


__all__ = [
    "BlockingStrategy",
    "CandidateIndex",
    "COARSE_KINDS",
    "IdentifierBlocker",
    "IndexMetrics",
    "NameBlocker",
    "PhoneticBlocker",
    "PRECISE_KINDS",
    "key_kind",
]
