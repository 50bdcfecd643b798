"""Deterministic merge strategies for duplicate clusters."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from business_dedupe.config.policies import MergePolicy
from business_dedupe.entities.core import (
    RECORD_FIELDS,
    Address,
    BusinessRecord,
    MergedRecord,
    MergeStrategy,
)
from business_dedupe.utils.logging import get_logger

from .normalizer import FieldNormalizer


_LOGGER = get_logger(module=__name__)

_ADDRESS_COMPONENTS = ("street", "city", "province", "postal_code")
_MIN_PHONE_DIGITS = 7
_MAX_PHONE_DIGITS = 15


def _populated(value: Any) -> bool:
    return value is not None and value != () and value != ""


def _value_length(value: Any) -> int:
    if isinstance(value, Address):
        return sum(len(getattr(value, component) or "") for component in _ADDRESS_COMPONENTS)
    if isinstance(value, tuple):
        return sum(len(str(item)) for item in value)
    if isinstance(value, str):
        return len(value)
    return 0


class RecordMerger:
    """Collapse a primary record and its duplicates into one :class:`MergedRecord`."""

    def __init__(
        self,
        policy: MergePolicy | None = None,
        normalizer: FieldNormalizer | None = None,
    ) -> None:
        self.policy = policy or MergePolicy()
        self.normalizer = normalizer or FieldNormalizer()

    # -- ranking -------------------------------------------------------------

    def confidence_of(self, record: BusinessRecord) -> float:
        if record.confidence is None:
            return self.policy.default_confidence
        return record.confidence

    def completeness(self, record: BusinessRecord) -> float:
        """Weighted count of populated fields; the address counts when it has a street."""

        weights = self.policy.completeness_weights
        total = 0.0
        for field_name in ("name", "business_number", "phone", "email", "website", "description", "industry"):
            if _populated(getattr(record, field_name)):
                total += getattr(weights, field_name)
        if record.address is not None and record.address.street:
            total += weights.address
        return total

    def _sort_key(self, record: BusinessRecord, position: int) -> Tuple[float, float, int]:
        return (-self.confidence_of(record), -self.completeness(record), position)

    def select_canonical(self, records: Sequence[BusinessRecord]) -> BusinessRecord:
        """Highest confidence, then completeness, then earliest position."""

        if not records:
            raise ValueError("select_canonical requires at least one record")
        position, winner = min(enumerate(records), key=lambda item: self._sort_key(item[1], item[0]))
        _LOGGER.debug("Selected canonical record", record_id=winner.id, position=position)
        return winner

    # -- value usability -----------------------------------------------------

    def _is_valid(self, field_name: str, value: Any) -> bool:
        if field_name == "email":
            normalized = self.normalizer.normalize_email(value)
            return normalized is not None and normalized.valid
        if field_name == "website":
            normalized = self.normalizer.normalize_website(value)
            return normalized is not None and normalized.valid
        if field_name == "phone":
            normalized = self.normalizer.normalize_phone(value)
            if normalized is None:
                return False
            return _MIN_PHONE_DIGITS <= len(normalized.digits) <= _MAX_PHONE_DIGITS
        return True

    def _ranked_sources(
        self, field_name: str, members: Sequence[BusinessRecord]
    ) -> List[BusinessRecord]:
        """Members holding a usable value for *field_name*, best first."""

        holders = [
            (index, member)
            for index, member in enumerate(members)
            if _populated(getattr(member, field_name))
        ]
        valid = [
            (index, member)
            for index, member in holders
            if self._is_valid(field_name, getattr(member, field_name))
        ]
        if valid:
            holders = valid
        holders.sort(
            key=lambda item: (
                -self.confidence_of(item[1]),
                -self.completeness(item[1]),
                -_value_length(getattr(item[1], field_name)),
                item[0],
            )
        )
        return [member for _, member in holders]

    # -- strategies ----------------------------------------------------------

    def _preserve_primary(
        self, members: Sequence[BusinessRecord]
    ) -> Tuple[Dict[str, Any], Dict[str, Tuple[str, ...]]]:
        values: Dict[str, Any] = {}
        provenance: Dict[str, Tuple[str, ...]] = {}
        for field_name in RECORD_FIELDS:
            for member in members:
                value = getattr(member, field_name)
                if _populated(value):
                    values[field_name] = value
                    provenance[field_name] = (member.id,)
                    break
        return values, provenance

    def _quality(
        self, members: Sequence[BusinessRecord]
    ) -> Tuple[Dict[str, Any], Dict[str, Tuple[str, ...]]]:
        values: Dict[str, Any] = {}
        provenance: Dict[str, Tuple[str, ...]] = {}
        for field_name in RECORD_FIELDS:
            ranked = self._ranked_sources(field_name, members)
            if not ranked:
                continue
            values[field_name] = getattr(ranked[0], field_name)
            provenance[field_name] = (ranked[0].id,)
        return values, provenance

    def _comprehensive(
        self, members: Sequence[BusinessRecord]
    ) -> Tuple[Dict[str, Any], Dict[str, Tuple[str, ...]]]:
        values, provenance = self._quality(members)

        tags: List[str] = []
        seen: set[str] = set()
        contributors: List[str] = []
        for member in members:
            added = False
            for tag in member.industry:
                folded = tag.casefold()
                if folded in seen:
                    continue
                seen.add(folded)
                tags.append(tag)
                added = True
            if added:
                contributors.append(member.id)
        if tags:
            values["industry"] = tuple(tags)
            provenance["industry"] = tuple(contributors)

        ranked = self._ranked_sources("address", members)
        if ranked:
            components: Dict[str, Optional[str]] = {}
            sources: List[str] = []
            for member in ranked:
                supplied = False
                for component in _ADDRESS_COMPONENTS:
                    value = getattr(member.address, component)
                    if value and not components.get(component):
                        components[component] = value
                        supplied = True
                if supplied:
                    sources.append(member.id)
            values["address"] = Address(**components)
            provenance["address"] = tuple(sources)

        scored = [member for member in members if member.confidence is not None]
        if scored:
            best = max(scored, key=lambda member: member.confidence)
            values["confidence"] = best.confidence
            provenance["confidence"] = (best.id,)
        return values, provenance

    def merge(
        self,
        primary: BusinessRecord,
        duplicates: Sequence[BusinessRecord],
        strategy: MergeStrategy = MergeStrategy.PRESERVE_PRIMARY,
    ) -> MergedRecord:
        """Apply *strategy* to the cluster formed by *primary* and *duplicates*."""

        members: List[BusinessRecord] = [primary]
        seen_ids = {primary.id}
        for duplicate in duplicates:
            if duplicate.id in seen_ids:
                continue
            seen_ids.add(duplicate.id)
            members.append(duplicate)

        handlers = {
            MergeStrategy.PRESERVE_PRIMARY: self._preserve_primary,
            MergeStrategy.QUALITY: self._quality,
            MergeStrategy.COMPREHENSIVE: self._comprehensive,
        }
        values, provenance = handlers[MergeStrategy(strategy)](members)
        merged = MergedRecord(
            id=primary.id,
            **values,
            merged_from=tuple(member.id for member in members),
            strategy=MergeStrategy(strategy),
            provenance=provenance,
        )
        _LOGGER.debug(
            "Merged records",
            primary=primary.id,
            duplicates=[member.id for member in members[1:]],
            strategy=MergeStrategy(strategy).value,
            field_count=len(values),
        )
        return merged


__all__ = ["RecordMerger"]
