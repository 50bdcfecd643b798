import pytest

from business_dedupe.config.policies import MergePolicy, Policies
from business_dedupe.deduplication.engine import DeduplicationEngine
from business_dedupe.deduplication.merger import RecordMerger
from business_dedupe.deduplication.options import OptionsValidationError
from business_dedupe.entities.core import RECORD_FIELDS, Address, BusinessRecord, MergeStrategy


def make_record(record_id: str, name: str, **fields) -> BusinessRecord:
    return BusinessRecord(id=record_id, name=name, **fields)


@pytest.fixture
def merger() -> RecordMerger:
    return RecordMerger(MergePolicy())


def populated_fields(record: BusinessRecord) -> set:
    return {
        field
        for field in RECORD_FIELDS
        if getattr(record, field) is not None and getattr(record, field) != ()
    }


def test_preserve_primary_fills_gaps_in_duplicate_order(merger: RecordMerger) -> None:
    primary = make_record("p", "Acme", email="info@acme.com")
    first = make_record("d1", "Acme Inc", phone="613-555-0101", email="sales@acme.com")
    second = make_record("d2", "Acme Corp", phone="613-555-0199", website="acme.com")

    merged = merger.merge(primary, [first, second], MergeStrategy.PRESERVE_PRIMARY)

    assert merged.id == "p"
    assert merged.name == "Acme"
    assert merged.email == "info@acme.com"
    assert merged.phone == "613-555-0101"
    assert merged.website == "acme.com"
    assert merged.merged_from == ("p", "d1", "d2")
    assert merged.strategy is MergeStrategy.PRESERVE_PRIMARY
    assert merged.provenance["phone"] == ("d1",)
    assert merged.provenance["website"] == ("d2",)


def test_quality_prefers_valid_values_from_confident_sources(merger: RecordMerger) -> None:
    a = make_record("a", "Acme", email="not-an-email", confidence=0.3)
    b = make_record("b", "Acme Inc", email="info@acme.com", confidence=0.9)

    merged = merger.merge(a, [b], MergeStrategy.QUALITY)

    assert merged.email == "info@acme.com"
    assert merged.provenance["email"] == ("b",)
    assert merged.id == "a"


def test_quality_keeps_invalid_value_when_nothing_better(merger: RecordMerger) -> None:
    merged = merger.merge(make_record("a", "Acme", email="not-an-email"), [], MergeStrategy.QUALITY)
    assert merged.email == "not-an-email"


def test_quality_tie_breaks_on_value_length(merger: RecordMerger) -> None:
    a = make_record("a", "Acme", description="Roofing")
    b = make_record("b", "Acme", description="Residential and commercial roofing")

    merged = merger.merge(a, [b], MergeStrategy.QUALITY)

    assert merged.description == "Residential and commercial roofing"


def test_comprehensive_unions_industry_and_fills_address(merger: RecordMerger) -> None:
    a = make_record(
        "a",
        "Acme Roofing",
        industry=["Construction"],
        address=Address(street="1 Main St"),
        confidence=0.4,
    )
    b = make_record(
        "b",
        "Acme Roofing Ltd",
        industry=["construction", "Roofing"],
        address=Address(city="Ottawa", postal_code="K1A0B1"),
        confidence=0.7,
    )

    merged = merger.merge(a, [b], MergeStrategy.COMPREHENSIVE)

    assert merged.industry == ("Construction", "Roofing")
    assert merged.provenance["industry"] == ("a", "b")
    assert merged.address == Address(street="1 Main St", city="Ottawa", postal_code="K1A0B1")
    assert merged.provenance["address"] == ("b", "a")
    assert merged.confidence == 0.7


@pytest.mark.parametrize("strategy", list(MergeStrategy))
def test_every_strategy_keeps_all_populated_fields(merger: RecordMerger, strategy: MergeStrategy) -> None:
    primary = make_record("p", "Acme", confidence=0.2)
    duplicates = [
        make_record("d1", "Acme Inc", phone="613-555-0101", business_number="BN1"),
        make_record(
            "d2",
            "ACME",
            website="acme.com",
            description="Roofing",
            industry=["Roofing"],
            address=Address(city="Ottawa"),
        ),
    ]

    merged = merger.merge(primary, duplicates, strategy)

    expected = set()
    for record in [primary, *duplicates]:
        expected |= populated_fields(record)
    assert populated_fields(merged) >= expected


def test_merge_ignores_repeated_duplicate_ids(merger: RecordMerger) -> None:
    primary = make_record("p", "Acme")
    dup = make_record("d", "Acme Inc", phone="613-555-0101")
    merged = merger.merge(primary, [dup, dup, primary])
    assert merged.merged_from == ("p", "d")


def test_select_canonical_prefers_confidence_then_completeness(merger: RecordMerger) -> None:
    sparse = make_record("a", "Acme")
    confident = make_record("b", "Acme", confidence=0.8)
    assert merger.select_canonical([sparse, confident]).id == "b"

    complete = make_record("c", "Acme", business_number="BN1")
    assert merger.select_canonical([sparse, complete]).id == "c"

    twin = make_record("d", "Acme")
    assert merger.select_canonical([sparse, twin]).id == "a"

    with pytest.raises(ValueError):
        merger.select_canonical([])


def test_completeness_weights_business_number(merger: RecordMerger) -> None:
    assert merger.completeness(make_record("a", "Acme", business_number="BN1")) == 3.0
    assert merger.completeness(make_record("a", "Acme", address=Address(city="Ottawa"))) == 1.0
    assert merger.completeness(make_record("a", "Acme", address=Address(street="1 Main St"))) == 2.0


def test_engine_merge_businesses_accepts_option_spellings() -> None:
    engine = DeduplicationEngine(Policies())
    a = {"id": "a", "name": "Acme", "email": "not-an-email", "confidence": 0.3}
    b = {"id": "b", "name": "Acme Inc", "email": "info@acme.com", "confidence": 0.9}

    assert engine.merge_businesses(a, [b], {"strategy": "quality"}).email == "info@acme.com"
    assert engine.merge_businesses(a, [b], {"mergeStrategy": "QUALITY"}).strategy is MergeStrategy.QUALITY
    assert engine.merge_businesses(a, [b], {"preservePrimary": True}).email == "not-an-email"
    assert engine.merge_businesses(a, [b]).strategy is MergeStrategy.PRESERVE_PRIMARY

    with pytest.raises(OptionsValidationError):
        engine.merge_businesses(a, [b], {"strategy": "newest"})
    with pytest.raises(OptionsValidationError):
        engine.merge_businesses(a, [b], {"strategy": "quality", "preserve_primary": True})
