import pytest
from pydantic import ValidationError

from business_dedupe.entities.core import (
    Address,
    Algorithm,
    BusinessRecord,
    Confidence,
    DuplicateGroup,
    MatchDetails,
    PairEvidence,
)


def test_blank_strings_become_none():
    record = BusinessRecord(id="r1", name="  Acme  ", phone="   ", email="", website=None)
    assert record.name == "Acme"
    assert record.phone is None
    assert record.email is None
    assert record.website is None


def test_camel_case_keys_and_int_ids():
    record = BusinessRecord.model_validate(
        {
            "id": 42,
            "name": "Acme",
            "businessNumber": "123456789",
            "type": "corporation",
            "address": {"street": "1 Main St", "state": "ON", "zip": "K1A 0B1"},
        }
    )
    assert record.id == "42"
    assert record.business_number == "123456789"
    assert record.business_type == "corporation"
    assert record.address == Address(street="1 Main St", province="ON", postal_code="K1A 0B1")


def test_required_fields():
    with pytest.raises(ValidationError):
        BusinessRecord(name="No Id")
    with pytest.raises(ValidationError):
        BusinessRecord(id="", name="Blank Id")
    with pytest.raises(ValidationError):
        BusinessRecord(id="r1", name="   ")
    with pytest.raises(ValidationError):
        BusinessRecord(id="r1", name="Acme", confidence=1.5)


def test_records_are_immutable():
    record = BusinessRecord(id="r1", name="Acme")
    with pytest.raises(ValidationError):
        record.name = "Other"


def test_industry_accepts_comma_string_and_dedupes():
    record = BusinessRecord(id="r1", name="Acme", industry="Roofing, Construction,Roofing, ")
    assert record.industry == ("Roofing", "Construction")


def test_empty_address_is_dropped():
    assert BusinessRecord(id="r1", name="Acme", address={"street": " ", "city": ""}).address is None
    assert BusinessRecord(id="r1", name="Acme", address="").address is None
    assert BusinessRecord(id="r1", name="Acme", address="1 Main St").address.street == "1 Main St"


def test_match_details_round_trip_scores():
    details = MatchDetails.from_scores({"name": 0.9, "phone": 1.0})
    assert details.name_match == 0.9
    assert details.email_match is None
    assert details.scored_fields() == {"name": 0.9, "phone": 1.0}


def test_duplicate_group_requires_member_canonical():
    evidence = PairEvidence(
        left_id="b", right_id="a", score=1.0, algorithm=Algorithm.FIELD_EXACT, confidence=Confidence.HIGH
    )
    group = DuplicateGroup(group_id="group:a", record_ids=["a", "b"], canonical_id="b", evidence=[evidence])
    assert group.is_duplicate

    with pytest.raises(ValidationError):
        DuplicateGroup(group_id="group:a", record_ids=["a"], canonical_id="z")
