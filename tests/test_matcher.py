import time

import pytest

from business_dedupe.config.policies import MatchingPolicy, Policies
from business_dedupe.deduplication.engine import DeduplicationEngine
from business_dedupe.deduplication.matcher import MatchScorer
from business_dedupe.deduplication.normalizer import FieldNormalizer
from business_dedupe.deduplication.options import DedupOptions
from business_dedupe.entities.core import Address, Algorithm, BusinessRecord, Confidence, MergeAction


NORMALIZER = FieldNormalizer()


def make_record(record_id: str, name: str, **fields) -> BusinessRecord:
    return BusinessRecord(id=record_id, name=name, **fields)


def compare(a: BusinessRecord, b: BusinessRecord, scorer: MatchScorer | None = None, **options):
    scorer = scorer or MatchScorer(MatchingPolicy())
    return scorer.compare(
        NORMALIZER.normalize_record(a),
        NORMALIZER.normalize_record(b),
        DedupOptions(**options).resolve(Policies()),
    )


def test_name_only_near_match_uses_string_algorithm():
    result = compare(
        make_record("1", "Indigenous Tech Solutions"),
        make_record("2", "Indigenous Tech Solution"),
    )
    assert result.candidate_id == "2"
    assert result.score == pytest.approx(0.96)
    assert result.confidence is Confidence.HIGH
    assert result.algorithm is Algorithm.STRING
    assert result.match_details.name_match == pytest.approx(0.96)
    assert result.match_details.phone_match is None
    assert result.suggested_action is MergeAction.MERGE


def test_exact_business_number_is_decisive():
    result = compare(
        make_record("1", "Company A", business_number="123456789"),
        make_record("2", "Company A Ltd", business_number="123456789"),
    )
    assert result.score == 1.0
    assert result.confidence is Confidence.HIGH
    assert result.algorithm is Algorithm.FIELD_EXACT
    assert result.metadata["decisive_field"] == "business_number"


def test_identifier_beats_name_disagreement():
    result = compare(
        make_record("1", "Northern Lights Catering", phone="(613) 555-0101"),
        make_record("2", "NL Events", phone="+1 613 555 0101"),
    )
    assert result.score == 1.0
    assert result.match_details.phone_match == 1.0
    assert result.match_details.name_match < 0.5


def test_conflicting_identifier_suggests_manual_review():
    result = compare(
        make_record("1", "Acme Builders", business_number="BN1", phone="613-555-0101"),
        make_record("2", "Acme Builders Ltd", business_number="BN1", phone="613-555-0199"),
    )
    assert result.score == 1.0
    assert result.suggested_action is MergeAction.MANUAL_REVIEW
    assert result.metadata["conflicting_fields"] == ["phone"]


def test_dissimilar_names_are_low_confidence():
    result = compare(make_record("1", "Alpha Consulting"), make_record("2", "Zeta Farms"))
    assert result.score < 0.5
    assert result.confidence is Confidence.LOW
    assert result.suggested_action is MergeAction.KEEP_BOTH


def test_mid_range_score_marks_duplicate():
    result = compare(make_record("1", "Maple Leaf Bakery"), make_record("2", "Maple Leaf Bakeries"))
    assert 0.8 <= result.score < 0.9
    assert result.confidence is Confidence.MEDIUM
    assert result.suggested_action is MergeAction.MARK_DUPLICATE


def test_numbered_names_are_capped():
    result = compare(make_record("1", "Store 12"), make_record("2", "Store 13"))
    assert result.match_details.name_match <= 0.5
    assert result.score <= 0.5


def test_comparison_is_symmetric():
    pairs = [
        (
            make_record("1", "Maple Leaf Bakery", email="info@mapleleaf.ca", industry=["Food"]),
            make_record("2", "Maple Leaf Bakeries", email="orders@mapleleaf.ca", industry=["food", "Retail"]),
        ),
        (
            make_record("1", "Blue Harbour Cafe", address=Address(street="12 Water St", city="Halifax")),
            make_record("2", "Blue Harbor Café", address=Address(street="12 Water Street", postal_code="B3H1A1")),
        ),
        (
            make_record("1", "Acme", website="shop.acme.com"),
            make_record("2", "Acme Corp", website="acme.com"),
        ),
    ]
    for left, right in pairs:
        forward = compare(left, right)
        backward = compare(right, left)
        assert forward.score == backward.score
        assert forward.algorithm == backward.algorithm
        assert forward.match_details == backward.match_details


def test_record_matches_itself_fully():
    record = make_record(
        "1",
        "Acme Roofing",
        phone="613-555-0101",
        email="info@acme.ca",
        address=Address(street="1 Main St", city="Ottawa"),
        industry=["Roofing"],
    )
    result = compare(record, record)
    assert result.score == 1.0
    assert all(score == 1.0 for score in result.match_details.scored_fields().values())


def test_check_fields_limit_comparison():
    result = compare(
        make_record("1", "Acme Roofing", business_number="BN1"),
        make_record("2", "Zenith Plumbing", business_number="BN1"),
        check_fields=["name"],
    )
    assert result.match_details.business_number_match is None
    assert result.score < 0.5


def test_algorithm_restriction():
    result = compare(
        make_record("1", "Smith Plumbing"),
        make_record("2", "Smyth Plumbing"),
        algorithms=["phonetic"],
    )
    assert result.algorithm is Algorithm.PHONETIC
    assert result.score == 1.0


def test_field_threshold_suppresses_contribution_but_reports_score():
    result = compare(
        make_record("1", "Indigenous Tech Solutions"),
        make_record("2", "Indigenous Tech Solution"),
        field_thresholds={"name": 0.99},
    )
    assert result.match_details.name_match == pytest.approx(0.96)
    assert result.score == 0.0


def test_custom_comparator_takes_precedence():
    result = compare(
        make_record("1", "Alpha"),
        make_record("2", "Omega"),
        custom_comparators={"name": lambda a, b: 1.0},
    )
    assert result.match_details.name_match == 1.0
    assert result.score == 1.0


def test_custom_comparator_output_is_clamped():
    result = compare(
        make_record("1", "Alpha"),
        make_record("2", "Omega"),
        custom_comparators={"name": lambda a, b: 7},
    )
    assert result.score == 1.0


def engine_with_scorer(scorer) -> DeduplicationEngine:
    return DeduplicationEngine(Policies(), scorer=scorer)


def test_deep_check_blends_external_score():
    with engine_with_scorer(lambda a, b: 0.2) as engine:
        result = engine.compare(
            make_record("1", "Indigenous Tech Solutions"),
            make_record("2", "Indigenous Tech Solution"),
            {"deep_check": True},
        )
    assert result.score == pytest.approx(0.58)
    assert result.metadata["ml_score"] == pytest.approx(0.2)
    assert result.metadata["algorithmic_score"] == pytest.approx(0.96)
    assert result.algorithm is Algorithm.STRING


def test_ml_only_uses_external_score():
    with engine_with_scorer(lambda a, b: 0.42) as engine:
        result = engine.compare(
            make_record("1", "Alpha"),
            make_record("2", "Omega"),
            {"deep_check": True, "algorithms": ["ml"]},
        )
    assert result.score == pytest.approx(0.42)
    assert result.algorithm is Algorithm.ML


def test_failing_scorer_falls_back_to_algorithms():
    def broken(a, b):
        raise RuntimeError("model unavailable")

    with engine_with_scorer(broken) as engine:
        result = engine.compare(
            make_record("1", "Indigenous Tech Solutions"),
            make_record("2", "Indigenous Tech Solution"),
            {"deep_check": True},
        )
    assert result.score == pytest.approx(0.96)
    assert "RuntimeError" in result.metadata["scorer_error"]


def test_slow_scorer_times_out():
    def slow(a, b):
        time.sleep(1.0)
        return 0.0

    with engine_with_scorer(slow) as engine:
        started = time.perf_counter()
        result = engine.compare(
            make_record("1", "Indigenous Tech Solutions"),
            make_record("2", "Indigenous Tech Solution"),
            {"deep_check": True, "scorer_timeout_seconds": 0.05},
        )
        elapsed = time.perf_counter() - started
    assert result.metadata["scorer_error"].startswith("timeout")
    assert result.score == pytest.approx(0.96)
    assert elapsed < 0.9


def test_external_scorer_sees_pairs_in_id_order():
    def asymmetric(a, b):
        return 0.9 if a.id == "1" else 0.1

    left = make_record("1", "Alpha")
    right = make_record("2", "Omega")
    with engine_with_scorer(asymmetric) as engine:
        forward = engine.compare(left, right, {"deep_check": True})
        backward = engine.compare(right, left, {"deep_check": True})
    assert forward.score == backward.score


def test_deep_check_without_scorer_is_noted():
    engine = DeduplicationEngine(Policies())
    result = engine.compare(make_record("1", "Alpha"), make_record("2", "Alpha"), {"deep_check": True})
    assert result.score == 1.0
    assert "deep_check_skipped" in result.metadata


def test_phone_formats_match_across_country_code():
    result = compare(
        make_record("1", "Harbour Dental", phone="+1 (555) 123-4567"),
        make_record("2", "Harbour Dental Clinic", phone="5551234567"),
    )
    assert result.match_details.phone_match == 1.0
    assert result.metadata["decisive_field"] == "phone"


def test_local_phone_is_not_decisive_against_area_coded_number():
    result = compare(
        make_record("1", "Alpha Plumbing", phone="123-4567"),
        make_record("2", "Zeta Consulting", phone="(416) 123-4567"),
    )
    assert result.match_details.phone_match == 0.0
    assert "decisive_field" not in result.metadata
    assert result.score < 0.5
    assert result.suggested_action is MergeAction.KEEP_BOTH


def test_initialism_links_to_full_name():
    result = compare(make_record("1", "ITS"), make_record("2", "Indigenous Tech Solutions Inc"))
    assert result.match_details.name_match == pytest.approx(0.9)
    assert result.algorithm is Algorithm.TOKEN


def test_initialism_score_comes_from_policy():
    scorer = MatchScorer(MatchingPolicy(initialism_score=0.6))
    result = compare(make_record("1", "Indigenous Tech Solutions"), make_record("2", "I.T.S."), scorer)
    assert result.match_details.name_match == pytest.approx(0.6)
    assert result.suggested_action is MergeAction.KEEP_BOTH
