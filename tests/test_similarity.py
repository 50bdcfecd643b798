import pytest

from business_dedupe.config.policies import AddressWeights
from business_dedupe.deduplication import algorithms
from business_dedupe.deduplication.normalizer import FieldNormalizer
from business_dedupe.entities.core import Address
from business_dedupe.utils.similarity import (
    edit_similarity,
    phonetic_token_similarity,
    token_jaccard_similarity,
)

NORMALIZER = FieldNormalizer()


def name(value: str):
    return NORMALIZER.normalize_name(value)


def test_edit_similarity_bounds():
    assert edit_similarity("acme", "acme") == 1.0
    assert edit_similarity("", "acme") == 0.0
    assert edit_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)


def test_token_similarity_ignores_order():
    assert token_jaccard_similarity(
        ("tech", "indigenous", "solutions"), ("indigenous", "tech", "solutions")
    ) == 1.0
    assert token_jaccard_similarity(("a", "b"), ()) == 0.0


def test_phonetic_similarity_catches_spelling_variants():
    assert phonetic_token_similarity(("smith", "plumbing"), ("smyth", "plumbing")) == 1.0
    partial = phonetic_token_similarity(("smith", "plumbing"), ("smith", "electric"))
    assert 0.0 < partial < 1.0


def test_name_string_similarity_uses_stripped_form():
    score = algorithms.name_string_similarity(
        name("Indigenous Tech Solutions"), name("Indigenous Tech Solution")
    )
    assert score == pytest.approx(0.96)
    assert algorithms.name_string_similarity(name("Acme Inc"), name("ACME Corporation")) == 1.0


def test_numeric_tokens_conflict():
    assert algorithms.numeric_tokens_conflict(name("Store 12"), name("Store 13"))
    assert not algorithms.numeric_tokens_conflict(name("Store 12"), name("Store 12 Inc"))
    assert not algorithms.numeric_tokens_conflict(name("Store 12"), name("Store"))


def test_phone_similarity_handles_country_codes():
    phone = NORMALIZER.normalize_phone
    assert algorithms.phone_similarity(phone("+1 (555) 123-4567"), phone("5551234567")) == 1.0
    assert algorithms.phone_similarity(phone("1234567"), phone("11234567")) == 0.0
    assert algorithms.phone_similarity(phone("123456"), phone("1123456")) == 0.0
    assert algorithms.phone_similarity(phone("5551234567"), phone("12345551234567")) == 0.0
    assert algorithms.phone_similarity(phone("5551234567"), None) == 0.0


def test_local_number_does_not_match_behind_an_area_code():
    phone = NORMALIZER.normalize_phone
    assert algorithms.phone_similarity(phone("123-4567"), phone("(416) 123-4567")) == 0.0
    assert algorithms.phone_similarity(phone("416-123-4567"), phone("+44 416 123 4567")) == 1.0


def test_initialism_matches_full_name():
    initialism = algorithms.name_initialism_similarity
    assert initialism(name("ITS"), name("Indigenous Tech Solutions")) == 0.9
    assert initialism(name("Indigenous Tech Solutions Ltd"), name("I.T.S.")) == 0.9
    assert initialism(name("ITS"), name("Indigenous Tech Services Inc"), score=0.7) == 0.7
    assert initialism(name("ABC"), name("Indigenous Tech Solutions")) == 0.0
    assert initialism(name("Store 12"), name("S12")) == 0.0
    assert initialism(name("ITS"), None) == 0.0


def test_email_similarity_partial_credit_for_shared_domain():
    email = NORMALIZER.normalize_email
    assert algorithms.email_exact_similarity(email("info@acme.com"), email("INFO@acme.com")) == 1.0
    assert algorithms.email_string_similarity(email("info@acme.com"), email("sales@acme.com")) == 0.5
    assert algorithms.email_string_similarity(email("info@acme.com"), email("info@other.com")) == 0.0


def test_website_similarity_subdomain_and_base_label():
    website = NORMALIZER.normalize_website
    assert algorithms.website_exact_similarity(website("www.acme.com"), website("https://acme.com/")) == 1.0
    assert algorithms.website_string_similarity(website("shop.acme.com"), website("acme.com")) == 0.9
    assert algorithms.website_string_similarity(website("acme.com"), website("acme.ca")) == pytest.approx(0.8)


def test_address_similarity_weights_shared_components():
    address = NORMALIZER.normalize_address
    left = address(Address(street="123 Main St", city="Ottawa"))
    right = address(Address(street="123 Main Street", city="ottawa"))
    assert algorithms.address_similarity(left, right) == 1.0

    postal_left = address(Address(postal_code="K1A 0B1"))
    postal_right = address(Address(postal_code="K1A 9Z9"))
    assert algorithms.address_similarity(postal_left, postal_right) == 0.5

    mixed_left = address(Address(street="1 Elm Rd", postal_code="K1A0B1"))
    mixed_right = address(Address(street="1 Elm Road", postal_code="M5V2T6"))
    weights = AddressWeights(street=0.5, postal_code=0.5)
    assert algorithms.address_similarity(mixed_left, mixed_right, weights) == pytest.approx(0.5)


def test_address_without_shared_components_scores_zero():
    address = NORMALIZER.normalize_address
    assert algorithms.address_similarity(address(Address(city="Ottawa")), address(Address(postal_code="K1A0B1"))) == 0.0


def test_algorithms_are_symmetric():
    pairs = [
        (name("Maple Leaf Bakery"), name("Maple Leaf Bakeries")),
        (name("Northern Lights"), name("Nothern Light")),
    ]
    for left, right in pairs:
        for scorer in (
            algorithms.name_string_similarity,
            algorithms.name_phonetic_similarity,
            algorithms.name_token_similarity,
        ):
            assert scorer(left, right) == scorer(right, left)


def test_identical_input_scores_one_and_missing_scores_zero():
    value = name("Acme Roofing")
    for _, scorer in algorithms.FIELD_ALGORITHMS["name"]:
        assert scorer(value, value) == 1.0
        assert scorer(value, None) == 0.0
