from concurrent.futures import ThreadPoolExecutor

from business_dedupe.config.policies import BlockingPolicy
from business_dedupe.deduplication.blocking import CandidateIndex, key_kind
from business_dedupe.deduplication.normalizer import FieldNormalizer, NormalizedRecord
from business_dedupe.entities.core import Address, BusinessRecord


def make_record(record_id: str, name: str, **fields) -> BusinessRecord:
    return BusinessRecord(id=record_id, name=name, **fields)


def build_index(**overrides) -> CandidateIndex:
    return CandidateIndex(BlockingPolicy(**overrides), FieldNormalizer())


def test_keys_cover_identifiers_and_name_forms():
    index = build_index()
    keys = index.keys_for(
        make_record(
            "r1",
            "Acme Roofing Ltd",
            business_number="123456789",
            phone="+1 613 555 0101",
            email="info@acmeroofing.ca",
            website="https://www.acmeroofing.ca/contact",
        )
    )
    assert "bn:123456789" in keys
    assert "phone:6135550101" in keys
    assert "email:info@acmeroofing.ca" in keys
    assert "domain:acmeroofing.ca" in keys
    assert "host:acmeroofing.ca" in keys
    assert "name:acmeroofing" in keys
    assert "prefix:acme" in keys
    kinds = {key_kind(key) for key in keys}
    assert kinds >= {"bn", "phone", "email", "domain", "host", "name", "prefix", "sound"}


def test_free_mail_domain_is_not_a_key():
    index = build_index()
    keys = index.keys_for(make_record("r1", "Joe's Lawn Care", email="joe.lawns@gmail.com"))
    assert "email:joe.lawns@gmail.com" in keys
    assert "domain:gmail.com" not in keys


def test_candidates_share_a_key_and_exclude_self():
    index = build_index()
    index.index(make_record("a", "Acme Roofing", phone="613-555-0101"))
    index.index(make_record("b", "Zenith Plumbing", phone="(613) 555-0101"))
    index.index(make_record("c", "Blue Harbour Cafe"))

    candidates = index.candidates(make_record("a", "Acme Roofing", phone="613-555-0101"))
    assert candidates == {"b"}


def test_record_without_comparable_fields_has_no_candidates():
    index = build_index()
    index.index(make_record("a", "Acme Roofing"))
    empty = NormalizedRecord(record=make_record("z", "placeholder"))
    assert index.keys_for(empty) == frozenset()
    assert index.candidates(empty) == set()


def test_reindex_is_idempotent_and_moves_keys():
    index = build_index()
    record = make_record("a", "Acme Roofing", phone="613-555-0101")
    first = index.index(record)
    second = index.index(record)
    assert first == second
    assert len(index) == 1

    index.index(make_record("a", "Acme Roofing", phone="613-555-0199"))
    assert index.candidates(make_record("probe", "Unrelated Name", phone="613-555-0101")) == set()
    assert index.candidates(make_record("probe", "Unrelated Name", phone="613-555-0199")) == {"a"}


def test_remove_drops_record_from_every_key():
    index = build_index()
    index.index(make_record("a", "Acme Roofing", email="info@acme.com"))
    assert "a" in index
    assert index.remove("a")
    assert "a" not in index
    assert not index.remove("a")
    assert index.candidates(make_record("probe", "Acme Roofing", email="info@acme.com")) == set()
    assert index.stats().total_keys == 0


def test_oversized_coarse_blocks_are_skipped():
    index = build_index(max_block_size=3)
    for number in range(5):
        index.index(make_record(f"r{number}", f"Alpha {number}"))

    assert index.candidates(make_record("probe", "Alpha 9")) == set()
    assert index.stats().purged_lookups > 0

    # precise keys are never skipped
    assert index.candidates(make_record("probe", "Alpha 3")) == {"r3"}

    roomy = build_index(max_block_size=10)
    for number in range(5):
        roomy.index(make_record(f"r{number}", f"Alpha {number}"))
    assert roomy.candidates(make_record("probe", "Alpha 9")) == {f"r{number}" for number in range(5)}


def test_candidate_cap_prefers_most_shared_keys():
    index = build_index(max_candidates=2)
    index.index(make_record("a", "Acme Roofing", phone="613-555-0101", email="info@acme.com"))
    index.index(make_record("b", "Acme Roofing", phone="613-555-0101"))
    index.index(make_record("c", "Acme Roofing"))
    index.index(make_record("d", "Acme Roofing"))

    probe = make_record("probe", "Acme Roofing", phone="613-555-0101", email="info@acme.com")
    assert index.candidates(probe) == {"a", "b"}


def test_phonetic_blocking_can_be_disabled():
    index = build_index(phonetic_enabled=False)
    keys = index.keys_for(make_record("a", "Smith Plumbing"))
    assert not any(key.startswith("sound:") for key in keys)

    phonetic = build_index()
    phonetic.index(make_record("a", "Smith Plumbing"))
    assert phonetic.candidates(make_record("b", "Smyth Plumbers")) == {"a"}


def test_concurrent_indexing_keeps_every_record():
    index = build_index(max_block_size=10_000)

    def index_range(start: int) -> None:
        for number in range(start, start + 200):
            index.index(
                make_record(f"r{number:04d}", f"Vendor {number}", email=f"sales{number}@shared.example")
            )

    with ThreadPoolExecutor(max_workers=8) as executor:
        list(executor.map(index_range, range(0, 1600, 200)))

    assert len(index) == 1600
    metrics = index.stats()
    assert metrics.records == 1600
    assert metrics.max_block_size == 1600
    probe = make_record("probe", "Other", email="x@shared.example")
    assert len(index.candidates(probe)) == 500


def test_postal_prefix_links_records_sharing_only_an_address():
    index = build_index()
    index.index(make_record("a", "Harbourfront Dental", address=Address(postal_code="M5V 2T6")))
    index.index(make_record("b", "Lakeside Bakery", address=Address(postal_code="K1A 0B1")))

    nearby = make_record("q", "Queen West Dentistry", address=Address(postal_code="M5V3L9"))
    assert "postal:M5V" in index.keys_for(nearby)
    assert index.candidates(nearby) == {"a"}


def test_crowded_postal_prefix_is_purged():
    index = build_index(max_block_size=3)
    for number in range(5):
        index.index(
            make_record(f"r{number}", f"Vendor {number}", address=Address(postal_code=f"M5V 1A{number}"))
        )
    newcomer = make_record("q", "Other Vendor", address=Address(postal_code="M5V 9Z9"))
    assert index.candidates(newcomer) == set()
    assert index.stats().purged_lookups > 0


def test_initialism_shares_a_block_with_full_name():
    index = build_index()
    index.index(make_record("full", "Indigenous Tech Solutions Ltd"))
    index.index(make_record("other", "Northern Lights Catering"))

    short = make_record("short", "I.T.S.")
    assert "initials:its" in index.keys_for(short)
    assert index.candidates(short) == {"full"}


def test_key_locks_are_released_after_use():
    index = build_index()
    for number in range(50):
        index.index(make_record(f"r{number}", f"Vendor {number}", email=f"sales{number}@vendor.example"))
    index.candidates(make_record("q", "Vendor 7", email="x@vendor.example"))
    assert index.stats().active_locks == 0

    for number in range(50):
        index.remove(f"r{number}")
    metrics = index.stats()
    assert metrics.total_keys == 0
    assert metrics.active_locks == 0
