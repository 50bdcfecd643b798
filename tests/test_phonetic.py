from business_dedupe.utils.phonetic import (
    double_metaphone,
    generate_phonetic_key,
    normalize_for_phonetic,
    token_codes,
)


def test_normalize_for_phonetic_strips_punctuation():
    assert normalize_for_phonetic("Roofing-Services!") == "roofing services"


def test_double_metaphone_consistency():
    code1 = double_metaphone("Acme Roofing")
    code2 = double_metaphone("acme roofing")
    assert code1 == code2
    assert len(code1) >= 1


def test_token_codes_keep_numbers_literally():
    codes = token_codes(("store", "12"))
    assert codes[-1] == "12"
    assert len(codes) == 2


def test_generate_phonetic_key_groups_spelling_variants():
    assert generate_phonetic_key("smith") == generate_phonetic_key("smyth")
    assert generate_phonetic_key("smith") != generate_phonetic_key("jones")
    assert generate_phonetic_key("") is None
    assert generate_phonetic_key("42") == "#42"
