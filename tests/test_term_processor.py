"""
Tests for term normalization, critical-term extraction and synonym expansion.
"""

import pytest

from hybrid_rag.core.strategies.term_processor import (
    TermProcessor,
    contains_phrase,
    normalize,
    numeric_codes,
    tokenize,
)


class TestNormalize:

    def test_unifies_arabic_letter_variants(self):
        assert normalize("كيف") == "کیف"

    def test_converts_persian_and_arabic_digits(self):
        assert normalize("کد ۴۰۲۱ و ٣٤٥") == "کد 4021 و 345"

    def test_keeps_plus_minus_identifiers(self):
        assert normalize("تسویه T+1 و T-2") == "تسویه t+1 و t-2"

    def test_strips_punctuation_and_collapses_whitespace(self):
        assert normalize("  سلام،   دنیا؟! ") == "سلام دنیا"

    def test_strips_diacritics(self):
        assert normalize("ک\u0650تاب\u064f") == "کتاب"

    def test_zero_width_non_joiner_splits_tokens(self):
        assert tokenize("می\u200cشود") == ["می", "شود"]

    def test_empty_input(self):
        assert normalize("") == ""
        assert tokenize("") == []


class TestHelpers:

    def test_contains_phrase_is_whole_token(self):
        assert contains_phrase("رمز عبور جدید", "رمز عبور")
        assert not contains_phrase("رمزنگاری", "رمز")

    def test_numeric_codes_need_three_digits(self):
        assert numeric_codes("خطای 4021 در مرحله 12") == ["4021"]


class TestCriticalTerms:

    @pytest.fixture
    def processor(self):
        return TermProcessor()

    def test_extracts_codes_identifiers_and_long_tokens(self, processor):
        terms = processor.extract_critical_terms("خطای 4021 در T+1 با API")

        assert {"4021", "t+1", "api", "خطای"} <= terms
        assert "در" not in terms
        assert "با" not in terms

    def test_short_domain_keyword_is_critical(self, processor):
        terms = processor.extract_critical_terms("کد 12")

        assert "کد" in terms
        assert "12" not in terms

    def test_stop_words_never_critical(self, processor):
        terms = processor.extract_critical_terms("چطور باید این کار را انجام دهم")

        assert "چطور" not in terms
        assert "باید" not in terms
        assert "انجام" in terms

    def test_mixed_case_identifier(self, processor):
        assert "prx12" in processor.extract_critical_terms("سرور PRX12 قطع است")


class TestSynonymExpansion:

    @pytest.fixture
    def processor(self):
        return TermProcessor()

    def test_synonym_adds_canonical(self, processor):
        expanded = processor.expand_with_synonyms("پسورد را فراموش کردم")

        assert expanded.startswith("پسورد را فراموش کردم")
        assert "رمز عبور" in expanded

    def test_canonical_adds_first_two_missing_synonyms(self, processor):
        expanded = processor.expand_with_synonyms("چطور رمز عبور را ریست کنم؟")

        assert expanded == "چطور رمز عبور را ریست کنم؟ پسورد کلمه عبور بازنشانی"

    def test_no_match_returns_query_unchanged(self, processor):
        query = "هوای امروز"
        assert processor.expand_with_synonyms(query) == query

    def test_custom_tables(self):
        processor = TermProcessor(synonyms={"کاربر": ("یوزر",)})

        assert processor.expand_with_synonyms("یوزر جدید") == "یوزر جدید کاربر"

    def test_content_tokens_drop_stop_words(self, processor):
        assert processor.content_tokens("پنج مرحله دارد") == ["پنج", "مرحله"]
