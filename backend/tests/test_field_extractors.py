"""
Tests for merchant, date, product-list and category extraction.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from datetime import date

import pytest

from app.services.extractors.category import extract_category_candidates
from app.services.extractors.date import extract_date_candidates, normalize_year, parse_date_string
from app.services.extractors.merchant import (
    UNKNOWN_MERCHANT,
    extract_merchant_candidates,
    is_acceptable_merchant,
)
from app.services.extractors.products import extract_products_candidates, split_products
from app.utils.scoring import resolve, select_best_candidate
from stubs import COFFEE_SHOP, GEMINI_RESPONSE, PROBLEMATIC_RECEIPT


class TestMerchantExtraction:

    def test_first_line(self):
        candidates = extract_merchant_candidates("ABC STORE\nDate: 03/15/2023")
        assert resolve(candidates) == "ABC STORE"
        assert candidates[0].confidence == 50

    def test_first_line_skips_blank_lines(self):
        assert resolve(extract_merchant_candidates("\n\n   \nGROCERY MART\nTotal: 1.00")) == "GROCERY MART"

    def test_label_beats_first_line(self):
        text = "Receipt #42\nStore: Corner Cafe\nTotal 4.20"
        best = select_best_candidate(extract_merchant_candidates(text))
        assert best.value == "Corner Cafe"
        assert best.strategy_id == 'merchant_label'
        assert best.confidence == 90

    @pytest.mark.parametrize("line", ["Merchant: Corner Cafe", "Merchant Name: Corner Cafe",
                                      "name: Corner Cafe", "**Merchant:** Corner Cafe"])
    def test_label_variants(self, line):
        assert resolve(extract_merchant_candidates(f"Header\n{line}")) == "Corner Cafe"

    def test_preamble_rejected_in_favour_of_label(self):
        assert resolve(extract_merchant_candidates(GEMINI_RESPONSE)) == "Corner Cafe"

    def test_preamble_without_label_gives_nothing(self):
        candidates = extract_merchant_candidates("Here is the extracted information:\nTOTAL 3.00")
        assert candidates == []
        assert (resolve(candidates) or UNKNOWN_MERCHANT) == "Unknown"

    def test_long_first_line_rejected(self):
        text = "A" * 101 + "\nTOTAL 3.00"
        assert extract_merchant_candidates(text) == []

    def test_line_of_exactly_100_characters_accepted(self):
        assert is_acceptable_merchant("B" * 100)

    def test_long_label_value_falls_back_to_first_line(self):
        text = "SHOP\nMerchant: " + "x" * 120
        assert resolve(extract_merchant_candidates(text)) == "SHOP"

    def test_empty_text(self):
        assert extract_merchant_candidates("") == []


class TestDateExtraction:

    @pytest.mark.parametrize("text", [
        "Date: 15/03/2023",
        "15/03/2023",
        "15.03.2023",
        "2023-03-15",
        "15 Mar 2023",
    ])
    def test_supported_formats(self, text):
        assert resolve(extract_date_candidates(f"SHOP\n{text}\nTOTAL 1.00")) == date(2023, 3, 15)

    def test_month_name_first(self):
        assert resolve(extract_date_candidates("March 15, 2023")) == date(2023, 3, 15)

    def test_two_digit_year(self):
        assert resolve(extract_date_candidates("15/03/23")) == date(2023, 3, 15)
        assert normalize_year(23) == 2023
        assert normalize_year(2023) == 2023

    def test_ambiguous_slash_date_is_day_first(self):
        assert resolve(extract_date_candidates("03/04/2023")) == date(2023, 4, 3)

    def test_month_first_order(self):
        assert resolve(extract_date_candidates("03/04/2023", date_order='MDY')) == date(2023, 3, 4)

    def test_impossible_day_first_reads_month_first(self):
        assert resolve(extract_date_candidates("Date: 03/15/2023")) == date(2023, 3, 15)

    def test_label_has_priority(self):
        text = "Printed 2024-01-01\nDate: 15.03.2023"
        best = select_best_candidate(extract_date_candidates(text))
        assert best.strategy_id == 'date_label'
        assert best.value == date(2023, 3, 15)

    def test_strategies_in_priority_order(self):
        text = "2023-03-20\n15.03.2023\n14/03/2023"
        candidates = extract_date_candidates(text)
        assert [c.strategy_id for c in candidates] == ['date_slash', 'date_dot', 'date_iso']
        assert resolve(candidates) == date(2023, 3, 14)

    def test_invalid_dates_skipped(self):
        assert extract_date_candidates("99/99/2023") == []

    def test_sample_receipts(self):
        assert resolve(extract_date_candidates(COFFEE_SHOP)) == date(2023, 3, 15)
        assert resolve(extract_date_candidates(PROBLEMATIC_RECEIPT)) == date(2023, 12, 5)

    def test_parse_date_string(self):
        assert parse_date_string("15th Mar 2023") == date(2023, 3, 15)
        assert parse_date_string("no date") is None

    def test_no_date(self):
        assert extract_date_candidates("SHOP\nTOTAL 5.00") == []


class TestProductsAndCategory:

    def test_products_label(self):
        candidates = extract_products_candidates(GEMINI_RESPONSE)
        assert resolve(candidates) == ("Flat White", "Banana Bread", "Water")

    def test_products_absent(self):
        assert extract_products_candidates("Latte 4.50\nTOTAL 4.50") == []

    def test_split_products(self):
        assert split_products(" a, b ,, c ") == ("a", "b", "c")
        assert split_products(" , ") == ()

    def test_category_label(self):
        assert resolve(extract_category_candidates(GEMINI_RESPONSE)) == "Food & Dining"

    def test_category_absent(self):
        assert extract_category_candidates("SHOP\nTOTAL 4.50") == []
