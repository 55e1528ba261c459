import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from sheet_chat.records import RecordSet  # noqa: E402
from sheet_chat.search import Query, field_options, filter_records, search, summarize_search  # noqa: E402

CUSTOMERS = RecordSet(
    [
        {"name": "Alice", "city": "Paris", "age": 31, "active": True},
        {"name": "Bob", "city": "Alicante", "age": 45, "active": False},
        {"name": "Chloé", "city": "Lyon", "age": 2.5, "active": True},
    ]
)


class FilterTests(unittest.TestCase):
    def test_empty_query_returns_input_unchanged(self):
        self.assertIs(filter_records(CUSTOMERS, Query()), CUSTOMERS)
        self.assertIs(filter_records(CUSTOMERS, Query(text="", field="city")), CUSTOMERS)

    def test_match_is_case_insensitive(self):
        matches = search(RecordSet([{"name": "Alice"}]), "ali")
        self.assertEqual(len(matches), 1)
        self.assertEqual(len(search(CUSTOMERS, "PARIS")), 1)

    def test_all_fields_search_keeps_original_order(self):
        matches = search(CUSTOMERS, "ali")
        self.assertEqual([r["name"] for r in matches], ["Alice", "Bob"])

    def test_field_scoped_search(self):
        records = RecordSet([{"a": "foo", "b": "bar"}])
        self.assertEqual(len(search(records, "bar", "a")), 0)
        self.assertEqual(len(search(records, "bar", "b")), 1)

    def test_numbers_and_booleans_match_their_text(self):
        self.assertEqual([r["name"] for r in search(CUSTOMERS, "45")], ["Bob"])
        self.assertEqual(len(search(CUSTOMERS, "2.5", "age")), 1)
        self.assertEqual(len(search(CUSTOMERS, "fals", "active")), 1)

    def test_unknown_field_never_matches(self):
        self.assertEqual(len(search(CUSTOMERS, "a", "missing")), 0)

    def test_whitespace_is_part_of_the_needle(self):
        self.assertEqual(len(search(CUSTOMERS, " ")), 0)

    def test_filtering_does_not_modify_input(self):
        before = CUSTOMERS.to_list()
        search(CUSTOMERS, "lyon")
        self.assertEqual(CUSTOMERS.to_list(), before)


class FieldOptionsTests(unittest.TestCase):
    def test_options_start_with_all(self):
        self.assertEqual(field_options(CUSTOMERS), ["all", "name", "city", "age", "active"])

    def test_empty_records_only_offer_all(self):
        self.assertEqual(field_options(RecordSet()), ["all"])


class SummaryTests(unittest.TestCase):
    def test_label_counts_matches(self):
        matches = search(CUSTOMERS, "ali")
        summary = summarize_search(matches, len(CUSTOMERS), "ali")
        self.assertEqual(summary["label"], "2 of 3 records")
        self.assertEqual(summary["term"], "ali")

    def test_long_term_is_shortened(self):
        summary = summarize_search(RecordSet(), 3, "abcdefghijklmnop")
        self.assertEqual(summary["term"], "abcdefghij...")

    def test_no_term_without_text(self):
        self.assertIsNone(summarize_search(CUSTOMERS, 3)["term"])


if __name__ == "__main__":
    unittest.main()
