from __future__ import annotations

import unittest
from datetime import date

from opp_match import InvalidArgumentError, MatchFilters, matches, normalize_filters
from opp_match.core.vectors.vector_filters import filters_fingerprint, split_filters


class NormalizeFiltersTests(unittest.TestCase):
    def test_bare_values_become_eq_and_fields_are_sorted(self) -> None:
        normalized = normalize_filters({"type": "opportunity", "active": True})
        self.assertEqual(list(normalized), ["active", "type"])
        self.assertEqual(normalized["type"], {"$eq": "opportunity"})

    def test_order_insensitive_fingerprint(self) -> None:
        left = {"naicsCode": {"$in": ["541512", "541511"]}, "type": "opportunity"}
        right = {"type": {"$eq": "opportunity"}, "naicsCode": {"$in": ["541511", "541512"]}}
        self.assertEqual(filters_fingerprint(left), filters_fingerprint(right))

    def test_dates_are_rendered_as_iso_strings(self) -> None:
        normalized = normalize_filters({"responseDeadline": {"$gte": date(2026, 1, 1)}})
        self.assertEqual(normalized, {"responseDeadline": {"$gte": "2026-01-01"}})

    def test_rejects_unknown_operators_and_bad_operands(self) -> None:
        with self.assertRaises(InvalidArgumentError):
            normalize_filters({"type": {"$regex": "x"}})
        with self.assertRaises(InvalidArgumentError):
            normalize_filters({"type": {"$in": "opportunity"}})
        with self.assertRaises(InvalidArgumentError):
            normalize_filters({"type": {"$eq": ["a"]}})
        with self.assertRaises(ValueError):
            normalize_filters({"$and": []})

    def test_empty_filters(self) -> None:
        self.assertEqual(normalize_filters(None), {})
        self.assertEqual(normalize_filters({}), {})


class MatchesTests(unittest.TestCase):
    metadata = {
        "type": "opportunity",
        "naicsCode": "541511",
        "tags": ["cloud", "security"],
        "responseDeadline": "2026-02-15T17:00:00",
        "value": 250000,
        "active": True,
    }

    def test_scalar_operators(self) -> None:
        self.assertTrue(matches(self.metadata, {"type": "opportunity"}))
        self.assertFalse(matches(self.metadata, {"type": {"$ne": "opportunity"}}))
        self.assertTrue(matches(self.metadata, {"naicsCode": {"$in": ["541511", "541512"]}}))
        self.assertFalse(matches(self.metadata, {"naicsCode": {"$nin": ["541511"]}}))
        self.assertTrue(matches(self.metadata, {"value": {"$gt": 100000, "$lte": 250000}}))
        self.assertFalse(matches(self.metadata, {"value": {"$lt": 250000}}))

    def test_list_metadata_means_contains_and_overlaps(self) -> None:
        self.assertTrue(matches(self.metadata, {"tags": "cloud"}))
        self.assertTrue(matches(self.metadata, {"tags": {"$in": ["security", "hardware"]}}))
        self.assertFalse(matches(self.metadata, {"tags": {"$in": ["hardware"]}}))
        self.assertTrue(matches(self.metadata, {"tags": {"$nin": ["hardware"]}}))

    def test_iso_date_ranges_compare_lexicographically(self) -> None:
        in_q1 = {"responseDeadline": {"$gte": "2026-01-01", "$lte": "2026-03-31"}}
        in_q2 = {"responseDeadline": {"$gte": date(2026, 4, 1)}}
        self.assertTrue(matches(self.metadata, in_q1))
        self.assertFalse(matches(self.metadata, in_q2))

    def test_missing_field_and_type_mismatch(self) -> None:
        self.assertFalse(matches(self.metadata, {"state": "VA"}))
        self.assertFalse(matches(self.metadata, {"missing": {"$gte": 1}}))
        self.assertFalse(matches(self.metadata, {"naicsCode": {"$gt": 5}}))
        self.assertFalse(matches(self.metadata, {"active": {"$gt": 0}}))
        self.assertTrue(matches(None, None))


class SplitFiltersTests(unittest.TestCase):
    def test_non_numeric_ranges_are_residual(self) -> None:
        native, residual = split_filters(
            {
                "type": "opportunity",
                "value": {"$gte": 10},
                "responseDeadline": {"$gte": "2026-01-01"},
            }
        )
        self.assertEqual(native, {"type": {"$eq": "opportunity"}, "value": {"$gte": 10}})
        self.assertEqual(residual, {"responseDeadline": {"$gte": "2026-01-01"}})


class MatchFiltersTests(unittest.TestCase):
    def test_structured_filters_translate_to_dialect(self) -> None:
        filters = MatchFilters(
            type="opportunity",
            naics_codes=("541511",),
            tags=("cloud",),
            active=True,
            date_from=date(2026, 1, 1),
            date_to="2026-03-31",
            extra={"state": "VA"},
        ).to_filters()

        self.assertEqual(
            normalize_filters(filters),
            {
                "active": {"$eq": True},
                "naicsCode": {"$in": ["541511"]},
                "responseDeadline": {"$gte": "2026-01-01", "$lte": "2026-03-31"},
                "state": {"$eq": "VA"},
                "tags": {"$in": ["cloud"]},
                "type": {"$eq": "opportunity"},
            },
        )
        self.assertEqual(MatchFilters().to_filters(), {})


if __name__ == "__main__":
    unittest.main()
