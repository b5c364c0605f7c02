from __future__ import annotations

import unittest
from decimal import Decimal

from shelf_audit.analytics.price_stats import StatSummary, median, summarize


class TestPriceStats(unittest.TestCase):
    def test_empty_input_is_all_zero(self):
        stats = summarize([])
        self.assertEqual(stats.count, 0)
        self.assertEqual(stats.avg, 0)
        self.assertEqual(stats.median, 0)
        self.assertEqual(stats.min, 0)
        self.assertEqual(stats.max, 0)
        self.assertEqual(stats, StatSummary.empty())

    def test_odd_and_even_medians(self):
        self.assertEqual(summarize([1, 2, 3]).median, Decimal(2))
        self.assertEqual(summarize([1, 2, 3, 4]).median, Decimal("2.5"))

    def test_input_order_does_not_matter(self):
        stats = summarize([Decimal("4.00"), Decimal("1.00"), Decimal("3.00"), Decimal("2.00")])
        self.assertEqual(stats.median, Decimal("2.5"))
        self.assertEqual(stats.min, Decimal("1.00"))
        self.assertEqual(stats.max, Decimal("4.00"))
        self.assertEqual(stats.count, 4)
        self.assertEqual(stats.avg, Decimal("2.5"))

    def test_full_precision_until_rounded(self):
        stats = summarize([Decimal("1"), Decimal("1"), Decimal("2")])
        self.assertNotEqual(stats.avg, Decimal("1.33"))
        self.assertEqual(stats.rounded().avg, Decimal("1.33"))
        row = stats.to_row()
        self.assertEqual(row["avg"], 1.33)
        self.assertEqual(row["median"], 1.0)
        self.assertEqual(row["count"], 3)

    def test_presentation_rounds_half_up(self):
        stats = summarize([Decimal("0.125")])
        self.assertEqual(stats.rounded().avg, Decimal("0.13"))

    def test_median_helper_on_sorted_values(self):
        self.assertEqual(median([]), 0)
        self.assertEqual(median([Decimal("5")]), Decimal("5"))


if __name__ == "__main__":
    unittest.main()
