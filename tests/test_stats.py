import unittest
from datetime import date, datetime

from order_lens.errors import NoMatchingDataError, ValidationError
from order_lens.fields import (
    CITY,
    DELIVERY_SUCCESS_DATE,
    REVENUE,
    SALES_REP,
    SETTLEMENT_DATE,
    SHIPPING_FEE,
    STATUS,
    STORE_NAME,
    UNKNOWN_LABEL,
)
from order_lens.rows import Record
from order_lens.stats import Statistics, rank_counts, summarize, summarize_bucketed


def make_records(*rows: dict) -> list[Record]:
    return [Record(idx, row) for idx, row in enumerate(rows)]


class SummarizeTests(unittest.TestCase):
    def test_empty_input_gives_zero_statistics(self):
        self.assertEqual(summarize([]), Statistics())

    def test_totals_and_breakdowns(self):
        records = make_records(
            {STATUS: "Thành công", STORE_NAME: "Shop A", REVENUE: 100, SHIPPING_FEE: 10},
            {STATUS: "Thành công", STORE_NAME: "Shop B", REVENUE: 250.5, SHIPPING_FEE: 20},
            {STATUS: "Hoàn hàng", STORE_NAME: "Shop A", REVENUE: 0, SHIPPING_FEE: 15},
        )
        stats = summarize(records)
        self.assertEqual(stats.total_orders, 3)
        self.assertEqual(stats.total_revenue, 350.5)
        self.assertEqual(stats.total_shipping_fee, 45)
        self.assertEqual(stats.status_counts, (("Thành công", 2), ("Hoàn hàng", 1)))
        self.assertEqual(stats.store_counts, (("Shop A", 2), ("Shop B", 1)))

    def test_breakdown_counts_always_sum_to_total(self):
        records = make_records(
            {STATUS: "Thành công", CITY: "Hà Nội"},
            {STATUS: "", CITY: "Đà Nẵng"},
            {CITY: "Hà Nội"},
            {STATUS: "Đang giao", SALES_REP: "Lan"},
        )
        stats = summarize(records)
        for table in (stats.status_counts, stats.city_counts, stats.sales_rep_counts):
            self.assertEqual(sum(value for _, value in table), stats.total_orders)

    def test_blank_categories_use_the_unknown_label(self):
        stats = summarize(make_records({STATUS: ""}, {}))
        self.assertEqual(stats.status_counts, ((UNKNOWN_LABEL, 2),))

    def test_unknown_label_can_be_overridden(self):
        stats = summarize(make_records({STATUS: None}), unknown_label="(blank)")
        self.assertEqual(stats.status_counts, (("(blank)", 1),))

    def test_top_n_keeps_fifteen_of_twenty_stores(self):
        rows = []
        for idx in range(20):
            rows.extend({STORE_NAME: f"Shop {idx:02d}"} for _ in range(20 - idx))
        stats = summarize(make_records(*rows))
        self.assertEqual(len(stats.store_counts), 15)
        self.assertEqual(stats.store_counts[0], ("Shop 00", 20))
        self.assertEqual(stats.store_counts[-1], ("Shop 14", 6))

    def test_status_counts_are_not_truncated(self):
        rows = [{STATUS: f"status {idx}"} for idx in range(20)]
        self.assertEqual(len(summarize(make_records(*rows)).status_counts), 20)

    def test_monthly_revenue_and_daily_orders_are_chronological(self):
        records = make_records(
            {DELIVERY_SUCCESS_DATE: datetime(2024, 2, 3, 9), REVENUE: 50},
            {DELIVERY_SUCCESS_DATE: datetime(2024, 1, 20), REVENUE: 100},
            {DELIVERY_SUCCESS_DATE: None, SETTLEMENT_DATE: datetime(2024, 1, 5), REVENUE: 200},
            {DELIVERY_SUCCESS_DATE: datetime(2023, 12, 31), REVENUE: 10},
            {REVENUE: 999},
        )
        stats = summarize(records)
        self.assertEqual(stats.monthly_revenue, (("12/2023", 10), ("01/2024", 300), ("02/2024", 50)))
        self.assertEqual(
            [label for label, _ in stats.daily_orders],
            ["31/12/2023", "05/01/2024", "20/01/2024", "03/02/2024"],
        )
        self.assertEqual(stats.total_revenue, 1359)

    def test_rank_counts_keeps_first_seen_order_for_ties(self):
        from collections import Counter

        counter = Counter()
        for name in ["b", "a", "c", "a", "b"]:
            counter[name] += 1
        self.assertEqual(rank_counts(counter), (("b", 2), ("a", 2), ("c", 1)))


class SummarizeBucketedTests(unittest.TestCase):
    def setUp(self):
        self.records = make_records(
            {STORE_NAME: "Shop A", DELIVERY_SUCCESS_DATE: datetime(2024, 1, 10, 8), REVENUE: 100},
            {STORE_NAME: "Shop A", DELIVERY_SUCCESS_DATE: datetime(2024, 1, 25, 23, 59), REVENUE: 200},
            {STORE_NAME: "Shop B", DELIVERY_SUCCESS_DATE: datetime(2024, 2, 1), REVENUE: 40},
            {STORE_NAME: "Shop B", DELIVERY_SUCCESS_DATE: None, REVENUE: 1000},
            {STORE_NAME: "Shop A", DELIVERY_SUCCESS_DATE: datetime(2023, 12, 31), REVENUE: 7},
        )

    def test_month_buckets_in_chronological_order(self):
        table = summarize_bucketed(self.records, DELIVERY_SUCCESS_DATE, "month")
        self.assertEqual(table, (("12/2023", 7), ("01/2024", 300), ("02/2024", 40)))

    def test_store_filter(self):
        table = summarize_bucketed(self.records, DELIVERY_SUCCESS_DATE, "month", store_filter="Shop A")
        self.assertEqual(table, (("12/2023", 7), ("01/2024", 300)))

    def test_week_buckets_use_iso_weeks(self):
        table = summarize_bucketed(self.records, DELIVERY_SUCCESS_DATE, "week")
        self.assertEqual(table, (("52/2023", 7), ("02/2024", 100), ("04/2024", 200), ("05/2024", 40)))

    def test_count_instead_of_sum(self):
        table = summarize_bucketed(self.records, DELIVERY_SUCCESS_DATE, "month", value_field=None)
        self.assertEqual(table, (("12/2023", 1), ("01/2024", 2), ("02/2024", 1)))

    def test_custom_range_is_inclusive_by_calendar_day(self):
        table = summarize_bucketed(
            self.records,
            DELIVERY_SUCCESS_DATE,
            "custom",
            date_range=("10/01/2024", date(2024, 1, 25)),
        )
        self.assertEqual(table, (("10/01/2024", 100), ("25/01/2024", 200)))

    def test_custom_range_with_start_after_end_is_rejected(self):
        with self.assertRaises(ValidationError):
            summarize_bucketed(
                self.records,
                DELIVERY_SUCCESS_DATE,
                "custom",
                date_range=("01/02/2024", "01/01/2024"),
            )

    def test_custom_range_needs_both_dates(self):
        with self.assertRaises(ValidationError):
            summarize_bucketed(self.records, DELIVERY_SUCCESS_DATE, "custom", date_range=("01/01/2024",))
        with self.assertRaises(ValidationError):
            summarize_bucketed(self.records, DELIVERY_SUCCESS_DATE, "custom", date_range=("01/01/2024", "soon"))

    def test_non_date_field_and_unknown_mode_are_rejected(self):
        with self.assertRaises(ValidationError):
            summarize_bucketed(self.records, REVENUE, "month")
        with self.assertRaises(ValidationError):
            summarize_bucketed(self.records, DELIVERY_SUCCESS_DATE, "quarter")

    def test_nothing_left_after_filtering(self):
        with self.assertRaises(NoMatchingDataError):
            summarize_bucketed(self.records, DELIVERY_SUCCESS_DATE, "month", store_filter="Shop Z")
        with self.assertRaises(NoMatchingDataError):
            summarize_bucketed(
                self.records,
                DELIVERY_SUCCESS_DATE,
                "custom",
                date_range=("01/06/2024", "30/06/2024"),
            )

    def test_input_records_are_not_modified(self):
        before = [record.to_dict() for record in self.records]
        summarize_bucketed(self.records, DELIVERY_SUCCESS_DATE, "day", store_filter="Shop B")
        self.assertEqual([record.to_dict() for record in self.records], before)


if __name__ == "__main__":
    unittest.main()
