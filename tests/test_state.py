import unittest
from datetime import date

from order_lens.config import Settings
from order_lens.errors import NoMatchingDataError, StructuralError, UploadInProgressError
from order_lens.fields import DELIVERY_SUCCESS_DATE, REVENUE, STATUS, STORE_NAME
from order_lens.state import AppState, RecordFilter, apply_filter

HEADER = ["Tên cửa hàng", "Trạng thái", "Doanh thu", "Ngày giao thành công", "Ghi chú"]
ROWS = [
    ["Shop A", "Thành công", 100, "05/01/2024 10:00:00", "gọi trước"],
    ["Shop B", "Hoàn hàng", 50, "20/01/2024 11:00:00", ""],
    ["Shop A", "Thành công", 300, "03/02/2024 09:00:00", "Gọi sau 5h"],
]


def loaded_sheet(rows=None) -> dict:
    return {"header_row": HEADER, "data_rows": ROWS if rows is None else rows, "warnings": ["loader note"]}


class UploadLifecycleTests(unittest.TestCase):
    def test_successful_ingest_builds_records_and_statistics(self):
        state = AppState()
        self.assertTrue(state.ingest("orders.xlsx", loaded_sheet))
        self.assertFalse(state.loading)
        self.assertEqual(state.file_name, "orders.xlsx")
        self.assertEqual(len(state.raw_records), 3)
        self.assertEqual(state.view_records, state.raw_records)
        self.assertEqual(state.statistics.total_orders, 3)
        self.assertEqual(state.statistics.total_revenue, 450)
        self.assertEqual(state.store_names(), ["Shop A", "Shop B"])
        self.assertEqual(state.warnings[0], "loader note")
        self.assertEqual(state.error, "")

    def test_second_upload_while_loading_is_rejected(self):
        state = AppState()
        state.begin_upload("first.xlsx")
        with self.assertRaises(UploadInProgressError):
            state.begin_upload("second.xlsx")
        self.assertEqual(state.file_name, "first.xlsx")
        self.assertTrue(state.loading)

    def test_failed_upload_rolls_back_to_empty_state(self):
        state = AppState()
        state.ingest("good.xlsx", loaded_sheet)

        def broken():
            raise StructuralError("File has no data rows or no header row.")

        self.assertFalse(state.ingest("bad.xlsx", broken))
        self.assertFalse(state.loading)
        self.assertEqual(state.raw_records, ())
        self.assertEqual(state.view_records, ())
        self.assertIsNone(state.statistics)
        self.assertIsNone(state.build)
        self.assertIn("Could not process file", state.error)
        self.assertIn("no data rows", state.error)

    def test_strict_settings_turn_bad_cells_into_failed_uploads(self):
        state = AppState(settings=Settings(strict=True))
        rows = [["Shop A", "Thành công", "abc", "05/01/2024", ""]]
        self.assertFalse(state.ingest("strict.xlsx", lambda: loaded_sheet(rows)))
        self.assertIn("doanh_thu", state.error)

    def test_reset_clears_everything(self):
        state = AppState()
        state.ingest("orders.xlsx", loaded_sheet)
        state.reset()
        self.assertEqual(state.file_name, "")
        self.assertEqual(state.raw_records, ())
        self.assertIsNone(state.statistics)


class FilterTests(unittest.TestCase):
    def setUp(self):
        self.state = AppState()
        self.state.ingest("orders.xlsx", loaded_sheet)

    def test_set_filter_recomputes_statistics(self):
        stats = self.state.recompute(RecordFilter(allowed={STORE_NAME: frozenset({"Shop A"})}))
        self.assertEqual(stats.total_orders, 2)
        self.assertEqual(stats.total_revenue, 400)
        self.assertEqual(len(self.state.raw_records), 3)

    def test_text_filter_is_case_insensitive(self):
        stats = self.state.recompute(RecordFilter(contains={"ghi_chu": "GỌI"}))
        self.assertEqual(stats.total_orders, 2)

    def test_numeric_bounds_are_inclusive(self):
        stats = self.state.recompute(RecordFilter(minimum={REVENUE: 100}, maximum={REVENUE: 300}))
        self.assertEqual(stats.total_orders, 2)

    def test_date_bounds_are_calendar_days(self):
        criteria = RecordFilter(
            date_field=DELIVERY_SUCCESS_DATE,
            date_from=date(2024, 1, 5),
            date_to=date(2024, 1, 20),
        )
        stats = self.state.recompute(criteria)
        self.assertEqual(stats.total_orders, 2)

    def test_empty_view_clears_statistics(self):
        self.assertIsNone(self.state.recompute(RecordFilter(allowed={STATUS: frozenset({"Đang giao"})})))
        self.assertEqual(self.state.view_records, ())

    def test_reset_filters_restores_the_full_view(self):
        self.state.recompute(RecordFilter(allowed={STORE_NAME: frozenset({"Shop B"})}))
        stats = self.state.reset_filters()
        self.assertEqual(stats.total_orders, 3)
        self.assertTrue(self.state.criteria.is_empty())

    def test_apply_filter_returns_a_new_sequence(self):
        view = apply_filter(self.state.raw_records, RecordFilter(allowed={STORE_NAME: frozenset({"Shop B"})}))
        self.assertEqual([record[STORE_NAME] for record in view], ["Shop B"])
        self.assertEqual(len(self.state.raw_records), 3)

    def test_bucketed_errors_leave_state_untouched(self):
        stats_before = self.state.statistics
        with self.assertRaises(NoMatchingDataError):
            self.state.bucketed(DELIVERY_SUCCESS_DATE, "month", store_filter="Shop Z")
        self.assertIs(self.state.statistics, stats_before)
        table = self.state.bucketed(DELIVERY_SUCCESS_DATE, "month", store_filter="Shop A")
        self.assertEqual(table, (("01/2024", 100), ("02/2024", 300)))


if __name__ == "__main__":
    unittest.main()
