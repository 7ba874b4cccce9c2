import unittest
from datetime import datetime

from order_lens.errors import CoercionError, StructuralError
from order_lens.fields import REVENUE, SETTLEMENT_DATE, STATUS, STORE_NAME
from order_lens.rows import Record, build_records


class BuildRecordsTests(unittest.TestCase):
    def test_vietnamese_headers_become_typed_records(self):
        result = build_records(
            ["Ngày đối soát", "Trạng thái", "Doanh thu"],
            [["15/03/2024", "Thành công", "150000"]],
        )
        self.assertEqual(len(result.records), 1)
        record = result.records[0]
        self.assertEqual(record.id, 0)
        self.assertEqual(record[SETTLEMENT_DATE], datetime(2024, 3, 15))
        self.assertEqual(record[STATUS], "Thành công")
        self.assertEqual(record[REVENUE], 150000)
        self.assertEqual(result.headers, [SETTLEMENT_DATE, STATUS, REVENUE])
        self.assertEqual(result.header_labels[SETTLEMENT_DATE], "Ngày đối soát")

    def test_ids_follow_sheet_order(self):
        result = build_records(["Trạng thái"], [["a"], ["b"], ["c"]])
        self.assertEqual([record.id for record in result.records], [0, 1, 2])
        self.assertEqual([record[STATUS] for record in result.records], ["a", "b", "c"])

    def test_no_data_rows_is_a_structural_error(self):
        with self.assertRaisesRegex(StructuralError, "no data rows"):
            build_records(["Trạng thái"], [])

    def test_short_rows_are_padded_with_defaults(self):
        result = build_records(["Trạng thái", "Doanh thu", "Ngày đối soát"], [["Thành công"]])
        record = result.records[0]
        self.assertEqual(record[REVENUE], 0)
        self.assertIsNone(record[SETTLEMENT_DATE])

    def test_missing_expected_headers_are_warned_not_fatal(self):
        result = build_records(["Trạng thái"], [["Thành công"]])
        self.assertIn(REVENUE, result.missing_headers)
        self.assertTrue(any("missing or misnamed" in warning for warning in result.warnings))

    def test_colliding_headers_keep_the_last_column(self):
        result = build_records(["Doanh thu", "DOANH  THU"], [["100", "200"]])
        self.assertEqual(result.records[0][REVENUE], 200)
        self.assertEqual(result.collisions[REVENUE], ["Doanh thu", "DOANH  THU"])
        self.assertEqual(result.headers, [REVENUE])
        self.assertTrue(any("normalise to 'doanh_thu'" in warning for warning in result.warnings))

    def test_unnamed_columns_are_skipped(self):
        result = build_records([None, "Trạng thái", "***"], [["x", "Thành công", "y"]])
        self.assertEqual(result.headers, [STATUS])
        self.assertEqual(len([w for w in result.warnings if "no usable name" in w]), 2)

    def test_unparsed_dates_are_counted(self):
        result = build_records(
            ["Ngày đối soát"],
            [["31/04/2024"], [""], ["15/03/2024"], [0]],
        )
        self.assertEqual(result.unparsed_dates, 1)
        self.assertTrue(any("1 date cells" in warning for warning in result.warnings))

    def test_store_names_are_distinct_in_first_seen_order(self):
        result = build_records(
            ["Tên cửa hàng"],
            [["Shop B"], ["Shop A"], [""], ["Shop B"], [None]],
        )
        self.assertEqual(result.store_names, ["Shop B", "Shop A"])

    def test_strict_mode_propagates_coercion_errors(self):
        with self.assertRaises(CoercionError):
            build_records(["Doanh thu"], [["abc"]], strict=True)


class RecordTests(unittest.TestCase):
    def test_record_is_read_only_mapping(self):
        record = Record(3, {STORE_NAME: "Shop A"})
        self.assertEqual(record.get(STORE_NAME), "Shop A")
        self.assertIsNone(record.get(REVENUE))
        with self.assertRaises(TypeError):
            record.values[STORE_NAME] = "Shop B"
        self.assertEqual(record.to_dict(), {"id": 3, STORE_NAME: "Shop A"})

    def test_record_does_not_alias_the_source_dict(self):
        source = {STORE_NAME: "Shop A"}
        record = Record(0, source)
        source[STORE_NAME] = "changed"
        self.assertEqual(record[STORE_NAME], "Shop A")


if __name__ == "__main__":
    unittest.main()
