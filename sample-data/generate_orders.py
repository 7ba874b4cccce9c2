#!/usr/bin/env python3
"""
Generates sample-data/orders_sample.xlsx, a carrier order export with the
quirks order-lens has to cope with.

Run from the repo root:
    python sample-data/generate_orders.py

Quirks baked in:
  Sheet "DonHang"
    - Vietnamese headers with diacritics, odd spacing and a slash
    - Dates as native cells, dd/MM/yyyy strings, ISO strings and serial numbers
    - One impossible date (31/04/2024) and one blank date
    - Amounts as numbers, "1.234.000" strings, "abc" and blanks
    - A blank store name and a blank status
    - A fully empty row in the middle
  Sheet "Ghi chu"
    - A second sheet that is ignored with a warning
"""

from datetime import datetime
from pathlib import Path

import openpyxl

OUTPUT = Path(__file__).parent / "orders_sample.xlsx"

wb = openpyxl.Workbook()

# ── Sheet 1: DonHang ─────────────────────────────────────────────────────────
ws = wb.active
ws.title = "DonHang"

headers = [
    "STT",
    "Ngày đối soát",
    "Thời gian tạo",
    "Ngày giao thành công",
    "Trạng thái",
    "Tên cửa hàng",
    "Tỉnh/Thành phố người nhận",
    "Nhân viên kinh doanh",
    "Doanh thu",
    "Phí vận chuyển",
    "Thu hộ",
    "SĐT người nhận",
    "Ghi chú giao hàng",
]
ws.append(headers)

data = [
    # stt  doi_soat               tao                         giao_thanh_cong         trang_thai     cua_hang    tinh        nv       doanh_thu    phi      thu_ho        sdt           ghi_chu
    [1,    datetime(2024, 1, 5),  "05/01/2024 08:15:00",      "2024-01-06 10:00:00",  "Thành công",  "Shop An",  "Hà Nội",   "Lan",   150000,      22000,   150000,       "0901000001", ""],
    [2,    "15/01/2024",          "14/01/2024 21:40:10",      "16/01/2024",           "Thành công",  "Shop An",  "Đà Nẵng",  "Lan",   "1.234.000", "30.000", "1.234.000",  "0901000002", "Gọi trước"],
    [3,    45322,                 45321.5,                    45323,                  "Hoàn hàng",   "Shop Bình", "Hà Nội",  "Minh",  "abc",       18000,   0,            "0901000003", ""],
    [None, None,                  None,                       None,                   None,          None,       None,       None,    None,        None,    None,         None,         None],
    [4,    "31/04/2024",          "2024-02-10T09:30:00",      "2024-02-11",           "Thành công",  "",         "Cần Thơ",  "",      200000,      25000,   200000,       "0901000004", ""],
    [5,    "01/03/2024",          "29/02/2024 17:05:00",      None,                   "",            "Shop Bình", "",        "Minh",  "99.500",    "",      "",           "0901000005", "Giao giờ hành chính"],
    [6,    "03/15/2024",          "15/03/2024 07:00:00",      "16/03/2024 12:30:45",  "Đang giao",   "Shop Chi", "TP Hồ Chí Minh", "Hoa", 310000,     27000,   310000,       "0901000006", ""],
]

for row in data:
    ws.append(row)

# ── Sheet 2: Ghi chu (ignored) ───────────────────────────────────────────────
ws_notes = wb.create_sheet("Ghi chu")
ws_notes.append(["Ghi chú"])
ws_notes.append(["Xuất từ hệ thống vận chuyển"])

wb.save(OUTPUT)
print(f"Created: {OUTPUT}")
