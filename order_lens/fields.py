"""Canonical order fields, header normalisation and the field classification table."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

DATE = "date"
CURRENCY = "currency"
NUMBER = "number"
TEXT = "text"

UNKNOWN_LABEL = "Không xác định"

# ── Canonical keys (normalised Vietnamese export headers) ──────────────────────
SETTLEMENT_DATE = "ngay_doi_soat"
CREATED_AT = "thoi_gian_tao"
PICKUP_AT = "thoi_gian_lay_hang"
PAYMENT_CONFIRMED_DATE = "ngay_xac_nhan_thu_tien"
DELIVERY_SUCCESS_DATE = "ngay_giao_thanh_cong"

COLLECTED_AMOUNT = "thu_ho"
ORIGINAL_COLLECTED_AMOUNT = "thu_ho_ban_dau"
DECLARED_VALUE = "tri_gia"
SHIPPING_FEE = "phi_van_chuyen"
PARTNER_FEE = "phi_doi_tac_thu"
REVENUE = "doanh_thu"
CUSTOMER_WEIGHT = "khoi_luong_khach_hang"

STATUS = "trang_thai"
STORE_NAME = "ten_cua_hang"
CITY = "tinhthanh_pho_nguoi_nhan"
SALES_REP = "nhan_vien_kinh_doanh"
REGION_GROUP = "nhom_vung_mien"
CARRIER = "don_vi_van_chuyen"
ORDER_SOURCE = "nguon_len_don"


@dataclass(frozen=True)
class FieldSpec:
    key: str
    field_class: str
    shows_time: bool = False
    set_filter: bool = False


FIELD_SPECS: dict[str, FieldSpec] = {
    spec.key: spec
    for spec in (
        FieldSpec(SETTLEMENT_DATE, DATE),
        FieldSpec(CREATED_AT, DATE, shows_time=True),
        FieldSpec(PICKUP_AT, DATE, shows_time=True),
        FieldSpec(PAYMENT_CONFIRMED_DATE, DATE, shows_time=True),
        FieldSpec(DELIVERY_SUCCESS_DATE, DATE, shows_time=True),
        FieldSpec(COLLECTED_AMOUNT, CURRENCY),
        FieldSpec(ORIGINAL_COLLECTED_AMOUNT, CURRENCY),
        FieldSpec(DECLARED_VALUE, CURRENCY),
        FieldSpec(SHIPPING_FEE, CURRENCY),
        FieldSpec(PARTNER_FEE, CURRENCY),
        FieldSpec(REVENUE, CURRENCY),
        FieldSpec(CUSTOMER_WEIGHT, NUMBER),
        FieldSpec(STATUS, TEXT, set_filter=True),
        FieldSpec(STORE_NAME, TEXT, set_filter=True),
        FieldSpec(CITY, TEXT, set_filter=True),
        FieldSpec(SALES_REP, TEXT, set_filter=True),
        FieldSpec(REGION_GROUP, TEXT, set_filter=True),
        FieldSpec(CARRIER, TEXT, set_filter=True),
        FieldSpec(ORDER_SOURCE, TEXT, set_filter=True),
    )
}

DATE_FIELDS = tuple(key for key, spec in FIELD_SPECS.items() if spec.field_class == DATE)
NUMERIC_FIELDS = tuple(
    key for key, spec in FIELD_SPECS.items() if spec.field_class in {CURRENCY, NUMBER}
)

# Headers the statistics rely on; missing ones only produce a warning.
EXPECTED_HEADERS = (
    SETTLEMENT_DATE,
    STATUS,
    REVENUE,
    SHIPPING_FEE,
    STORE_NAME,
    CITY,
    SALES_REP,
    DELIVERY_SUCCESS_DATE,
    CREATED_AT,
)

# Contact/address/note columns left out of compact (printable) exports.
COMPACT_EXPORT_EXCLUDED = frozenset({
    "stt",
    "sdt_nguoi_tao",
    "dia_chi_nguoi_tao",
    "phuongxa_tao",
    "quanhuyen_tao",
    "sdt_nguoi_gui_hang",
    "dia_chi_nguoi_gui_hang",
    "phuongxa_gui_hang",
    "quanhuyen_gui_hang",
    "sdt_nguoi_nhan",
    "dia_chi_nguoi_nhan",
    "phuongxa_nguoi_nhan",
    "ghi_chu_giao_hang",
    "ghi_chu_noi_bo",
    "ghi_chu_cong_khai",
    "tai_khoan_doi_tac",
    "ma_don_doi_tac",
    "ma_don_hang_mot_phan",
})

_NON_KEY_CHARS_RE = re.compile(r"[^a-z0-9\s_]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_header(header: object) -> str:
    """
    Map a raw column label to its canonical field key.

    "Ngày đối soát" -> "ngay_doi_soat", "Tỉnh/Thành phố người nhận" ->
    "tinhthanh_pho_nguoi_nhan". Non-string input gives "".
    """
    if not isinstance(header, str):
        return ""
    value = unicodedata.normalize("NFD", header.lower())
    value = "".join(ch for ch in value if not unicodedata.combining(ch))
    value = value.replace("đ", "d")
    value = _NON_KEY_CHARS_RE.sub("", value).strip()
    return _WHITESPACE_RE.sub("_", value)


def field_spec(key: str) -> FieldSpec:
    return FIELD_SPECS.get(key) or FieldSpec(key, TEXT)


def field_class(key: str) -> str:
    return field_spec(key).field_class


def is_date_field(key: str) -> bool:
    return field_class(key) == DATE


def is_numeric_field(key: str) -> bool:
    return key in NUMERIC_FIELDS


def shows_time_of_day(key: str) -> bool:
    return field_spec(key).shows_time
