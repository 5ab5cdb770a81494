from datetime import datetime

import pytest

from seasonsync.columns import (
    INVENTORY_MAPPER,
    SALES_MAPPER,
    ColumnMapper,
    parse_date,
    parse_number,
    parse_string,
    rule,
)


class TestCellParsing:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("$1,234.50", 1234.5),
            (" 12 ", 12.0),
            (7, 7.0),
            ("n/a", 0.0),
            ("", 0.0),
            (None, 0.0),
            (float("nan"), 0.0),
            ("-", 0.0),
            ("€1,234", 1234.0),
            ("£ 99.90", 99.9),
            ("¥5000", 5000.0),
        ],
    )
    def test_parse_number_is_lenient(self, raw, expected):
        assert parse_number(raw) == pytest.approx(expected)

    def test_parse_string_drops_excel_float_suffix(self):
        assert parse_string(1234.0) == "1234"
        assert parse_string("  AB12 ") == "AB12"
        assert parse_string(None) == ""

    def test_parse_date(self):
        assert parse_date("2025-03-01") == datetime(2025, 3, 1)
        assert parse_date(45000) == datetime(2023, 3, 15)
        assert parse_date("not a date") is None
        assert parse_date(None) is None


class TestColumnMapper:
    def test_first_non_empty_alias_wins(self):
        mapper = ColumnMapper([rule("price", "US WHSL", "Wholesale", kind="num")])
        assert mapper.value({"US WHSL": "", "Wholesale": "45"}, "price") == 45.0
        assert mapper.value({"US WHSL": "50", "Wholesale": "45"}, "price") == 50.0

    def test_headers_match_case_insensitively(self):
        mapper = ColumnMapper([rule("style_number", "Style #")])
        assert mapper.resolve({" style # ": "A100"}) == {"style_number": "A100"}

    def test_first_of_case_variant_headers_wins(self):
        mapper = ColumnMapper([rule("price", "Price", kind="num")])
        assert mapper.value({"Price": "50", "PRICE": "99"}, "price") == 50.0
        assert mapper.match_report(["Price", "PRICE"]) == {"price": "Price"}

    def test_missing_fields_get_empty_values(self):
        mapper = ColumnMapper(
            [
                rule("name", "Name"),
                rule("qty", "Qty", kind="int"),
                rule("when", "Date", kind="date"),
                rule("flag", "Flag", kind="bool"),
            ]
        )
        assert mapper.resolve({}) == {"name": "", "qty": 0, "when": None, "flag": False}

    def test_qty_na_is_zero(self):
        values = INVENTORY_MAPPER.resolve({"Style": "A1", "Qty": "n/a"})
        assert values["qty"] == 0

    def test_customer_fallback_chain(self):
        assert SALES_MAPPER.value({"Sold To Name": "REI"}, "customer") == "REI"
        assert SALES_MAPPER.value({"Customer Name": "", "Account": "Backcountry"}, "customer") == "Backcountry"

    def test_match_report(self):
        report = SALES_MAPPER.match_report(["Style", "Customer", "Revenue"])
        assert report["style_number"] == "Style"
        assert report["customer"] == "Customer"
        assert report["revenue"] == "Revenue"
        assert report["units_booked"] is None
