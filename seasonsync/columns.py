"""
Declarative header -> canonical field mapping.

Every sheet shape has a fixed table of FieldRules. A rule lists the header
spellings we have seen for one field, in priority order; the first header
present in the row with a non-empty cell wins. Cells are parsed leniently:
a malformed value becomes the field's empty value instead of an error.
"""

import math
import numbers
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Literal

import pandas as pd

FieldKind = Literal["str", "num", "int", "bool", "date"]

_NUMBER_NOISE = re.compile(r"[$€£¥,\s]")
_TRUTHY = {"y", "yes", "true", "1", "x"}
_EXCEL_EPOCH = datetime(1899, 12, 30)


@dataclass(frozen=True)
class FieldRule:
    name: str
    aliases: tuple[str, ...]
    kind: FieldKind = "str"


def rule(name: str, *aliases: str, kind: FieldKind = "str") -> FieldRule:
    return FieldRule(name, tuple(aliases), kind)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NaT:
        return True
    return isinstance(value, str) and not value.strip()


def parse_string(value: Any) -> str:
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        # Style numbers typed as numbers come back from Excel as 1234.0
        return str(int(value))
    return str(value).strip()


def parse_number(value: Any) -> float:
    """Strips currency symbols and thousands separators; anything unparseable is 0."""
    if is_blank(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, numbers.Number):
        return float(value)
    try:
        number = float(_NUMBER_NOISE.sub("", str(value)))
    except ValueError:
        return 0.0
    return 0.0 if math.isnan(number) or math.isinf(number) else number


def parse_int(value: Any) -> int:
    return int(round(parse_number(value)))


def parse_bool(value: Any) -> bool:
    if is_blank(value):
        return False
    return str(value).strip().lower() in _TRUTHY


def parse_date(value: Any) -> datetime | None:
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.to_pydatetime() if isinstance(value, pd.Timestamp) else value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, numbers.Number) and not isinstance(value, bool):
        # Excel serial day number
        try:
            return _EXCEL_EPOCH + timedelta(days=float(value))
        except OverflowError:
            return None
    parsed = pd.to_datetime(str(value).strip(), errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


_PARSERS = {
    "str": parse_string,
    "num": parse_number,
    "int": parse_int,
    "bool": parse_bool,
    "date": parse_date,
}

_EMPTY = {"str": "", "num": 0.0, "int": 0, "bool": False, "date": None}


def _header_key(header: Any) -> str:
    return str(header).strip().lower()


def _lookup(row: dict) -> dict[str, Any]:
    """Lowercased header -> cell. The first of two headers differing only in case wins."""
    lookup: dict[str, Any] = {}
    for key, value in row.items():
        lookup.setdefault(_header_key(key), value)
    return lookup


class ColumnMapper:
    """Resolves raw rows (header -> cell) into canonical field dicts."""

    def __init__(self, rules: list[FieldRule]):
        self.rules = rules
        self.by_name = {r.name: r for r in rules}

    def value(self, row: dict, field: str) -> Any:
        """First non-empty cell among the field's accepted headers, parsed to its kind."""
        return self._resolve(_lookup(row), self.by_name[field])

    def resolve(self, row: dict) -> dict[str, Any]:
        lookup = _lookup(row)
        return {r.name: self._resolve(lookup, r) for r in self.rules}

    def _resolve(self, lookup: dict[str, Any], field_rule: FieldRule) -> Any:
        for alias in field_rule.aliases:
            raw = lookup.get(_header_key(alias))
            if not is_blank(raw):
                return _PARSERS[field_rule.kind](raw)
        return _EMPTY[field_rule.kind]

    def match_report(self, headers: list) -> dict[str, str | None]:
        """Which sheet header (if any) each canonical field was resolved from."""
        present: dict[str, str] = {}
        for h in headers:
            present.setdefault(_header_key(h), str(h))
        report = {}
        for r in self.rules:
            report[r.name] = next(
                (present[_header_key(a)] for a in r.aliases if _header_key(a) in present),
                None,
            )
        return report


# --- Sheet Shapes ---

LINE_LIST_RULES = [
    rule("style_number", "Style #", "Style", "Style#", "Style Number"),
    rule("style_name", "Style Name", "Style Desc"),
    rule("color_code", "Color Code", "Clr"),
    rule("color_description", "Color Description", "Clr Desc"),
    rule("style_color", "Style/Color"),
    rule("season", "Season"),
    rule("status", "Status"),
    rule("factory", "Factory"),
    rule("us_msrp", "US MSRP", "MSRP", kind="num"),
    rule("us_wholesale", "US WHSL", "Wholesale", "Price", kind="num"),
    rule("fob", "FOB", kind="num"),
    rule("landed", "US Landed", "Landed", kind="num"),
    rule("margin", "US Margin %", "Margin", kind="num"),
    rule("category", "Category", "Cat Desc"),
    rule("label", "Label", "Label Desc"),
    rule("division", "Division", "Division Desc"),
    rule("product_line", "Product Line"),
    rule("designer", "Designer"),
    rule("developer", "Developer"),
    rule("top_seller", "Top Seller", kind="bool"),
    rule("kore", "KORE", kind="bool"),
    rule("smu", "SMU", kind="bool"),
    rule("map", "MAP?", "MAP", kind="bool"),
    rule("delivery_date", "Delivery Date"),
    rule("us_available", "US (Y/N)", kind="bool"),
    rule("cad_available", "Canada (Y/N)", kind="bool"),
    rule("uk_available", "UK (Y/N)", kind="bool"),
    rule("cad_msrp", "CAD MSRP", kind="num"),
    rule("cad_wholesale", "CAD WHSL", kind="num"),
    rule("country_of_origin", "COO Description", "COO"),
    rule("fit", "Fit"),
    rule("sizes", "Sizes"),
]

LANDED_RULES = [
    rule("style_number", "Style #", "Style"),
    rule("style_name", "Style Name", "Description"),
    rule("season", "Season"),
    rule("factory", "Factory"),
    rule("country_of_origin", "COO", "Country"),
    rule("fob", "FOB", kind="num"),
    rule("landed", "Landed", "LDP", kind="num"),
    rule("duty_cost", "Duty Cost $", "Duty", kind="num"),
    rule("tariff_cost", "Tariff  Cost $", "Tariff Cost $", "Tariff", kind="num"),
    rule("freight_cost", "Freight Cost", "Freight", kind="num"),
    rule("overhead_cost", "Overhead Cost", "Overhead", kind="num"),
    rule("suggested_wholesale", "Suggested Selling Price", "Wholesale", kind="num"),
    rule("suggested_msrp", "Suggested MSRP", "MSRP", kind="num"),
    rule("margin", "Margin", kind="num"),
    rule("design_team", "Design Team"),
    rule("developer", "Developer/ Designer", "Developer"),
    rule("date_requested", "Date Requested", "Request Date", "Requested", "Date", kind="date"),
]

PRICING_RULES = [
    rule("style_number", "Style", "Style #", "Style#"),
    rule("style_desc", "Description", "Style Desc", "Style Description"),
    rule("color_code", "Clr", "Color", "Color Code"),
    rule("color_desc", "Clr_Desc", "Clr Desc", "Color Desc"),
    rule("season", "Season"),
    rule("season_desc", "Sea Desc", "Season Desc"),
    rule("price", "Price", "Wholesale", "WHSL", kind="num"),
    rule("msrp", "MSRP", "Retail", kind="num"),
    rule("cost", "Cost", kind="num"),
]

# Customer naming varies more than any other sales column across extracts.
CUSTOMER_ALIASES = (
    "Customer Name",
    "Customer",
    "Cust Name",
    "Customer Name 1",
    "Customer Desc",
    "Customer Description",
    "Account Name",
    "Account",
    "Sold To Name",
    "Sold To",
    "Bill To Name",
    "Ship To Name",
    "Dealer",
    "Retailer",
)

SALES_RULES = [
    rule("style_number", "Style", "Style #", "Style#"),
    rule("style_desc", "Style Description", "Style Desc"),
    rule("color_code", "Color", "Clr", "Color Code"),
    rule("color_desc", "Color Desc. From Clr Mst", "Color Desc", "Clr Desc"),
    rule("season", "Season"),
    rule("customer", *CUSTOMER_ALIASES),
    rule("customer_type", "Customer Type", "Cust Type", "Channel"),
    rule("sales_rep", "Sales Rep 1", "Sales Rep"),
    rule("division_desc", "Division", "Division Desc"),
    rule("category_desc", "Category Description", "Category", "Cat Desc"),
    rule("gender", "Gender Descripton", "Gender Description", "Gender"),
    rule("units_booked", "Units Current Booked", "Units Booked", "Units", "Qty", kind="num"),
    rule("units_open", "Units Open", kind="num"),
    rule("revenue", "$ Current Booked Net", "Revenue", "Net Sales", kind="num"),
    rule("shipped", "$ Shipped Net", "Shipped", kind="num"),
    rule("cost", "Cost", kind="num"),
    rule("wholesale_price", "Wholesale Price", "Wholesale", kind="num"),
    rule("msrp", "MSRP (Style)", "MSRP", kind="num"),
    rule("order_msrp", "MSRP (Order)", kind="num"),
    rule("net_unit_price", "Net Unit Price", kind="num"),
    rule("order_type", "Order Type"),
]

INVENTORY_RULES = [
    rule("style_number", "Style"),
    rule("style_desc", "Style Desc"),
    rule("color", "Clr"),
    rule("color_desc", "Clr Desc"),
    rule("color_type", "Color Type"),
    rule("style_category", "Style Category"),
    rule("style_cat_desc", "Style Cat Desc"),
    rule("warehouse", "Whse"),
    rule("movement_type", "Type"),
    rule("movement_date", "Date", kind="date"),
    rule("user", "User"),
    rule("group", "Group"),
    rule("group_desc", "Group Desc.", "Group Desc"),
    rule("reference", "Reference"),
    rule("customer_vendor", "Customer/Vendor"),
    rule("reason_code", "Rea"),
    rule("reason_desc", "Rea Desc"),
    rule("cost_price", "Cost/Price", kind="num"),
    rule("wholesale_price", "Wholesale Price", kind="num"),
    rule("msrp", "MSRP", kind="num"),
    rule("size_pricing", "Size Pricing"),
    rule("division", "Division"),
    rule("division_desc", "Division Desc"),
    rule("label", "Label"),
    rule("label_desc", "Label Desc"),
    rule("period", "Period"),
    rule("qty", "Qty", kind="int"),
    rule("balance", "Balance", kind="int"),
    rule("extension", "Extension", kind="num"),
    rule("prod_mgr", "ProdMgr"),
    rule("old_style_number", "Old Style #"),
    rule("pantone_csi_desc", "Pantone/CSI Desc"),
    rule("control_number", "Control #"),
    rule("asn_status", "ASN Status #"),
    rule("store", "Store"),
    rule("sales_order_number", "Sales Order #"),
    rule("segment_code", "Segment Code"),
    rule("segment_desc", "Segment Description"),
    rule("cost_code", "Cost Code"),
    rule("cost_desc", "Cost Description"),
]

LINE_LIST_MAPPER = ColumnMapper(LINE_LIST_RULES)
LANDED_MAPPER = ColumnMapper(LANDED_RULES)
PRICING_MAPPER = ColumnMapper(PRICING_RULES)
SALES_MAPPER = ColumnMapper(SALES_RULES)
INVENTORY_MAPPER = ColumnMapper(INVENTORY_RULES)
