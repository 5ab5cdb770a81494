import logging
import uuid
from typing import Callable

from . import settings, utils
from .columns import (
    ColumnMapper,
    INVENTORY_MAPPER,
    LANDED_MAPPER,
    LINE_LIST_MAPPER,
    PRICING_MAPPER,
    SALES_MAPPER,
)
from .schemas import InventoryMovement, LandedCostItem, LineListItem, PricingItem, SalesItem
from .seasons import normalize_season
from .utils import SheetSource

logger = logging.getLogger(__name__)


def _read(
    source: SheetSource,
    mapper: ColumnMapper,
    preferred: str | int | None,
    header_row: int = 0,
) -> list[dict]:
    """
    Loads the sheet and resolves every row through the mapper. Rows without a
    style number are dropped here; nothing else filters a row out.
    """
    workbook = utils.load_workbook(source)
    sheet_name, grid = utils.select_sheet(workbook, preferred)
    _, rows = utils.sheet_rows(grid, header_row)

    resolved = []
    for row in rows:
        values = mapper.resolve(row)
        if values["style_number"]:
            resolved.append(values)

    logger.info(f"  > Sheet '{sheet_name}': {len(rows)} rows, {len(resolved)} with a style number")
    return resolved


def _season_fields(raw: str) -> dict:
    normalized = normalize_season(raw)
    return {
        "season": normalized.season,
        "season_type": normalized.season_type,
        "raw_season": normalized.raw_season,
    }


def parse_line_list(source: SheetSource, sheet: str | int | None = None) -> list[LineListItem]:
    """Product master: one record per style + color."""
    items = []
    for values in _read(source, LINE_LIST_MAPPER, sheet or settings.LINE_LIST_SHEET):
        values.update(_season_fields(values.pop("season")))
        # The sheet stores margin as a fraction
        values["margin"] = values["margin"] * 100
        values["carry_over"] = values["status"].upper() == "C/O"
        items.append(LineListItem(**values))
    return items


def parse_landed_costs(source: SheetSource, sheet: str | int | None = None) -> list[LandedCostItem]:
    """
    Cost request log. The header sits below a fixed preamble, and the same
    style can be requested several times; deduplication happens in reconcile.
    """
    items = []
    rows = _read(
        source,
        LANDED_MAPPER,
        sheet or settings.LANDED_SHEET,
        header_row=settings.LANDED_HEADER_ROW,
    )
    for values in rows:
        values.update(_season_fields(values.pop("season")))
        items.append(LandedCostItem(**values))
    return items


def parse_pricing(source: SheetSource, sheet: str | int | None = None) -> list[PricingItem]:
    """Season price list: one record per style + color + season."""
    items = []
    for values in _read(source, PRICING_MAPPER, sheet):
        values.update(_season_fields(values.pop("season")))
        items.append(PricingItem(**values))
    return items


def parse_sales(source: SheetSource, sheet: str | int | None = None) -> list[SalesItem]:
    """Order-line extract: one record per style + color + season + customer line."""
    items = []
    for values in _read(source, SALES_MAPPER, sheet or settings.SALES_SHEET):
        values.update(_season_fields(values.pop("season")))
        order_msrp = values.pop("order_msrp")
        values["msrp"] = values["msrp"] or order_msrp
        if not values["net_unit_price"] and values["units_booked"] > 0:
            values["net_unit_price"] = values["revenue"] / values["units_booked"]
        items.append(SalesItem(**values))
    return items


def parse_inventory(source: SheetSource, sheet: str | int | None = 0) -> list[InventoryMovement]:
    """Warehouse movement log. Movements carry no season."""
    items = []
    for values in _read(source, INVENTORY_MAPPER, sheet):
        values["id"] = uuid.uuid4().hex
        items.append(InventoryMovement(**values))
    return items


# --- Parser Registry ---
# Sheet shape -> how to parse it and where its headers live.
PARSER_REGISTRY: dict[str, dict] = {
    "lineList": {
        "func": parse_line_list,
        "mapper": LINE_LIST_MAPPER,
        "sheet": settings.LINE_LIST_SHEET,
        "header_row": 0,
    },
    "costs": {
        "func": parse_landed_costs,
        "mapper": LANDED_MAPPER,
        "sheet": settings.LANDED_SHEET,
        "header_row": settings.LANDED_HEADER_ROW,
    },
    "pricing": {
        "func": parse_pricing,
        "mapper": PRICING_MAPPER,
        "sheet": None,
        "header_row": 0,
    },
    "sales": {
        "func": parse_sales,
        "mapper": SALES_MAPPER,
        "sheet": settings.SALES_SHEET,
        "header_row": 0,
    },
    "inventory": {
        "func": parse_inventory,
        "mapper": INVENTORY_MAPPER,
        "sheet": 0,
        "header_row": 0,
    },
}


def get_parser(kind: str) -> Callable:
    return PARSER_REGISTRY[kind]["func"]


def column_report(source: SheetSource, kind: str, sheet: str | int | None = None) -> dict[str, str | None]:
    """Canonical field -> sheet header it resolves from (None when no accepted spelling is present)."""
    shape = PARSER_REGISTRY[kind]
    workbook = utils.load_workbook(source)
    _, grid = utils.select_sheet(workbook, sheet if sheet is not None else shape["sheet"])
    headers, _ = utils.sheet_rows(grid, shape["header_row"])
    return shape["mapper"].match_report(headers)


# --- File Type Detection ---
# Header signatures used to guess what an uploaded sheet is.

LINE_LIST_SIGNATURE = [
    "Style #", "Style", "Style Number", "Style#",
    "Style Name", "Description", "Style Desc",
    "MSRP", "US MSRP", "Retail",
    "Wholesale", "US WHSL", "WHSL", "Price",
    "Category", "Cat Desc",
    "Division", "Division Desc",
]

COSTS_SIGNATURE = [
    "FOB", "Factory Cost",
    "Landed", "Landed Cost", "LDP",
    "Duty", "Duty %", "Duty Cost", "Duty Cost $",
    "Freight", "Freight Cost",
    "Tariff", "Tariff Cost", "Tariff Cost $", "Tariff  Cost $",
    "Overhead", "Overhead Cost",
    "Suggested MSRP", "Suggested Selling Price",
    "Total Cost", "Std Cost", "GP %",
]

SALES_SIGNATURE = [
    "Revenue", "Net Sales", "Sales", "$ Current Booked Net",
    "Units", "Qty", "Quantity", "Units Current Booked",
    "Customer", "Customer Name",
    "Ship Date", "Date",
    "Customer Type",
]

PRICING_SIGNATURE = [
    "Price", "Wholesale", "WHSL",
    "MSRP", "Retail",
    "Season", "Sea Desc",
    "Style", "Style #",
    "Color", "Clr",
]


def _confidence(matches: int, high: int, medium: int) -> str:
    if matches >= high:
        return "high"
    if matches >= medium:
        return "medium"
    return "low"


def detect_file_type(headers: list[str]) -> dict:
    """
    Guesses the sheet shape from its headers. Sales is the most specific
    signature so it is checked first; pricing wins over line list only when it
    has pricing-only columns and no line-list-only ones.
    """
    lowered = {str(h).strip().lower() for h in headers}

    def matched(signature: list[str]) -> list[str]:
        return [h for h in signature if h.lower() in lowered]

    sales = matched(SALES_SIGNATURE)
    costs = matched(COSTS_SIGNATURE)
    pricing = matched(PRICING_SIGNATURE)
    line_list = matched(LINE_LIST_SIGNATURE)

    has_pricing_specific = bool(lowered & {"sea desc", "season desc", "clr_desc"})
    has_line_list_specific = bool(lowered & {"category", "cat desc", "division", "division desc"})

    if len(sales) >= 3:
        return {"type": "sales", "confidence": _confidence(len(sales), 5, 4), "matchedColumns": sales}
    if len(costs) >= 2:
        return {"type": "costs", "confidence": _confidence(len(costs), 4, 3), "matchedColumns": costs}
    if len(pricing) >= 3 and has_pricing_specific and not has_line_list_specific:
        return {"type": "pricing", "confidence": _confidence(len(pricing), 5, 4), "matchedColumns": pricing}
    if len(line_list) >= 3:
        return {"type": "lineList", "confidence": _confidence(len(line_list), 6, 4), "matchedColumns": line_list}
    if len(pricing) >= 2:
        return {"type": "pricing", "confidence": _confidence(len(pricing), 4, 3), "matchedColumns": pricing}
    return {"type": "unknown", "confidence": "low", "matchedColumns": []}


def detect_sheet(source: SheetSource) -> dict:
    """Runs detection against the first sheet, and against the landed layout's header row as a fallback."""
    workbook = utils.load_workbook(source)
    sheet_name, grid = utils.select_sheet(workbook)
    headers, _ = utils.sheet_rows(grid, 0)
    result = detect_file_type(headers)
    if result["type"] == "unknown" and settings.LANDED_SHEET in workbook:
        headers, _ = utils.sheet_rows(workbook[settings.LANDED_SHEET], settings.LANDED_HEADER_ROW)
        result = detect_file_type(headers)
        sheet_name = settings.LANDED_SHEET
    result["sheet"] = sheet_name
    result["allColumns"] = headers
    return result
