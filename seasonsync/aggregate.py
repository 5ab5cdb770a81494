"""
Read side for the reporting layer.

The store caps every read at PAGE_SIZE rows and times out on ad-hoc
aggregation over the sales table, so dashboards read precomputed rollups
from server-side functions and page through raw sales with a dedicated
offset/limit function instead of the generic range reader.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterator, Optional
import pandas as pd

from . import settings
from .schemas import InventorySummary, SalesSummary
from .store import TableStore

logger = logging.getLogger(__name__)

INVENTORY_ROLLUP = "get_inventory_aggregations"
SALES_ROLLUP = "get_sales_aggregations"
SALES_PAGE = "get_sales_page"
SEASON_COUNTS = "get_season_counts"

# Range reads need a total order or pages overlap between requests
DEFAULT_ORDER = "id.asc"


def gender_bucket(division_desc: str) -> str:
    """Women's / Men's / Unisex from a division description. Must match the server-side rollup."""
    lowered = (division_desc or "").lower()
    if "women" in lowered or "woman" in lowered:
        return "Women's"
    if "men's" in lowered or "mens" in lowered:
        return "Men's"
    return "Unisex"


def rollup_sales(rows: list[dict]) -> SalesSummary:
    """
    Client-side equivalent of the sales rollup, for rows already in hand
    (dry runs, or checking the server function against raw pages).
    """
    if not rows:
        return SalesSummary()

    df = pd.DataFrame(rows)
    for column in ["season", "customerType", "categoryDesc", "divisionDesc", "customer"]:
        if column not in df.columns:
            df[column] = ""
    for column in ["revenue", "unitsBooked"]:
        if column not in df.columns:
            df[column] = 0
    df = df.fillna({"revenue": 0, "unitsBooked": 0}).fillna("")
    df["gender"] = df["divisionDesc"].map(gender_bucket)

    def grouped(keys: list[str]) -> list[dict]:
        out = (
            df.groupby(keys, sort=True)
            .agg(sum_revenue=("revenue", "sum"), sum_units_booked=("unitsBooked", "sum"))
            .reset_index()
        )
        return out.to_dict("records")

    return SalesSummary(
        by_channel=grouped(["season", "customerType"]),
        by_category=grouped(["season", "categoryDesc"]),
        by_gender=grouped(["season", "gender"]),
        by_customer=grouped(["season", "customer", "customerType"]),
    )


@dataclass
class DashboardSnapshot:
    """Everything a dashboard needs. `sales` starts empty and fills in a background pass."""

    products: list[dict] = field(default_factory=list)
    pricing: list[dict] = field(default_factory=list)
    costs: list[dict] = field(default_factory=list)
    sales_summary: SalesSummary = field(default_factory=SalesSummary)
    inventory_summary: InventorySummary = field(default_factory=InventorySummary)
    sales: list[dict] = field(default_factory=list)
    sales_loaded: bool = False


class AggregationService:
    def __init__(self, store: TableStore, page_size: int = settings.PAGE_SIZE):
        self.store = store
        self.page_size = page_size

    # --- Rollups ---

    def inventory_summary(self) -> InventorySummary:
        return InventorySummary.model_validate(self.store.rpc(INVENTORY_ROLLUP) or {})

    def sales_summary(self) -> SalesSummary:
        return SalesSummary.model_validate(self.store.rpc(SALES_ROLLUP) or {})

    def summarize(self, table: str):
        if table == settings.INVENTORY_TABLE:
            return self.inventory_summary()
        if table == settings.SALE_TABLE:
            return self.sales_summary()
        raise ValueError(f"No rollup for table {table}")

    # --- Paginated reads ---

    def page(self, table: str, offset: int, limit: int) -> list[dict]:
        if table == settings.SALE_TABLE:
            return self.store.rpc(SALES_PAGE, {"p_offset": offset, "p_limit": limit}) or []
        return self.store.select(table, offset=offset, limit=min(limit, self.page_size), order=DEFAULT_ORDER)

    def fetch_all(
        self,
        table: str,
        columns: str = "*",
        order: str = DEFAULT_ORDER,
        filters: Optional[dict] = None,
    ) -> list[dict]:
        """
        Repeated range reads until a short page comes back. `order` must be a
        total order (end on a unique column) for the pages to line up.
        """
        rows: list[dict] = []
        offset = 0
        while True:
            page = self.store.select(
                table, offset=offset, limit=self.page_size, columns=columns, order=order, filters=filters
            )
            rows.extend(page)
            if len(page) < self.page_size:
                break
            offset += self.page_size
        return rows

    def iter_sales_pages(self, page_size: int = settings.SALES_PAGE_SIZE) -> Iterator[list[dict]]:
        offset = 0
        while True:
            page = self.page(settings.SALE_TABLE, offset, page_size)
            if page:
                yield page
            if len(page) < page_size:
                return
            offset += page_size

    def all_season_counts(self) -> dict[str, Counter]:
        """Live row count per season for every season-partitioned table, grouped server-side."""
        counts = {table: Counter() for table in settings.SEASON_TABLES}
        for row in self.store.rpc(SEASON_COUNTS) or []:
            if row["table"] in counts:
                counts[row["table"]][row.get("season") or ""] += int(row["count"])
        return counts

    def season_counts(self, table: str) -> Counter:
        if table not in settings.SEASON_TABLES:
            raise ValueError(f"{table} is not partitioned by season")
        return self.all_season_counts()[table]

    # --- Dashboard ---

    def load_dashboard(self) -> DashboardSnapshot:
        """Small tables and rollups, eagerly. Raw sales are left for `load_sales`."""
        snapshot = DashboardSnapshot(
            products=self.fetch_all(settings.PRODUCT_TABLE, order="season.desc,styleNumber.asc,id.asc"),
            pricing=self.fetch_all(settings.PRICING_TABLE, order="season.desc,styleNumber.asc,id.asc"),
            costs=self.fetch_all(settings.COST_TABLE, order="season.desc,styleNumber.asc,id.asc"),
            sales_summary=self.sales_summary(),
            inventory_summary=self.inventory_summary(),
        )
        logger.info(
            f"📊 Dashboard loaded: {len(snapshot.products)} products, "
            f"{len(snapshot.pricing)} prices, {len(snapshot.costs)} costs"
        )
        return snapshot

    def load_sales(self, snapshot: DashboardSnapshot, page_size: int = settings.SALES_PAGE_SIZE) -> Iterator[int]:
        """Progressive sales pass. Yields the running row count after each page."""
        for page in self.iter_sales_pages(page_size):
            snapshot.sales.extend(page)
            yield len(snapshot.sales)
        snapshot.sales_loaded = True
        logger.info(f"📊 Sales loaded: {len(snapshot.sales)} rows")
