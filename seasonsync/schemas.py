from datetime import datetime
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field

CostSource = Literal["line_list", "landed_sheet"]
SeasonTypeName = Literal["Main", "Bulk", "Proto"]


class Record(BaseModel):
    """
    Base for every canonical record. Python names are snake_case; the aliases
    are the store's column names and are what we write with `by_alias=True`.
    """

    class Config:
        populate_by_name = True
        frozen = True

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# --- Parsed Sheet Records ---


class LineListItem(Record):
    style_number: str = Field(..., alias="styleNumber")
    style_name: str = Field(default="", alias="styleName")
    color_code: str = Field(default="", alias="colorCode")
    color_description: str = Field(default="", alias="colorDescription")
    style_color: str = Field(default="", alias="styleColor")
    season: str = Field(default="", alias="season")
    season_type: SeasonTypeName = Field(default="Main", alias="seasonType")
    raw_season: str = Field(default="", alias="rawSeason")
    status: str = Field(default="", alias="status")
    factory: str = Field(default="", alias="factory")
    us_msrp: float = Field(default=0, alias="usMsrp")
    us_wholesale: float = Field(default=0, alias="usWholesale")
    fob: float = Field(default=0, alias="fob")
    landed: float = Field(default=0, alias="landed")
    margin: float = Field(default=0, alias="margin")
    category: str = Field(default="", alias="category")
    label: str = Field(default="", alias="label")
    division: str = Field(default="", alias="division")
    product_line: str = Field(default="", alias="productLine")
    designer: str = Field(default="", alias="designer")
    developer: str = Field(default="", alias="developer")
    top_seller: bool = Field(default=False, alias="topSeller")
    kore: bool = Field(default=False, alias="kore")
    smu: bool = Field(default=False, alias="smu")
    map: bool = Field(default=False, alias="map")
    delivery_date: str = Field(default="", alias="deliveryDate")
    us_available: bool = Field(default=False, alias="usAvailable")
    cad_available: bool = Field(default=False, alias="cadAvailable")
    uk_available: bool = Field(default=False, alias="ukAvailable")
    cad_msrp: float = Field(default=0, alias="cadMsrp")
    cad_wholesale: float = Field(default=0, alias="cadWholesale")
    country_of_origin: str = Field(default="", alias="countryOfOrigin")
    carry_over: bool = Field(default=False, alias="carryOver")
    fit: str = Field(default="", alias="fit")
    sizes: str = Field(default="", alias="sizes")
    cost_source: CostSource = Field(default="line_list", alias="costSource")


class LandedCostItem(Record):
    style_number: str = Field(..., alias="styleNumber")
    style_name: str = Field(default="", alias="styleName")
    season: str = Field(default="", alias="season")
    season_type: SeasonTypeName = Field(default="Main", alias="seasonType")
    raw_season: str = Field(default="", alias="rawSeason")
    factory: str = Field(default="", alias="factory")
    country_of_origin: str = Field(default="", alias="countryOfOrigin")
    fob: float = Field(default=0, alias="fob")
    landed: float = Field(default=0, alias="landed")
    duty_cost: float = Field(default=0, alias="dutyCost")
    tariff_cost: float = Field(default=0, alias="tariffCost")
    freight_cost: float = Field(default=0, alias="freightCost")
    overhead_cost: float = Field(default=0, alias="overheadCost")
    suggested_wholesale: float = Field(default=0, alias="suggestedWholesale")
    suggested_msrp: float = Field(default=0, alias="suggestedMsrp")
    margin: float = Field(default=0, alias="margin")
    design_team: str = Field(default="", alias="designTeam")
    developer: str = Field(default="", alias="developer")
    date_requested: Optional[datetime] = Field(default=None, alias="dateRequested")


class PricingItem(Record):
    """One price-sheet line. Also the shape of the Pricing table."""

    style_number: str = Field(..., alias="styleNumber")
    style_desc: str = Field(default="", alias="styleDesc")
    color_code: str = Field(default="", alias="colorCode")
    color_desc: str = Field(default="", alias="colorDesc")
    season: str = Field(default="", alias="season")
    season_type: SeasonTypeName = Field(default="Main", alias="seasonType")
    raw_season: str = Field(default="", alias="rawSeason", exclude=True)
    season_desc: str = Field(default="", alias="seasonDesc")
    price: float = Field(default=0, alias="price")
    msrp: float = Field(default=0, alias="msrp")
    cost: float = Field(default=0, alias="cost")


class SalesItem(Record):
    """One order line from the sales extract. Also the shape of the Sale table."""

    style_number: str = Field(..., alias="styleNumber")
    style_desc: str = Field(default="", alias="styleDesc")
    color_code: str = Field(default="", alias="colorCode")
    color_desc: str = Field(default="", alias="colorDesc")
    season: str = Field(default="", alias="season")
    season_type: SeasonTypeName = Field(default="Main", alias="seasonType")
    raw_season: str = Field(default="", alias="rawSeason", exclude=True)
    customer: str = Field(default="", alias="customer")
    customer_type: str = Field(default="", alias="customerType")
    sales_rep: str = Field(default="", alias="salesRep")
    division_desc: str = Field(default="", alias="divisionDesc")
    category_desc: str = Field(default="", alias="categoryDesc")
    gender: str = Field(default="", alias="gender")
    units_booked: float = Field(default=0, alias="unitsBooked")
    units_open: float = Field(default=0, alias="unitsOpen")
    revenue: float = Field(default=0, alias="revenue")
    shipped: float = Field(default=0, alias="shipped")
    cost: float = Field(default=0, alias="cost")
    wholesale_price: float = Field(default=0, alias="wholesalePrice")
    msrp: float = Field(default=0, alias="msrp")
    net_unit_price: float = Field(default=0, alias="netUnitPrice")
    order_type: str = Field(default="", alias="orderType")


class InventoryMovement(Record):
    """One line of the warehouse movement log. Also the shape of the Inventory table."""

    id: str = Field(..., alias="id")
    style_number: str = Field(..., alias="styleNumber")
    style_desc: str = Field(default="", alias="styleDesc")
    color: str = Field(default="", alias="color")
    color_desc: str = Field(default="", alias="colorDesc")
    color_type: str = Field(default="", alias="colorType")
    style_category: str = Field(default="", alias="styleCategory")
    style_cat_desc: str = Field(default="", alias="styleCatDesc")
    warehouse: str = Field(default="", alias="warehouse")
    movement_type: str = Field(default="", alias="movementType")
    movement_date: Optional[datetime] = Field(default=None, alias="movementDate")
    user: str = Field(default="", alias="user")
    group: str = Field(default="", alias="group")
    group_desc: str = Field(default="", alias="groupDesc")
    reference: str = Field(default="", alias="reference")
    customer_vendor: str = Field(default="", alias="customerVendor")
    reason_code: str = Field(default="", alias="reasonCode")
    reason_desc: str = Field(default="", alias="reasonDesc")
    cost_price: float = Field(default=0, alias="costPrice")
    wholesale_price: float = Field(default=0, alias="wholesalePrice")
    msrp: float = Field(default=0, alias="msrp")
    size_pricing: str = Field(default="", alias="sizePricing")
    division: str = Field(default="", alias="division")
    division_desc: str = Field(default="", alias="divisionDesc")
    label: str = Field(default="", alias="label")
    label_desc: str = Field(default="", alias="labelDesc")
    period: str = Field(default="", alias="period")
    qty: int = Field(default=0, alias="qty")
    balance: int = Field(default=0, alias="balance")
    extension: float = Field(default=0, alias="extension")
    prod_mgr: str = Field(default="", alias="prodMgr")
    old_style_number: str = Field(default="", alias="oldStyleNumber")
    pantone_csi_desc: str = Field(default="", alias="pantoneCsiDesc")
    control_number: str = Field(default="", alias="controlNumber")
    asn_status: str = Field(default="", alias="asnStatus")
    store: str = Field(default="", alias="store")
    sales_order_number: str = Field(default="", alias="salesOrderNumber")
    segment_code: str = Field(default="", alias="segmentCode")
    segment_desc: str = Field(default="", alias="segmentDesc")
    cost_code: str = Field(default="", alias="costCode")
    cost_desc: str = Field(default="", alias="costDesc")


# --- Reconciled Records ---


class Product(Record):
    id: str = Field(..., alias="id")
    style_number: str = Field(..., alias="styleNumber")
    style_desc: str = Field(default="", alias="styleDesc")
    color: str = Field(default="", alias="color")
    color_desc: str = Field(default="", alias="colorDesc")
    style_color: str = Field(default="", alias="styleColor")
    season: str = Field(..., alias="season")
    season_type: SeasonTypeName = Field(default="Main", alias="seasonType")
    raw_season: str = Field(default="", alias="rawSeason")
    division_desc: str = Field(default="", alias="divisionDesc")
    category_desc: str = Field(default="", alias="categoryDesc")
    category: str = Field(default="", alias="category")
    product_line: str = Field(default="", alias="productLine")
    label_desc: str = Field(default="", alias="labelDesc")
    price: float = Field(default=0, alias="price")
    msrp: float = Field(default=0, alias="msrp")
    cost: float = Field(default=0, alias="cost")
    margin: float = Field(default=0, alias="margin")
    currency: str = Field(default="USD", alias="currency")
    cad_price: Optional[float] = Field(default=None, alias="cadPrice")
    cad_msrp: Optional[float] = Field(default=None, alias="cadMsrp")
    carry_over: bool = Field(default=False, alias="carryOver")
    country_of_origin: str = Field(default="", alias="countryOfOrigin")
    factory_name: str = Field(default="", alias="factoryName")
    designer_name: str = Field(default="", alias="designerName")
    tech_designer_name: str = Field(default="", alias="techDesignerName")
    cost_source: CostSource = Field(default="line_list", alias="costSource")


class CostRecord(Record):
    id: str = Field(..., alias="id")
    style_number: str = Field(..., alias="styleNumber")
    style_name: str = Field(default="", alias="styleName")
    season: str = Field(..., alias="season")
    season_type: SeasonTypeName = Field(default="Main", alias="seasonType")
    raw_season: str = Field(default="", alias="rawSeason")
    factory: str = Field(default="", alias="factory")
    country_of_origin: str = Field(default="", alias="countryOfOrigin")
    fob: float = Field(default=0, alias="fob")
    landed: float = Field(default=0, alias="landed")
    duty_cost: float = Field(default=0, alias="dutyCost")
    tariff_cost: float = Field(default=0, alias="tariffCost")
    freight_cost: float = Field(default=0, alias="freightCost")
    overhead_cost: float = Field(default=0, alias="overheadCost")
    suggested_msrp: Optional[float] = Field(default=None, alias="suggestedMsrp")
    suggested_wholesale: Optional[float] = Field(default=None, alias="suggestedWholesale")
    margin: Optional[float] = Field(default=None, alias="margin")
    design_team: str = Field(default="", alias="designTeam")
    developer: str = Field(default="", alias="developer")
    cost_source: CostSource = Field(default="line_list", alias="costSource")


class ReconcileStats(BaseModel):
    line_list_count: int = 0
    landed_cost_matches: int = 0
    landed_duplicates_rejected: int = 0
    # Styles that had a landed cost for the season but no line-list row; dropped.
    landed_orphans: list[str] = Field(default_factory=list)
    pricing_overrides: int = 0
    sales_fallbacks: int = 0


# --- Bookkeeping ---


class ImportLogEntry(Record):
    file_name: str = Field(..., alias="fileName")
    file_type: str = Field(..., alias="fileType")
    season: Optional[str] = Field(default=None, alias="season")
    record_count: int = Field(default=0, alias="recordCount")
    created_at: datetime = Field(default_factory=datetime.now, alias="createdAt")


class SeasonMeta(Record):
    code: str = Field(..., alias="code")
    name: str = Field(default="", alias="name")
    status: str = Field(default="planning", alias="status")
    notes: Optional[str] = Field(default=None, alias="notes")
    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")


class ImportSummary(BaseModel):
    """What an import run found (and, when live, what it wrote). Dry runs produce the same numbers."""

    import_type: str
    file_name: str = ""
    dry_run: bool = False
    row_count: int = 0
    season_breakdown: dict[str, int] = Field(default_factory=dict)
    column_matches: dict[str, dict[str, Optional[str]]] = Field(default_factory=dict)
    reconcile: Optional[ReconcileStats] = None
    inserted: dict[str, int] = Field(default_factory=dict)
    errors: dict[str, int] = Field(default_factory=dict)


# --- Import API ---


class ImportRequest(BaseModel):
    type: Literal["products", "sales", "pricing", "costs", "inventory"]
    season: Optional[str] = None
    data: list[dict[str, Any]]
    file_name: Optional[str] = Field(default=None, alias="fileName")
    replace_existing: bool = Field(default=True, alias="replaceExisting")

    class Config:
        populate_by_name = True


class ImportResult(BaseModel):
    type: str
    season: Optional[str] = None
    count: int
    errors: int = 0
    message: str
    dry_run: bool = False
    season_breakdown: dict[str, int] = Field(default_factory=dict)


# --- Rollups ---


class InventorySummary(BaseModel):
    total_count: int = Field(default=0, alias="totalCount")
    by_type: list[dict[str, Any]] = Field(default_factory=list, alias="byType")
    by_warehouse: list[dict[str, Any]] = Field(default_factory=list, alias="byWarehouse")
    by_period: list[dict[str, Any]] = Field(default_factory=list, alias="byPeriod")

    class Config:
        populate_by_name = True


class SalesSummary(BaseModel):
    by_channel: list[dict[str, Any]] = Field(default_factory=list, alias="byChannel")
    by_category: list[dict[str, Any]] = Field(default_factory=list, alias="byCategory")
    by_gender: list[dict[str, Any]] = Field(default_factory=list, alias="byGender")
    by_customer: list[dict[str, Any]] = Field(default_factory=list, alias="byCustomer")

    class Config:
        populate_by_name = True

    def revenue_by_season(self) -> dict[str, float]:
        totals: dict[str, float] = {}
        for row in self.by_channel:
            totals[row["season"]] = totals.get(row["season"], 0.0) + float(row["sum_revenue"])
        return totals
