"""
Season reconciliation.

Merges the line list, the price sheet, the sales extract and the landed cost
log for one season into Product and Cost records:

1. Price sheet overrides (style + color) replace line-list price/MSRP when > 0.
2. Sales extract prices fill in only where neither source had a price.
3. Landed costs (style only, newest request wins) replace FOB/landed and the
   margin is recomputed against the already-overridden wholesale price.

Landed costs for styles missing from the line list are dropped, not promoted
to products; `ReconcileStats.landed_orphans` lists them.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from .schemas import (
    CostRecord,
    LandedCostItem,
    LineListItem,
    PricingItem,
    Product,
    ReconcileStats,
    SalesItem,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    products: list[Product] = field(default_factory=list)
    costs: list[CostRecord] = field(default_factory=list)
    stats: ReconcileStats = field(default_factory=ReconcileStats)


def compute_margin(wholesale: float, landed: float) -> float:
    """(wholesale - landed) / wholesale * 100; 0 when there is no wholesale price."""
    if wholesale <= 0:
        return 0.0
    return (wholesale - landed) / wholesale * 100


def dedupe_landed_costs(landed_costs: Iterable[LandedCostItem]) -> tuple[dict[str, LandedCostItem], int]:
    """
    One landed cost per style: the most recent request. Equal (or missing)
    request dates resolve to the later row in the sheet.
    Returns (style -> winner, number of rejected rows).
    """
    winners: dict[str, LandedCostItem] = {}
    rejected = 0
    for cost in landed_costs:
        existing = winners.get(cost.style_number)
        if existing is None:
            winners[cost.style_number] = cost
            continue
        rejected += 1
        if _request_key(cost) >= _request_key(existing):
            winners[cost.style_number] = cost
    return winners, rejected


def _request_key(cost: LandedCostItem) -> datetime:
    return cost.date_requested or datetime.min


def apply_pricing_overrides(
    line_list: list[LineListItem], pricing: Iterable[PricingItem]
) -> tuple[list[LineListItem], int]:
    """
    Price sheet values replace line-list wholesale/MSRP per (style, color).
    A zero or missing override never replaces a price.
    """
    by_key = {(p.style_number, p.color_code): p for p in pricing}
    if not by_key:
        return list(line_list), 0

    overridden = 0
    result = []
    for item in line_list:
        price = by_key.get((item.style_number, item.color_code))
        update = {}
        if price is not None:
            if price.price > 0:
                update["us_wholesale"] = price.price
            if price.msrp > 0:
                update["us_msrp"] = price.msrp
        if update:
            overridden += 1
            item = item.model_copy(update=update)
        result.append(item)
    return result, overridden


def apply_sales_fallback(
    line_list: list[LineListItem], sales: Iterable[SalesItem]
) -> tuple[list[LineListItem], int]:
    """Last resort price source: the first positive sales-extract price for the same style + color."""
    wholesale: dict[tuple[str, str], float] = {}
    msrp: dict[tuple[str, str], float] = {}
    for sale in sales:
        key = (sale.style_number, sale.color_code)
        if sale.wholesale_price > 0:
            wholesale.setdefault(key, sale.wholesale_price)
        if sale.msrp > 0:
            msrp.setdefault(key, sale.msrp)
    if not wholesale and not msrp:
        return list(line_list), 0

    filled = 0
    result = []
    for item in line_list:
        key = (item.style_number, item.color_code)
        update = {}
        if item.us_wholesale <= 0 and key in wholesale:
            update["us_wholesale"] = wholesale[key]
        if item.us_msrp <= 0 and key in msrp:
            update["us_msrp"] = msrp[key]
        if update:
            filled += 1
            item = item.model_copy(update=update)
        result.append(item)
    return result, filled


def reconcile(
    line_list: list[LineListItem],
    landed_costs: list[LandedCostItem],
    target_season: str,
    pricing: list[PricingItem] | None = None,
    sales: list[SalesItem] | None = None,
) -> ReconcileResult:
    stats = ReconcileStats(line_list_count=len(line_list))

    # Only this season's price sheet and sales lines can override
    season_pricing = [p for p in pricing or [] if p.season == target_season]
    season_sales = [s for s in sales or [] if s.season == target_season]

    items, stats.pricing_overrides = apply_pricing_overrides(line_list, season_pricing)
    items, stats.sales_fallbacks = apply_sales_fallback(items, season_sales)

    season_landed = [c for c in landed_costs if c.season == target_season]
    landed_by_style, stats.landed_duplicates_rejected = dedupe_landed_costs(season_landed)

    line_list_styles = {item.style_number for item in items}
    stats.landed_orphans = sorted(s for s in landed_by_style if s not in line_list_styles)
    if stats.landed_orphans:
        logger.warning(
            f"  > ⚠️  {len(stats.landed_orphans)} landed-cost styles have no line-list row and were dropped."
        )

    result = ReconcileResult(stats=stats)
    for index, item in enumerate(items):
        match = landed_by_style.get(item.style_number)
        if match is not None and match.landed > 0:
            stats.landed_cost_matches += 1
            item = item.model_copy(
                update={
                    "fob": match.fob,
                    "landed": match.landed,
                    "margin": compute_margin(item.us_wholesale, match.landed),
                    "factory": match.factory or item.factory,
                    "country_of_origin": match.country_of_origin or item.country_of_origin,
                    "cost_source": "landed_sheet",
                }
            )
        else:
            # A landed match with no landed cost counts as no match
            match = None
            if item.us_wholesale > 0 and item.landed > 0:
                item = item.model_copy(
                    update={"margin": compute_margin(item.us_wholesale, item.landed)}
                )

        result.products.append(to_product(item, target_season, index))
        result.costs.append(to_cost(item, target_season, index, match))

    logger.info(
        f"  > Reconciled {len(items)} products for {target_season}: "
        f"{stats.landed_cost_matches} landed matches, {stats.pricing_overrides} price overrides."
    )
    return result


def to_product(item: LineListItem, season: str, index: int) -> Product:
    return Product(
        id=f"prod-{season}-{index}",
        style_number=item.style_number,
        style_desc=item.style_name,
        color=item.color_code,
        color_desc=item.color_description,
        style_color=item.style_color or f"{item.style_number}-{item.color_code}",
        season=season,
        season_type=item.season_type,
        raw_season=item.raw_season or season,
        division_desc=item.division,
        category_desc=item.category,
        category=item.category,
        product_line=item.product_line,
        label_desc=item.label,
        price=item.us_wholesale,
        msrp=item.us_msrp,
        cost=item.landed,
        margin=item.margin,
        cad_price=item.cad_wholesale or None,
        cad_msrp=item.cad_msrp or None,
        carry_over=item.carry_over,
        country_of_origin=item.country_of_origin,
        factory_name=item.factory,
        designer_name=item.designer,
        tech_designer_name=item.developer,
        cost_source=item.cost_source,
    )


def to_cost(item: LineListItem, season: str, index: int, match: LandedCostItem | None = None) -> CostRecord:
    return CostRecord(
        id=f"cost-{season}-{index}",
        style_number=item.style_number,
        style_name=item.style_name,
        season=season,
        season_type=item.season_type,
        raw_season=item.raw_season or season,
        factory=item.factory,
        country_of_origin=item.country_of_origin,
        fob=item.fob,
        landed=item.landed,
        duty_cost=match.duty_cost if match else 0,
        tariff_cost=match.tariff_cost if match else 0,
        freight_cost=match.freight_cost if match else 0,
        overhead_cost=match.overhead_cost if match else 0,
        suggested_msrp=item.us_msrp,
        suggested_wholesale=item.us_wholesale,
        margin=item.margin,
        design_team=match.design_team if match and match.design_team else item.division,
        developer=item.developer,
        cost_source=item.cost_source,
    )
