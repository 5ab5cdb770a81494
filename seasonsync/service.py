"""
Import API surface for the reporting layer: JSON payload imports, the reset
command, and the seasons admin (metadata merged with live row counts).
"""

import logging
import uuid
from datetime import date, datetime
from typing import Any, Optional, get_args
from pydantic import BaseModel, ValidationError

from . import settings
from .aggregate import AggregationService
from .columns import ColumnMapper, FieldRule
from .errors import ImportRequestError
from .persist import BatchPersister
from .pipeline import season_breakdown
from .schemas import (
    CostRecord,
    ImportRequest,
    ImportResult,
    InventoryMovement,
    PricingItem,
    Product,
    SalesItem,
    SeasonMeta,
)
from .seasons import (
    current_shipping_season,
    infer_status,
    is_canonical,
    normalize_season,
    season_name,
    season_status,
)
from .store import TableStore

logger = logging.getLogger(__name__)

_KINDS = {float: "num", int: "int", bool: "bool", datetime: "date"}
_SEASON_TYPES = {"Main", "Bulk", "Proto"}
_COST_SOURCES = {"line_list", "landed_sheet"}


def _kind(annotation) -> str:
    args = [a for a in get_args(annotation) if a is not type(None)] or [annotation]
    return _KINDS.get(args[0], "str")


def payload_mapper(model: type[BaseModel], alternates: dict[str, tuple[str, ...]]) -> ColumnMapper:
    """
    Mapper for JSON payload rows: each field accepts its store column name
    first, then the alternates clients have been seen to send.
    """
    rules = []
    for name, info in model.model_fields.items():
        aliases = (info.alias or name, *alternates.get(name, ()))
        rules.append(FieldRule(name, aliases, _kind(info.annotation)))
    return ColumnMapper(rules)


# Import type -> (payload mapper, model, synthetic id prefix)
PAYLOAD_SHAPES: dict[str, tuple[ColumnMapper, type[BaseModel], Optional[str]]] = {
    "products": (
        payload_mapper(
            Product,
            {
                "style_desc": ("styleName",),
                "color": ("colorCode",),
                "color_desc": ("colorDescription",),
                "division_desc": ("division",),
                "category_desc": ("category",),
                "label_desc": ("label",),
                "designer_name": ("designer",),
                "tech_designer_name": ("developer",),
                "factory_name": ("factory",),
                "msrp": ("usMsrp",),
                "price": ("usWholesale",),
                "cost": ("landed",),
            },
        ),
        Product,
        "prod",
    ),
    "costs": (payload_mapper(CostRecord, {"style_name": ("styleDesc",)}), CostRecord, "cost"),
    "pricing": (payload_mapper(PricingItem, {"color_code": ("color",)}), PricingItem, None),
    "sales": (payload_mapper(SalesItem, {"color_code": ("color",)}), SalesItem, None),
    "inventory": (payload_mapper(InventoryMovement, {}), InventoryMovement, None),
}


def coerce_record(import_type: str, item: dict[str, Any], season: Optional[str], index: int) -> Optional[BaseModel]:
    """
    One payload row -> its table's record, or None when it has no style
    number. Missing or malformed values fall back to the field's empty value.
    """
    mapper, model, id_prefix = PAYLOAD_SHAPES[import_type]
    values = mapper.resolve(item)
    if not values["style_number"]:
        return None

    if "season" in values:
        normalized = normalize_season(values["season"] or season or "")
        values["season"] = normalized.season
        values["raw_season"] = values["raw_season"] or normalized.raw_season
        if values["season_type"] not in _SEASON_TYPES:
            values["season_type"] = normalized.season_type

    if "cost_source" in values and values["cost_source"] not in _COST_SOURCES:
        del values["cost_source"]

    # Optional figures stay null rather than 0 when absent
    for name, info in model.model_fields.items():
        if info.default is None and values.get(name) in (0, ""):
            values[name] = None

    if "id" in values and not values["id"]:
        values["id"] = f"{id_prefix}-{values['season']}-{index}" if id_prefix else uuid.uuid4().hex

    return model.model_validate(values)


def import_records(
    persister: Optional[BatchPersister], payload: dict[str, Any], dry_run: bool = False
) -> ImportResult:
    """
    Writes a JSON payload of already-shaped records to its table. A dry run
    coerces every row and reports what would be written without touching
    the store.

    With `replaceExisting` (the default) and a season, that season is
    replaced; inventory payloads replace the whole table. Raises
    ImportRequestError for a malformed payload before touching the store.
    """
    try:
        request = ImportRequest.model_validate(payload)
    except ValidationError as e:
        raise ImportRequestError(f"Invalid request: type and data array required ({e.error_count()} errors)") from e

    season = normalize_season(request.season).season if request.season else None
    table = settings.IMPORT_TYPE_TABLES[request.type]

    records = []
    skipped = 0
    for index, item in enumerate(request.data):
        record = coerce_record(request.type, item, season, index)
        if record is None:
            skipped += 1
            continue
        records.append(record)
    if skipped:
        logger.warning(f"  > ⚠️  {skipped} {request.type} rows had no style number and were skipped.")

    breakdown = season_breakdown(records) if request.type != "inventory" else {}

    if dry_run:
        logger.info(f"🧪 Dry Run: {len(records)} {request.type} records parsed, nothing written.")
        return ImportResult(
            type=request.type,
            season=season,
            count=len(records),
            errors=skipped,
            message=f"Dry run: {len(records)} {request.type} records would be imported",
            dry_run=True,
            season_breakdown=breakdown,
        )

    if persister is None:
        raise ValueError("A live import needs a BatchPersister")

    if request.type == "inventory":
        result = persister.persist(
            table, records, replace_existing=request.replace_existing, replace_scope="table"
        )
    else:
        result = persister.persist(
            table,
            records,
            replace_existing=request.replace_existing and season is not None,
            replace_scope="season",
        )

    persister.log_import(
        request.file_name or f"{request.type}_import", request.type, result.inserted, season=season
    )

    return ImportResult(
        type=request.type,
        season=season,
        count=result.inserted,
        errors=result.errors + skipped,
        message=f"Imported {result.inserted} {request.type} records",
        season_breakdown=breakdown,
    )


def reset(store: TableStore, confirm: Optional[str]) -> dict[str, int]:
    """Deletes every imported row, table by table. Returns table -> deleted count."""
    if confirm != settings.RESET_CONFIRM_TOKEN:
        raise ImportRequestError(f"Pass confirm={settings.RESET_CONFIRM_TOKEN!r} to confirm data deletion")

    logger.info("🗑️  Starting data reset...")
    deleted = {}
    for table in settings.RESET_ORDER:
        deleted[table] = store.delete(table)
        logger.info(f"  > Deleted {deleted[table]} rows from {table}")
    return deleted


# --- Seasons Admin ---

_COUNT_KEYS = {
    settings.SALE_TABLE: "sales",
    settings.PRODUCT_TABLE: "products",
    settings.PRICING_TABLE: "pricing",
    settings.COST_TABLE: "costs",
}


def list_seasons(aggregation: AggregationService, today: Optional[date] = None) -> list[dict[str, Any]]:
    """
    Every valid season code found in the metadata table or in any data table,
    newest first. Live row counts are the source of truth for what data a
    season has; metadata only supplies the name, status and notes.
    """
    metadata = {
        row["code"]: row for row in aggregation.fetch_all(settings.SEASON_TABLE, order="code.desc")
    }
    counts = aggregation.all_season_counts()
    current = current_shipping_season(today)

    codes = set(metadata)
    for counter in counts.values():
        codes.update(counter)

    seasons = []
    for code in sorted((c for c in codes if is_canonical(c)), reverse=True):
        meta = metadata.get(code, {})
        actual = {key: counts[table].get(code, 0) for table, key in _COUNT_KEYS.items()}
        seasons.append(
            {
                "code": code,
                "name": meta.get("name") or season_name(code),
                "status": meta.get("status") or infer_status(code, today),
                "shippingStatus": season_status(code, today),
                "isCurrentShipping": code == current,
                "actualCounts": actual,
                "hasSalesData": actual["sales"] > 0,
                "hasLineList": actual["products"] > 0,
                "hasPricing": actual["pricing"] > 0,
                "hasCosts": actual["costs"] > 0,
                "startDate": meta.get("startDate"),
                "endDate": meta.get("endDate"),
                "notes": meta.get("notes"),
            }
        )
    return seasons


def save_season(store: TableStore, payload: dict[str, Any]) -> dict[str, Any]:
    """
    Creates or updates one Season metadata row. An update only touches the
    fields present in the payload; a new row gets a default name and status.
    """
    code = normalize_season(payload.get("code")).season
    if not code:
        raise ImportRequestError("Season code is required")

    existing = store.select(settings.SEASON_TABLE, offset=0, limit=1, filters={"code": code})
    if existing:
        row = {"code": code}
        for key in ("name", "status", "notes", "startDate", "endDate"):
            if payload.get(key) is not None:
                row[key] = payload[key]
        row = {**existing[0], **SeasonMeta.model_validate({**existing[0], **row}).to_row()}
    else:
        row = SeasonMeta.model_validate(
            {
                **payload,
                "code": code,
                "name": payload.get("name") or season_name(code),
                "status": payload.get("status") or "planning",
            }
        ).to_row()

    store.upsert(settings.SEASON_TABLE, [row], on_conflict="code")
    logger.info(f"✅ Season {code} saved")
    return row


def delete_season(store: TableStore, code: str) -> int:
    """Removes a season's metadata row. Its data rows are not touched."""
    if not code:
        raise ImportRequestError("Season code is required")
    deleted = store.delete(settings.SEASON_TABLE, {"code": code})
    logger.info(f"🗑️  Season {code} metadata deleted")
    return deleted
