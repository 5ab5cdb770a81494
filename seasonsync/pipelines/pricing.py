import logging
from pathlib import Path
from typing import Any, Optional

from seasonsync import settings
from seasonsync.persist import BatchPersister
from seasonsync.pipeline import ImportPipeline, season_breakdown
from seasonsync.schemas import Record
from seasonsync.seasons import normalize_season

logger = logging.getLogger(__name__)


class PricingImportPipeline(ImportPipeline):
    """Season price list -> Pricing table, replacing the seasons present in the sheet."""

    replace_scope = "season"

    def __init__(
        self,
        path: Path,
        season: Optional[str] = None,
        persister: Optional[BatchPersister] = None,
        dry_run: bool = False,
    ):
        super().__init__("pricing", {"pricing": path}, persister=persister, dry_run=dry_run)
        self.season = normalize_season(season).season if season else None

    def extract(self) -> dict[str, list[Any]]:
        return {"pricing": self.parse_source("pricing", "pricing")}

    def transform(self, parsed: dict[str, list[Any]]) -> dict[str, list[Record]]:
        items = parsed["pricing"]
        if self.season:
            kept = [p for p in items if p.season == self.season]
            logger.info(f"  > Keeping {len(kept)} of {len(items)} price lines for {self.season}")
            items = kept
        self.summary.season_breakdown = season_breakdown(items)
        return {settings.PRICING_TABLE: items}
