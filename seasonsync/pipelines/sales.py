import logging
from pathlib import Path
from typing import Any, Optional

from seasonsync import settings
from seasonsync.aggregate import rollup_sales
from seasonsync.persist import BatchPersister
from seasonsync.pipeline import ImportPipeline, season_breakdown
from seasonsync.schemas import Record
from seasonsync.seasons import normalize_season

logger = logging.getLogger(__name__)


class SalesImportPipeline(ImportPipeline):
    """
    Order-line extract -> Sale table. The seasons present in the extract are
    replaced; repeated lines are kept, since a repeated line is a re-booking.
    """

    replace_scope = "season"

    def __init__(
        self,
        path: Path,
        season: Optional[str] = None,
        persister: Optional[BatchPersister] = None,
        dry_run: bool = False,
    ):
        super().__init__("sales", {"sales": path}, persister=persister, dry_run=dry_run)
        self.season = normalize_season(season).season if season else None

    def extract(self) -> dict[str, list[Any]]:
        return {"sales": self.parse_source("sales", "sales")}

    def transform(self, parsed: dict[str, list[Any]]) -> dict[str, list[Record]]:
        items = parsed["sales"]
        if self.season:
            items = [s for s in items if s.season == self.season]
        self.summary.season_breakdown = season_breakdown(items)

        revenue = rollup_sales([s.to_row() for s in items]).revenue_by_season()
        for season, total in sorted(revenue.items()):
            logger.info(f"  > {season or 'Unknown'}: ${total:,.2f} booked")

        return {settings.SALE_TABLE: items}
