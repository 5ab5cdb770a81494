import logging
from collections import Counter
from pathlib import Path
from typing import Any, Optional

from seasonsync import settings
from seasonsync.persist import BatchPersister
from seasonsync.pipeline import ImportPipeline, season_breakdown
from seasonsync.reconcile import reconcile
from seasonsync.schemas import Record
from seasonsync.seasons import is_canonical, normalize_season, season_from_filename

logger = logging.getLogger(__name__)


class SeasonImportPipeline(ImportPipeline):
    """
    Line list + landed cost sheet (+ optional price sheet and sales extract)
    for one season -> Product and Cost tables. Only the target season's rows
    are replaced.
    """

    replace_scope = "season"

    def __init__(
        self,
        line_list: Path,
        landed: Optional[Path] = None,
        season: Optional[str] = None,
        pricing: Optional[Path] = None,
        sales: Optional[Path] = None,
        persister: Optional[BatchPersister] = None,
        dry_run: bool = False,
    ):
        sources = {"lineList": line_list, "costs": landed, "pricing": pricing, "sales": sales}
        super().__init__("products", sources, persister=persister, dry_run=dry_run)
        self.season = self._target_season(season, Path(line_list))

    @staticmethod
    def _target_season(season: Optional[str], line_list: Path) -> Optional[str]:
        if season:
            return normalize_season(season).season
        return season_from_filename(line_list.name)

    def extract(self) -> dict[str, list[Any]]:
        return {
            "lineList": self.parse_source("lineList", "lineList"),
            "costs": self.parse_source("costs", "costs"),
            "pricing": self.parse_source("pricing", "pricing"),
            "sales": self.parse_source("sales", "sales"),
        }

    def transform(self, parsed: dict[str, list[Any]]) -> dict[str, list[Record]]:
        line_list = parsed["lineList"]
        if not self.season:
            # Fall back to the season most of the line list is tagged with
            seasons = Counter(item.season for item in line_list if is_canonical(item.season))
            if not seasons:
                raise ValueError("No season given and none could be inferred from the line list")
            self.season = seasons.most_common(1)[0][0]
            logger.info(f"  > Season inferred from line list: {self.season}")

        result = reconcile(
            line_list,
            parsed["costs"],
            self.season,
            pricing=parsed["pricing"],
            sales=parsed["sales"],
        )
        self.summary.reconcile = result.stats
        self.summary.season_breakdown = season_breakdown(result.products)

        # Products before costs; products are what everything else joins against
        return {
            settings.PRODUCT_TABLE: result.products,
            settings.COST_TABLE: result.costs,
        }
