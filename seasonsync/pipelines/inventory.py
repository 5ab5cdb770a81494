import logging
from pathlib import Path
from typing import Any, Optional

from seasonsync import settings
from seasonsync.persist import BatchPersister, PersistResult
from seasonsync.pipeline import ImportPipeline
from seasonsync.schemas import Record

logger = logging.getLogger(__name__)


class InventoryImportPipeline(ImportPipeline):
    """
    Warehouse movement log -> Inventory table. Movements carry no season, so
    every import is a full refresh through the direct-SQL endpoint.
    """

    replace_scope = "table"

    def __init__(self, path: Path, persister: Optional[BatchPersister] = None, dry_run: bool = False):
        super().__init__("inventory", {"inventory": path}, persister=persister, dry_run=dry_run)

    def extract(self) -> dict[str, list[Any]]:
        return {"inventory": self.parse_source("inventory", "inventory")}

    def transform(self, parsed: dict[str, list[Any]]) -> dict[str, list[Record]]:
        movements = parsed["inventory"]
        by_type: dict[str, int] = {}
        for m in movements:
            by_type[m.movement_type or "Unknown"] = by_type.get(m.movement_type or "Unknown", 0) + 1
        for movement_type, count in sorted(by_type.items()):
            logger.info(f"  > {movement_type}: {count}")
        return {settings.INVENTORY_TABLE: movements}

    def write(self, table: str, records: list[Record]) -> PersistResult:
        return self.persister.persist_sql(
            table,
            records,
            replace_existing=self.replace_existing,
            replace_scope=self.replace_scope,
        )
