import logging
from abc import ABC, abstractmethod
from collections import Counter
from pathlib import Path
from typing import Any, Optional

from . import data_handler, parsers, utils
from .persist import BatchPersister, PersistResult, ReplaceScope, write_error_log
from .schemas import ImportSummary, Record

logger = logging.getLogger(__name__)


def season_breakdown(records: list[Any]) -> dict[str, int]:
    """Row count per season, blank seasons bucketed as "Unknown"."""
    counts = Counter(getattr(r, "season", "") or "Unknown" for r in records)
    return dict(sorted(counts.items()))


class ImportPipeline(ABC):
    """
    Abstract base class for import pipelines (season, pricing, sales, inventory).
    Follows an Extract -> Transform -> Load (ETL) pattern.

    Dry runs go through the same extract and transform steps, so the summary
    (row counts, season breakdown, column matches) is identical to a live
    run's; only `load` differs.
    """

    # How the first chunk of each table clears existing rows
    replace_scope: ReplaceScope = "season"

    def __init__(
        self,
        import_type: str,
        sources: dict[str, Path],
        persister: Optional[BatchPersister] = None,
        dry_run: bool = False,
        replace_existing: bool = True,
        season: Optional[str] = None,
    ):
        self.import_type = import_type
        self.sources = {k: Path(v) for k, v in sources.items() if v}
        self.persister = persister
        self.dry_run = dry_run
        self.replace_existing = replace_existing
        self.season = season
        self.summary = ImportSummary(
            import_type=import_type,
            file_name=", ".join(p.name for p in self.sources.values()),
            dry_run=dry_run,
        )
        self.results: dict[str, PersistResult] = {}

    def run(self) -> ImportSummary:
        """
        Orchestrates the pipeline execution. A sheet that cannot be opened
        raises SheetError out of `extract`, before anything is written.
        """
        mode = "DRY RUN" if self.dry_run else "IMPORT"
        logger.info(f"🚀 STEP: {self.import_type.upper()} {mode}")
        logger.info("-" * 30)

        # --- 1. EXTRACT ---
        parsed = self.extract()
        if not any(parsed.values()):
            logger.warning(f"⚠️ No rows with a style number found for {self.import_type}. Nothing to do.")
            return self.summary

        self.summary.row_count = sum(len(records) for records in parsed.values())

        # --- 2. TRANSFORM ---
        tables = self.transform(parsed)

        # --- 3. LOAD ---
        self.load(tables)

        logger.info(f"✅ {self.import_type.capitalize()} pipeline finished.\n")
        logger.info("=" * 60)
        return self.summary

    @abstractmethod
    def extract(self) -> dict[str, list[Any]]:
        """Parses every source sheet. Returns source name -> parsed records."""

    @abstractmethod
    def transform(self, parsed: dict[str, list[Any]]) -> dict[str, list[Record]]:
        """Turns parsed records into table name -> records to write, filling in the summary."""

    def parse_source(self, name: str, kind: str) -> list[Any]:
        """Loads a source workbook once, records its column matches, and parses it."""
        path = self.sources.get(name)
        if path is None:
            return []
        logger.info(f"-- Reading {name}: {path.name} --")
        workbook = utils.load_workbook(path)
        self.summary.column_matches[name] = parsers.column_report(workbook, kind)
        missing = [f for f, h in self.summary.column_matches[name].items() if h is None]
        if missing:
            logger.info(f"  > No column found for: {', '.join(missing)}")
        return parsers.get_parser(kind)(workbook)

    def write(self, table: str, records: list[Record]) -> PersistResult:
        return self.persister.persist(
            table,
            records,
            replace_existing=self.replace_existing,
            replace_scope=self.replace_scope,
        )

    def load(self, tables: dict[str, list[Record]]):
        """
        Dry run: write CSV/JSON for inspection. Live: persist each table in
        order, keep the error log next to the input, append to the import log
        and notify the webhook.
        """
        self.log_summary()

        if self.dry_run:
            for table, records in tables.items():
                if records:
                    data_handler.save_outputs(records, f"{self.import_type}_{table.lower()}_dry_run")
            logger.info("🧪 Dry Run: nothing written to the store.")
            return

        if self.persister is None:
            raise ValueError("A live import needs a BatchPersister")

        for table, records in tables.items():
            if not records:
                continue
            result = self.write(table, records)
            self.results[table] = result
            self.summary.inserted[table] = result.inserted
            self.summary.errors[table] = result.errors
            if result.error_log:
                write_error_log(result, self.input_dir)

        if any(r.inserted for r in self.results.values()):
            self.persister.log_import(
                self.summary.file_name,
                self.import_type,
                sum(r.inserted for r in self.results.values()),
                season=self.season,
            )

        data_handler.post_to_webhook(self.summary)

    @property
    def input_dir(self) -> Path:
        first = next(iter(self.sources.values()), None)
        return first.parent if first is not None else Path(".")

    def log_summary(self):
        logger.info("\n--- Import Summary ---")
        logger.info(f"Rows: {self.summary.row_count}")
        for season, count in self.summary.season_breakdown.items():
            logger.info(f"  {season}: {count}")
        stats = self.summary.reconcile
        if stats is not None:
            logger.info(
                f"Line list: {stats.line_list_count}, landed matches: {stats.landed_cost_matches}, "
                f"duplicates rejected: {stats.landed_duplicates_rejected}, "
                f"price overrides: {stats.pricing_overrides}, sales fallbacks: {stats.sales_fallbacks}"
            )
            if stats.landed_orphans:
                logger.info(f"Dropped landed-only styles: {', '.join(stats.landed_orphans)}")
