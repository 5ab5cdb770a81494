import argparse
import json
import logging
import sys
from pathlib import Path
import requests

from seasonsync import service, settings
from seasonsync.aggregate import AggregationService
from seasonsync.errors import ImportRequestError, SheetError
from seasonsync.logger import setup_logger
from seasonsync.parsers import detect_sheet
from seasonsync.persist import BatchPersister
from seasonsync.pipelines.inventory import InventoryImportPipeline
from seasonsync.pipelines.pricing import PricingImportPipeline
from seasonsync.pipelines.sales import SalesImportPipeline
from seasonsync.pipelines.season import SeasonImportPipeline
from seasonsync.store import RestStore, SqlClient

logger = logging.getLogger(__name__)


def _persister(args: argparse.Namespace, sql: bool = False) -> BatchPersister | None:
    """Store clients are only built for live runs."""
    if getattr(args, "dry_run", False):
        return None
    if sql:
        return BatchPersister(store=RestStore.from_settings(), sql_client=SqlClient.from_settings())
    return BatchPersister(store=RestStore.from_settings())


def _print_summary(summary) -> None:
    print(json.dumps(summary.model_dump(mode="json"), indent=2))


def cmd_season(args: argparse.Namespace) -> int:
    summary = SeasonImportPipeline(
        args.line_list,
        landed=args.landed,
        season=args.season,
        pricing=args.pricing,
        sales=args.sales,
        persister=_persister(args),
        dry_run=args.dry_run,
    ).run()
    _print_summary(summary)
    return 0 if not any(summary.errors.values()) else 2


def cmd_pricing(args: argparse.Namespace) -> int:
    summary = PricingImportPipeline(
        args.path, season=args.season, persister=_persister(args), dry_run=args.dry_run
    ).run()
    _print_summary(summary)
    return 0 if not any(summary.errors.values()) else 2


def cmd_sales(args: argparse.Namespace) -> int:
    summary = SalesImportPipeline(
        args.path, season=args.season, persister=_persister(args), dry_run=args.dry_run
    ).run()
    _print_summary(summary)
    return 0 if not any(summary.errors.values()) else 2


def cmd_inventory(args: argparse.Namespace) -> int:
    summary = InventoryImportPipeline(
        args.path, persister=_persister(args, sql=True), dry_run=args.dry_run
    ).run()
    _print_summary(summary)
    return 0 if not any(summary.errors.values()) else 2


def cmd_all(args: argparse.Namespace) -> int:
    """Products (with costs) first, then the price sheet, then sales."""
    persister = _persister(args)
    pipelines = [
        SeasonImportPipeline(
            args.line_list, landed=args.landed, season=args.season,
            pricing=args.pricing, sales=args.sales, persister=persister, dry_run=args.dry_run,
        )
    ]
    if args.pricing:
        pipelines.append(
            PricingImportPipeline(args.pricing, season=args.season, persister=persister, dry_run=args.dry_run)
        )
    if args.sales:
        pipelines.append(
            SalesImportPipeline(args.sales, season=args.season, persister=persister, dry_run=args.dry_run)
        )

    failed = False
    for pipeline in pipelines:
        summary = pipeline.run()
        _print_summary(summary)
        failed = failed or any(summary.errors.values())
    return 2 if failed else 0


def cmd_json(args: argparse.Namespace) -> int:
    with open(args.path, encoding="utf-8") as f:
        payload = json.load(f)
    result = service.import_records(_persister(args), payload, dry_run=args.dry_run)
    print(json.dumps(result.model_dump(), indent=2))
    return 0 if not result.errors else 2


def cmd_detect(args: argparse.Namespace) -> int:
    print(json.dumps(detect_sheet(args.path), indent=2, default=str))
    return 0


def cmd_summary(args: argparse.Namespace) -> int:
    aggregation = AggregationService(RestStore.from_settings())
    table = settings.SALE_TABLE if args.table == "sales" else settings.INVENTORY_TABLE
    summary = aggregation.summarize(table)
    print(json.dumps(summary.model_dump(mode="json", by_alias=True), indent=2, default=str))
    return 0


def cmd_seasons(args: argparse.Namespace) -> int:
    store = RestStore.from_settings()
    if args.save:
        row = service.save_season(
            store, {"code": args.save, "name": args.name, "status": args.status, "notes": args.notes}
        )
        print(json.dumps(row, indent=2, default=str))
    elif args.delete:
        service.delete_season(store, args.delete)
    else:
        print(json.dumps(service.list_seasons(AggregationService(store)), indent=2, default=str))
    return 0


def cmd_reset(args: argparse.Namespace) -> int:
    deleted = service.reset(RestStore.from_settings(), args.confirm)
    print(json.dumps(deleted, indent=2))
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import and reconcile seasonal product spreadsheets")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_dry_run(p: argparse.ArgumentParser):
        p.add_argument(
            "--dry-run", action="store_true",
            help="Parse and report without writing; records go to CSV/JSON in the output folder",
        )

    for name, help_text in [
        ("season", "Line list + landed costs for one season -> Product and Cost"),
        ("all", "Season import, then the price sheet, then sales"),
    ]:
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("--line-list", type=Path, required=True)
        p.add_argument("--landed", type=Path)
        p.add_argument("--pricing", type=Path)
        p.add_argument("--sales", type=Path)
        p.add_argument("--season", help="Target season, e.g. 26FA (defaults to the file name)")
        add_dry_run(p)
        p.set_defaults(func=cmd_season if name == "season" else cmd_all)

    for name, func in [("pricing", cmd_pricing), ("sales", cmd_sales)]:
        p = subparsers.add_parser(name, help=f"Import a {name} sheet")
        p.add_argument("path", type=Path)
        p.add_argument("--season", help="Only keep rows for this season")
        add_dry_run(p)
        p.set_defaults(func=func)

    p = subparsers.add_parser("inventory", help="Replace the inventory movement table")
    p.add_argument("path", type=Path)
    add_dry_run(p)
    p.set_defaults(func=cmd_inventory)

    p = subparsers.add_parser("import-json", help="Import a JSON payload {type, season, data, replaceExisting}")
    p.add_argument("path", type=Path)
    add_dry_run(p)
    p.set_defaults(func=cmd_json)

    p = subparsers.add_parser("detect", help="Guess what kind of sheet a file is")
    p.add_argument("path", type=Path)
    p.set_defaults(func=cmd_detect)

    p = subparsers.add_parser("summary", help="Print the server-side rollups")
    p.add_argument("table", choices=["sales", "inventory"])
    p.set_defaults(func=cmd_summary)

    p = subparsers.add_parser("seasons", help="List seasons, or save/delete season metadata")
    group = p.add_mutually_exclusive_group()
    group.add_argument("--save", metavar="CODE")
    group.add_argument("--delete", metavar="CODE")
    p.add_argument("--name")
    p.add_argument("--status", choices=["planning", "selling", "complete"])
    p.add_argument("--notes")
    p.set_defaults(func=cmd_seasons)

    p = subparsers.add_parser("reset", help="Delete all imported data")
    p.add_argument("--confirm", help=f"Must be '{settings.RESET_CONFIRM_TOKEN}'")
    p.set_defaults(func=cmd_reset)

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logger(log_level=logging.DEBUG if args.verbose else None)
    try:
        return args.func(args)
    except (SheetError, ImportRequestError) as e:
        logger.error(f"❌ {e}")
        return 1
    except requests.exceptions.RequestException as e:
        logger.error(f"❌ Store request failed: {e}")
        return 1
    except ValueError as e:
        logger.error(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
