"""
Command-line interface for the import jobs.

Usage:
    python -m sales_index.cli.import_cli invoices [--headers P] [--lines P] [--with-index]
    python -m sales_index.cli.import_cli index [--headers P] [--lines P]
    python -m sales_index.cli.import_cli customers [--customers P] [--contacts P]
    python -m sales_index.cli.import_cli backfill-lines
    python -m sales_index.cli.import_cli top-items [--days-back N] [--top N]
"""

import argparse
import sys

from sales_index.batch.errors import BatchCommitError, ConfigurationError
from sales_index.batch.pipeline import InvoiceImportPipeline
from sales_index.config import PipelineSettings, load_settings
from sales_index.observability.logger import get_logger
from sales_index.observability.metrics import start_metrics_server
from sales_index.store.errors import StoreError
from sales_index.store.factory import create_store

logger = get_logger(__name__)


def _settings(args) -> PipelineSettings:
    overrides = {
        "header_csv_path": getattr(args, "headers", None),
        "line_csv_path": getattr(args, "lines", None),
        "customers_csv_path": getattr(args, "customers", None),
        "contacts_csv_path": getattr(args, "contacts", None),
        "years_back": getattr(args, "years_back", None),
        "top_items_days_back": getattr(args, "days_back", None),
        "top_items_count": getattr(args, "top", None),
    }
    return load_settings(args.config, overrides=overrides)


def invoices_command(pipeline: InvoiceImportPipeline, settings: PipelineSettings, args) -> None:
    result = pipeline.run(
        settings.require("header_csv_path"),
        settings.require("line_csv_path"),
        with_index=args.with_index,
    )
    logger.info("=" * 60)
    logger.info("INVOICE IMPORT COMPLETE")
    logger.info("=" * 60)
    logger.info(f"Window starts: {result.headers.cutoff.isoformat()}")
    logger.info(f"Headers written: {result.headers.written:,} (read {result.headers.rows_read:,})")
    logger.info(f"Lines written: {result.lines.written:,} (read {result.lines.rows_read:,})")
    logger.info(f"Totals updated: {result.totals.updated:,}")
    if result.index is not None:
        logger.info(f"Index entries written: {result.index.entries_written:,}")
    print(result.model_dump_json(indent=2, exclude={"lines": {"merchandise_totals"}}))


def index_command(pipeline: InvoiceImportPipeline, settings: PipelineSettings, args) -> None:
    result = pipeline.build_index(settings.require("header_csv_path"), settings.require("line_csv_path"))
    logger.info(f"Index entries written: {result.entries_written:,}")
    print(result.model_dump_json(indent=2))


def customers_command(pipeline: InvoiceImportPipeline, settings: PipelineSettings, args) -> None:
    result = pipeline.import_customers(settings.require("customers_csv_path"), settings.contacts_csv_path)
    logger.info(f"Customers written: {result.written:,} (buyer emails {result.buyer_emails:,})")
    print(result.model_dump_json(indent=2))


def backfill_command(pipeline: InvoiceImportPipeline, settings: PipelineSettings, args) -> None:
    result = pipeline.backfill_lines()
    print(result.model_dump_json(indent=2))


def top_items_command(pipeline: InvoiceImportPipeline, settings: PipelineSettings, args) -> None:
    result = pipeline.top_items(
        days_back=settings.top_items_days_back,
        top_n=settings.top_items_count,
        excluded_codes=tuple(settings.top_items_excluded_codes),
        excluded_prefixes=tuple(settings.top_items_excluded_prefixes),
    )
    print(result.model_dump_json(indent=2, by_alias=True))


COMMANDS = {
    "invoices": invoices_command,
    "index": index_command,
    "customers": customers_command,
    "backfill-lines": backfill_command,
    "top-items": top_items_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import accounting exports into the sales index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import the last 3 years of invoices and rebuild the item index
  python -m sales_index.cli.import_cli invoices --headers Inv_HH.csv --lines Inv_HD.csv --with-index

  # Validate exports without touching the database
  python -m sales_index.cli.import_cli invoices --headers Inv_HH.csv --lines Inv_HD.csv --dry-run

  # Import customers with buyer contacts
  python -m sales_index.cli.import_cli customers --customers customers.csv --contacts contacts.csv
        """
    )
    parser.add_argument("--config", help="YAML settings file")
    parser.add_argument("--dry-run", action="store_true", help="Write to an in-memory store only")
    parser.add_argument("--metrics-port", type=int, help="Expose Prometheus metrics on this port")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    invoices = subparsers.add_parser("invoices", help="Import invoice headers and lines")
    invoices.add_argument("--headers", help="Header CSV (env CSV_HH_PATH)")
    invoices.add_argument("--lines", help="Line CSV (env CSV_HD_PATH)")
    invoices.add_argument("--years-back", type=int, help="Rolling window in years (env YEARS_BACK)")
    invoices.add_argument("--with-index", action="store_true", help="Also rebuild itemCustomerIndex")

    index = subparsers.add_parser("index", help="Rebuild itemCustomerIndex from the exports")
    index.add_argument("--headers", help="Header CSV (env CSV_HH_PATH)")
    index.add_argument("--lines", help="Line CSV (env CSV_HD_PATH)")
    index.add_argument("--years-back", type=int, help="Rolling window in years (env YEARS_BACK)")

    customers = subparsers.add_parser("customers", help="Import customers")
    customers.add_argument("--customers", help="Customer CSV (env CSV_CUSTOMERS_PATH)")
    customers.add_argument("--contacts", help="Contacts CSV for buyer emails (env CSV_CONTACTS_PATH)")

    subparsers.add_parser("backfill-lines", help="Copy header fields onto stored lines")

    top_items = subparsers.add_parser("top-items", help="Compute company top items")
    top_items.add_argument("--days-back", type=int, help="Trailing days (default 60)")
    top_items.add_argument("--top", type=int, help="Items to keep (default 5)")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    store = None
    try:
        settings = _settings(args)
        if args.metrics_port:
            start_metrics_server(args.metrics_port)

        store = create_store(settings, dry_run=args.dry_run)
        pipeline = InvoiceImportPipeline.from_settings(store, settings)
        COMMANDS[args.command](pipeline, settings, args)

        if args.dry_run:
            logger.info("DRY RUN: No data was written to the database")

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except BatchCommitError as e:
        logger.error(
            f"Import stopped: {e}. Rerunning the same command is safe.",
            exc_info=True,
        )
        sys.exit(1)
    except StoreError as e:
        logger.error(f"Store error during {args.command}: {e}", exc_info=True)
        sys.exit(1)
    finally:
        if store is not None:
            store.close()


if __name__ == "__main__":
    main()
