"""
Command-line interface for item buyer lookups.

Usage:
    python -m sales_index.cli.lookup_cli --item K233 --salesperson 7 [--tier A --count 3]
"""

import argparse
import sys

from sales_index.batch.errors import ConfigurationError
from sales_index.config import load_settings
from sales_index.lookup.item_buyers import ItemBuyersService, LookupServiceError
from sales_index.observability.logger import get_logger
from sales_index.store.errors import StoreError
from sales_index.store.factory import create_store
from sales_index.utils.validation import ValidationError

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Who bought an item, and who has not yet")
    parser.add_argument("--item", required=True, help="Item code")
    parser.add_argument("--salesperson", default="", help="Salesperson code (\"7\" or \"0007\")")
    parser.add_argument("--one-per-tier", action="store_true", help="Keep the top buyer of each tier")
    parser.add_argument("--tier", choices=["A", "B", "C", "D"], help="Tier to find opportunities in")
    parser.add_argument("--count", type=int, default=4, help="Opportunities to return (max 25)")
    parser.add_argument("--no-index", action="store_true", help="Skip itemCustomerIndex, join live")
    parser.add_argument("--config", help="YAML settings file")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    store = None
    try:
        store = create_store(load_settings(args.config))
        result = ItemBuyersService(store).find_buyers(
            args.item,
            args.salesperson,
            one_per_tier=args.one_per_tier,
            selected_tier=args.tier,
            opportunity_count=args.count,
            use_index=not args.no_index,
        )
        print(result.model_dump_json(indent=2))
    except (ConfigurationError, ValidationError) as e:
        logger.error(f"Invalid request: {e}")
        sys.exit(1)
    except (LookupServiceError, StoreError) as e:
        logger.error(f"Service error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        if store is not None:
            store.close()


if __name__ == "__main__":
    main()
