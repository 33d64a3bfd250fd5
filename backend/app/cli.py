"""
Catalog maintenance commands.

Usage:
    catalog-migrate migrate-properties [--dry-run] [--verbose] [--only products]
    catalog-migrate normalize-values [--dry-run] [--verbose]
    catalog-migrate repair-distributors [--dry-run] [--verbose]

Exit code 0 when the run completes (per-record errors are listed in the
summary), 1 when the run could not start.
"""
import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from app.db import make_engine, make_session_factory, require_database_url
from app.services.exceptions import ConfigurationError
from app.services.logging_config import setup_logging
from app.services.property_migration import (
    KEY_MIGRATION_DRIVERS,
    MigrationStats,
    run_property_migration,
    run_value_normalization,
)
from app.services.relationship_repair import RepairStats, repair_relationships

logger = logging.getLogger("catalog-cli")

# ANSI colors
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
CYAN = "\033[96m"
BOLD = "\033[1m"
RESET = "\033[0m"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="catalog-migrate", description="Catalog maintenance commands")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser):
        p.add_argument("--dry-run", action="store_true", help="compute and log changes without writing")
        p.add_argument("--verbose", action="store_true", help="log every key change")

    migrate = sub.add_parser("migrate-properties", help="rewrite property keys onto canonical definitions")
    add_common(migrate)
    migrate.add_argument(
        "--only", action="append", choices=list(KEY_MIGRATION_DRIVERS),
        help="limit to one entity kind (repeatable)",
    )

    add_common(sub.add_parser("normalize-values", help="fill normalized numeric property values"))
    add_common(sub.add_parser("repair-distributors", help="fix distributor/manufacturer relationships"))
    return parser


def _print_stats(label: str, stats: MigrationStats):
    line = f"{label:<16} {stats.updated}/{stats.total} updated ({stats.properties_updated} properties"
    if stats.variants_updated:
        line += f", {stats.variants_updated} variant properties"
    print(line + ")")
    for err in stats.errors:
        print(f"  {RED}✗ {err.name or err.record_id}: {err.message}{RESET}")


def _print_repair(stats: RepairStats):
    print(f"Products         {stats.updated}/{stats.total} updated")
    print(f"  distributor fixed:      {stats.fixed_distributor}")
    print(f"  manufacturer fixed:     {stats.fixed_manufacturer}")
    print(f"  supplier entries fixed: {stats.fixed_supplier_entries} ({stats.merged_supplier_entries} merged)")
    print(f"  relationships created:  {stats.created_relationships}")
    if stats.created_companies:
        print(f"  companies created:      {', '.join(stats.created_companies)}")
    if stats.needs_review:
        print(f"{YELLOW}  {len(stats.needs_review)} product(s) need manual review:{RESET}")
        for item in stats.needs_review:
            print(f"    - {item['productName']} ({item['productId']})")
    for err in stats.errors:
        print(f"  {RED}✗ {err.name or err.record_id}: {err.message}{RESET}")


async def run_command(args: argparse.Namespace, database_url: str) -> int:
    engine = make_engine(database_url)
    session_factory = make_session_factory(engine)
    try:
        print(f"{BOLD}{args.command}{RESET}" + (f" {YELLOW}(DRY RUN, no changes saved){RESET}" if args.dry_run else ""))
        if args.command == "migrate-properties":
            results = await run_property_migration(
                session_factory, dry_run=args.dry_run, verbose=args.verbose, only=args.only
            )
            for name, stats in results.items():
                _print_stats(name, stats)
        elif args.command == "normalize-values":
            _print_stats("products", await run_value_normalization(session_factory, args.dry_run, args.verbose))
        elif args.command == "repair-distributors":
            _print_repair(await repair_relationships(session_factory, args.dry_run, args.verbose))
    finally:
        await engine.dispose()
    print(f"{GREEN}Done.{RESET}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()
    setup_logging(
        level=os.getenv("LOG_LEVEL", "INFO"),
        json_output=os.getenv("LOG_FORMAT", "text").lower() == "json",
    )

    try:
        database_url = require_database_url()
    except ConfigurationError as e:
        print(f"{RED}ERROR: {e.message}{RESET}", file=sys.stderr)
        return 1

    try:
        return asyncio.run(run_command(args, database_url))
    except (OSError, SQLAlchemyError) as e:
        logger.error(f"Could not complete {args.command}: {e}")
        print(f"{RED}ERROR: {e}{RESET}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
