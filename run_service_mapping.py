#!/usr/bin/env python3
"""
Run the service mapping pipeline from the command line.

Matches every unique provider service label against the active service
taxonomy, writes accepted mappings and review suggestions, and prints the
run summary. Optionally exports CSV / markdown reports.

Usage:
  python3 run_service_mapping.py                 # full run
  python3 run_service_mapping.py --dry-run       # score only, write nothing
  python3 run_service_mapping.py --export-dir data
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

load_dotenv()

from config import AppConfig
from database.simple_connection import ServiceMappingDatabase
from api.services.mapping_persistence import MappingPersistenceGateway
from api.services.mapping_reports import export_markdown_report, export_matches_csv, export_provider_services_csv
from api.services.service_aggregator import aggregate
from api.services.service_mapping_errors import DataSourceUnavailable
from api.services.service_mapping_pipeline import ServiceMappingPipeline

logger = logging.getLogger(__name__)


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Match provider services to the service taxonomy")
    parser.add_argument("--dry-run", action="store_true", help="Score and classify without writing to the database")
    parser.add_argument("--export-dir", help="Write service-matches.csv, provider-services.csv and a markdown report here")
    parser.add_argument("--database-url", help=f"Override DATABASE_URL (default: {AppConfig.DATABASE_URL})")
    parser.add_argument("--batch-size", type=positive_int, help=f"Rows per upsert chunk (default: {AppConfig.BATCH_SIZE})")
    parser.add_argument("--provider-status", help=f"Provider status to include (default: {AppConfig.PROVIDER_ACTIVE_STATUS})")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if not AppConfig.validate_config():
        return 2

    print("🔍 Service mapping run")
    print("=" * 50)

    try:
        db = ServiceMappingDatabase(database_url=args.database_url)
    except SQLAlchemyError as e:
        print(f"❌ Cannot open database: {e}")
        return 1

    gateway = MappingPersistenceGateway(db, batch_size=args.batch_size)
    pipeline = ServiceMappingPipeline(db, gateway=gateway, provider_status=args.provider_status)

    try:
        summary = pipeline.run(dry_run=args.dry_run)
    except DataSourceUnavailable as e:
        print(f"❌ Run aborted, nothing was written: {e}")
        return 1

    print(f"\n📊 Summary{' (dry run)' if summary.dry_run else ''}:")
    print(f"   📦 Unique labels processed: {summary.total_processed}")
    print(f"   🟢 Auto-accepted:           {summary.auto_accepted}")
    print(f"   🟡 Routed to review:        {summary.routed_to_review}")
    print(f"   🔴 Failed:                  {summary.failed}")
    print(f"   🎯 Auto-match rate:         {summary.auto_match_rate}%")

    if summary.failed_labels:
        print("\n⚠️ Labels that need a rerun:")
        for label in summary.failed_labels:
            print(f"   - {label}")

    if args.export_dir:
        export_dir = Path(args.export_dir)
        export_matches_csv(summary, export_dir / "service-matches.csv")
        export_markdown_report(summary, export_dir / "service-matches-report.md")
        try:
            providers = db.list_providers(status=pipeline.provider_status)
            export_provider_services_csv(aggregate(providers), export_dir / "provider-services.csv")
        except DataSourceUnavailable as e:
            print(f"⚠️ Provider services export skipped: {e}")

    print("\n✅ Service mapping completed" + (" with failures" if summary.failed else ""))
    return 0


if __name__ == "__main__":
    sys.exit(main())
