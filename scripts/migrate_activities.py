"""
Migrate legacy case activities into operation groups.

Steps:
1. Load the extracted legacy JSON files
2. Create or reuse the tenant
3. Reconcile every confirmed activity of every migrated customer
4. Rebuild case inventory snapshots from the legacy case details
5. Print the run summary

Usage:
    python scripts/migrate_activities.py [--config=PATH] [--clear-existing]
        [--account-id N] [--skip-snapshots] [--json-logs]
"""

import argparse
import sqlite3
import sys
from pathlib import Path
from typing import List, Optional

sys.path.append(str(Path(__file__).resolve().parents[1]))

from core.config import load_settings
from core.errors import MigrationError
from core.observability.logging import configure_logging, get_logger, with_correlation
from legacy_source.loader import LegacyRecordSource
from reconciliation.engine import ActivityReconciler
from reconciliation.snapshots import seed_case_inventory_snapshots
from target_store.db import TargetStore, ensure_tenant, get_db_connection, init_target_store_db


logger = get_logger("scripts.migrate_activities")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Migrate legacy case activities")
    parser.add_argument("--config", type=Path, help="JSON config file")
    parser.add_argument("--clear-existing", action="store_true", help="Delete migrated operations first")
    parser.add_argument("--account-id", type=int, help="Only migrate this legacy account")
    parser.add_argument("--skip-snapshots", action="store_true", help="Do not rebuild case inventory snapshots")
    parser.add_argument("--json-logs", action="store_true", default=None, help="Log one JSON object per line")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings(args.config, log_json=args.json_logs)
    except MigrationError as e:
        configure_logging()
        logger.error(f"Migration failed: {e}")
        return 1

    configure_logging(level=settings.logging_level, json_format=settings.log_json, force=True)
    logger.info("Starting legacy case activity migration")
    if args.clear_existing:
        logger.info("Clear existing data mode enabled")

    conn: Optional[sqlite3.Connection] = None
    try:
        source = LegacyRecordSource.from_directory(settings.legacy_data_dir)

        conn = get_db_connection(settings.target_db_path)
        init_target_store_db(conn)
        tenant_id = ensure_tenant(conn, settings.tenant_name, settings.tenant_document_number)

        with with_correlation(tenant_id=tenant_id):
            store = TargetStore(conn, tenant_id)
            reconciler = ActivityReconciler(source, store, confirmed_status=settings.confirmed_status)
            summary = reconciler.run(account_id=args.account_id, clear_existing=args.clear_existing)

            if not args.skip_snapshots:
                seed_case_inventory_snapshots(source, store, reconciler.resolver, summary)

        conn.commit()
    except (MigrationError, sqlite3.Error) as e:
        logger.exception(f"Migration failed: {e}")
        return 1
    finally:
        if conn is not None:
            conn.close()

    logger.info("Migration summary", extra_fields=summary.to_dict())
    print(summary.format_summary())
    logger.info("Case activity migration completed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
