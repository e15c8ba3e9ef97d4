"""
Migrate one legacy activity by id.

Validates that the activity's customer and cases were already imported,
optionally deletes a previous migration of the same activity, then
reconciles it whatever its legacy status.

Usage:
    python scripts/migrate_specific_activity.py --activity-id 501 [--clear-existing] [--config=PATH]
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
from target_store.db import TargetStore, ensure_tenant, get_db_connection, init_target_store_db


logger = get_logger("scripts.migrate_specific_activity")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Migrate a specific legacy activity")
    parser.add_argument("--activity-id", type=int, required=True, help="Legacy ActivityID")
    parser.add_argument("--clear-existing", action="store_true", help="Delete a previous migration of the activity")
    parser.add_argument("--config", type=Path, help="JSON config file")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings(args.config)
    except MigrationError as e:
        configure_logging()
        logger.error(f"Migration failed: {e}")
        return 1

    configure_logging(level=settings.logging_level, json_format=settings.log_json, force=True)
    logger.info(f"Migrating activity {args.activity_id}")

    conn: Optional[sqlite3.Connection] = None
    try:
        source = LegacyRecordSource.from_directory(settings.legacy_data_dir)

        conn = get_db_connection(settings.target_db_path)
        init_target_store_db(conn)
        tenant_id = ensure_tenant(conn, settings.tenant_name, settings.tenant_document_number)

        with with_correlation(tenant_id=tenant_id):
            store = TargetStore(conn, tenant_id)
            reconciler = ActivityReconciler(source, store, confirmed_status=settings.confirmed_status)
            group_id = reconciler.migrate_activity(args.activity_id, clear_existing=args.clear_existing)

        conn.commit()
    except (MigrationError, sqlite3.Error) as e:
        logger.exception(f"Migration failed: {e}")
        return 1
    finally:
        if conn is not None:
            conn.close()

    if group_id:
        logger.info(f"Activity {args.activity_id} migrated into operation group {group_id}")
    logger.info("Migration summary", extra_fields=reconciler.summary.to_dict())
    print(reconciler.summary.format_summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
