"""Case inventory snapshots.

Rebuilds on-hand inventory entries (operation_id NULL, case_id set) from the
legacy case details. Existing snapshot rows of the tenant are replaced on
every call. Unlike activity reconciliation, no placeholder wines are created.
"""

from typing import Optional, Tuple

from core.observability.logging import get_logger, with_correlation
from identity_resolver.models import IdentityKind
from identity_resolver.resolver import IdentityResolver
from legacy_source.loader import LegacyRecordSource
from legacy_source.models import LegacyCaseDetail
from reconciliation.models import ReconciliationSummary
from target_store.db import TargetStore


logger = get_logger(__name__)


def _resolve_snapshot(
    detail: LegacyCaseDetail,
    resolver: IdentityResolver,
) -> Tuple[Optional[Tuple[str, str, str, str]], str]:
    checks = (
        (IdentityKind.WINE, detail.wine_item_id),
        (IdentityKind.BOTTLE_FORMAT, detail.bottle_format_id),
        (IdentityKind.BOTTLE_VINTAGE, detail.vintage_id),
    )
    resolved = []
    for kind, legacy_id in checks:
        target_id = resolver.resolve(kind, legacy_id)
        if target_id is None:
            return None, f"No {kind.value} found for legacy id {legacy_id}"
        resolved.append(target_id)

    if detail.wine_quantity <= 0:
        return None, f"Wine quantity {detail.wine_quantity} is not greater than 0"

    case_id = resolver.resolve(IdentityKind.CASE, detail.case_id)
    if case_id is None:
        return None, f"Case {detail.case_id} does not exist"

    return (resolved[0], resolved[1], resolved[2], case_id), ""


def seed_case_inventory_snapshots(
    source: LegacyRecordSource,
    store: TargetStore,
    resolver: IdentityResolver,
    summary: Optional[ReconciliationSummary] = None,
) -> Tuple[int, int]:
    """Replace the tenant's case snapshot entries with the legacy case details.

    Args:
        source: Legacy case details
        store: Tenant-scoped target store
        resolver: Identity resolver of the run
        summary: Optional run summary to record the counts on

    Returns:
        (inserted, skipped)
    """
    if not source.case_details:
        logger.warning("No case details found, skipping wine inventory seeding")
        return 0, 0

    with with_correlation(stage="case_snapshots"):
        deleted = store.delete_case_snapshots()
        logger.debug(f"Deleted {deleted} existing case snapshot entries")

        inserted = 0
        skipped = 0
        for detail in source.case_details:
            resolved, problem = _resolve_snapshot(detail, resolver)
            if resolved is None:
                logger.warning(f"{problem} for case detail {detail.case_detail_id}, skipping")
                skipped += 1
                continue

            wine_id, bottle_format_id, bottle_vintage_id, case_id = resolved
            store.insert_inventory_entry(
                wine_id,
                bottle_format_id,
                bottle_vintage_id,
                detail.wine_quantity,
                case_id=case_id,
                created_at=detail.created_at,
                updated_at=detail.updated_at,
            )
            inserted += 1

        store.commit()

    logger.info(f"Wine inventory entries: {inserted} inserted, {skipped} skipped")
    if summary is not None:
        summary.snapshot_entries_inserted += inserted
        summary.snapshot_entries_skipped += skipped
    return inserted, skipped
