"""Reconciliation run results.

- SkipReason: Why a line item or activity was not reconciled
- SkipRecord: One itemized skip with the legacy ids involved
- ReconciliationSummary: Counters and skips of one run
"""

from collections import Counter
from enum import Enum
from typing import Any, Dict, List, Optional


class SkipReason(str, Enum):
    UNRESOLVED_CASE = "unresolved_case"
    UNRESOLVED_SOURCE_CASE = "unresolved_source_case"
    MISSING_CASE_DETAIL = "missing_case_detail"
    UNRESOLVED_WINE = "unresolved_wine"
    UNRESOLVED_BOTTLE_FORMAT = "unresolved_bottle_format"
    UNRESOLVED_BOTTLE_VINTAGE = "unresolved_bottle_vintage"
    UNKNOWN_TRANSACTION_KIND = "unknown_transaction_kind"
    UNSUPPORTED_LINE_KIND = "unsupported_line_kind"
    UNMAPPED_STATUS = "unmapped_status"
    ALREADY_MIGRATED = "already_migrated"
    NO_LINE_ITEMS = "no_line_items"
    INVALID_LEGACY_ROW = "invalid_legacy_row"


class SkipRecord:
    """A line item or activity left out of the target store."""

    def __init__(
        self,
        reason: SkipReason,
        message: str,
        legacy_activity_id: Optional[Any] = None,
        legacy_activity_detail_id: Optional[Any] = None,
    ):
        self.reason = reason
        self.message = message
        self.legacy_activity_id = legacy_activity_id
        self.legacy_activity_detail_id = legacy_activity_detail_id

    def to_dict(self) -> Dict:
        return {
            "reason": self.reason.value,
            "message": self.message,
            "legacy_activity_id": self.legacy_activity_id,
            "legacy_activity_detail_id": self.legacy_activity_detail_id,
        }


class ReconciliationSummary:
    """Counts of inserted and skipped records for one run.

    ``skips`` keeps every SkipRecord in the order they occurred; the
    per-reason counts are derived from it.
    """

    def __init__(self):
        self.activities_seen = 0
        self.groups_created = 0
        self.case_operations_created = 0
        self.ledger_entries_inserted = 0
        self.ledger_entries_accumulated = 0
        self.placeholder_wines_created = 0
        self.snapshot_entries_inserted = 0
        self.snapshot_entries_skipped = 0
        self.skips: List[SkipRecord] = []

    def skip(
        self,
        reason: SkipReason,
        message: str,
        legacy_activity_id: Optional[Any] = None,
        legacy_activity_detail_id: Optional[Any] = None,
    ) -> SkipRecord:
        record = SkipRecord(reason, message, legacy_activity_id, legacy_activity_detail_id)
        self.skips.append(record)
        return record

    def skip_counts(self) -> Dict[str, int]:
        return dict(Counter(record.reason.value for record in self.skips))

    @property
    def total_skipped(self) -> int:
        return len(self.skips)

    def to_dict(self) -> Dict:
        return {
            "activities_seen": self.activities_seen,
            "groups_created": self.groups_created,
            "case_operations_created": self.case_operations_created,
            "ledger_entries_inserted": self.ledger_entries_inserted,
            "ledger_entries_accumulated": self.ledger_entries_accumulated,
            "placeholder_wines_created": self.placeholder_wines_created,
            "snapshot_entries_inserted": self.snapshot_entries_inserted,
            "snapshot_entries_skipped": self.snapshot_entries_skipped,
            "skipped": self.skip_counts(),
            "skips": [record.to_dict() for record in self.skips],
        }

    def format_summary(self) -> str:
        """Render the run summary as an operator-facing text report."""
        lines = [
            "=" * 60,
            "MIGRATION SUMMARY",
            "=" * 60,
            f"Activities processed:       {self.activities_seen}",
            f"Operation groups created:   {self.groups_created}",
            f"Case operations created:    {self.case_operations_created}",
            f"Ledger entries inserted:    {self.ledger_entries_inserted}",
            f"Ledger entries accumulated: {self.ledger_entries_accumulated}",
            f"Placeholder wines created:  {self.placeholder_wines_created}",
        ]
        if self.snapshot_entries_inserted or self.snapshot_entries_skipped:
            lines.append(f"Case snapshots inserted:    {self.snapshot_entries_inserted}")
            lines.append(f"Case snapshots skipped:     {self.snapshot_entries_skipped}")

        lines.append(f"Skipped:                    {self.total_skipped}")
        for reason, count in sorted(self.skip_counts().items()):
            lines.append(f"  - {reason}: {count}")
        lines.append("=" * 60)
        return "\n".join(lines)
