"""Legacy Source - Typed access to the extracted legacy cellar data.

This package reads the JSON files produced by the legacy extraction step and
exposes them as validated records:

Key Features:
- Pydantic models keyed by the legacy column names
- Transaction kind derived once from the D/W/T code
- Supply lines filtered out of every inventory query
- Invalid rows dropped at load time, never passed to reconciliation

Usage:
    from legacy_source import LegacyRecordSource

    source = LegacyRecordSource.from_directory(Path("extracted-data"))
    activities = source.list_activities(account_id=1084096, status=1)
"""

from legacy_source.models import (
    TransactionKind,
    LineKind,
    LegacyActivity,
    LegacyActivityLine,
    LegacyCaseDetail,
)
from legacy_source.loader import LegacyRecordSource, load_json_file

__all__ = [
    # Models
    "TransactionKind",
    "LineKind",
    "LegacyActivity",
    "LegacyActivityLine",
    "LegacyCaseDetail",
    # Source
    "LegacyRecordSource",
    "load_json_file",
]
