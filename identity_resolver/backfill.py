"""Case-Detail Backfill.

Activity lines may omit wine, bottle format or vintage and point at a case
detail instead. The case detail supplies the missing legacy value, but only
when its owning case has been migrated.
"""

from typing import Any, Optional

from core.observability.logging import get_logger
from identity_resolver.models import BACKFILL_PROPERTIES, IdentityKind
from identity_resolver.resolver import IdentityResolver
from legacy_source.loader import LegacyRecordSource


logger = get_logger(__name__)


class CaseDetailBackfill:
    """Reads missing line properties from legacy case details."""

    def __init__(self, source: LegacyRecordSource, resolver: IdentityResolver):
        self.source = source
        self.resolver = resolver

    def backfill(self, case_detail_id: Optional[int], prop: str) -> Optional[Any]:
        """Legacy value of ``prop`` on a case detail.

        Args:
            case_detail_id: Legacy case detail id referenced by the line
            prop: One of case_id, wine_item_id, bottle_format_id, vintage_id

        Returns:
            The legacy value, or None if the case detail is missing or its
            case has no target counterpart
        """
        if prop not in BACKFILL_PROPERTIES:
            raise ValueError(f"Unknown case detail property: {prop}")
        if case_detail_id is None:
            return None

        detail = self.source.get_case_detail(case_detail_id)
        if detail is None:
            logger.warning(f"Case detail {case_detail_id} not found")
            return None

        if self.resolver.resolve(IdentityKind.CASE, detail.case_id) is None:
            logger.warning(
                f"Case {detail.case_id} of case detail {case_detail_id} not migrated"
            )
            return None

        return getattr(detail, prop)

    def source_case_id(self, case_detail_id: Optional[int]) -> Optional[str]:
        """Target id of the case that owns a case detail."""
        legacy_case_id = self.backfill(case_detail_id, "case_id")
        if legacy_case_id is None:
            return None
        return self.resolver.resolve(IdentityKind.CASE, legacy_case_id)
