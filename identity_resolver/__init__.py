"""Identity Resolver - Legacy id to target id mapping for one run.

Usage:
    from identity_resolver import IdentityResolver, IdentityKind, CaseDetailBackfill

    resolver = IdentityResolver(store)
    backfill = CaseDetailBackfill(source, resolver)

    wine_item_id = line.wine_item_id or backfill.backfill(line.case_detail_id, "wine_item_id")
    wine_id = resolver.ensure_wine(wine_item_id)
"""

from identity_resolver.models import IdentityKind, BACKFILL_PROPERTIES
from identity_resolver.resolver import IdentityResolver, PLACEHOLDER_WINE_LABEL
from identity_resolver.backfill import CaseDetailBackfill

__all__ = [
    "IdentityKind",
    "BACKFILL_PROPERTIES",
    "IdentityResolver",
    "PLACEHOLDER_WINE_LABEL",
    "CaseDetailBackfill",
]
