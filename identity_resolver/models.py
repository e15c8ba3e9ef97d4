"""Identity kinds resolved from legacy identifiers."""

from enum import Enum


class IdentityKind(str, Enum):
    """Kinds of legacy identifiers with a target-store counterpart."""
    CUSTOMER = "customer"
    CASE = "case"
    WINE = "wine"
    BOTTLE_FORMAT = "bottle_format"
    BOTTLE_VINTAGE = "bottle_vintage"


# Case-detail properties that can stand in for a missing line field
BACKFILL_PROPERTIES = ("case_id", "wine_item_id", "bottle_format_id", "vintage_id")
