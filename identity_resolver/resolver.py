"""Identity Resolver.

Maps legacy numeric identifiers to target-store ids through a per-run memo.
One resolver is built per run and handed to every component that needs
lookups; nothing is cached at module level.

Only hits are memoized. A miss is looked up again on the next call, since an
earlier step of the same run (placeholder wine creation) may have filled it.
"""

from typing import Any, Dict, Optional, Tuple, Union

from core.observability.logging import get_logger
from identity_resolver.models import IdentityKind
from target_store.db import TargetStore


logger = get_logger(__name__)

PLACEHOLDER_WINE_LABEL = "Legacy Wine - Veritas - {legacy_id}"


class IdentityResolver:
    """Resolves legacy ids to target ids, memoized per run.

    Example:
        resolver = IdentityResolver(store)
        case_id = resolver.resolve(IdentityKind.CASE, 10)
        if case_id is None:
            ...  # caller decides whether to skip
        wine_id = resolver.ensure_wine(7)
    """

    def __init__(self, store: TargetStore):
        self.store = store
        self._memo: Dict[Tuple[IdentityKind, str], str] = {}
        self.placeholders_created = 0

    @staticmethod
    def _key(kind: Union[IdentityKind, str], legacy_id: Any) -> Tuple[IdentityKind, str]:
        return IdentityKind(kind), str(legacy_id)

    def resolve(self, kind: Union[IdentityKind, str], legacy_id: Any) -> Optional[str]:
        """Resolve a legacy id to a target id.

        Args:
            kind: Identity kind to look up
            legacy_id: Legacy identifier; None never resolves

        Returns:
            Target id, or None when the target store has no matching row
        """
        if legacy_id is None:
            return None

        key = self._key(kind, legacy_id)
        cached = self._memo.get(key)
        if cached is not None:
            return cached

        target_id = self.store.find_by_legacy_id(key[0].value, legacy_id)
        if target_id is not None:
            self._memo[key] = target_id
        return target_id

    def remember(self, kind: Union[IdentityKind, str], legacy_id: Any, target_id: str) -> None:
        self._memo[self._key(kind, legacy_id)] = target_id

    def ensure_wine(self, legacy_wine_id: Any) -> str:
        """Resolve a wine, creating a placeholder wine when none matches.

        The placeholder carries the legacy id in its description and is
        memoized, so later lines of the same run reuse it.
        """
        wine_id = self.resolve(IdentityKind.WINE, legacy_wine_id)
        if wine_id is not None:
            return wine_id

        wine_id = self.store.add_wine(
            legacy_wine_id,
            description=PLACEHOLDER_WINE_LABEL.format(legacy_id=legacy_wine_id),
        )
        self.remember(IdentityKind.WINE, legacy_wine_id, wine_id)
        self.placeholders_created += 1
        logger.info(
            f"Created placeholder wine for legacy wine {legacy_wine_id}",
            extra_fields={"wine_id": wine_id, "legacy_wine_id": str(legacy_wine_id)},
        )
        return wine_id

    def clear(self) -> None:
        self._memo.clear()
