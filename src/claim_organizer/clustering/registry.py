"""Registry of known claims.

The registry is re-derived from the grouping store at the start of every run
and extended in memory as new claims are created, so a claim created for one
record is visible when matching every later record of the same run.
"""

import enum
import logging
from collections.abc import Iterable, Iterator
from datetime import datetime, timezone

from claim_organizer.clustering.labels import parse_legacy_label
from claim_organizer.errors import CollaboratorUnavailable
from claim_organizer.models.claim import Claim
from claim_organizer.storage.base import GroupingInfo, GroupingStore, StorageError

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class RegistryStrategy(str, enum.Enum):
    """How the registry is populated at cold start."""

    METADATA_SCAN = "metadata_scan"
    RECENT_WINDOW = "recent_window"


class ClaimRegistry:
    """Ordered set of claims keyed by label and indexed by identity.

    Iteration order is insertion order: groupings loaded oldest first, then
    claims created during the run. Matching tie-breaks depend on it.
    Recency is tracked separately: inserting or touching a claim makes it
    the most recent for ``recent_labels``. There is no removal and no
    in-place update of a claim's anchor.
    """

    def __init__(self, claims: Iterable[Claim] = ()):
        self._by_label: dict[str, Claim] = {}
        self._by_identity: dict[str, list[Claim]] = {}
        self._recency: dict[str, None] = {}
        self.discarded: list[str] = []
        for claim in claims:
            self.insert(claim)

    def __len__(self) -> int:
        return len(self._by_label)

    def __iter__(self) -> Iterator[Claim]:
        return iter(list(self._by_label.values()))

    def __contains__(self, label: object) -> bool:
        return label in self._by_label

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    async def load(
        cls,
        store: GroupingStore,
        strategy: RegistryStrategy = RegistryStrategy.METADATA_SCAN,
        recent_limit: int = 5,
    ) -> "ClaimRegistry":
        """Rebuild the registry from persisted groupings.

        Args:
            store: Grouping store to scan.
            strategy: Scan every grouping, or only the most recent ones.
            recent_limit: Number of groupings read by RECENT_WINDOW.

        Returns:
            The populated registry.

        Raises:
            CollaboratorUnavailable: If the store cannot be listed.
        """
        try:
            if strategy is RegistryStrategy.RECENT_WINDOW:
                groupings = list(reversed(await store.list_recent_groupings(recent_limit)))
            else:
                groupings = sorted(
                    await store.list_groupings(),
                    key=lambda g: (g.modified_at or _EPOCH, g.name),
                )
        except StorageError as e:
            raise CollaboratorUnavailable(f"Cannot list claim groupings: {e}") from e

        registry = cls()
        for grouping in groupings:
            claim = await cls._claim_from_grouping(store, grouping, strategy)
            if claim is None:
                logger.warning(f"Discarding grouping {grouping.name!r}: no parseable identity")
                registry.discarded.append(grouping.name)
                continue
            registry.insert(claim)

        logger.info(
            f"Loaded {len(registry)} claims ({strategy.value}), "
            f"discarded {len(registry.discarded)} groupings"
        )
        return registry

    @staticmethod
    async def _claim_from_grouping(
        store: GroupingStore,
        grouping: GroupingInfo,
        strategy: RegistryStrategy,
    ) -> Claim | None:
        """Recover a claim from its sidecar, falling back to the name."""
        metadata = await store.read_metadata(grouping)
        if metadata:
            claim = Claim.from_metadata(metadata, grouping.name)
            if claim is not None:
                claim.label = grouping.name
                return claim
            logger.debug(f"Unusable metadata sidecar in {grouping.name}")

        parsed = parse_legacy_label(grouping.name)
        if parsed is not None:
            return Claim(
                label=grouping.name,
                identity_key=parsed.identity_key,
                anchor_date=parsed.anchor_date,
                patient_name=parsed.patient,
                created_at=grouping.modified_at or datetime.now(timezone.utc),
                persisted=True,
            )

        if strategy is RegistryStrategy.RECENT_WINDOW:
            # Kept as a free-text hint; matchable by exact label only
            return Claim(label=grouping.name, persisted=True)
        return None

    # =========================================================================
    # Lookup and insertion
    # =========================================================================

    def insert(self, claim: Claim) -> Claim:
        """Add a claim, reusing the existing one on a label collision.

        Returns:
            The claim now registered under ``claim.label``.
        """
        existing = self._by_label.get(claim.label)
        if existing is not None:
            return existing

        self._by_label[claim.label] = claim
        self._recency[claim.label] = None
        if claim.identity_key:
            self._by_identity.setdefault(claim.identity_key, []).append(claim)
        return claim

    def touch(self, label: str) -> None:
        """Mark a claim as the most recently used one."""
        if label in self._by_label:
            self._recency.pop(label, None)
            self._recency[label] = None

    def get(self, label: str) -> Claim | None:
        """Claim registered under an exact label."""
        return self._by_label.get(label)

    def lookup(self, identity_key: str) -> Claim | None:
        """First claim registered for an identity key."""
        claims = self._by_identity.get(identity_key)
        return claims[0] if claims else None

    def candidates(self, identity_key: str) -> list[Claim]:
        """All claims for an identity key, in registry order."""
        return list(self._by_identity.get(identity_key, []))

    def recent_labels(self, limit: int) -> list[str]:
        """Up to ``limit`` labels, most recently inserted or touched first."""
        if limit <= 0:
            return []
        return list(self._recency)[-limit:][::-1]
