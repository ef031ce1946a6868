"""Find and remove semantically duplicate records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import Hashable, Iterable

from .models import Record, ensure_aware
from .store import RecordStore

logger = logging.getLogger(__name__)

GRANULARITY_DAY = "day"
GRANULARITY_EXACT = "exact"
GRANULARITIES = (GRANULARITY_DAY, GRANULARITY_EXACT)


class Deduplicator:
    """Groups records by ``(content, timestamp bucket, has image)``.

    With ``day`` granularity the bucket is the calendar date in ``tz``;
    with ``exact`` it is the timestamp itself.

    Within a group the first record in insertion order is kept and the rest
    are removed. That choice is arbitrary among equals: it is not "newest"
    or "oldest", only "first stored".
    """

    def __init__(self, granularity: str = GRANULARITY_DAY, tz: tzinfo = timezone.utc):
        if granularity not in GRANULARITIES:
            raise ValueError(f"Unknown dedup granularity: {granularity!r} (expected one of {GRANULARITIES})")
        self.granularity = granularity
        self.tz = tz

    def _bucket(self, timestamp: datetime) -> Hashable:
        moment = ensure_aware(timestamp).astimezone(self.tz)
        if self.granularity == GRANULARITY_DAY:
            return moment.date()
        return moment

    def identity_key(self, record: Record) -> tuple:
        """The tuple two records must share to count as duplicates."""
        return (record.content, self._bucket(record.timestamp), record.has_image)

    def find_duplicates(self, records: Iterable[Record]) -> list[list[Record]]:
        """Groups of two or more records sharing an identity key.

        Groups are ordered by their first member; members keep input order.
        """
        groups: dict[tuple, list[Record]] = {}
        for record in records:
            groups.setdefault(self.identity_key(record), []).append(record)
        return [group for group in groups.values() if len(group) > 1]

    def remove_duplicates(self, store: RecordStore) -> int:
        """Delete all but the first member of every duplicate group.

        Returns:
            Number of records removed

        Raises:
            StoreError: If the store fails to delete or save
        """
        groups = self.find_duplicates(store.list_all())
        removed = 0
        for group in groups:
            for record in group[1:]:
                store.delete(record)
                removed += 1
                logger.debug("Removing duplicate %s (kept %s)", record.id, group[0].id)

        if removed:
            store.save()
        logger.info("Dedup finished: %d duplicates removed from %d groups", removed, len(groups))
        return removed
