"""Bounded recency cache of tab snapshots."""

import logging
import threading
from typing import Dict, Iterable, List, Optional

from .models import CandidateEntry, LiveTabView, SnapshotRecord, storage_key
from .storage import KeyValueBackend, MemoryBackend


class RecencyStore:
    """Keeps at most ``cap`` snapshot records, one per tab, newest by lastActive.

    Records for tabs that have closed are not deleted on close. They are
    hidden by :meth:`get_all_merged_with_live` and fall out of storage on a
    later eviction pass.
    """

    def __init__(
        self,
        backend: Optional[KeyValueBackend] = None,
        cap: int = 10,
        compare_last_active: bool = False,
    ):
        """Initialize the store.

        Args:
            backend: Key-value backend holding the records. Defaults to memory.
            cap: Maximum number of records retained after each write.
            compare_last_active: When True a write never replaces a record
                with a newer ``lastActive`` than the incoming one.
        """
        if cap < 1:
            raise ValueError("cap must be at least 1")
        self.backend = backend if backend is not None else MemoryBackend()
        self.cap = cap
        self.compare_last_active = compare_last_active
        self.logger = logging.getLogger("TabSnap.RecencyStore")
        self._lock = threading.Lock()

    def _valid_records(self) -> Dict[str, SnapshotRecord]:
        records = {}
        for key, item in self.backend.get_all().items():
            record = SnapshotRecord.from_dict(item)
            if record is None:
                self.logger.debug(f"Skipping malformed stored item {key}")
                continue
            records[key] = record
        return records

    def put(self, tab_id: int, record: SnapshotRecord) -> bool:
        """Store record for tab_id, replacing any previous one, then evict.

        Returns:
            True if the record was written, False if a newer stored record
            was kept (only possible with ``compare_last_active``).
        """
        if record.tab_id != tab_id:
            record = SnapshotRecord(
                tab_id=tab_id,
                last_active=record.last_active,
                title=record.title,
                favicon_url=record.favicon_url,
                screenshot=record.screenshot,
            )

        key = storage_key(tab_id)
        with self._lock:
            if self.compare_last_active:
                existing = SnapshotRecord.from_dict(self.backend.get_all().get(key))
                if existing is not None and existing.last_active > record.last_active:
                    self.logger.info(
                        f"Ignoring stale snapshot for tab {tab_id} "
                        f"({record.last_active} < {existing.last_active})"
                    )
                    return False

            self.backend.set(key, record.to_dict())
            self._evict()
        return True

    def _evict(self) -> None:
        records = self._valid_records()
        if len(records) <= self.cap:
            return

        ordered = sorted(
            records.items(), key=lambda item: item[1].last_active, reverse=True
        )
        keys_to_remove = [key for key, _ in ordered[self.cap :]]
        self.backend.remove(keys_to_remove)
        self.logger.debug(f"Evicted {len(keys_to_remove)} snapshot(s): {keys_to_remove}")

    def get(self, tab_id: int) -> Optional[SnapshotRecord]:
        return SnapshotRecord.from_dict(self.backend.get_all().get(storage_key(tab_id)))

    def records(self) -> List[SnapshotRecord]:
        """All valid stored records, newest first."""
        return sorted(
            self._valid_records().values(),
            key=lambda record: record.last_active,
            reverse=True,
        )

    def clear(self) -> None:
        with self._lock:
            self.backend.clear()
        self.logger.info("Snapshot store cleared")

    def get_all_merged_with_live(
        self, live_tabs: Iterable[LiveTabView]
    ) -> List[CandidateEntry]:
        """Stored records restricted to live tabs, with live title/favicon applied.

        Args:
            live_tabs: The tabs currently open in the scope of interest.

        Returns:
            One CandidateEntry per stored record whose tab is live, in no
            particular order. Ordering is the assembler's job.
        """
        live_by_id = {tab.tab_id: tab for tab in live_tabs}

        merged = []
        for record in self._valid_records().values():
            live = live_by_id.get(record.tab_id)
            if live is None:
                continue
            merged.append(CandidateEntry.from_record(record, live))
        return merged
