from __future__ import annotations

import dataclasses
import threading
from datetime import datetime
from typing import Optional

from vanish.domain.models import PasteRecord
from vanish.repositories.paste_repository import DuplicatePasteIdError


class InMemoryPasteStore:
    """
    Process-local record store for development and tests.

    A single lock guards the dict; it is held only for the duration of one
    operation, so each method is atomic in the same way a SQL statement is.
    Data does not survive a restart.
    """

    def __init__(self) -> None:
        self._records: dict[str, PasteRecord] = {}
        self._lock = threading.Lock()

    def create(self, record: PasteRecord) -> PasteRecord:
        stored = dataclasses.replace(record, view_count=0)
        with self._lock:
            if record.id in self._records:
                raise DuplicatePasteIdError(f"Paste id {record.id} is already taken.")
            self._records[record.id] = stored
        return stored

    def get(self, paste_id: str) -> Optional[PasteRecord]:
        with self._lock:
            return self._records.get(paste_id)

    def increment_view(self, paste_id: str) -> Optional[int]:
        with self._lock:
            record = self._records.get(paste_id)
            if record is None:
                return None
            if record.max_views is not None and record.view_count >= record.max_views:
                return None
            updated = dataclasses.replace(record, view_count=record.view_count + 1)
            self._records[paste_id] = updated
            return updated.view_count

    def delete(self, paste_id: str) -> bool:
        with self._lock:
            return self._records.pop(paste_id, None) is not None

    def ping(self) -> bool:
        return True

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            doomed = [
                paste_id
                for paste_id, record in self._records.items()
                if (record.expires_at is not None and record.expires_at < now)
                or (record.max_views is not None and record.view_count >= record.max_views)
            ]
            for paste_id in doomed:
                del self._records[paste_id]
        return len(doomed)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def list_recent(self, limit: int = 10) -> list[PasteRecord]:
        with self._lock:
            records = sorted(self._records.values(), key=lambda r: r.created_at, reverse=True)
        return records[:limit]
