"""In-memory store for persisted request records."""

from __future__ import annotations

from ezfoia.billing.models import UNLIMITED
from ezfoia.submission.models import RequestRecord


class RequestStore:
    """In-memory dict store for request records.

    ``insert_within_quota`` counts and inserts without yielding to the
    event loop, so the check-then-insert is atomic for a single process.
    """

    def __init__(self) -> None:
        self._records: dict[str, RequestRecord] = {}

    def insert_within_quota(
        self, record: RequestRecord, limit: int | None
    ) -> RequestRecord | None:
        """Insert ``record`` unless the owner already has ``limit`` records.

        ``limit`` of None skips the check; -1 means unlimited. Returns the
        record, or None when the quota is exhausted.
        """
        if limit is not None and limit != UNLIMITED:
            if self.count_for_user(record.user_id) >= limit:
                return None
        self._records[record.id] = record
        return record

    def count_for_user(self, user_id: str) -> int:
        return sum(1 for r in self._records.values() if r.user_id == user_id)

    def get(self, request_id: str) -> RequestRecord | None:
        return self._records.get(request_id)

    def list_for_user(self, user_id: str) -> list[RequestRecord]:
        records = [r for r in self._records.values() if r.user_id == user_id]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    @property
    def count(self) -> int:
        return len(self._records)
