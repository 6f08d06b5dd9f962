"""Protocol definitions for repository interfaces.

Each protocol mirrors the public methods of the corresponding in-memory
store so that both sync (in-memory) and async (SQLAlchemy) implementations
satisfy the same interface. Callers wrap every call in ``resolve()``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ezfoia.submission.models import RequestRecord


@runtime_checkable
class RequestRepository(Protocol):
    """Protocol for persisted request records."""

    def insert_within_quota(
        self, record: RequestRecord, limit: int | None
    ) -> RequestRecord | None: ...

    def count_for_user(self, user_id: str) -> int: ...

    def get(self, request_id: str) -> RequestRecord | None: ...

    def list_for_user(self, user_id: str) -> list[RequestRecord]: ...


@runtime_checkable
class SlotRepository(Protocol):
    """Protocol for durable key-value slots holding opaque JSON."""

    def get(self, scope: str, key: str) -> str | None: ...

    def put(self, scope: str, key: str, value: str) -> None: ...

    def delete(self, scope: str, key: str) -> bool: ...

