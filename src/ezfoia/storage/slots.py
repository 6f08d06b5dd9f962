"""In-memory durable key-value slots.

A slot is addressed by (scope, key), where the scope is the owning user.
Values are opaque JSON strings; callers validate them on every read.
"""

from __future__ import annotations

PENDING_REQUEST_KEY = "pending_request"
TEST_SUBSCRIPTION_KEY = "test_subscription"


class SlotStore:
    """In-memory dict store for key-value slots."""

    def __init__(self) -> None:
        self._slots: dict[tuple[str, str], str] = {}

    def get(self, scope: str, key: str) -> str | None:
        return self._slots.get((scope, key))

    def put(self, scope: str, key: str, value: str) -> None:
        self._slots[(scope, key)] = value

    def delete(self, scope: str, key: str) -> bool:
        return self._slots.pop((scope, key), None) is not None
