"""PostgreSQL durable slot repository."""

from __future__ import annotations

from datetime import datetime, timezone

from ezfoia.db.engine import DatabaseManager
from ezfoia.db.models import SlotRow


class PostgresSlotRepository:
    """Postgres-backed key-value slots."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get(self, scope: str, key: str) -> str | None:
        async with self._db.session() as db:
            row = await db.get(SlotRow, (scope, key))
            return row.value if row is not None else None

    async def put(self, scope: str, key: str, value: str) -> None:
        async with self._db.session() as db:
            row = await db.get(SlotRow, (scope, key))
            if row is None:
                db.add(SlotRow(scope=scope, key=key, value=value))
            else:
                row.value = value
                row.updated_at = datetime.now(timezone.utc)
            await db.commit()

    async def delete(self, scope: str, key: str) -> bool:
        async with self._db.session() as db:
            row = await db.get(SlotRow, (scope, key))
            if row is None:
                return False
            await db.delete(row)
            await db.commit()
            return True
