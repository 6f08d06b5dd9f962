"""PostgreSQL request record repository.

``insert_within_quota`` takes a transaction-scoped advisory lock keyed on
the user id, then counts and inserts in the same transaction. SQLite has no
advisory locks and serialises writers on its own.
"""

from __future__ import annotations

from sqlalchemy import func, select, text

from ezfoia.billing.models import UNLIMITED
from ezfoia.core.types import RequestStatus
from ezfoia.db.engine import DatabaseManager
from ezfoia.db.models import RequestRow
from ezfoia.submission.models import RequestRecord


class PostgresRequestRepository:
    """Postgres-backed request storage."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def insert_within_quota(
        self, record: RequestRecord, limit: int | None
    ) -> RequestRecord | None:
        async with self._db.session() as db:
            async with db.begin():
                if self._db.dialect == "postgresql":
                    await db.execute(
                        text("SELECT pg_advisory_xact_lock(hashtext(:user_id))"),
                        {"user_id": record.user_id},
                    )
                if limit is not None and limit != UNLIMITED:
                    used = await db.scalar(
                        select(func.count())
                        .select_from(RequestRow)
                        .where(RequestRow.user_id == record.user_id)
                    )
                    if (used or 0) >= limit:
                        return None
                db.add(
                    RequestRow(
                        id=record.id,
                        user_id=record.user_id,
                        agency_name=record.agency_name,
                        agency_type=record.agency_type,
                        record_type=record.record_type,
                        record_description=record.record_description,
                        status=record.status.value,
                        created_at=record.created_at,
                        updated_at=record.updated_at,
                    )
                )
        return record

    async def count_for_user(self, user_id: str) -> int:
        async with self._db.session() as db:
            result = await db.scalar(
                select(func.count()).select_from(RequestRow).where(RequestRow.user_id == user_id)
            )
            return result or 0

    async def get(self, request_id: str) -> RequestRecord | None:
        async with self._db.session() as db:
            row = await db.get(RequestRow, request_id)
            if row is None:
                return None
            return self._row_to_record(row)

    async def list_for_user(self, user_id: str) -> list[RequestRecord]:
        async with self._db.session() as db:
            result = await db.execute(
                select(RequestRow)
                .where(RequestRow.user_id == user_id)
                .order_by(RequestRow.created_at.desc())
            )
            return [self._row_to_record(r) for r in result.scalars().all()]

    @staticmethod
    def _row_to_record(row: RequestRow) -> RequestRecord:
        return RequestRecord(
            id=row.id,
            user_id=row.user_id,
            agency_name=row.agency_name,
            agency_type=row.agency_type,
            record_type=row.record_type,
            record_description=row.record_description,
            status=RequestStatus(row.status),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
