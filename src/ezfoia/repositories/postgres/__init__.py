"""SQLAlchemy-backed repositories."""

from ezfoia.repositories.postgres.requests import PostgresRequestRepository
from ezfoia.repositories.postgres.slots import PostgresSlotRepository

__all__ = ["PostgresRequestRepository", "PostgresSlotRepository"]
