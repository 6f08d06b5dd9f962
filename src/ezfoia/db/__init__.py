"""Database layer for EZFOIA: SQLAlchemy 2.0 async."""

from __future__ import annotations

from ezfoia.db.base import Base
from ezfoia.db.engine import DatabaseManager

__all__ = ["Base", "DatabaseManager"]
