"""Database module - PostgreSQL and MongoDB connections."""

from app.db.postgres import AsyncSessionLocal, Base
from app.db.mongodb import get_mongodb, get_collection

__all__ = [
    "AsyncSessionLocal",
    "Base",
    "get_mongodb",
    "get_collection",
]
