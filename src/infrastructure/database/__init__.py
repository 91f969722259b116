"""Database layer: async PostgreSQL via SQLAlchemy 2.0 and asyncpg.

- **base**: Declarative base and common model fields
- **models**: Document, tax accumulator and credential tables
- **session**: Engine and session lifecycle, health check
- **repository**: Generic repository with natural-key upserts
- **repositories**: Table-specific repositories used by the stores
"""

from src.infrastructure.database.base import Base, BaseModel
from src.infrastructure.database.models import (
    BusinessCredentialModel,
    DteDocumentModel,
    TaxAccumulatorModel,
)
from src.infrastructure.database.repository import BaseRepository
from src.infrastructure.database.session import (
    check_database_connection,
    close_database,
    create_database_engine,
    get_async_session,
    get_engine,
    get_session_factory,
)

__all__ = [
    "Base",
    "BaseModel",
    "BaseRepository",
    "BusinessCredentialModel",
    "DteDocumentModel",
    "TaxAccumulatorModel",
    "check_database_connection",
    "close_database",
    "create_database_engine",
    "get_async_session",
    "get_engine",
    "get_session_factory",
]
