# app/db/base.py
"""
StreamVault — SQLAlchemy Base registry
======================================

Import all ORM models so their tables are registered on `Base.metadata`.
Used by Alembic autogeneration and the test schema bootstrap.

Tip: Keep this file import-only; no runtime logic.
"""

from app.db.base_class import Base

from app.db.models.tenant import Tenant
from app.db.models.principal import Principal
from app.db.models.media_artifact import MediaArtifact

__all__ = [
    "Base",
    "Tenant",
    "Principal",
    "MediaArtifact",
]
