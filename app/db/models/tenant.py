from __future__ import annotations

"""
🏢 StreamVault — Tenant
=======================

Isolation boundary: every principal and media artifact belongs to exactly one
tenant. Registration and quota enforcement live outside this service; the
limits are stored so other services can read them.
"""

from typing import TYPE_CHECKING, List

from sqlalchemy import Boolean, CheckConstraint, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base, TimestampMixin, UUIDPKMixin

if TYPE_CHECKING:  # pragma: no cover
    from app.db.models.principal import Principal


class Tenant(UUIDPKMixin, TimestampMixin, Base):
    """Organization owning principals and media."""

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"), index=True)

    # Resource limits (stored, not enforced here)
    max_storage_gb: Mapped[int] = mapped_column(Integer, nullable=False, default=100, server_default=text("100"))
    max_video_size_mb: Mapped[int] = mapped_column(Integer, nullable=False, default=500, server_default=text("500"))

    principals: Mapped[List["Principal"]] = relationship(back_populates="tenant", lazy="noload")

    __table_args__ = (
        CheckConstraint("max_storage_gb > 0", name="max_storage_positive"),
        CheckConstraint("max_video_size_mb > 0", name="max_video_size_positive"),
    )
