from __future__ import annotations

"""
👤 StreamVault — Principal

A user account scoped to one tenant with a single role. Credential issuance
(signup, login, password storage) is handled by the identity service; this
table is the read model the API uses to confirm a token's subject is still
active and still belongs to the claimed tenant.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Enum as SAEnum, ForeignKey, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base, TimestampMixin, UUIDPKMixin
from app.schemas.enums import PrincipalRole

if TYPE_CHECKING:  # pragma: no cover
    from app.db.models.tenant import Tenant


class Principal(UUIDPKMixin, TimestampMixin, Base):
    __tablename__ = "principals"

    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    role: Mapped[PrincipalRole] = mapped_column(
        SAEnum(PrincipalRole, name="principal_role"),
        nullable=False,
        default=PrincipalRole.VIEWER,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))

    tenant: Mapped["Tenant"] = relationship(back_populates="principals", lazy="joined")

    __table_args__ = (Index("ix_principals_tenant_role", "tenant_id", "role"),)
