"""ORM models for StreamVault (tenants, principals, media artifacts)."""

from .tenant import Tenant
from .principal import Principal
from .media_artifact import MediaArtifact, TenantReassignmentError

__all__ = [
    "Tenant",
    "Principal",
    "MediaArtifact",
    "TenantReassignmentError",
]
