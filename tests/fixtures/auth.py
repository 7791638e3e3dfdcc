# tests/fixtures/auth.py
import pytest
from typing import Awaitable, Callable, Dict, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import create_access_token
from app.db.models import Principal, Tenant
from app.schemas.enums import PrincipalRole
from tests.utils.factory import create_principal, create_tenant


# ─────────────────────────────────────────────────────────────
# 🔐 Token + Auth Fixtures for Testing
# ─────────────────────────────────────────────────────────────
def token_for(principal: Principal, **kwargs) -> str:
    """Access token carrying the principal's stored tenant and role."""
    return create_access_token(principal.id, principal.tenant_id, principal.role, **kwargs)


def bearer(principal: Principal) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token_for(principal)}"}


@pytest.fixture
def make_tenant(db_session: AsyncSession) -> Callable[..., Awaitable[Tenant]]:
    async def _create(**kwargs) -> Tenant:
        return await create_tenant(db_session, **kwargs)
    return _create


@pytest.fixture
def make_principal(db_session: AsyncSession, make_tenant) -> Callable[..., Awaitable[Principal]]:
    """
    Creates a principal (and a tenant when none is given).

    Example:
        viewer = await make_principal(role=PrincipalRole.VIEWER, tenant=tenant)
    """
    async def _create(*, tenant: Optional[Tenant] = None, role: PrincipalRole = PrincipalRole.ADMIN, **kwargs) -> Principal:
        tenant = tenant or await make_tenant()
        return await create_principal(db_session, tenant, role=role, **kwargs)
    return _create


@pytest.fixture
def principal_with_headers(make_principal) -> Callable[..., Awaitable[Tuple[Principal, Dict[str, str]]]]:
    """Same as make_principal but returns (principal, headers)."""
    async def _create(**kwargs):
        principal = await make_principal(**kwargs)
        return principal, bearer(principal)
    return _create
