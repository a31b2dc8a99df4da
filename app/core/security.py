"""
Bearer-token dependency resolving the (tenant, actor, role) context.

Tokens are issued by the dashboard's auth service; this module only
verifies them. Expected claims: ``sub`` (actor id), ``tenant_id``, ``role``.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from app.core.config import JWT_SECRET, JWT_ALGO
from app.core.context import TenantContext
from app.core.errors import UnauthorizedError

security = HTTPBearer(auto_error=False)


def decode_context(token: str) -> TenantContext:
    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    except JWTError:
        raise UnauthorizedError()

    tenant_id = claims.get("tenant_id")
    actor_id = claims.get("sub")
    role = claims.get("role")
    if not tenant_id or not actor_id or not role:
        raise UnauthorizedError()

    return TenantContext(tenant_id=str(tenant_id), actor_id=str(actor_id), role=str(role).upper())


def issue_token(tenant_id: str, actor_id: str, role: str) -> str:
    """Used by tooling and tests; production tokens come from the auth service."""
    return jwt.encode({"sub": actor_id, "tenant_id": tenant_id, "role": role}, JWT_SECRET, algorithm=JWT_ALGO)


def get_tenant_context(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> TenantContext:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()
    return decode_context(credentials.credentials)
