"""
Request context and tenant guard.

Every core function receives a ``TenantContext`` explicitly; store reads go
through ``scoped`` so a query without a tenant filter cannot be written by
accident.
"""

from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.orm import Session, Query

from app.core.config import FINANCE_ROLES, CANCEL_ROLES
from app.core.errors import UnauthorizedError


@dataclass(frozen=True)
class TenantContext:
    tenant_id: str
    actor_id: str
    role: str


def require_role(ctx: TenantContext, roles: Iterable[str] = FINANCE_ROLES) -> None:
    if ctx is None or not ctx.tenant_id or not ctx.actor_id:
        raise UnauthorizedError()
    if (ctx.role or "").upper() not in roles:
        raise UnauthorizedError()


def require_finance_role(ctx: TenantContext) -> None:
    require_role(ctx, FINANCE_ROLES)


def require_cancel_role(ctx: TenantContext) -> None:
    require_role(ctx, CANCEL_ROLES)


def scoped(db: Session, model, ctx: TenantContext) -> Query:
    return db.query(model).filter(model.tenant_id == ctx.tenant_id)
