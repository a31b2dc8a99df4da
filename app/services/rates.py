"""
Recurring rates: bulk change and per-period resolution.

A rate change is metadata on the subject plus one RateChange history row.
Existing obligations are never touched; the generator asks
``rate_for_period`` which rate was in effect for the period it creates.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.context import TenantContext, require_finance_role, scoped
from app.core.errors import FinanceError, InvalidRate, ValidationFailed, StorageError
from app.models.enums import SubjectKind
from app.models.rate_change_model import RateChange
from app.schemas.rate_schemas import RateChangeResult
from app.schemas.result_schemas import Failure
from app.services.subjects import SUBJECTS, SubjectRef, current_rate
from app.utils.logging_config import get_logger
from app.utils.money import money, parse_amount, ZERO

logger = get_logger(__name__)


def _period_start(month: int, year: int) -> date:
    return date(year, month, 1)


def _effective_month_start(d: date) -> date:
    return d.replace(day=1)


def rate_for_period(db: Session, ctx: TenantContext, subject: SubjectRef, subject_row, month: int, year: int) -> Optional[Decimal]:
    """
    Rate in effect for (month, year): the newest change whose effective month
    is not after the period; before the first change, that change's
    previous rate; with no history, the subject's current rate.
    """
    changes = (
        scoped(db, RateChange, ctx)
        .filter(
            RateChange.subject_kind == subject.kind.value,
            RateChange.subject_id == subject.subject_id,
        )
        .order_by(RateChange.effective_from.asc(), RateChange.created_on.asc())
        .all()
    )
    if not changes:
        return current_rate(subject_row, subject)

    start = _period_start(month, year)
    applicable = [c for c in changes if _effective_month_start(c.effective_from) <= start]
    if applicable:
        return applicable[-1].new_rate
    return changes[0].previous_rate


def apply_new_rate(
        db: Session,
        ctx: TenantContext,
        subject_kind: SubjectKind,
        subject_ids: Iterable[str],
        new_rate,
        effective_from: date,
) -> Union[RateChangeResult, Failure]:
    try:
        require_finance_role(ctx)

        ids = {s for s in (subject_ids or []) if s}
        if not ids:
            raise ValidationFailed("Select at least one subject")
        if new_rate is None or parse_amount(new_rate) < ZERO:
            raise InvalidRate()
        if effective_from is None:
            raise ValidationFailed("effective_from is required")

        subject_kind = SubjectKind(subject_kind)
        rate = money(new_rate)
        table = SUBJECTS[subject_kind]

        rows = (
            scoped(db, table.model, ctx)
            .filter(getattr(table.model, table.id_attr).in_(ids))
            .all()
        )

        for row in rows:
            db.add(
                RateChange(
                    tenant_id=ctx.tenant_id,
                    subject_kind=subject_kind.value,
                    subject_id=getattr(row, table.id_attr),
                    previous_rate=getattr(row, table.rate_attr),
                    new_rate=rate,
                    effective_from=effective_from,
                    created_by=ctx.actor_id,
                )
            )
            setattr(row, table.rate_attr, rate)

        db.commit()

    except FinanceError as e:
        db.rollback()
        return Failure.from_error(e)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("rate_change_storage_error", extra={"tenant_id": ctx.tenant_id})
        return Failure.from_error(StorageError())

    logger.info(
        "rate_changed",
        extra={
            "tenant_id": ctx.tenant_id,
            "subject_kind": subject_kind.value,
            "updated": len(rows),
            "new_rate": str(rate),
            "effective_from": effective_from.isoformat(),
        },
    )
    return RateChangeResult(updated_count=len(rows))
