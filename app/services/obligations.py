"""
Single-record obligation flows: create, read, list, delete, cancel.

Money never moves here: ``paid_now`` goes through the settlement applier
like any other contribution.
"""

from datetime import date
from typing import Iterable, Optional, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import SETTLEMENT_MAX_ATTEMPTS
from app.core.context import TenantContext, require_finance_role, require_cancel_role, scoped
from app.core.errors import (
    FinanceError,
    ValidationFailed,
    AmountNotPositive,
    InvalidPeriod,
    AlreadySettled,
    ObligationCancelled,
    ObligationHasPayments,
    DuplicatePeriod,
    ConflictError,
    StorageError,
)
from app.models.enums import (
    ObligationKind,
    ObligationStatus,
    ObligationType,
    PaymentMethod,
    TUITION_TYPES,
    SALARY_TYPES,
)
from app.models.obligation_model import Obligation, ObligationContribution
from app.schemas.obligation_schemas import (
    ObligationOut,
    ObligationResult,
    ObligationPage,
    ContributionOut,
    ContributionList,
    CancelResult,
    DeleteResult,
    BulkDeleteResult,
)
from app.schemas.result_schemas import Failure
from app.services.period_generator import due_date_for, find_period, new_invoice_number
from app.services.settlement import load_obligation, settle
from app.services.subjects import SubjectRef, load_subject, due_day_for
from app.utils.logging_config import get_logger
from app.utils.money import money, parse_amount, ZERO

logger = get_logger(__name__)

ALLOWED_TYPES = {
    ObligationKind.TUITION: TUITION_TYPES,
    ObligationKind.SALARY: SALARY_TYPES,
}


def _check_period(month, year) -> None:
    if (month is None) != (year is None):
        raise InvalidPeriod("Month and year must be given together")
    if month is not None and not 1 <= month <= 12:
        raise InvalidPeriod()
    if year is not None and year < 1:
        raise InvalidPeriod("Year must be a positive number")


def _fail(db: Session, e: FinanceError) -> Failure:
    db.rollback()
    return Failure.from_error(e)


def _storage_fail(db: Session, event: str, **extra) -> Failure:
    db.rollback()
    logger.exception(event, extra=extra)
    return Failure.from_error(StorageError())


# ----------------------------
# Create
# ----------------------------
def create_obligation(
        db: Session,
        ctx: TenantContext,
        subject: SubjectRef,
        amount,
        obligation_type: Optional[ObligationType] = None,
        month: Optional[int] = None,
        year: Optional[int] = None,
        due_date: Optional[date] = None,
        method: PaymentMethod = PaymentMethod.CASH,
        paid_now: bool = False,
        note: Optional[str] = None,
) -> Union[ObligationResult, Failure]:
    try:
        require_finance_role(ctx)

        amount = parse_amount(amount)
        if amount <= ZERO:
            raise AmountNotPositive()

        kind = subject.obligation_kind
        obligation_type = ObligationType(obligation_type) if obligation_type else ALLOWED_TYPES[kind][0]
        if obligation_type not in ALLOWED_TYPES[kind]:
            raise ValidationFailed(f"{obligation_type.value} is not a {kind.value.lower()} obligation type")
        _check_period(month, year)
        method = PaymentMethod(method)

        row = load_subject(db, ctx, subject)

        if month is not None and find_period(db, ctx, subject, obligation_type, month, year):
            raise DuplicatePeriod()

        if due_date is None and month is not None:
            due_date = due_date_for(month, year, due_day_for(row))

        ob = Obligation(
            tenant_id=ctx.tenant_id,
            kind=kind.value,
            obligation_type=obligation_type.value,
            period_month=month,
            period_year=year,
            due_date=due_date,
            invoice_number=new_invoice_number(year or date.today().year),
            amount=amount,
            paid_amount=ZERO,
            remaining_amount=amount,
            status=ObligationStatus.PENDING.value,
            # with paid_now the note goes into the settlement line instead
            notes=None if paid_now else note,
            created_by=ctx.actor_id,
            **subject.obligation_fields(),
        )
        db.add(ob)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if month is not None:
                raise DuplicatePeriod()
            raise StorageError()

        logger.info(
            "obligation_created",
            extra={
                "obligation_id": ob.obligation_id,
                "tenant_id": ctx.tenant_id,
                "kind": kind.value,
                "amount": str(amount),
                "status": ob.status,
            },
        )

        if paid_now:
            ob, _ = settle(db, ctx, ob.obligation_id, amount, method, note, kind)

    except FinanceError as e:
        return _fail(db, e)
    except SQLAlchemyError:
        return _storage_fail(db, "obligation_create_storage_error", tenant_id=ctx.tenant_id)

    return ObligationResult(obligation=ObligationOut.model_validate(ob))


# ----------------------------
# Read
# ----------------------------
def get_obligation(db: Session, ctx: TenantContext, obligation_id: str, kind=None) -> Union[ObligationResult, Failure]:
    try:
        require_finance_role(ctx)
        ob = load_obligation(db, ctx, obligation_id, kind)
    except FinanceError as e:
        return _fail(db, e)
    except SQLAlchemyError:
        return _storage_fail(db, "obligation_read_storage_error", obligation_id=obligation_id)
    return ObligationResult(obligation=ObligationOut.model_validate(ob))


def list_obligations(
        db: Session,
        ctx: TenantContext,
        kind: Optional[ObligationKind] = None,
        status: Optional[ObligationStatus] = None,
        subject: Optional[SubjectRef] = None,
        obligation_type: Optional[ObligationType] = None,
        month: Optional[int] = None,
        year: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
) -> Union[ObligationPage, Failure]:
    try:
        require_finance_role(ctx)
    except FinanceError as e:
        return _fail(db, e)

    q = scoped(db, Obligation, ctx)
    if kind is not None:
        q = q.filter(Obligation.kind == ObligationKind(kind).value)
    if status is not None:
        q = q.filter(Obligation.status == ObligationStatus(status).value)
    if subject is not None:
        q = q.filter(subject.obligation_filter())
    if obligation_type is not None:
        q = q.filter(Obligation.obligation_type == ObligationType(obligation_type).value)
    if month is not None:
        q = q.filter(Obligation.period_month == month)
    if year is not None:
        q = q.filter(Obligation.period_year == year)

    try:
        total = q.count()
        rows = (
            q.order_by(
                Obligation.period_year.desc(),
                Obligation.period_month.desc(),
                Obligation.created_on.desc(),
            )
            .offset(max(offset, 0))
            .limit(max(min(limit, 500), 1))
            .all()
        )
    except SQLAlchemyError:
        return _storage_fail(db, "obligation_list_storage_error", tenant_id=ctx.tenant_id)
    return ObligationPage(total=total, items=[ObligationOut.model_validate(r) for r in rows])


def list_contributions(db: Session, ctx: TenantContext, obligation_id: str, kind=None) -> Union[ContributionList, Failure]:
    try:
        require_finance_role(ctx)
        ob = load_obligation(db, ctx, obligation_id, kind)
        rows = (
            scoped(db, ObligationContribution, ctx)
            .filter(ObligationContribution.obligation_id == ob.obligation_id)
            .order_by(ObligationContribution.paid_at.asc())
            .all()
        )
    except FinanceError as e:
        return _fail(db, e)
    except SQLAlchemyError:
        return _storage_fail(db, "contribution_list_storage_error", obligation_id=obligation_id)

    return ContributionList(
        obligation=ObligationOut.model_validate(ob),
        contributions=[ContributionOut.model_validate(r) for r in rows],
    )


# ----------------------------
# Delete (zero-payment records only)
# ----------------------------
def delete_obligation(db: Session, ctx: TenantContext, obligation_id: str, kind=None) -> Union[DeleteResult, Failure]:
    try:
        require_finance_role(ctx)
        ob = load_obligation(db, ctx, obligation_id, kind)
        if money(ob.paid_amount) > ZERO:
            raise ObligationHasPayments()

        db.delete(ob)
        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            raise ConflictError()

    except FinanceError as e:
        return _fail(db, e)
    except SQLAlchemyError:
        return _storage_fail(db, "obligation_delete_storage_error", obligation_id=obligation_id)

    logger.info("obligation_deleted", extra={"obligation_id": obligation_id, "tenant_id": ctx.tenant_id})
    return DeleteResult(obligation_id=obligation_id)


def bulk_delete_obligations(
        db: Session, ctx: TenantContext, obligation_ids: Iterable[str], kind=None
) -> Union[BulkDeleteResult, Failure]:
    try:
        require_finance_role(ctx)
        ids = {i for i in (obligation_ids or []) if i}
        if not ids:
            raise ValidationFailed("Select at least one obligation")

        q = scoped(db, Obligation, ctx).filter(Obligation.obligation_id.in_(ids))
        if kind is not None:
            q = q.filter(Obligation.kind == ObligationKind(kind).value)

        deleted = 0
        for ob in q.all():
            if money(ob.paid_amount) > ZERO:
                continue
            db.delete(ob)
            deleted += 1

        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            raise ConflictError()

    except FinanceError as e:
        return _fail(db, e)
    except SQLAlchemyError:
        return _storage_fail(db, "obligation_bulk_delete_storage_error", tenant_id=ctx.tenant_id)

    skipped = len(ids) - deleted
    logger.info(
        "obligations_bulk_deleted",
        extra={"tenant_id": ctx.tenant_id, "deleted": deleted, "skipped": skipped},
    )
    return BulkDeleteResult(deleted=deleted, skipped=skipped)


# ----------------------------
# Cancel (admin, terminal)
# ----------------------------
def cancel_obligation(
        db: Session, ctx: TenantContext, obligation_id: str, kind=None, reason: Optional[str] = None
) -> Union[CancelResult, Failure]:
    try:
        require_cancel_role(ctx)

        for attempt in range(1, SETTLEMENT_MAX_ATTEMPTS + 1):
            ob = load_obligation(db, ctx, obligation_id, kind)
            if ob.status == ObligationStatus.CANCELLED.value:
                raise ObligationCancelled()
            if ob.status == ObligationStatus.PAID.value:
                raise AlreadySettled()

            ob.status = ObligationStatus.CANCELLED.value
            if reason:
                line = f"Cancelled: {reason}"
                ob.notes = f"{ob.notes}\n{line}" if ob.notes else line
            try:
                db.commit()
                break
            except StaleDataError:
                db.rollback()
                logger.warning(
                    "cancel_conflict",
                    extra={"obligation_id": obligation_id, "tenant_id": ctx.tenant_id, "attempt": attempt},
                )
        else:
            raise ConflictError()

    except FinanceError as e:
        return _fail(db, e)
    except SQLAlchemyError:
        return _storage_fail(db, "obligation_cancel_storage_error", obligation_id=obligation_id)

    logger.info(
        "obligation_cancelled",
        extra={"obligation_id": obligation_id, "tenant_id": ctx.tenant_id, "actor_id": ctx.actor_id},
    )
    return CancelResult(obligation_id=obligation_id, status=ObligationStatus.CANCELLED.value)
