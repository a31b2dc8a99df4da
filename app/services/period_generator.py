"""
Bulk period generator.

Materialises one recurring obligation per calendar month for a subject.
Periods that already exist are skipped and reported, so re-running the same
call is safe. An optional ``payment_amount`` is then spread over the open
periods of the window, earliest first, through the settlement applier.
"""

import calendar
import secrets
import string
from datetime import date
from decimal import Decimal
from typing import Iterator, Optional, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import MAX_PERIODS_PER_CALL, DEFAULT_DUE_DAY
from app.core.context import TenantContext, require_finance_role, scoped
from app.core.errors import (
    FinanceError,
    ValidationFailed,
    AmountNotPositive,
    NoPeriodsRequested,
    InvalidPeriod,
    InvalidRate,
    RateNotSet,
    StateError,
    ConflictError,
    StorageError,
)
from app.models.enums import ObligationStatus, PaymentMethod, RECURRING_TYPE
from app.models.obligation_model import Obligation
from app.schemas.obligation_schemas import GenerationResult, ObligationOut, PeriodRef
from app.schemas.result_schemas import Failure
from app.services.rates import rate_for_period
from app.services.settlement import settle
from app.services.subjects import SubjectRef, load_subject, due_day_for
from app.utils.logging_config import get_logger
from app.utils.money import money, parse_amount, format_amount, ZERO

logger = get_logger(__name__)

_INVOICE_ALPHABET = string.ascii_uppercase + string.digits


def iter_periods(start_month: int, start_year: int, count: int) -> Iterator[tuple[int, int]]:
    month, year = start_month, start_year
    for _ in range(count):
        yield month, year
        month += 1
        if month > 12:
            month = 1
            year += 1


def due_date_for(month: int, year: int, due_day: Optional[int]) -> date:
    last_day = calendar.monthrange(year, month)[1]
    day = min(max(due_day or DEFAULT_DUE_DAY, 1), last_day)
    return date(year, month, day)


def new_invoice_number(year: int) -> str:
    suffix = "".join(secrets.choice(_INVOICE_ALPHABET) for _ in range(8))
    return f"INV-{year}-{suffix}"


def find_period(db: Session, ctx: TenantContext, subject: SubjectRef, obligation_type, month: int, year: int):
    return (
        scoped(db, Obligation, ctx)
        .filter(
            subject.obligation_filter(),
            Obligation.obligation_type == obligation_type.value,
            Obligation.period_month == month,
            Obligation.period_year == year,
        )
        .first()
    )


def validate_window(start_month, start_year, count) -> None:
    if count is None or count < 1:
        raise NoPeriodsRequested()
    if count > MAX_PERIODS_PER_CALL:
        raise ValidationFailed(f"At most {MAX_PERIODS_PER_CALL} periods can be generated at once")
    if start_month is None or not 1 <= start_month <= 12:
        raise InvalidPeriod()
    if start_year is None or start_year < 1:
        raise InvalidPeriod("Year must be a positive number")


def generate_periods(
        db: Session,
        ctx: TenantContext,
        subject: SubjectRef,
        start_month: int,
        start_year: int,
        count: int,
        per_period_amount=None,
        method: PaymentMethod = PaymentMethod.CASH,
        payment_amount=None,
        note: Optional[str] = None,
) -> Union[GenerationResult, Failure]:
    created: list[Obligation] = []
    skipped: list[PeriodRef] = []
    applied = ZERO

    try:
        require_finance_role(ctx)
        validate_window(start_month, start_year, count)
        if per_period_amount is not None:
            per_period_amount = parse_amount(per_period_amount)
            if per_period_amount < ZERO:
                raise InvalidRate("Per-period amount must be 0 or greater")
        payment_amount = parse_amount(payment_amount)
        if payment_amount < ZERO:
            raise AmountNotPositive("Payment amount cannot be negative")
        method = PaymentMethod(method)

        row = load_subject(db, ctx, subject)
        kind = subject.obligation_kind
        obligation_type = RECURRING_TYPE[kind]
        due_day = due_day_for(row)

        # resolve every amount before the first insert so RateNotSet never leaves a half-made window
        plan = []
        for month, year in iter_periods(start_month, start_year, count):
            if per_period_amount is not None:
                amount = money(per_period_amount)
            else:
                rate = rate_for_period(db, ctx, subject, row, month, year)
                if rate is None:
                    raise RateNotSet()
                amount = money(rate)
            plan.append((month, year, amount))

        window: list[Obligation] = []
        for month, year, amount in plan:
            existing = find_period(db, ctx, subject, obligation_type, month, year)
            if existing:
                skipped.append(PeriodRef(month=month, year=year, obligation_id=existing.obligation_id))
                window.append(existing)
                continue

            ob = Obligation(
                tenant_id=ctx.tenant_id,
                kind=kind.value,
                obligation_type=obligation_type.value,
                period_month=month,
                period_year=year,
                due_date=due_date_for(month, year, due_day),
                invoice_number=new_invoice_number(year),
                amount=amount,
                paid_amount=ZERO,
                remaining_amount=amount,
                status=ObligationStatus.PENDING.value,
                notes=note,
                created_by=ctx.actor_id,
                **subject.obligation_fields(),
            )
            db.add(ob)
            try:
                db.commit()
            except IntegrityError:
                # created by a concurrent call between the check and the insert
                db.rollback()
                existing = find_period(db, ctx, subject, obligation_type, month, year)
                skipped.append(
                    PeriodRef(month=month, year=year, obligation_id=existing.obligation_id if existing else None)
                )
                if existing:
                    window.append(existing)
                continue

            created.append(ob)
            window.append(ob)

        left = money(payment_amount)
        for ob in window:
            if left <= ZERO:
                break
            if ob.status in (ObligationStatus.PAID.value, ObligationStatus.CANCELLED.value):
                continue
            remaining = money(ob.remaining_amount)
            if remaining <= ZERO:
                continue
            portion = min(left, remaining)
            try:
                settle(db, ctx, ob.obligation_id, portion, method, note, kind)
            except (StateError, ConflictError) as e:
                db.rollback()
                logger.warning(
                    "generation_payment_skipped",
                    extra={"obligation_id": ob.obligation_id, "error_kind": e.kind.value},
                )
                continue
            applied += portion
            left -= portion

    except FinanceError as e:
        db.rollback()
        return Failure.from_error(e)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("generation_storage_error", extra={"tenant_id": ctx.tenant_id})
        return Failure.from_error(StorageError())

    total = sum((money(ob.amount) for ob in created), Decimal("0.00"))
    unapplied = money(payment_amount) - applied

    message = f"{len(created)} period(s) created, {len(skipped)} skipped"
    if applied > ZERO:
        message += f". Paid: {format_amount(applied)}"
    if unapplied > ZERO:
        message += f". Not applied: {format_amount(unapplied)}"

    logger.info(
        "periods_generated",
        extra={
            "tenant_id": ctx.tenant_id,
            "subject_kind": subject.kind.value,
            "subject_id": subject.subject_id,
            "created_count": len(created),
            "skipped_count": len(skipped),
            "applied": str(applied),
        },
    )

    return GenerationResult(
        created=len(created),
        skipped=len(skipped),
        total_amount=total,
        created_obligations=[ObligationOut.model_validate(ob) for ob in created],
        skipped_periods=skipped,
        applied_amount=applied,
        unapplied_amount=unapplied,
        message=message,
    )
