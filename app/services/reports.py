"""
Aggregation reporter (read side only).

Income is the sum of TUITION contributions; outflows are the expense ledger
plus SALARY contributions. Nothing here reads ``Obligation.amount`` for
income, so unpaid invoices never show up as money received.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.context import TenantContext, require_finance_role, scoped
from app.core.errors import FinanceError, ValidationFailed, InvalidPeriod, StorageError
from app.models.enums import ObligationKind, ObligationStatus, PaymentMethod, ExpenseSource, RECURRING_TYPE
from app.models.expense_model import Expense
from app.models.obligation_model import Obligation, ObligationContribution
from app.schemas.report_schemas import (
    BalanceOut,
    StatusBucket,
    ObligationSummaryOut,
    PeriodStatusRow,
    SubjectOverviewOut,
)
from app.schemas.result_schemas import Failure
from app.services.period_generator import iter_periods, due_date_for, find_period
from app.services.rates import rate_for_period
from app.services.subjects import SubjectRef, load_subject, due_day_for
from app.utils.logging_config import get_logger
from app.utils.money import money, ZERO

logger = get_logger(__name__)

OPEN_STATUSES = (ObligationStatus.PENDING.value, ObligationStatus.PARTIALLY_PAID.value)


def _method_key(value) -> str:
    try:
        return PaymentMethod(value).value
    except ValueError:
        return PaymentMethod.CARD.value


def _storage_failure(db: Session, event: str, **extra) -> Failure:
    db.rollback()
    logger.exception(event, extra=extra)
    return Failure.from_error(StorageError())


def compute_balance(db: Session, ctx: TenantContext, date_from: date, date_to: date) -> Union[BalanceOut, Failure]:
    """
    Income / expense / balance for the inclusive window [date_from, date_to].
    Every amount lands in exactly one of cash or card; card subtypes are
    also reported individually.
    """
    try:
        require_finance_role(ctx)
        if date_from is None or date_to is None:
            raise ValidationFailed("Both date_from and date_to are required")
        if date_from > date_to:
            raise ValidationFailed("date_from must not be after date_to")
    except FinanceError as e:
        return Failure.from_error(e)

    start = datetime.combine(date_from, time.min)
    end = datetime.combine(date_to + timedelta(days=1), time.min)

    try:
        contributions = (
            scoped(db, ObligationContribution, ctx)
            .with_entities(
                ObligationContribution.kind,
                ObligationContribution.payment_method,
                func.sum(ObligationContribution.amount),
            )
            .filter(ObligationContribution.paid_at >= start, ObligationContribution.paid_at < end)
            .group_by(ObligationContribution.kind, ObligationContribution.payment_method)
            .all()
        )
        expenses = (
            scoped(db, Expense, ctx)
            .with_entities(Expense.source, Expense.payment_method, func.sum(Expense.amount))
            .filter(Expense.expense_date >= date_from, Expense.expense_date <= date_to)
            .group_by(Expense.source, Expense.payment_method)
            .all()
        )
    except SQLAlchemyError:
        return _storage_failure(db, "balance_storage_error", tenant_id=ctx.tenant_id)

    income_by_method = {m.value: ZERO for m in PaymentMethod}
    expense_by_method = {m.value: ZERO for m in PaymentMethod}
    expense_by_source = {s.value: ZERO for s in ExpenseSource}

    for kind, method, total in contributions:
        method = _method_key(method)
        total = money(total)
        if kind == ObligationKind.TUITION.value:
            income_by_method[method] += total
        else:
            expense_by_method[method] += total
            expense_by_source[ExpenseSource.SALARY.value] += total

    for source, method, total in expenses:
        method = _method_key(method)
        total = money(total)
        expense_by_method[method] += total
        expense_by_source[source] = expense_by_source.get(source, ZERO) + total

    cash_income = income_by_method[PaymentMethod.CASH.value]
    cash_expense = expense_by_method[PaymentMethod.CASH.value]
    card_income = sum((v for k, v in income_by_method.items() if not PaymentMethod(k).is_cash), ZERO)
    card_expense = sum((v for k, v in expense_by_method.items() if not PaymentMethod(k).is_cash), ZERO)

    total_income = cash_income + card_income
    total_expense = cash_expense + card_expense

    return BalanceOut(
        date_from=date_from,
        date_to=date_to,
        cash_income=cash_income,
        cash_expense=cash_expense,
        card_income=card_income,
        card_expense=card_expense,
        total_income=total_income,
        total_expense=total_expense,
        balance=total_income - total_expense,
        income_by_method=income_by_method,
        expense_by_method=expense_by_method,
        expense_by_source=expense_by_source,
    )


def obligation_summary(
        db: Session, ctx: TenantContext, kind: ObligationKind, as_of: Optional[date] = None
) -> Union[ObligationSummaryOut, Failure]:
    try:
        require_finance_role(ctx)
        kind = ObligationKind(kind)
    except FinanceError as e:
        return Failure.from_error(e)

    as_of = as_of or date.today()
    base = scoped(db, Obligation, ctx).filter(Obligation.kind == kind.value)

    try:
        rows = (
            base.with_entities(Obligation.status, func.count(Obligation.obligation_id), func.sum(Obligation.amount))
            .group_by(Obligation.status)
            .all()
        )
        outstanding = (
            base.filter(Obligation.status.in_(OPEN_STATUSES))
            .with_entities(func.coalesce(func.sum(Obligation.remaining_amount), 0))
            .scalar()
        )
        # waived periods (nothing left to pay) are never overdue
        overdue_count, overdue_amount = (
            base.filter(
                Obligation.status.in_(OPEN_STATUSES),
                Obligation.due_date < as_of,
                Obligation.remaining_amount > 0,
            )
            .with_entities(func.count(Obligation.obligation_id), func.coalesce(func.sum(Obligation.remaining_amount), 0))
            .one()
        )
        paid_rows = (
            base.with_entities(Obligation.obligation_type, func.sum(Obligation.paid_amount))
            .group_by(Obligation.obligation_type)
            .all()
        )
    except SQLAlchemyError:
        return _storage_failure(db, "summary_storage_error", tenant_id=ctx.tenant_id)

    buckets = {s.value: StatusBucket() for s in ObligationStatus}
    for status, count, total in rows:
        buckets[status] = StatusBucket(count=count, amount=money(total))

    return ObligationSummaryOut(
        kind=kind.value,
        as_of=as_of,
        pending=buckets[ObligationStatus.PENDING.value],
        partially_paid=buckets[ObligationStatus.PARTIALLY_PAID.value],
        paid=buckets[ObligationStatus.PAID.value],
        cancelled=buckets[ObligationStatus.CANCELLED.value],
        overdue=StatusBucket(count=overdue_count, amount=money(overdue_amount)),
        outstanding_amount=money(outstanding),
        paid_by_type={obligation_type: money(total) for obligation_type, total in paid_rows},
    )


def _progress(paid, required) -> int:
    if required <= ZERO:
        return 100 if paid > ZERO else 0
    return min(int(round(paid / required * 100)), 100)


def is_overdue(ob, as_of: date) -> bool:
    return (
        ob.status in OPEN_STATUSES
        and ob.due_date is not None
        and ob.due_date < as_of
        and money(ob.remaining_amount) > ZERO
    )


def subject_period_status(
        db: Session,
        ctx: TenantContext,
        subject: SubjectRef,
        start_month: int,
        start_year: int,
        months: int = 3,
        as_of: Optional[date] = None,
) -> Union[SubjectOverviewOut, Failure]:
    """Per-period view of one subject's recurring obligations."""
    as_of = as_of or date.today()
    obligation_type = RECURRING_TYPE[subject.obligation_kind]
    periods = []

    try:
        require_finance_role(ctx)
        if not 1 <= start_month <= 12:
            raise InvalidPeriod()
        if not 1 <= months <= 12:
            raise ValidationFailed("months must be between 1 and 12")
        row = load_subject(db, ctx, subject)

        for month, year in iter_periods(start_month, start_year, months):
            ob = find_period(db, ctx, subject, obligation_type, month, year)
            if ob is None:
                required = money(rate_for_period(db, ctx, subject, row, month, year))
                periods.append(
                    PeriodStatusRow(
                        month=month,
                        year=year,
                        due_date=due_date_for(month, year, due_day_for(row)),
                        required_amount=required,
                        paid_amount=ZERO,
                        remaining_amount=required,
                        progress=0,
                        status="NOT_CREATED",
                    )
                )
                continue

            paid = money(ob.paid_amount)
            required = money(ob.amount)
            periods.append(
                PeriodStatusRow(
                    month=month,
                    year=year,
                    obligation_id=ob.obligation_id,
                    due_date=ob.due_date,
                    required_amount=required,
                    paid_amount=paid,
                    remaining_amount=money(ob.remaining_amount),
                    progress=_progress(paid, required),
                    status="OVERDUE" if is_overdue(ob, as_of) else ob.status,
                )
            )

    except FinanceError as e:
        return Failure.from_error(e)
    except SQLAlchemyError:
        return _storage_failure(db, "period_status_storage_error", tenant_id=ctx.tenant_id)

    return SubjectOverviewOut(
        subject_kind=subject.kind.value,
        subject_id=subject.subject_id,
        full_name=row.full_name,
        periods=periods,
    )
