"""
Partial settlement applier.

The only code path that changes ``paid_amount`` / ``remaining_amount`` /
``status`` of an obligation. It is the same for tuition and salary; the
obligation's subject column is the only difference between the two.

Concurrency: obligations carry a ``version`` column mapped as SQLAlchemy's
``version_id_col``. The UPDATE is issued as ``... WHERE version = :read``;
a concurrent writer makes it match zero rows, the flush raises
``StaleDataError`` and the whole read-compute-write cycle is retried with a
fresh read, up to ``SETTLEMENT_MAX_ATTEMPTS`` times.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import SETTLEMENT_MAX_ATTEMPTS
from app.core.context import TenantContext, require_finance_role, scoped
from app.core.errors import (
    FinanceError,
    AmountNotPositive,
    ObligationNotFound,
    AlreadySettled,
    ExceedsRemaining,
    ObligationCancelled,
    ConflictError,
    StorageError,
)
from app.models.common import utcnow
from app.models.enums import ObligationStatus, PaymentMethod
from app.models.obligation_model import Obligation, ObligationContribution
from app.schemas.obligation_schemas import SettlementResult
from app.schemas.result_schemas import Failure
from app.utils.logging_config import get_logger
from app.utils.money import money, parse_amount, clamp_non_negative, format_amount, ZERO

logger = get_logger(__name__)


@dataclass(frozen=True)
class SettlementState:
    paid_amount: Decimal
    remaining_amount: Decimal
    status: ObligationStatus

    @property
    def is_completed(self) -> bool:
        return self.status is ObligationStatus.PAID


def derive_status(amount, paid_amount) -> ObligationStatus:
    amount = money(amount)
    paid_amount = money(paid_amount)
    if paid_amount <= ZERO:
        return ObligationStatus.PENDING
    if paid_amount >= amount:
        return ObligationStatus.PAID
    return ObligationStatus.PARTIALLY_PAID


def compute_next_state(amount, paid_amount, status, contribution) -> SettlementState:
    """
    Pure transition: (current obligation, contribution) -> next state.
    Raises a typed FinanceError when the contribution is not acceptable.
    """
    contribution = parse_amount(contribution)
    if contribution <= ZERO:
        raise AmountNotPositive()

    status = ObligationStatus(status)
    if status is ObligationStatus.CANCELLED:
        raise ObligationCancelled()
    if status is ObligationStatus.PAID:
        raise AlreadySettled()

    amount = money(amount)
    paid_amount = money(paid_amount)
    remaining = clamp_non_negative(amount - paid_amount)

    if contribution > remaining:
        raise ExceedsRemaining(max_allowed=remaining)

    new_paid = min(paid_amount + contribution, amount)
    new_remaining = clamp_non_negative(amount - new_paid)
    return SettlementState(
        paid_amount=new_paid,
        remaining_amount=new_remaining,
        status=derive_status(amount, new_paid),
    )


def format_note_line(at: datetime, amount, method: PaymentMethod, note: Optional[str]) -> str:
    line = f"[{at:%Y-%m-%d %H:%M}] +{format_amount(amount)} ({method.value})"
    if note:
        line += f": {note}"
    return line


def append_note(existing: Optional[str], line: str) -> str:
    return f"{existing}\n{line}" if existing else line


def load_obligation(db: Session, ctx: TenantContext, obligation_id: str, kind=None) -> Obligation:
    q = scoped(db, Obligation, ctx).filter(Obligation.obligation_id == obligation_id)
    if kind is not None:
        q = q.filter(Obligation.kind == kind.value)
    ob = q.first()
    if not ob:
        raise ObligationNotFound()
    return ob


def settle(
        db: Session,
        ctx: TenantContext,
        obligation_id: str,
        amount,
        method: PaymentMethod = PaymentMethod.CASH,
        note: Optional[str] = None,
        kind=None,
        now: Optional[datetime] = None,
) -> tuple[Obligation, ObligationContribution]:
    """
    Read-compute-write with optimistic retry. Commits on success; raises
    FinanceError otherwise, leaving the obligation untouched.
    """
    amount = parse_amount(amount)
    if amount <= ZERO:
        raise AmountNotPositive()
    method = PaymentMethod(method)

    for attempt in range(1, SETTLEMENT_MAX_ATTEMPTS + 1):
        ob = load_obligation(db, ctx, obligation_id, kind)
        state = compute_next_state(ob.amount, ob.paid_amount, ob.status, amount)

        at = now or utcnow()
        ob.paid_amount = state.paid_amount
        ob.remaining_amount = state.remaining_amount
        ob.status = state.status.value
        ob.payment_method = method.value
        if state.is_completed or ob.payment_date is None:
            ob.payment_date = at
        ob.notes = append_note(ob.notes, format_note_line(at, amount, method, note))

        contribution = ObligationContribution(
            tenant_id=ctx.tenant_id,
            obligation_id=ob.obligation_id,
            kind=ob.kind,
            amount=amount,
            payment_method=method.value,
            actor_id=ctx.actor_id,
            paid_at=at,
            note=note,
        )
        db.add(contribution)

        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            logger.warning(
                "settlement_conflict",
                extra={"obligation_id": obligation_id, "tenant_id": ctx.tenant_id, "attempt": attempt},
            )
            continue

        logger.info(
            "settlement_applied",
            extra={
                "obligation_id": ob.obligation_id,
                "tenant_id": ctx.tenant_id,
                "amount": str(amount),
                "method": method.value,
                "status": ob.status,
            },
        )
        return ob, contribution

    raise ConflictError()


def apply_partial_settlement(
        db: Session,
        ctx: TenantContext,
        obligation_id: str,
        amount,
        method: PaymentMethod = PaymentMethod.CASH,
        note: Optional[str] = None,
        kind=None,
) -> Union[SettlementResult, Failure]:
    try:
        require_finance_role(ctx)
        ob, contribution = settle(db, ctx, obligation_id, amount, method, note, kind)
    except FinanceError as e:
        db.rollback()
        return Failure.from_error(e)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("settlement_storage_error", extra={"obligation_id": obligation_id})
        return Failure.from_error(StorageError())

    paid = money(ob.paid_amount)
    remaining = money(ob.remaining_amount)
    completed = ob.status == ObligationStatus.PAID.value
    if completed:
        message = f"{format_amount(contribution.amount)} added. Obligation fully paid."
    else:
        message = f"{format_amount(contribution.amount)} added. Remaining: {format_amount(remaining)}"

    return SettlementResult(
        obligation_id=ob.obligation_id,
        contribution_id=contribution.contribution_id,
        paid_amount=paid,
        remaining_amount=remaining,
        status=ob.status,
        is_completed=completed,
        message=message,
    )
