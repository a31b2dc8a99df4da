from pydantic import BaseModel, field_validator
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Literal

from app.models.enums import ObligationType, PaymentMethod


def _empty_to_none(v):
    if v is None:
        return None
    v = str(v).strip()
    return v or None


# ----------------------------
# Output
# ----------------------------
class ObligationOut(BaseModel):
    obligation_id: str
    kind: str
    obligation_type: str

    subject_kind: str
    subject_id: str
    student_id: Optional[str] = None
    teacher_id: Optional[str] = None
    staff_id: Optional[str] = None

    period_month: Optional[int] = None
    period_year: Optional[int] = None
    due_date: Optional[date] = None
    invoice_number: Optional[str] = None

    amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal

    status: str
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None

    created_on: Optional[datetime] = None
    updated_on: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContributionOut(BaseModel):
    contribution_id: str
    obligation_id: str
    kind: str
    amount: Decimal
    payment_method: str
    actor_id: Optional[str] = None
    paid_at: datetime
    note: Optional[str] = None

    class Config:
        from_attributes = True


class ObligationPage(BaseModel):
    success: Literal[True] = True
    total: int
    items: List[ObligationOut]


class ContributionList(BaseModel):
    success: Literal[True] = True
    obligation: ObligationOut
    contributions: List[ContributionOut]


class ObligationResult(BaseModel):
    success: Literal[True] = True
    obligation: ObligationOut


# ----------------------------
# Create single obligation
# ----------------------------
class _ObligationCreateBase(BaseModel):
    # amount is validated by the service so that "<= 0" comes back as AmountNotPositive
    amount: Decimal
    period_month: Optional[int] = None
    period_year: Optional[int] = None
    due_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    paid_now: bool = False
    notes: Optional[str] = None

    @field_validator("notes", mode="before")
    def empty_to_none(cls, v):
        return _empty_to_none(v)


class TuitionCreate(_ObligationCreateBase):
    student_id: str
    obligation_type: ObligationType = ObligationType.TUITION


class SalaryCreate(_ObligationCreateBase):
    employee_id: str
    employee_type: Literal["TEACHER", "STAFF"]
    obligation_type: ObligationType = ObligationType.MONTHLY_SALARY


# ----------------------------
# Partial settlement
# ----------------------------
class PartialPaymentIn(BaseModel):
    amount: Decimal
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None

    @field_validator("notes", mode="before")
    def empty_to_none(cls, v):
        return _empty_to_none(v)


class SettlementResult(BaseModel):
    success: Literal[True] = True
    obligation_id: str
    contribution_id: str
    paid_amount: Decimal
    remaining_amount: Decimal
    status: str
    is_completed: bool
    message: str


# ----------------------------
# Bulk period generation
# ----------------------------
class _GenerateBase(BaseModel):
    start_month: int
    start_year: int
    months_count: int
    per_period_amount: Optional[Decimal] = None  # None -> subject's rate for the period
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_amount: Optional[Decimal] = None  # "pay while creating"
    notes: Optional[str] = None

    @field_validator("notes", mode="before")
    def empty_to_none(cls, v):
        return _empty_to_none(v)


class TuitionGenerateIn(_GenerateBase):
    student_id: str


class SalaryGenerateIn(_GenerateBase):
    employee_id: str
    employee_type: Literal["TEACHER", "STAFF"]


class PeriodRef(BaseModel):
    month: int
    year: int
    obligation_id: Optional[str] = None


class GenerationResult(BaseModel):
    success: Literal[True] = True
    created: int
    skipped: int
    total_amount: Decimal
    created_obligations: List[ObligationOut]
    skipped_periods: List[PeriodRef]
    applied_amount: Decimal
    unapplied_amount: Decimal
    message: str


# ----------------------------
# Cancel / delete
# ----------------------------
class CancelResult(BaseModel):
    success: Literal[True] = True
    obligation_id: str
    status: str


class DeleteResult(BaseModel):
    success: Literal[True] = True
    obligation_id: str


class BulkDeleteIn(BaseModel):
    obligation_ids: List[str]


class BulkDeleteResult(BaseModel):
    success: Literal[True] = True
    deleted: int
    skipped: int


class CancelIn(BaseModel):
    reason: Optional[str] = None

    @field_validator("reason", mode="before")
    def empty_to_none(cls, v):
        return _empty_to_none(v)
