from pydantic import BaseModel
from datetime import date
from decimal import Decimal
from typing import Dict, List, Literal, Optional


class BalanceOut(BaseModel):
    success: Literal[True] = True
    date_from: date
    date_to: date

    cash_income: Decimal
    cash_expense: Decimal
    card_income: Decimal
    card_expense: Decimal

    total_income: Decimal
    total_expense: Decimal
    balance: Decimal  # may be negative

    # drill-down: CASH / CLICK / PAYME / UZUM / CARD
    income_by_method: Dict[str, Decimal]
    expense_by_method: Dict[str, Decimal]
    # GENERAL / KITCHEN / SALARY
    expense_by_source: Dict[str, Decimal]


class StatusBucket(BaseModel):
    count: int = 0
    amount: Decimal = Decimal("0.00")


class ObligationSummaryOut(BaseModel):
    success: Literal[True] = True
    kind: str
    as_of: date

    pending: StatusBucket
    partially_paid: StatusBucket
    paid: StatusBucket
    cancelled: StatusBucket
    overdue: StatusBucket

    outstanding_amount: Decimal
    paid_by_type: Dict[str, Decimal]


class PeriodStatusRow(BaseModel):
    month: int
    year: int
    obligation_id: Optional[str] = None
    due_date: Optional[date] = None
    required_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    progress: int  # 0-100
    # NOT_CREATED / PENDING / PARTIALLY_PAID / PAID / OVERDUE / CANCELLED
    status: str


class SubjectOverviewOut(BaseModel):
    success: Literal[True] = True
    subject_kind: str
    subject_id: str
    full_name: str
    periods: List[PeriodStatusRow]
