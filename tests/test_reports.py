"""
Aggregation reporter and the supplementary read models.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Query

from app.models.enums import ObligationKind, PaymentMethod
from app.schemas.expense_schemas import ExpenseCategoryCreate, ExpenseCreate
from app.services.expenses import create_category, create_expense, list_categories, list_expenses
from app.services.obligations import create_obligation, cancel_obligation
from app.services.period_generator import generate_periods
from app.services.reports import compute_balance, obligation_summary, subject_period_status
from app.services.settlement import settle
from app.utils.money import ZERO

FEB_1 = date(2024, 2, 1)
FEB_29 = date(2024, 2, 29)


@pytest.fixture
def category(db, admin_ctx):
    return create_category(db, admin_ctx, ExpenseCategoryCreate(name="Oshxona")).category


def _expense(db, ctx, category, amount, method=PaymentMethod.CASH, source="GENERAL", on=date(2024, 2, 10)):
    result = create_expense(
        db, ctx,
        ExpenseCreate(category_id=category.category_id, expense_date=on, amount=amount,
                      payment_method=method, source=source),
    )
    assert result.success, result
    return result.expense


def _pay(db, ctx, obligation_id, amount, method=PaymentMethod.CASH, at=datetime(2024, 2, 10, 12, 0)):
    settle(db, ctx, obligation_id, amount, method, now=at)


def _break_reads(monkeypatch):
    def fail(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    for name in ("all", "one", "first", "scalar", "count"):
        monkeypatch.setattr(Query, name, fail)


class TestComputeBalance:

    def test_negative_balance_is_not_clamped(self, db, admin_ctx, tuition, category):
        _pay(db, admin_ctx, tuition.obligation_id, Decimal("500000"))
        _expense(db, admin_ctx, category, Decimal("800000"))

        result = compute_balance(db, admin_ctx, FEB_1, FEB_29)

        assert result.cash_income == Decimal("500000.00")
        assert result.cash_expense == Decimal("800000.00")
        assert result.card_income == ZERO
        assert result.card_expense == ZERO
        assert result.balance == Decimal("-300000.00")

    def test_unpaid_invoices_are_not_income(self, db, admin_ctx, tuition):
        result = compute_balance(db, admin_ctx, FEB_1, FEB_29)
        assert result.total_income == ZERO

    def test_split_by_method_follows_each_contribution(self, db, admin_ctx, tuition, teacher_ref, category):
        _pay(db, admin_ctx, tuition.obligation_id, Decimal("300000"), PaymentMethod.CASH)
        _pay(db, admin_ctx, tuition.obligation_id, Decimal("200000"), PaymentMethod.CLICK)
        _pay(db, admin_ctx, tuition.obligation_id, Decimal("100000"), PaymentMethod.PAYME)

        salary = create_obligation(db, admin_ctx, teacher_ref, Decimal("3000000"), month=2, year=2024)
        _pay(db, admin_ctx, salary.obligation.obligation_id, Decimal("1000000"), PaymentMethod.CARD)
        _expense(db, admin_ctx, category, Decimal("50000"), PaymentMethod.UZUM, source="KITCHEN")

        result = compute_balance(db, admin_ctx, FEB_1, FEB_29)

        assert result.cash_income == Decimal("300000.00")
        assert result.card_income == Decimal("300000.00")
        assert result.income_by_method["CLICK"] == Decimal("200000.00")
        assert result.income_by_method["PAYME"] == Decimal("100000.00")

        assert result.card_expense == Decimal("1050000.00")
        assert result.expense_by_method["CARD"] == Decimal("1000000.00")
        assert result.expense_by_method["UZUM"] == Decimal("50000.00")
        assert result.expense_by_source["SALARY"] == Decimal("1000000.00")
        assert result.expense_by_source["KITCHEN"] == Decimal("50000.00")

        assert result.total_income == result.cash_income + result.card_income
        assert result.total_expense == result.cash_expense + result.card_expense
        assert result.balance == Decimal("-450000.00")

    def test_window_is_inclusive_of_both_days(self, db, admin_ctx, tuition):
        _pay(db, admin_ctx, tuition.obligation_id, Decimal("100"), at=datetime(2024, 1, 31, 23, 59))
        _pay(db, admin_ctx, tuition.obligation_id, Decimal("200"), at=datetime(2024, 2, 1, 0, 0))
        _pay(db, admin_ctx, tuition.obligation_id, Decimal("300"), at=datetime(2024, 2, 29, 23, 59))
        _pay(db, admin_ctx, tuition.obligation_id, Decimal("400"), at=datetime(2024, 3, 1, 0, 0))

        result = compute_balance(db, admin_ctx, FEB_1, FEB_29)
        assert result.total_income == Decimal("500.00")

    def test_other_tenant_sees_nothing(self, db, admin_ctx, other_tenant_ctx, tuition):
        _pay(db, admin_ctx, tuition.obligation_id, Decimal("500000"))
        result = compute_balance(db, other_tenant_ctx, FEB_1, FEB_29)
        assert result.total_income == ZERO

    def test_inverted_window(self, db, admin_ctx):
        result = compute_balance(db, admin_ctx, FEB_29, FEB_1)
        assert result.error_kind == "ValidationError"


class TestObligationSummary:

    def test_counts_outstanding_and_overdue(self, db, admin_ctx, student_ref):
        created = generate_periods(db, admin_ctx, student_ref, 1, 2025, 4)
        jan, feb, mar, apr = [o.obligation_id for o in created.created_obligations]

        settle(db, admin_ctx, jan, Decimal("1000000"))
        settle(db, admin_ctx, feb, Decimal("400000"))
        cancel_obligation(db, admin_ctx, apr)

        result = obligation_summary(db, admin_ctx, ObligationKind.TUITION, as_of=date(2025, 3, 1))

        assert result.paid.count == 1
        assert result.partially_paid.count == 1
        assert result.pending.count == 1
        assert result.cancelled.count == 1
        assert result.outstanding_amount == Decimal("1600000.00")
        # February (due 5th) is open and past due; March is not yet due
        assert result.overdue.count == 1
        assert result.overdue.amount == Decimal("600000.00")
        assert result.paid_by_type["TUITION"] == Decimal("1400000.00")

    def test_empty(self, db, admin_ctx):
        result = obligation_summary(db, admin_ctx, ObligationKind.SALARY, as_of=date(2025, 1, 1))
        assert result.pending.count == 0
        assert result.outstanding_amount == ZERO
        assert result.paid_by_type == {}


class TestSubjectPeriodStatus:

    def test_statuses_per_period(self, db, admin_ctx, student_ref):
        created = generate_periods(db, admin_ctx, student_ref, 1, 2025, 2)
        jan, feb = [o.obligation_id for o in created.created_obligations]
        settle(db, admin_ctx, jan, Decimal("1000000"))
        settle(db, admin_ctx, feb, Decimal("250000"))

        result = subject_period_status(db, admin_ctx, student_ref, 1, 2025, months=3, as_of=date(2025, 2, 10))

        assert result.full_name == "Ali Valiyev"
        assert [(p.month, p.status) for p in result.periods] == [
            (1, "PAID"),
            (2, "OVERDUE"),
            (3, "NOT_CREATED"),
        ]
        assert result.periods[0].progress == 100
        assert result.periods[1].progress == 25
        assert result.periods[2].required_amount == Decimal("1000000.00")
        assert result.periods[2].obligation_id is None

    def test_unknown_subject(self, db, admin_ctx):
        from app.models.enums import SubjectKind
        from app.services.subjects import SubjectRef

        result = subject_period_status(db, admin_ctx, SubjectRef(SubjectKind.TEACHER, "nope"), 1, 2025)
        assert result.error_kind == "SubjectNotFound"

    def test_waived_period_is_never_overdue(self, db, admin_ctx, student_ref):
        generate_periods(db, admin_ctx, student_ref, 1, 2024, 1, per_period_amount=Decimal("0"))

        summary = obligation_summary(db, admin_ctx, ObligationKind.TUITION, as_of=date(2024, 6, 1))
        assert summary.pending.count == 1
        assert summary.overdue.count == 0
        assert summary.overdue.amount == ZERO

        overview = subject_period_status(db, admin_ctx, student_ref, 1, 2024, months=1, as_of=date(2024, 6, 1))
        assert overview.periods[0].status == "PENDING"
        assert overview.periods[0].remaining_amount == ZERO


class TestStorageFailures:

    def test_balance(self, db, admin_ctx, tuition, monkeypatch):
        _break_reads(monkeypatch)
        result = compute_balance(db, admin_ctx, FEB_1, FEB_29)
        assert result.success is False
        assert result.error_kind == "StorageError"

    def test_summary(self, db, admin_ctx, monkeypatch):
        _break_reads(monkeypatch)
        result = obligation_summary(db, admin_ctx, ObligationKind.TUITION, as_of=FEB_1)
        assert result.error_kind == "StorageError"

    def test_period_status(self, db, admin_ctx, student_ref, monkeypatch):
        _break_reads(monkeypatch)
        result = subject_period_status(db, admin_ctx, student_ref, 1, 2025)
        assert result.error_kind == "StorageError"

    def test_expense_listing(self, db, admin_ctx, category, monkeypatch):
        _break_reads(monkeypatch)
        assert list_expenses(db, admin_ctx).error_kind == "StorageError"
        assert list_categories(db, admin_ctx).error_kind == "StorageError"
