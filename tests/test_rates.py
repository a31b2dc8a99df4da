from datetime import date
from decimal import Decimal

from app.models.employee_model import Staff
from app.models.enums import SubjectKind
from app.models.obligation_model import Obligation
from app.models.rate_change_model import RateChange
from app.models.student_model import Student
from app.services.period_generator import generate_periods
from app.services.rates import apply_new_rate, rate_for_period


class TestApplyNewRate:

    def test_existing_obligations_keep_their_amount(self, db, admin_ctx, student, student_ref):
        generate_periods(db, admin_ctx, student_ref, 9, 2024, 1)

        result = apply_new_rate(
            db, admin_ctx, SubjectKind.STUDENT, [student.student_id], Decimal("1200000"), date(2024, 10, 1)
        )
        assert result.success
        assert result.updated_count == 1

        sep = db.query(Obligation).filter_by(period_month=9, period_year=2024).one()
        assert sep.amount == Decimal("1000000.00")

        oct_ = generate_periods(db, admin_ctx, student_ref, 10, 2024, 1)
        assert oct_.created_obligations[0].amount == Decimal("1200000.00")

    def test_periods_before_the_change_use_the_previous_rate(self, db, admin_ctx, student, student_ref):
        apply_new_rate(db, admin_ctx, SubjectKind.STUDENT, [student.student_id], Decimal("1200000"), date(2024, 10, 15))

        result = generate_periods(db, admin_ctx, student_ref, 8, 2024, 4)
        assert [o.amount for o in result.created_obligations] == [
            Decimal("1000000.00"),
            Decimal("1000000.00"),
            Decimal("1200000.00"),
            Decimal("1200000.00"),
        ]

    def test_latest_applicable_change_wins(self, db, admin_ctx, student, student_ref):
        apply_new_rate(db, admin_ctx, SubjectKind.STUDENT, [student.student_id], Decimal("1100000"), date(2025, 1, 1))
        apply_new_rate(db, admin_ctx, SubjectKind.STUDENT, [student.student_id], Decimal("1300000"), date(2025, 3, 1))

        assert rate_for_period(db, admin_ctx, student_ref, student, 12, 2024) == Decimal("1000000.00")
        assert rate_for_period(db, admin_ctx, student_ref, student, 2, 2025) == Decimal("1100000.00")
        assert rate_for_period(db, admin_ctx, student_ref, student, 3, 2025) == Decimal("1300000.00")
        assert rate_for_period(db, admin_ctx, student_ref, student, 9, 2025) == Decimal("1300000.00")

    def test_history_row_is_written(self, db, admin_ctx, student):
        apply_new_rate(db, admin_ctx, SubjectKind.STUDENT, [student.student_id], Decimal("900000"), date(2025, 1, 1))

        change = db.query(RateChange).one()
        assert change.previous_rate == Decimal("1000000.00")
        assert change.new_rate == Decimal("900000.00")
        assert change.created_by == "admin-1"
        assert db.get(Student, student.student_id).monthly_tuition_fee == Decimal("900000.00")

    def test_staff_rate(self, db, admin_ctx, staff):
        result = apply_new_rate(db, admin_ctx, SubjectKind.STAFF, [staff.staff_id], Decimal("2500000"), date(2025, 1, 1))
        assert result.updated_count == 1
        assert db.get(Staff, staff.staff_id).monthly_salary == Decimal("2500000.00")

    def test_foreign_subjects_are_not_counted(self, db, admin_ctx, student, foreign_student):
        result = apply_new_rate(
            db, admin_ctx, SubjectKind.STUDENT,
            [student.student_id, foreign_student.student_id],
            Decimal("1500000"), date(2025, 1, 1),
        )
        assert result.updated_count == 1
        assert db.get(Student, foreign_student.student_id).monthly_tuition_fee == Decimal("500000.00")

    def test_zero_rate_is_allowed(self, db, admin_ctx, student):
        result = apply_new_rate(db, admin_ctx, SubjectKind.STUDENT, [student.student_id], Decimal("0"), date(2025, 1, 1))
        assert result.success

    def test_negative_rate(self, db, admin_ctx, student):
        result = apply_new_rate(db, admin_ctx, SubjectKind.STUDENT, [student.student_id], Decimal("-1"), date(2025, 1, 1))
        assert result.error_kind == "InvalidRate"
        assert db.query(RateChange).count() == 0

    def test_unstorable_rate(self, db, admin_ctx, student):
        result = apply_new_rate(db, admin_ctx, SubjectKind.STUDENT, [student.student_id], Decimal("1E+27"), date(2025, 1, 1))
        assert result.error_kind == "InvalidAmount"
        assert db.query(RateChange).count() == 0

    def test_empty_selection(self, db, admin_ctx):
        result = apply_new_rate(db, admin_ctx, SubjectKind.STUDENT, [], Decimal("100"), date(2025, 1, 1))
        assert result.error_kind == "ValidationError"
