"""
Every core operation is role-checked and tenant-scoped.
"""

from datetime import date
from decimal import Decimal

import pytest

from app.core.context import TenantContext
from app.models.enums import ObligationKind, SubjectKind
from app.models.obligation_model import Obligation
from app.schemas.result_schemas import Failure
from app.services.obligations import get_obligation, list_obligations, delete_obligation
from app.services.period_generator import generate_periods
from app.services.rates import apply_new_rate
from app.services.reports import compute_balance, obligation_summary
from app.services.settlement import apply_partial_settlement


def _calls(student_ref, obligation_id):
    return [
        lambda db, ctx: apply_partial_settlement(db, ctx, obligation_id, Decimal("100")),
        lambda db, ctx: generate_periods(db, ctx, student_ref, 1, 2025, 1),
        lambda db, ctx: apply_new_rate(db, ctx, SubjectKind.STUDENT, [student_ref.subject_id], Decimal("1"), date(2025, 1, 1)),
        lambda db, ctx: compute_balance(db, ctx, date(2025, 1, 1), date(2025, 1, 31)),
        lambda db, ctx: obligation_summary(db, ctx, ObligationKind.TUITION),
        lambda db, ctx: get_obligation(db, ctx, obligation_id),
        lambda db, ctx: delete_obligation(db, ctx, obligation_id),
    ]


@pytest.mark.parametrize("index", range(7))
def test_non_finance_role_is_unauthorized(db, teacher_role_ctx, student_ref, tuition, index):
    result = _calls(student_ref, tuition.obligation_id)[index](db, teacher_role_ctx)

    assert isinstance(result, Failure)
    assert result.error_kind == "Unauthorized"

    ob = db.get(Obligation, tuition.obligation_id)
    assert ob.paid_amount == Decimal("0.00")
    assert db.query(Obligation).count() == 1


@pytest.mark.parametrize(
    "ctx",
    [
        TenantContext(tenant_id="", actor_id="x", role="ADMIN"),
        TenantContext(tenant_id="tenant-a", actor_id="", role="ADMIN"),
        TenantContext(tenant_id="tenant-a", actor_id="x", role=""),
    ],
)
def test_incomplete_context_is_unauthorized(db, tuition, ctx):
    result = apply_partial_settlement(db, ctx, tuition.obligation_id, Decimal("100"))
    assert result.error_kind == "Unauthorized"


def test_unauthorized_does_not_reveal_existence(db, teacher_role_ctx, tuition):
    existing = apply_partial_settlement(db, teacher_role_ctx, tuition.obligation_id, Decimal("100"))
    missing = apply_partial_settlement(db, teacher_role_ctx, "no-such-id", Decimal("100"))
    assert existing == missing


class TestCrossTenant:

    def test_settlement_on_foreign_obligation_is_not_found(self, db, other_tenant_ctx, tuition):
        result = apply_partial_settlement(db, other_tenant_ctx, tuition.obligation_id, Decimal("100"))

        assert result.error_kind == "ObligationNotFound"
        assert db.get(Obligation, tuition.obligation_id).paid_amount == Decimal("0.00")

    def test_foreign_obligation_reads_like_a_missing_one(self, db, other_tenant_ctx, tuition):
        foreign = get_obligation(db, other_tenant_ctx, tuition.obligation_id)
        missing = get_obligation(db, other_tenant_ctx, "no-such-id")
        assert foreign == missing

    def test_listing_is_scoped(self, db, other_tenant_ctx, tuition):
        assert list_obligations(db, other_tenant_ctx).total == 0

    def test_generation_for_foreign_subject(self, db, other_tenant_ctx, student_ref):
        result = generate_periods(db, other_tenant_ctx, student_ref, 1, 2025, 1)
        assert result.error_kind == "SubjectNotFound"

    def test_delete_foreign_obligation(self, db, other_tenant_ctx, tuition):
        result = delete_obligation(db, other_tenant_ctx, tuition.obligation_id)
        assert result.error_kind == "ObligationNotFound"
        assert db.query(Obligation).count() == 1
