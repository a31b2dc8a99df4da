# app/models/obligation_model.py

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Numeric,
    Text,
    ForeignKey,
    Index,
    CheckConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.models.common import new_id, utcnow
from app.utils.database import Base


class Obligation(Base):
    """
    Amount owed by a student (TUITION) or to an employee (SALARY).

    paid_amount / remaining_amount / status are derived from the
    contributions and only ever written by the settlement applier.
    """

    __tablename__ = "obligations"

    __table_args__ = (
        CheckConstraint(
            "(CASE WHEN student_id IS NOT NULL THEN 1 ELSE 0 END)"
            " + (CASE WHEN teacher_id IS NOT NULL THEN 1 ELSE 0 END)"
            " + (CASE WHEN staff_id IS NOT NULL THEN 1 ELSE 0 END) = 1",
            name="ck_obligation_one_subject",
        ),
        CheckConstraint("amount >= 0", name="ck_obligation_amount"),
        CheckConstraint("paid_amount >= 0 AND paid_amount <= amount", name="ck_obligation_paid"),
        CheckConstraint("remaining_amount >= 0", name="ck_obligation_remaining"),
        CheckConstraint(
            "period_month IS NULL OR (period_month BETWEEN 1 AND 12)",
            name="ck_obligation_month",
        ),
        # one recurring obligation per subject/type/period; NULL periods never collide
        Index(
            "uq_obligation_student_period",
            "tenant_id", "student_id", "obligation_type", "period_year", "period_month",
            unique=True,
        ),
        Index(
            "uq_obligation_teacher_period",
            "tenant_id", "teacher_id", "obligation_type", "period_year", "period_month",
            unique=True,
        ),
        Index(
            "uq_obligation_staff_period",
            "tenant_id", "staff_id", "obligation_type", "period_year", "period_month",
            unique=True,
        ),
        Index("ix_obligations_tenant_status", "tenant_id", "kind", "status"),
        Index("ix_obligations_tenant_remaining", "tenant_id", "remaining_amount"),
    )

    obligation_id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), nullable=False)

    kind = Column(String(20), nullable=False)  # TUITION / SALARY
    obligation_type = Column(String(30), nullable=False)

    student_id = Column(String(36), ForeignKey("students.student_id", ondelete="RESTRICT"), nullable=True, index=True)
    teacher_id = Column(String(36), ForeignKey("teachers.teacher_id", ondelete="RESTRICT"), nullable=True, index=True)
    staff_id = Column(String(36), ForeignKey("staff.staff_id", ondelete="RESTRICT"), nullable=True, index=True)

    period_month = Column(Integer, nullable=True)
    period_year = Column(Integer, nullable=True)
    due_date = Column(Date, nullable=True)

    invoice_number = Column(String(50), nullable=True)

    amount = Column(Numeric(14, 2), nullable=False)
    paid_amount = Column(Numeric(14, 2), nullable=False, default=0)
    remaining_amount = Column(Numeric(14, 2), nullable=False)

    # PENDING / PARTIALLY_PAID / PAID / CANCELLED
    status = Column(String(20), nullable=False, default="PENDING")

    # method of the latest contribution
    payment_method = Column(String(20), nullable=True)
    payment_date = Column(DateTime, nullable=True)

    notes = Column(Text, nullable=True)

    created_by = Column(String(36), nullable=True)
    created_on = Column(DateTime, default=utcnow, server_default=func.now(), nullable=False)
    updated_on = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    contributions = relationship(
        "ObligationContribution",
        back_populates="obligation",
        order_by="ObligationContribution.paid_at",
        lazy="select",
        passive_deletes=True,
    )

    @property
    def subject_id(self):
        return self.student_id or self.teacher_id or self.staff_id

    @property
    def subject_kind(self) -> str:
        if self.student_id:
            return "STUDENT"
        if self.teacher_id:
            return "TEACHER"
        return "STAFF"


class ObligationContribution(Base):
    """One settlement event. Append-only: never updated, never deleted."""

    __tablename__ = "obligation_contributions"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_contribution_amount"),
        Index("ix_contributions_tenant_kind_paid_at", "tenant_id", "kind", "paid_at"),
    )

    contribution_id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), nullable=False)

    obligation_id = Column(
        String(36),
        ForeignKey("obligations.obligation_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # TUITION = income, SALARY = outflow
    kind = Column(String(20), nullable=False)

    amount = Column(Numeric(14, 2), nullable=False)
    payment_method = Column(String(20), nullable=False, default="CASH")

    actor_id = Column(String(36), nullable=True)
    paid_at = Column(DateTime, nullable=False, default=utcnow)
    note = Column(Text, nullable=True)

    obligation = relationship("Obligation", back_populates="contributions")
