"""
Subject addressing: one obligation schema over Student / Teacher / Staff.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from app.core.context import TenantContext, scoped
from app.core.errors import SubjectNotFound
from app.models.employee_model import Teacher, Staff
from app.models.enums import SubjectKind, ObligationKind, kind_for_subject
from app.models.obligation_model import Obligation
from app.models.student_model import Student


@dataclass(frozen=True)
class SubjectTable:
    model: type
    id_attr: str
    obligation_column: str
    rate_attr: str


SUBJECTS = {
    SubjectKind.STUDENT: SubjectTable(Student, "student_id", "student_id", "monthly_tuition_fee"),
    SubjectKind.TEACHER: SubjectTable(Teacher, "teacher_id", "teacher_id", "monthly_salary"),
    SubjectKind.STAFF: SubjectTable(Staff, "staff_id", "staff_id", "monthly_salary"),
}


@dataclass(frozen=True)
class SubjectRef:
    kind: SubjectKind
    subject_id: str

    @property
    def table(self) -> SubjectTable:
        return SUBJECTS[self.kind]

    @property
    def obligation_kind(self) -> ObligationKind:
        return kind_for_subject(self.kind)

    def obligation_filter(self):
        return getattr(Obligation, self.table.obligation_column) == self.subject_id

    def obligation_fields(self) -> dict:
        return {self.table.obligation_column: self.subject_id}


def load_subject(db: Session, ctx: TenantContext, subject: SubjectRef):
    table = subject.table
    row = (
        scoped(db, table.model, ctx)
        .filter(getattr(table.model, table.id_attr) == subject.subject_id)
        .first()
    )
    if not row:
        raise SubjectNotFound()
    return row


def current_rate(row, subject: SubjectRef) -> Optional[Decimal]:
    return getattr(row, subject.table.rate_attr)


def due_day_for(row) -> Optional[int]:
    return getattr(row, "payment_due_day", None)
