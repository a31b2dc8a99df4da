from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, Index
from sqlalchemy.sql import func
from app.models.common import new_id
from app.utils.database import Base


class Student(Base):
    __tablename__ = "students"
    __table_args__ = (
        Index("ix_students_tenant", "tenant_id"),
    )

    student_id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), nullable=False)

    full_name = Column(String(150), nullable=False)

    # recurring rate used by bulk generation; history lives in rate_changes
    monthly_tuition_fee = Column(Numeric(14, 2), nullable=True)
    payment_due_day = Column(Integer, nullable=False, server_default="5", default=5)

    is_active = Column(Boolean, nullable=False, server_default="true", default=True)
    created_on = Column(DateTime, server_default=func.now())

    def __repr__(self) -> str:
        return f"<Student(id={self.student_id}, name={self.full_name})>"
