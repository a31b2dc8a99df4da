# app/models/employee_model.py
from sqlalchemy import Column, String, Boolean, DateTime, Numeric, Index
from sqlalchemy.sql import func

from app.models.common import new_id
from app.utils.database import Base


class Teacher(Base):
    __tablename__ = "teachers"
    __table_args__ = (
        Index("ix_teachers_tenant", "tenant_id"),
    )

    teacher_id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), nullable=False)

    full_name = Column(String(150), nullable=False)
    monthly_salary = Column(Numeric(14, 2), nullable=True)

    is_active = Column(Boolean, nullable=False, server_default="true", default=True)
    created_on = Column(DateTime, server_default=func.now())


class Staff(Base):
    __tablename__ = "staff"
    __table_args__ = (
        Index("ix_staff_tenant", "tenant_id"),
    )

    staff_id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), nullable=False)

    full_name = Column(String(150), nullable=False)
    position = Column(String(100), nullable=True)
    monthly_salary = Column(Numeric(14, 2), nullable=True)

    is_active = Column(Boolean, nullable=False, server_default="true", default=True)
    created_on = Column(DateTime, server_default=func.now())
