# app/models/expense_model.py

from sqlalchemy import (
    Column,
    String,
    Boolean,
    Date,
    DateTime,
    Numeric,
    Text,
    ForeignKey,
    Index,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.models.common import new_id
from app.utils.database import Base


class ExpenseCategory(Base):
    __tablename__ = "expense_categories"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_expense_category_per_tenant"),
    )

    category_id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), nullable=False, index=True)

    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ExpenseCategory(id={self.category_id}, name={self.name})>"


class Expense(Base):
    __tablename__ = "expenses"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expense_amount"),
        Index("ix_expenses_tenant_date", "tenant_id", "expense_date"),
    )

    expense_id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), nullable=False)

    category_id = Column(
        String(36),
        ForeignKey("expense_categories.category_id", ondelete="RESTRICT", onupdate="CASCADE"),
        nullable=False,
        index=True,
    )

    # GENERAL / KITCHEN
    source = Column(String(20), nullable=False, default="GENERAL")

    expense_date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)

    payment_method = Column(String(20), nullable=False, default="CASH")
    receipt_number = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)

    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    category = relationship("ExpenseCategory", backref="expenses")
