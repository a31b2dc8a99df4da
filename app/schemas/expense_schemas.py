# app/schemas/expense_schemas.py

from pydantic import BaseModel, field_validator
from typing import Optional, List, Literal
from datetime import date, datetime
from decimal import Decimal

from app.models.enums import PaymentMethod


# ----------------------------
# Expense Category Schemas
# ----------------------------
class ExpenseCategoryBase(BaseModel):
    name: str
    description: Optional[str] = None
    is_active: bool = True

    class Config:
        extra = "forbid"


class ExpenseCategoryCreate(ExpenseCategoryBase):
    @field_validator("name")
    def strip_name(cls, v):
        return v.strip()


class ExpenseCategoryUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None

    class Config:
        extra = "forbid"


class ExpenseCategoryOut(ExpenseCategoryBase):
    category_id: str

    class Config:
        from_attributes = True


class ExpenseCategoryResult(BaseModel):
    success: Literal[True] = True
    category: ExpenseCategoryOut


class ExpenseCategoryList(BaseModel):
    success: Literal[True] = True
    items: List[ExpenseCategoryOut]


# ----------------------------
# Expense Schemas
# ----------------------------
class ExpenseBase(BaseModel):
    category_id: str
    expense_date: date
    amount: Decimal  # keep Decimal (don't use float)
    payment_method: PaymentMethod = PaymentMethod.CASH
    source: Literal["GENERAL", "KITCHEN"] = "GENERAL"
    receipt_number: Optional[str] = None
    description: Optional[str] = None


class ExpenseCreate(ExpenseBase):
    pass


class ExpenseUpdate(BaseModel):
    category_id: Optional[str] = None
    expense_date: Optional[date] = None
    amount: Optional[Decimal] = None
    payment_method: Optional[PaymentMethod] = None
    source: Optional[Literal["GENERAL", "KITCHEN"]] = None
    receipt_number: Optional[str] = None
    description: Optional[str] = None

    class Config:
        extra = "forbid"


class ExpenseOut(ExpenseBase):
    expense_id: str
    payment_method: str
    source: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ExpenseResult(BaseModel):
    success: Literal[True] = True
    expense: ExpenseOut


class ExpenseList(BaseModel):
    success: Literal[True] = True
    total_amount: Decimal
    items: List[ExpenseOut]


class DeletedOut(BaseModel):
    success: Literal[True] = True
    id: str
