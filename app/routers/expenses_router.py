# app/routers/expenses_router.py

from typing import Optional, Union
from datetime import date

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from app.core.context import TenantContext
from app.core.security import get_tenant_context
from app.models.enums import ExpenseSource
from app.schemas.expense_schemas import (
    ExpenseCategoryCreate,
    ExpenseCategoryUpdate,
    ExpenseCategoryResult,
    ExpenseCategoryList,
    ExpenseCreate,
    ExpenseUpdate,
    ExpenseResult,
    ExpenseList,
    DeletedOut,
)
from app.schemas.result_schemas import Failure
from app.services import expenses
from app.utils.database import get_db
from app.utils.responses import respond

router = APIRouter(prefix="/expenses", tags=["Expenses"])


# ==========================================================
# CATEGORIES
# ==========================================================

@router.post("/categories", response_model=Union[ExpenseCategoryResult, Failure])
def create_category(
        payload: ExpenseCategoryCreate,
        response: Response,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    return respond(expenses.create_category(db, ctx, payload), response, 201)


@router.get("/categories", response_model=Union[ExpenseCategoryList, Failure])
def list_categories(
        response: Response,
        include_inactive: bool = Query(default=False),
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    return respond(expenses.list_categories(db, ctx, include_inactive), response)


@router.put("/categories/{category_id}", response_model=Union[ExpenseCategoryResult, Failure])
def update_category(
        category_id: str,
        payload: ExpenseCategoryUpdate,
        response: Response,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    return respond(expenses.update_category(db, ctx, category_id, payload), response)


@router.delete("/categories/{category_id}", response_model=Union[DeletedOut, Failure])
def delete_category(
        category_id: str,
        response: Response,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    return respond(expenses.delete_category(db, ctx, category_id), response)


# ==========================================================
# EXPENSES
# ==========================================================

@router.post("/", response_model=Union[ExpenseResult, Failure])
def create_expense(
        payload: ExpenseCreate,
        response: Response,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    return respond(expenses.create_expense(db, ctx, payload), response, 201)


@router.get("/", response_model=Union[ExpenseList, Failure])
def list_expenses(
        response: Response,
        from_date: Optional[date] = Query(default=None),
        to_date: Optional[date] = Query(default=None),
        category_id: Optional[str] = Query(default=None),
        source: Optional[ExpenseSource] = Query(default=None),
        limit: int = Query(default=100, ge=1, le=500),
        offset: int = Query(default=0, ge=0),
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    result = expenses.list_expenses(
        db,
        ctx,
        date_from=from_date,
        date_to=to_date,
        category_id=category_id,
        source=source,
        limit=limit,
        offset=offset,
    )
    return respond(result, response)


@router.put("/{expense_id}", response_model=Union[ExpenseResult, Failure])
def update_expense(
        expense_id: str,
        payload: ExpenseUpdate,
        response: Response,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    return respond(expenses.update_expense(db, ctx, expense_id, payload), response)


@router.delete("/{expense_id}", response_model=Union[DeletedOut, Failure])
def delete_expense(
        expense_id: str,
        response: Response,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    return respond(expenses.delete_expense(db, ctx, expense_id), response)
