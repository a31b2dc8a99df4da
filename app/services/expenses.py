"""
Expense ledger: categories and outflows other than salaries.
"""

from datetime import date
from typing import Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.context import TenantContext, require_finance_role, scoped
from app.core.errors import (
    FinanceError,
    ValidationFailed,
    AmountNotPositive,
    NotFoundError,
    StateError,
    DuplicateName,
    StorageError,
)
from app.models.enums import ExpenseSource, PaymentMethod
from app.models.expense_model import Expense, ExpenseCategory
from app.schemas.expense_schemas import (
    ExpenseCategoryCreate,
    ExpenseCategoryUpdate,
    ExpenseCategoryOut,
    ExpenseCategoryResult,
    ExpenseCategoryList,
    ExpenseCreate,
    ExpenseUpdate,
    ExpenseOut,
    ExpenseResult,
    ExpenseList,
    DeletedOut,
)
from app.schemas.result_schemas import Failure
from app.utils.logging_config import get_logger
from app.utils.money import money, parse_amount, ZERO

logger = get_logger(__name__)


class CategoryNotFound(NotFoundError):
    default_message = "Expense category not found"


class ExpenseNotFound(NotFoundError):
    default_message = "Expense not found"


class CategoryInUse(StateError):
    default_message = "Category still has expenses"


# ----------------------------
# Categories
# ----------------------------
def create_category(db: Session, ctx: TenantContext, payload: ExpenseCategoryCreate) -> Union[ExpenseCategoryResult, Failure]:
    try:
        require_finance_role(ctx)
        name = (payload.name or "").strip()
        if not name:
            raise ValidationFailed("Category name is required")

        exists = scoped(db, ExpenseCategory, ctx).filter(ExpenseCategory.name == name).first()
        if exists:
            raise DuplicateName("Category name already exists")

        cat = ExpenseCategory(
            tenant_id=ctx.tenant_id,
            name=name,
            description=payload.description,
            is_active=payload.is_active,
        )
        db.add(cat)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicateName("Category name already exists")
        db.refresh(cat)

    except FinanceError as e:
        db.rollback()
        return Failure.from_error(e)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("category_create_storage_error", extra={"tenant_id": ctx.tenant_id})
        return Failure.from_error(StorageError())

    logger.info("expense_category_created", extra={"category_id": cat.category_id, "tenant_id": ctx.tenant_id})
    return ExpenseCategoryResult(category=ExpenseCategoryOut.model_validate(cat))


def list_categories(db: Session, ctx: TenantContext, include_inactive: bool = False) -> Union[ExpenseCategoryList, Failure]:
    try:
        require_finance_role(ctx)
    except FinanceError as e:
        return Failure.from_error(e)

    q = scoped(db, ExpenseCategory, ctx)
    if not include_inactive:
        q = q.filter(ExpenseCategory.is_active.is_(True))
    try:
        rows = q.order_by(ExpenseCategory.name.asc()).all()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("category_list_storage_error", extra={"tenant_id": ctx.tenant_id})
        return Failure.from_error(StorageError())
    return ExpenseCategoryList(items=[ExpenseCategoryOut.model_validate(r) for r in rows])


def update_category(
        db: Session, ctx: TenantContext, category_id: str, payload: ExpenseCategoryUpdate
) -> Union[ExpenseCategoryResult, Failure]:
    try:
        require_finance_role(ctx)
        cat = scoped(db, ExpenseCategory, ctx).filter(ExpenseCategory.category_id == category_id).first()
        if not cat:
            raise CategoryNotFound()

        if payload.name is not None:
            name = payload.name.strip()
            if not name:
                raise ValidationFailed("Category name is required")
            dup = (
                scoped(db, ExpenseCategory, ctx)
                .filter(ExpenseCategory.name == name, ExpenseCategory.category_id != category_id)
                .first()
            )
            if dup:
                raise DuplicateName("Category name already exists")
            cat.name = name

        if payload.description is not None:
            cat.description = payload.description
        if payload.is_active is not None:
            cat.is_active = payload.is_active

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicateName("Category name already exists")
        db.refresh(cat)

    except FinanceError as e:
        db.rollback()
        return Failure.from_error(e)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("category_update_storage_error", extra={"category_id": category_id})
        return Failure.from_error(StorageError())

    logger.info("expense_category_updated", extra={"category_id": category_id, "tenant_id": ctx.tenant_id})
    return ExpenseCategoryResult(category=ExpenseCategoryOut.model_validate(cat))


def delete_category(db: Session, ctx: TenantContext, category_id: str) -> Union[DeletedOut, Failure]:
    try:
        require_finance_role(ctx)
        cat = scoped(db, ExpenseCategory, ctx).filter(ExpenseCategory.category_id == category_id).first()
        if not cat:
            raise CategoryNotFound()

        used = scoped(db, Expense, ctx).filter(Expense.category_id == category_id).count()
        if used:
            raise CategoryInUse(expense_count=used)

        db.delete(cat)
        db.commit()

    except FinanceError as e:
        db.rollback()
        return Failure.from_error(e)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("category_delete_storage_error", extra={"category_id": category_id})
        return Failure.from_error(StorageError())

    logger.info("expense_category_deleted", extra={"category_id": category_id, "tenant_id": ctx.tenant_id})
    return DeletedOut(id=category_id)


# ----------------------------
# Expenses
# ----------------------------
def create_expense(db: Session, ctx: TenantContext, payload: ExpenseCreate) -> Union[ExpenseResult, Failure]:
    try:
        require_finance_role(ctx)
        amount = parse_amount(payload.amount)
        if amount <= ZERO:
            raise AmountNotPositive()
        source = ExpenseSource(payload.source)

        cat = scoped(db, ExpenseCategory, ctx).filter(ExpenseCategory.category_id == payload.category_id).first()
        if not cat:
            raise CategoryNotFound()

        exp = Expense(
            tenant_id=ctx.tenant_id,
            category_id=cat.category_id,
            source=source.value,
            expense_date=payload.expense_date,
            amount=amount,
            payment_method=PaymentMethod(payload.payment_method).value,
            receipt_number=payload.receipt_number,
            description=payload.description,
            created_by=ctx.actor_id,
        )
        db.add(exp)
        db.commit()
        db.refresh(exp)

    except FinanceError as e:
        db.rollback()
        return Failure.from_error(e)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("expense_create_storage_error", extra={"tenant_id": ctx.tenant_id})
        return Failure.from_error(StorageError())

    logger.info(
        "expense_created",
        extra={
            "expense_id": exp.expense_id,
            "tenant_id": ctx.tenant_id,
            "amount": str(exp.amount),
            "method": exp.payment_method,
        },
    )
    return ExpenseResult(expense=ExpenseOut.model_validate(exp))


def list_expenses(
        db: Session,
        ctx: TenantContext,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category_id: Optional[str] = None,
        source: Optional[ExpenseSource] = None,
        limit: int = 100,
        offset: int = 0,
) -> Union[ExpenseList, Failure]:
    try:
        require_finance_role(ctx)
        if date_from and date_to and date_from > date_to:
            raise ValidationFailed("date_from must not be after date_to")
    except FinanceError as e:
        return Failure.from_error(e)

    q = scoped(db, Expense, ctx)
    if date_from:
        q = q.filter(Expense.expense_date >= date_from)
    if date_to:
        q = q.filter(Expense.expense_date <= date_to)
    if category_id:
        q = q.filter(Expense.category_id == category_id)
    if source:
        q = q.filter(Expense.source == ExpenseSource(source).value)

    try:
        total_amount = q.with_entities(func.coalesce(func.sum(Expense.amount), 0)).scalar()
        rows = (
            q.order_by(Expense.expense_date.desc(), Expense.created_at.desc())
            .offset(max(offset, 0))
            .limit(max(min(limit, 500), 1))
            .all()
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("expense_list_storage_error", extra={"tenant_id": ctx.tenant_id})
        return Failure.from_error(StorageError())
    return ExpenseList(total_amount=money(total_amount), items=[ExpenseOut.model_validate(r) for r in rows])


def update_expense(db: Session, ctx: TenantContext, expense_id: str, payload: ExpenseUpdate) -> Union[ExpenseResult, Failure]:
    try:
        require_finance_role(ctx)
        exp = scoped(db, Expense, ctx).filter(Expense.expense_id == expense_id).first()
        if not exp:
            raise ExpenseNotFound()

        if payload.category_id is not None:
            cat = scoped(db, ExpenseCategory, ctx).filter(ExpenseCategory.category_id == payload.category_id).first()
            if not cat:
                raise CategoryNotFound()
            exp.category_id = cat.category_id

        if payload.amount is not None:
            amount = parse_amount(payload.amount)
            if amount <= ZERO:
                raise AmountNotPositive()
            exp.amount = amount

        if payload.expense_date is not None:
            exp.expense_date = payload.expense_date
        if payload.payment_method is not None:
            exp.payment_method = PaymentMethod(payload.payment_method).value
        if payload.source is not None:
            exp.source = ExpenseSource(payload.source).value
        if payload.receipt_number is not None:
            exp.receipt_number = payload.receipt_number
        if payload.description is not None:
            exp.description = payload.description

        db.commit()
        db.refresh(exp)

    except FinanceError as e:
        db.rollback()
        return Failure.from_error(e)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("expense_update_storage_error", extra={"expense_id": expense_id})
        return Failure.from_error(StorageError())

    logger.info(
        "expense_updated",
        extra={"expense_id": expense_id, "tenant_id": ctx.tenant_id, "amount": str(exp.amount)},
    )
    return ExpenseResult(expense=ExpenseOut.model_validate(exp))


def delete_expense(db: Session, ctx: TenantContext, expense_id: str) -> Union[DeletedOut, Failure]:
    try:
        require_finance_role(ctx)
        exp = scoped(db, Expense, ctx).filter(Expense.expense_id == expense_id).first()
        if not exp:
            raise ExpenseNotFound()
        db.delete(exp)
        db.commit()

    except FinanceError as e:
        db.rollback()
        return Failure.from_error(e)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("expense_delete_storage_error", extra={"expense_id": expense_id})
        return Failure.from_error(StorageError())

    logger.info("expense_deleted", extra={"expense_id": expense_id, "tenant_id": ctx.tenant_id})
    return DeletedOut(id=expense_id)
