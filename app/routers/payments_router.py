# app/routers/payments_router.py

from typing import Optional, Union
from datetime import date

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from app.core.context import TenantContext
from app.core.security import get_tenant_context
from app.models.enums import ObligationKind, ObligationStatus, ObligationType, SubjectKind
from app.schemas.obligation_schemas import (
    TuitionCreate,
    TuitionGenerateIn,
    PartialPaymentIn,
    CancelIn,
    BulkDeleteIn,
    ObligationResult,
    ObligationPage,
    ContributionList,
    SettlementResult,
    GenerationResult,
    CancelResult,
    DeleteResult,
    BulkDeleteResult,
)
from app.schemas.report_schemas import SubjectOverviewOut
from app.schemas.result_schemas import Failure
from app.services import obligations, reports
from app.services.period_generator import generate_periods
from app.services.settlement import apply_partial_settlement
from app.services.subjects import SubjectRef
from app.utils.database import get_db
from app.utils.responses import respond

router = APIRouter(prefix="/payments", tags=["Tuition Payments"])

KIND = ObligationKind.TUITION


def student(student_id: str) -> SubjectRef:
    return SubjectRef(SubjectKind.STUDENT, student_id)


@router.post("/", response_model=Union[ObligationResult, Failure])
def create_payment(
        payload: TuitionCreate,
        response: Response,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    result = obligations.create_obligation(
        db,
        ctx,
        student(payload.student_id),
        payload.amount,
        obligation_type=payload.obligation_type,
        month=payload.period_month,
        year=payload.period_year,
        due_date=payload.due_date,
        method=payload.payment_method,
        paid_now=payload.paid_now,
        note=payload.notes,
    )
    return respond(result, response, 201)


@router.post("/multi-month", response_model=Union[GenerationResult, Failure])
def create_multi_month(
        payload: TuitionGenerateIn,
        response: Response,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    result = generate_periods(
        db,
        ctx,
        student(payload.student_id),
        payload.start_month,
        payload.start_year,
        payload.months_count,
        per_period_amount=payload.per_period_amount,
        method=payload.payment_method,
        payment_amount=payload.payment_amount,
        note=payload.notes,
    )
    return respond(result, response, 201)


@router.post("/bulk-delete", response_model=Union[BulkDeleteResult, Failure])
def bulk_delete_payments(
        payload: BulkDeleteIn,
        response: Response,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    return respond(obligations.bulk_delete_obligations(db, ctx, payload.obligation_ids, KIND), response)


@router.get("/", response_model=Union[ObligationPage, Failure])
def list_payments(
        response: Response,
        status: Optional[ObligationStatus] = Query(default=None),
        student_id: Optional[str] = Query(default=None),
        obligation_type: Optional[ObligationType] = Query(default=None),
        month: Optional[int] = Query(default=None, ge=1, le=12),
        year: Optional[int] = Query(default=None),
        limit: int = Query(default=50, ge=1, le=500),
        offset: int = Query(default=0, ge=0),
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    result = obligations.list_obligations(
        db,
        ctx,
        kind=KIND,
        status=status,
        subject=student(student_id) if student_id else None,
        obligation_type=obligation_type,
        month=month,
        year=year,
        limit=limit,
        offset=offset,
    )
    return respond(result, response)


@router.get("/students/{student_id}/overview", response_model=Union[SubjectOverviewOut, Failure])
def student_overview(
        student_id: str,
        response: Response,
        start_month: Optional[int] = Query(default=None, ge=1, le=12),
        start_year: Optional[int] = Query(default=None),
        months: int = Query(default=3, ge=1, le=12),
        as_of: Optional[date] = Query(default=None),
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    today = as_of or date.today()
    result = reports.subject_period_status(
        db,
        ctx,
        student(student_id),
        start_month or today.month,
        start_year or today.year,
        months=months,
        as_of=today,
    )
    return respond(result, response)


@router.get("/{obligation_id}", response_model=Union[ObligationResult, Failure])
def get_payment(
        obligation_id: str,
        response: Response,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    return respond(obligations.get_obligation(db, ctx, obligation_id, KIND), response)


@router.get("/{obligation_id}/contributions", response_model=Union[ContributionList, Failure])
def payment_contributions(
        obligation_id: str,
        response: Response,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    return respond(obligations.list_contributions(db, ctx, obligation_id, KIND), response)


@router.post("/{obligation_id}/partial", response_model=Union[SettlementResult, Failure])
def add_partial_payment(
        obligation_id: str,
        payload: PartialPaymentIn,
        response: Response,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    result = apply_partial_settlement(
        db, ctx, obligation_id, payload.amount, payload.payment_method, payload.notes, KIND
    )
    return respond(result, response)


@router.post("/{obligation_id}/cancel", response_model=Union[CancelResult, Failure])
def cancel_payment(
        obligation_id: str,
        response: Response,
        payload: Optional[CancelIn] = None,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    reason = payload.reason if payload else None
    return respond(obligations.cancel_obligation(db, ctx, obligation_id, KIND, reason), response)


@router.delete("/{obligation_id}", response_model=Union[DeleteResult, Failure])
def delete_payment(
        obligation_id: str,
        response: Response,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    return respond(obligations.delete_obligation(db, ctx, obligation_id, KIND), response)
