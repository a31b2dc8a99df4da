from typing import Optional, Union
from datetime import date

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from app.core.context import TenantContext
from app.core.security import get_tenant_context
from app.models.enums import ObligationKind
from app.schemas.report_schemas import BalanceOut, ObligationSummaryOut
from app.schemas.result_schemas import Failure
from app.services import reports
from app.utils.database import get_db
from app.utils.responses import respond

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/balance", response_model=Union[BalanceOut, Failure])
def balance_report(
        response: Response,
        from_date: date,
        to_date: date,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    return respond(reports.compute_balance(db, ctx, from_date, to_date), response)


@router.get("/summary", response_model=Union[ObligationSummaryOut, Failure])
def obligation_summary(
        response: Response,
        kind: ObligationKind = Query(default=ObligationKind.TUITION),
        as_of: Optional[date] = Query(default=None),
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    return respond(reports.obligation_summary(db, ctx, kind, as_of), response)
