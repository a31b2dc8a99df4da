from typing import Union

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.core.context import TenantContext
from app.core.security import get_tenant_context
from app.schemas.rate_schemas import RateChangeIn, RateChangeResult
from app.schemas.result_schemas import Failure
from app.services.rates import apply_new_rate
from app.utils.database import get_db
from app.utils.responses import respond

router = APIRouter(prefix="/rates", tags=["Rates"])


@router.post("/bulk-update", response_model=Union[RateChangeResult, Failure])
def bulk_update_rates(
        payload: RateChangeIn,
        response: Response,
        db: Session = Depends(get_db),
        ctx: TenantContext = Depends(get_tenant_context),
):
    result = apply_new_rate(
        db,
        ctx,
        payload.subject_kind,
        payload.subject_ids,
        payload.new_rate,
        payload.effective_from,
    )
    return respond(result, response)
