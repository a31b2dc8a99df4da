from pydantic import BaseModel
from datetime import date
from decimal import Decimal
from typing import List, Literal

from app.models.enums import SubjectKind


class RateChangeIn(BaseModel):
    subject_kind: SubjectKind
    subject_ids: List[str]
    new_rate: Decimal
    effective_from: date

    class Config:
        extra = "forbid"


class RateChangeResult(BaseModel):
    success: Literal[True] = True
    updated_count: int
