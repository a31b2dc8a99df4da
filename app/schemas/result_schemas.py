from typing import Any, Dict, Literal

from pydantic import BaseModel

from app.core.errors import FinanceError


class Failure(BaseModel):
    success: Literal[False] = False
    error: str
    error_kind: str
    details: Dict[str, Any] = {}

    @classmethod
    def from_error(cls, exc: FinanceError) -> "Failure":
        return cls(error=exc.message, error_kind=exc.kind.value, details=exc.details)
