from fastapi import Response

from app.core.errors import ErrorKind, HTTP_STATUS_BY_KIND
from app.schemas.result_schemas import Failure


def status_for(failure: Failure) -> int:
    try:
        return HTTP_STATUS_BY_KIND.get(ErrorKind(failure.error_kind), 400)
    except ValueError:
        return 400


def respond(result, response: Response, success_status: int = 200):
    """Set the HTTP status from a service result and pass the body through."""
    response.status_code = status_for(result) if isinstance(result, Failure) else success_status
    return result
