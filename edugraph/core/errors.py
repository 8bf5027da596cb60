"""
Domain error taxonomy for the content graph.

Precondition failures surface unchanged to the caller. Anything that goes
wrong inside a write sequence and is not already a DomainError is re-raised
as InternalError, whose message never carries store detail.
"""
from typing import Iterable, List, Optional


class DomainError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, ids: Optional[Iterable[str]] = None):
        self.message = message
        self.ids: List[str] = list(ids or [])
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"code": self.code, "message": self.message}
        if self.ids:
            body["ids"] = self.ids
        return body


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"


class ConflictError(DomainError):
    status_code = 409
    code = "conflict"


class BadRequestError(DomainError):
    status_code = 400
    code = "bad_request"


class InternalError(DomainError):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "Internal server error", ids: Optional[Iterable[str]] = None):
        super().__init__(message, ids)
