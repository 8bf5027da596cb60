"""
Correlation ids for content writes.

A request carries its id in the X-Correlation-ID header; writes issued
outside a request (scripts, workers) get one minted on first use. The id is
also bound into structlog's context, so every log line of one aggregate
operation can be joined with the store statements it issued.
"""
from contextvars import ContextVar
import uuid

import structlog

CORRELATION_HEADER = "X-Correlation-ID"

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def new_correlation_id() -> str:
    return "corr-" + uuid.uuid4().hex[:16]


def set_correlation_id(cid: str | None) -> None:
    correlation_id_var.set(cid)
    if cid:
        structlog.contextvars.bind_contextvars(correlation_id=cid)
    else:
        structlog.contextvars.unbind_contextvars("correlation_id")


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def ensure_correlation_id() -> str:
    cid = correlation_id_var.get()
    if not cid:
        cid = new_correlation_id()
        set_correlation_id(cid)
    return cid
