from fastapi import FastAPI, Request

from edugraph.core.correlation import CORRELATION_HEADER, new_correlation_id, set_correlation_id


def install_correlation_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def correlation_middleware(request: Request, call_next):
        cid = request.headers.get(CORRELATION_HEADER) or new_correlation_id()
        set_correlation_id(cid)
        try:
            resp = await call_next(request)
        finally:
            set_correlation_id(None)
        resp.headers[CORRELATION_HEADER] = cid
        return resp
