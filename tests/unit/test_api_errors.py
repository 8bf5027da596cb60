from fastapi import FastAPI
from fastapi.testclient import TestClient

from edugraph.api.errors import install_error_handlers
from edugraph.core.errors import ConflictError, InternalError, NotFoundError
from edugraph.schemas.content import ContestCreate


def _client():
    app = FastAPI()
    install_error_handlers(app)

    @app.get("/missing")
    def missing():
        raise NotFoundError("Concept with ID concept-404 not found", ["concept-404"])

    @app.get("/dup")
    def dup():
        raise ConflictError("Question with ID q1 already exists", ["q1"])

    @app.get("/internal")
    def internal():
        raise InternalError("Failed to create quiz")

    @app.get("/crash")
    def crash():
        raise RuntimeError("password=hunter2")

    @app.get("/invalid")
    def invalid():
        ContestCreate.model_validate({"contest_name": ""})

    @app.get("/typed/{n}")
    def typed(n: int):
        return {"n": n}

    return TestClient(app, raise_server_exceptions=False)


def test_not_found_mapping():
    r = _client().get("/missing")
    assert r.status_code == 404
    body = r.json()
    assert body["status"] == 404
    assert body["code"] == "not_found"
    assert "concept-404" in body["message"]
    assert body["details"] == {"ids": ["concept-404"]}


def test_conflict_mapping():
    r = _client().get("/dup")
    assert r.status_code == 409
    assert r.json()["code"] == "conflict"


def test_internal_error_keeps_generic_message():
    r = _client().get("/internal")
    assert r.status_code == 500
    assert r.json()["message"] == "Failed to create quiz"


def test_unexpected_error_hides_detail():
    r = _client().get("/crash")
    assert r.status_code == 500
    body = r.json()
    assert body["message"] == "Internal server error"
    assert "hunter2" not in r.text


def test_model_validation_is_bad_request():
    r = _client().get("/invalid")
    assert r.status_code == 400
    assert r.json()["code"] == "bad_request"


def test_request_validation_is_bad_request():
    r = _client().get("/typed/abc")
    assert r.status_code == 400
    assert r.json()["message"] == "Validation error"


def test_correlation_id_is_echoed():
    from edugraph.api.middleware import install_correlation_middleware
    from edugraph.core.correlation import get_correlation_id

    app = FastAPI()
    install_correlation_middleware(app)

    @app.get("/cid")
    def cid():
        return {"cid": get_correlation_id()}

    client = TestClient(app)
    r = client.get("/cid", headers={"X-Correlation-ID": "corr-abc"})
    assert r.headers["X-Correlation-ID"] == "corr-abc"
    assert r.json()["cid"] == "corr-abc"
    assert client.get("/cid").headers["X-Correlation-ID"].startswith("corr-")
