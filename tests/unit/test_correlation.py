import structlog

from edugraph.core.correlation import ensure_correlation_id, get_correlation_id, set_correlation_id


def test_ensure_mints_once_and_binds_to_log_context():
    set_correlation_id(None)
    cid = ensure_correlation_id()
    assert cid.startswith("corr-")
    assert ensure_correlation_id() == cid
    assert structlog.contextvars.get_contextvars()["correlation_id"] == cid
    set_correlation_id(None)
    assert get_correlation_id() is None
    assert "correlation_id" not in structlog.contextvars.get_contextvars()


def test_request_id_is_kept():
    set_correlation_id("corr-req")
    try:
        assert ensure_correlation_id() == "corr-req"
    finally:
        set_correlation_id(None)
