from datetime import datetime, timezone

import pytest

from edugraph.core.errors import BadRequestError, ConflictError, NotFoundError
from edugraph.schemas.graph import NodeKind, RelType
from edugraph.services.graph.preconditions import PreconditionVerifier, as_datetime
from fakes import FakeGraphStore


@pytest.fixture
def verifier():
    store = FakeGraphStore()
    store.seed(NodeKind.CONCEPT, "c1")
    store.seed(NodeKind.CONCEPT, "c2")
    store.seed_rel(NodeKind.CONCEPT, "c1", RelType.HAS_PREREQUISITE, NodeKind.CONCEPT, "c2")
    store.seed_rel(NodeKind.CONCEPT, "c1", RelType.CONTAINS, NodeKind.CONCEPT, "c2")
    return PreconditionVerifier(store)


def test_exists_and_absent(verifier):
    verifier.verify_exists(NodeKind.CONCEPT, "c1")
    verifier.verify_absent(NodeKind.CONCEPT, "c3")
    with pytest.raises(NotFoundError) as ei:
        verifier.verify_exists(NodeKind.CONCEPT, "c3")
    assert "c3" in ei.value.message
    with pytest.raises(ConflictError):
        verifier.verify_absent(NodeKind.CONCEPT, "c1")


def test_all_exist_reports_every_missing_id(verifier):
    verifier.verify_all_exist(NodeKind.CONCEPT, [])
    verifier.verify_all_exist(NodeKind.CONCEPT, ["c1", "c2", "c1"])
    with pytest.raises(BadRequestError) as ei:
        verifier.verify_all_exist(NodeKind.CONCEPT, ["x", "c1", "y", "x"])
    assert ei.value.ids == ["x", "y"]


def test_self_reference(verifier):
    verifier.verify_no_self_reference("a", None)
    verifier.verify_no_self_reference("a", "b")
    with pytest.raises(BadRequestError):
        verifier.verify_no_self_reference("a", "a")


def test_ordering(verifier):
    verifier.verify_ordering("2025-01-01T00:00:00Z", "2025-01-02T00:00:00Z")
    with pytest.raises(BadRequestError) as ei:
        verifier.verify_ordering("2025-01-02T00:00:00Z", "2025-01-01T00:00:00Z")
    assert ei.value.message == "Start date must be before end date"
    with pytest.raises(BadRequestError):
        verifier.verify_ordering("2025-01-01T00:00:00Z", "2025-01-01T00:00:00Z")
    with pytest.raises(BadRequestError):
        verifier.verify_ordering("yesterday", "2025-01-01T00:00:00Z")


def test_naive_timestamps_are_utc():
    assert as_datetime("2025-03-01T10:00:00", "start") == datetime(2025, 3, 1, 10, tzinfo=timezone.utc)


def test_no_children(verifier):
    verifier.verify_no_children(NodeKind.CONCEPT, "c2", RelType.CONTAINS)
    with pytest.raises(BadRequestError):
        verifier.verify_no_children(NodeKind.CONCEPT, "c1", RelType.CONTAINS)


def test_relationship_absent(verifier):
    verifier.verify_relationship_absent(NodeKind.CONCEPT, "c2", RelType.HAS_PREREQUISITE, NodeKind.CONCEPT, "c1")
    with pytest.raises(ConflictError):
        verifier.verify_relationship_absent(NodeKind.CONCEPT, "c1", RelType.HAS_PREREQUISITE, NodeKind.CONCEPT, "c2")
