import pytest
from prometheus_client import REGISTRY

from edugraph.core.errors import BadRequestError, ConflictError, InternalError, NotFoundError
from edugraph.schemas.graph import AggregateSpec, NodeKind, NodeRef, RelationshipSpec, RelType
from edugraph.services.graph.writer import AggregateWriter


def _seed(store):
    store.seed(NodeKind.CONCEPT, "c1", name="Fractions", type="Atom")
    store.seed(NodeKind.QUESTION, "q1", questionText="1/2 + 1/2?")
    store.seed(NodeKind.QUESTION, "q2", questionText="1/3 + 1/3?")
    store.seed(NodeKind.USER, "u1")


def _quiz(quiz_id="quiz-1", concept="c1", questions=("q1", "q2"), user=None):
    rels = [RelationshipSpec(type=RelType.TESTS, target_id=concept)]
    rels += [RelationshipSpec(type=RelType.INCLUDES, target_id=q) for q in questions]
    if user:
        rels.append(RelationshipSpec(type=RelType.CREATED, target_id=user))
    return AggregateSpec(kind=NodeKind.QUIZ, id=quiz_id, attributes={"title": "Fractions I", "timeLimit": 600}, relationships=rels)


def test_create_quiz_with_relationships(store, writer, events):
    _seed(store)
    agg = writer.create(_quiz(user="u1"), actor_id="u1")
    assert agg.root.id == "quiz-1"
    assert agg.root.attributes["title"] == "Fractions I"
    assert agg.target(RelType.TESTS) == "c1"
    assert agg.targets(RelType.INCLUDES) == ["q1", "q2"]
    assert agg.target(RelType.CREATED) == "u1"
    assert store.edges(RelType.INCLUDES) == [("quiz-1", "q1"), ("quiz-1", "q2")]
    assert store.edges(RelType.CREATED) == [("u1", "quiz-1")]
    assert [e.topic for e in events.events] == ["content.quiz.created"]
    assert events.events[0].user_id == "u1"


def test_create_missing_concept_is_not_found_and_writes_nothing(store, writer, events):
    _seed(store)
    before = store.snapshot()
    with pytest.raises(NotFoundError) as ei:
        writer.create(_quiz(concept="c-missing"))
    assert "c-missing" in ei.value.message
    assert ei.value.ids == ["c-missing"]
    assert store.snapshot() == before
    assert store.writes == []
    assert events.events == []


def test_create_lists_every_missing_question(store, writer):
    _seed(store)
    with pytest.raises(BadRequestError) as ei:
        writer.create(_quiz(questions=("q9", "q1", "q8")))
    assert ei.value.ids == ["q9", "q8"]
    assert "q9" in ei.value.message and "q8" in ei.value.message
    assert not store.has(NodeKind.QUIZ, "quiz-1")


def test_create_duplicate_id_conflicts(store, writer):
    _seed(store)
    store.seed(NodeKind.QUIZ, "quiz-1", title="old")
    before = store.snapshot()
    with pytest.raises(ConflictError):
        writer.create(_quiz())
    assert store.snapshot() == before
    assert store.writes == []


def test_create_requires_required_slot(store, writer):
    _seed(store)
    spec = AggregateSpec(kind=NodeKind.QUIZ, id="quiz-1", relationships=[RelationshipSpec(type=RelType.INCLUDES, target_id="q1")])
    with pytest.raises(BadRequestError):
        writer.create(spec)


def test_create_rejects_two_targets_on_exclusive_slot(store, writer):
    _seed(store)
    store.seed(NodeKind.CONCEPT, "c2", name="Decimals")
    spec = _quiz()
    spec.relationships.append(RelationshipSpec(type=RelType.TESTS, target_id="c2"))
    with pytest.raises(BadRequestError):
        writer.create(spec)


def test_create_rejects_unmanaged_relationship(store, writer):
    _seed(store)
    spec = _quiz()
    spec.relationships.append(RelationshipSpec(type=RelType.HAS_TASK, target_id="t1"))
    with pytest.raises(BadRequestError):
        writer.create(spec)


def test_create_rejects_self_prerequisite(store, writer):
    spec = AggregateSpec(
        kind=NodeKind.CONCEPT, id="c1", attributes={"name": "Loop"},
        relationships=[RelationshipSpec(type=RelType.HAS_PREREQUISITE, target_id="c1")],
    )
    with pytest.raises(BadRequestError):
        writer.create(spec)


def test_create_concept_under_parent(store, writer):
    store.seed(NodeKind.CONCEPT, "root", name="Math", type="Subject")
    spec = AggregateSpec(
        kind=NodeKind.CONCEPT, id="c1", attributes={"name": "Algebra", "type": "Matter"},
        relationships=[RelationshipSpec(type=RelType.CONTAINS, target_id="root")],
    )
    agg = writer.create(spec)
    assert agg.target(RelType.CONTAINS) == "root"
    assert store.edges(RelType.CONTAINS) == [("root", "c1")]
    assert store.nodes[NodeKind.CONCEPT]["c1"]["conceptId"] == "c1"


def test_create_contest_with_owned_tasks(store, writer):
    spec = AggregateSpec(
        kind=NodeKind.CONTEST, id="k1", attributes={"contestName": "Spring"},
        children=[
            AggregateSpec(kind=NodeKind.TASK, id="t2", attributes={"title": "B"}),
            AggregateSpec(kind=NodeKind.TASK, id="t1", attributes={"title": "A"}),
        ],
    )
    agg = writer.create(spec)
    assert [c.root.id for c in agg.children] == ["t1", "t2"]
    assert store.edges(RelType.HAS_TASK) == [("k1", "t1"), ("k1", "t2")]


def test_create_rejects_duplicate_child_ids(store, writer):
    spec = AggregateSpec(
        kind=NodeKind.CONTEST, id="k1",
        children=[AggregateSpec(kind=NodeKind.TASK, id="t1"), AggregateSpec(kind=NodeKind.TASK, id="t1")],
    )
    with pytest.raises(BadRequestError):
        writer.create(spec)
    assert not store.has(NodeKind.CONTEST, "k1")


def test_create_failure_midway_leaves_no_trace(store, writer, events):
    _seed(store)
    before = store.snapshot()
    store.fail_on_write(3)
    with pytest.raises(InternalError) as ei:
        writer.create(_quiz())
    assert ei.value.message == "Failed to create quiz"
    assert ei.value.__cause__ is not None
    assert store.snapshot() == before
    assert events.events == []


def test_create_failure_cleans_up_owned_children(seq_store):
    writer = AggregateWriter(seq_store)
    spec = AggregateSpec(
        kind=NodeKind.CONTEST, id="k1",
        children=[AggregateSpec(kind=NodeKind.TASK, id="t1"), AggregateSpec(kind=NodeKind.TASK, id="t2")],
    )
    seq_store.fail_on_write(2, op="create_rel")
    with pytest.raises(InternalError):
        writer.create(spec)
    assert seq_store.nodes[NodeKind.CONTEST] == {}
    assert seq_store.nodes[NodeKind.TASK] == {}
    assert seq_store.rels == []
    assert seq_store.write_ops().count("delete_aggregate") == 3


def test_transactional_failure_rolls_back(tx_store):
    _seed(tx_store)
    writer = AggregateWriter(tx_store)
    tx_store.fail_on_write(2)
    with pytest.raises(InternalError):
        writer.create(_quiz())
    assert tx_store.rollbacks == 1
    assert tx_store.commits == 0
    assert "delete_aggregate" not in tx_store.write_ops()
    assert not tx_store.has(NodeKind.QUIZ, "quiz-1")


def test_publish_failure_does_not_fail_write(store):
    _seed(store)

    def boom(event):
        raise RuntimeError("bus down")

    agg = AggregateWriter(store, publish=boom).create(_quiz())
    assert agg.root.id == "quiz-1"
    assert store.has(NodeKind.QUIZ, "quiz-1")


def test_write_outcomes_are_counted(store, writer):
    ok = {"kind": "Question", "op": "create", "outcome": "ok"}
    rejected = {"kind": "Question", "op": "create", "outcome": "rejected"}
    ok_before = REGISTRY.get_sample_value("aggregate_write_total", ok) or 0
    rejected_before = REGISTRY.get_sample_value("aggregate_write_total", rejected) or 0
    writer.create(AggregateSpec(kind=NodeKind.QUESTION, id="q-m"))
    with pytest.raises(ConflictError):
        writer.create(AggregateSpec(kind=NodeKind.QUESTION, id="q-m"))
    assert REGISTRY.get_sample_value("aggregate_write_total", ok) == ok_before + 1
    assert REGISTRY.get_sample_value("aggregate_write_total", rejected) == rejected_before + 1


def test_create_merges_ensured_author_in_the_same_write(store, writer):
    _seed(store)
    spec = _quiz(user="u-new")
    spec.ensure.append(NodeRef(kind=NodeKind.USER, id="u-new"))
    agg = writer.create(spec, actor_id="u-new")
    assert agg.target(RelType.CREATED) == "u-new"
    assert store.has(NodeKind.USER, "u-new")
    assert store.edges(RelType.CREATED) == [("u-new", "quiz-1")]


def test_unensured_missing_author_is_not_found(store, writer):
    _seed(store)
    with pytest.raises(NotFoundError):
        writer.create(_quiz(user="u-new"))
    assert not store.has(NodeKind.USER, "u-new")


def test_store_level_failure_is_counted_as_failed(store, writer, monkeypatch):
    _seed(store)
    labels = {"kind": "Quiz", "op": "create"}
    failed_before = REGISTRY.get_sample_value("aggregate_write_total", {**labels, "outcome": "failed"}) or 0
    rejected_before = REGISTRY.get_sample_value("aggregate_write_total", {**labels, "outcome": "rejected"}) or 0
    before = store.snapshot()
    monkeypatch.setattr(store, "_op_create_rel", lambda params, **meta: [{"created": 0}])
    with pytest.raises(InternalError):
        writer.create(_quiz())
    assert store.snapshot() == before
    assert REGISTRY.get_sample_value("aggregate_write_total", {**labels, "outcome": "failed"}) == failed_before + 1
    assert (REGISTRY.get_sample_value("aggregate_write_total", {**labels, "outcome": "rejected"}) or 0) == rejected_before
