from typing import Dict, List, Optional

from edugraph.core.errors import BadRequestError, NotFoundError
from edugraph.schemas.content import QuizCreate, QuizUpdate
from edugraph.schemas.graph import (
    Aggregate,
    AggregatePatch,
    AggregateSpec,
    Direction,
    Node,
    NodeKind,
    NodeRef,
    RelationshipSpec,
    RelType,
)
from edugraph.services.content.common import new_id, now_iso, to_attributes
from edugraph.services.graph.reader import GraphReader
from edugraph.services.graph.writer import AggregateWriter


class QuizService:
    def __init__(self, writer: AggregateWriter, reader: Optional[GraphReader] = None):
        self.writer = writer
        self.reader = reader or GraphReader(writer.store)

    def create(self, payload: QuizCreate, actor_id: Optional[str] = None) -> Aggregate:
        rels = [RelationshipSpec(type=RelType.TESTS, target_id=payload.concept_id)]
        rels += [RelationshipSpec(type=RelType.INCLUDES, target_id=q) for q in dict.fromkeys(payload.question_ids)]
        ensure: List[NodeRef] = []
        if actor_id:
            rels.append(RelationshipSpec(type=RelType.CREATED, target_id=actor_id))
            ensure.append(NodeRef(kind=NodeKind.USER, id=actor_id))
        attrs = to_attributes(payload, exclude=("id", "concept_id", "question_ids"))
        attrs["createdAt"] = attrs["updatedAt"] = now_iso()
        spec = AggregateSpec(kind=NodeKind.QUIZ, id=payload.id or new_id(), attributes=attrs, relationships=rels, ensure=ensure)
        return self.writer.create(spec, actor_id=actor_id)

    def update(self, quiz_id: str, payload: QuizUpdate, actor_id: Optional[str] = None) -> Aggregate:
        if not payload.model_fields_set:
            raise BadRequestError("Update data cannot be empty", [quiz_id])
        attrs = to_attributes(payload, exclude=("concept_id", "question_ids"), only_set=True)
        rels: Dict[RelType, object] = {}
        if "concept_id" in payload.model_fields_set:
            rels[RelType.TESTS] = payload.concept_id
        if "question_ids" in payload.model_fields_set:
            rels[RelType.INCLUDES] = payload.question_ids
        attrs["updatedAt"] = now_iso()
        patch = AggregatePatch(attributes=attrs, relationships=rels)
        return self.writer.update(NodeKind.QUIZ, quiz_id, patch, actor_id=actor_id)

    def delete(self, quiz_id: str, actor_id: Optional[str] = None) -> None:
        self.writer.delete(NodeKind.QUIZ, quiz_id, actor_id=actor_id)

    def get(self, quiz_id: str) -> Aggregate:
        return self.writer.get(NodeKind.QUIZ, quiz_id)

    def questions(self, quiz_id: str) -> List[Node]:
        if self.reader.node(NodeKind.QUIZ, quiz_id) is None:
            raise NotFoundError(f"Quiz with ID {quiz_id} not found", [quiz_id])
        nodes = self.reader.related(NodeKind.QUIZ, quiz_id, RelType.INCLUDES)
        return sorted(nodes, key=lambda n: n.id)

    def by_concept(self, concept_id: str) -> List[Node]:
        if self.reader.node(NodeKind.CONCEPT, concept_id) is None:
            raise NotFoundError(f"Concept with ID {concept_id} not found", [concept_id])
        nodes = self.reader.related(NodeKind.CONCEPT, concept_id, RelType.TESTS, Direction.IN, NodeKind.QUIZ)
        return sorted(nodes, key=lambda n: str(n.attributes.get("title") or ""))
