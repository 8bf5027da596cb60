from typing import List, Optional

from edugraph.core.errors import BadRequestError
from edugraph.schemas.content import QuestionCreate, QuestionUpdate
from edugraph.schemas.graph import Aggregate, AggregatePatch, AggregateSpec, Node, NodeKind
from edugraph.services.content.common import new_id, now_iso, to_attributes
from edugraph.services.graph.reader import GraphReader
from edugraph.services.graph.writer import AggregateWriter


def _check_answer(options: List[str], answer: str) -> None:
    if answer not in options:
        raise BadRequestError("Correct answer must be one of the options")


class QuestionService:
    def __init__(self, writer: AggregateWriter, reader: Optional[GraphReader] = None):
        self.writer = writer
        self.reader = reader or GraphReader(writer.store)

    def create(self, payload: QuestionCreate, actor_id: Optional[str] = None) -> Aggregate:
        _check_answer(payload.options, payload.correct_answer)
        attrs = to_attributes(payload, exclude=("id",))
        attrs["createdAt"] = attrs["updatedAt"] = now_iso()
        spec = AggregateSpec(kind=NodeKind.QUESTION, id=payload.id or new_id(), attributes=attrs)
        return self.writer.create(spec, actor_id=actor_id)

    def update(self, question_id: str, payload: QuestionUpdate, actor_id: Optional[str] = None) -> Aggregate:
        if not payload.model_fields_set:
            raise BadRequestError("Update data cannot be empty", [question_id])
        if payload.options is not None or payload.correct_answer is not None:
            current = self.writer.get(NodeKind.QUESTION, question_id).root.attributes
            options = payload.options if payload.options is not None else current.get("options") or []
            answer = payload.correct_answer if payload.correct_answer is not None else current.get("correctAnswer")
            _check_answer(list(options), answer)
        attrs = to_attributes(payload, only_set=True)
        attrs["updatedAt"] = now_iso()
        return self.writer.update(NodeKind.QUESTION, question_id, AggregatePatch(attributes=attrs), actor_id=actor_id)

    def delete(self, question_id: str, actor_id: Optional[str] = None) -> None:
        self.writer.delete(NodeKind.QUESTION, question_id, actor_id=actor_id)

    def get(self, question_id: str) -> Aggregate:
        return self.writer.get(NodeKind.QUESTION, question_id)

    def list(self) -> List[Node]:
        """All questions, newest first."""
        nodes = self.reader.nodes(NodeKind.QUESTION)
        return sorted(nodes, key=lambda n: str(n.attributes.get("createdAt") or ""), reverse=True)
