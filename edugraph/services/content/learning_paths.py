from typing import List, Optional

from edugraph.core.errors import NotFoundError
from edugraph.schemas.content import LearningPathCreate, LearningPathStepIn
from edugraph.schemas.graph import Aggregate, AggregateSpec, Direction, NodeKind, RelationshipSpec, RelType
from edugraph.services.content.common import new_id, now_iso, to_attributes
from edugraph.services.graph.reader import GraphReader
from edugraph.services.graph.writer import AggregateWriter


def _step_spec(step: LearningPathStepIn) -> AggregateSpec:
    rels = [RelationshipSpec(type=RelType.USES_RESOURCE, target_id=r) for r in dict.fromkeys(step.resources)]
    return AggregateSpec(
        kind=NodeKind.LEARNING_PATH_STEP,
        id=new_id(),
        attributes=to_attributes(step, exclude=("resources",)),
        relationships=rels,
    )


class LearningPathService:
    def __init__(self, writer: AggregateWriter, reader: Optional[GraphReader] = None):
        self.writer = writer
        self.reader = reader or GraphReader(writer.store)

    def save(self, user_id: str, payload: LearningPathCreate) -> Aggregate:
        attrs = to_attributes(payload, exclude=("steps",))
        attrs["createdAt"] = now_iso()
        spec = AggregateSpec(
            kind=NodeKind.LEARNING_PATH,
            id=new_id(),
            attributes=attrs,
            relationships=[RelationshipSpec(type=RelType.HAS_LEARNING_PATH, target_id=user_id)],
            children=[_step_spec(s) for s in sorted(payload.steps, key=lambda s: s.step_number)],
        )
        return self.writer.create(spec, actor_id=user_id)

    def for_user(self, user_id: str) -> List[Aggregate]:
        """Every learning path of a user, newest first."""
        nodes = self.reader.related(
            NodeKind.USER, user_id, RelType.HAS_LEARNING_PATH, Direction.OUT, NodeKind.LEARNING_PATH
        )
        paths = [self.writer.get(NodeKind.LEARNING_PATH, n.id) for n in nodes]
        return sorted(paths, key=lambda p: str(p.root.attributes.get("createdAt") or ""), reverse=True)

    def get(self, user_id: str, path_id: str) -> Aggregate:
        try:
            path = self.writer.get(NodeKind.LEARNING_PATH, path_id)
        except NotFoundError:
            raise NotFoundError("Learning path not found", [path_id])
        if path.target(RelType.HAS_LEARNING_PATH) != user_id:
            raise NotFoundError("Learning path not found", [path_id])
        return path

    def delete(self, user_id: str, path_id: str) -> None:
        self.get(user_id, path_id)
        self.writer.delete(NodeKind.LEARNING_PATH, path_id, actor_id=user_id)


def ordered_steps(path: Aggregate) -> List[Aggregate]:
    return sorted(path.children, key=lambda c: int(c.root.attributes.get("stepNumber") or 0))
