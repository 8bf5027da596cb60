from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from edugraph.schemas.graph import Direction, NodeKind, RelType


@dataclass(frozen=True)
class RelSlot:
    """One relationship type an aggregate manages, seen from its root."""
    type: RelType
    direction: Direction
    target_kind: NodeKind
    exclusive: bool = False
    owned: bool = False
    required: bool = False


@dataclass(frozen=True)
class AggregateDefinition:
    kind: NodeKind
    label: str
    id_key: str
    slots: Tuple[RelSlot, ...] = ()

    def slot(self, rel_type: RelType) -> Optional[RelSlot]:
        for s in self.slots:
            if s.type == rel_type:
                return s
        return None

    def linked_slots(self) -> List[RelSlot]:
        return [s for s in self.slots if not s.owned]

    def owned_slots(self) -> List[RelSlot]:
        return [s for s in self.slots if s.owned]


DEFINITIONS: Dict[NodeKind, AggregateDefinition] = {
    NodeKind.CONCEPT: AggregateDefinition(
        NodeKind.CONCEPT, "SyllabusConcept", "conceptId",
        (
            RelSlot(RelType.CONTAINS, Direction.IN, NodeKind.CONCEPT, exclusive=True),
            RelSlot(RelType.HAS_PREREQUISITE, Direction.OUT, NodeKind.CONCEPT),
        ),
    ),
    NodeKind.QUESTION: AggregateDefinition(NodeKind.QUESTION, "Question", "id"),
    NodeKind.QUIZ: AggregateDefinition(
        NodeKind.QUIZ, "Quiz", "id",
        (
            RelSlot(RelType.TESTS, Direction.OUT, NodeKind.CONCEPT, exclusive=True, required=True),
            RelSlot(RelType.INCLUDES, Direction.OUT, NodeKind.QUESTION),
            RelSlot(RelType.CREATED, Direction.IN, NodeKind.USER, exclusive=True),
        ),
    ),
    NodeKind.RESOURCE: AggregateDefinition(
        NodeKind.RESOURCE, "Resource", "resourceId",
        (
            RelSlot(RelType.EXPLAINS, Direction.IN, NodeKind.CONCEPT, exclusive=True, required=True),
            RelSlot(RelType.CREATED, Direction.IN, NodeKind.USER, exclusive=True),
        ),
    ),
    NodeKind.CONTEST: AggregateDefinition(
        NodeKind.CONTEST, "Contest", "contestId",
        (RelSlot(RelType.HAS_TASK, Direction.OUT, NodeKind.TASK, owned=True),),
    ),
    NodeKind.TASK: AggregateDefinition(NodeKind.TASK, "Task", "taskId"),
    NodeKind.LEARNING_PATH: AggregateDefinition(
        NodeKind.LEARNING_PATH, "LearningPath", "id",
        (
            RelSlot(RelType.HAS_LEARNING_PATH, Direction.IN, NodeKind.USER, exclusive=True, required=True),
            RelSlot(RelType.HAS_STEP, Direction.OUT, NodeKind.LEARNING_PATH_STEP, owned=True),
        ),
    ),
    NodeKind.LEARNING_PATH_STEP: AggregateDefinition(
        NodeKind.LEARNING_PATH_STEP, "LearningPathStep", "id",
        (RelSlot(RelType.USES_RESOURCE, Direction.OUT, NodeKind.RESOURCE),),
    ),
    NodeKind.USER: AggregateDefinition(NodeKind.USER, "User", "userId"),
}

# Sibling order in the syllabus tree, broadest level first.
CONCEPT_TYPE_ORDER: Tuple[str, ...] = ("Subject", "Matter", "Grade", "Molecule", "Topic", "Atom", "Particle")


def definition(kind: NodeKind) -> AggregateDefinition:
    return DEFINITIONS[NodeKind(kind)]


def label(kind: NodeKind) -> str:
    return definition(kind).label


def id_key(kind: NodeKind) -> str:
    return definition(kind).id_key
