from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Union

from pydantic import BaseModel, Field


class NodeKind(str, Enum):
    CONCEPT = "Concept"
    QUESTION = "Question"
    QUIZ = "Quiz"
    RESOURCE = "Resource"
    CONTEST = "Contest"
    TASK = "Task"
    LEARNING_PATH = "LearningPath"
    LEARNING_PATH_STEP = "LearningPathStep"
    USER = "User"


class RelType(str, Enum):
    HAS_TASK = "HAS_TASK"
    CONTAINS = "CONTAINS"
    HAS_PREREQUISITE = "HAS_PREREQUISITE"
    INCLUDES = "INCLUDES"
    TESTS = "TESTS"
    EXPLAINS = "EXPLAINS"
    CREATED = "CREATED"
    HAS_LEARNING_PATH = "HAS_LEARNING_PATH"
    HAS_STEP = "HAS_STEP"
    USES_RESOURCE = "USES_RESOURCE"


class Direction(str, Enum):
    OUT = "OUT"
    IN = "IN"


class RelRef(NamedTuple):
    """A relationship as seen from the aggregate root: (type, other endpoint id)."""
    type: RelType
    target_id: str


class Node(BaseModel):
    id: str
    kind: NodeKind
    attributes: Dict[str, Any] = {}


class RelationshipSpec(BaseModel):
    type: RelType
    target_id: str
    properties: Dict[str, Any] = {}

    def ref(self) -> RelRef:
        return RelRef(self.type, self.target_id)


class NodeRef(BaseModel):
    kind: NodeKind
    id: str


class AggregateSpec(BaseModel):
    """
    Desired state of a new aggregate: root node, its relationships and owned children.

    `ensure` lists endpoint nodes merged into existence as part of the same
    write, so a rejected or failed create leaves no trace of them either.
    """
    kind: NodeKind
    id: str
    attributes: Dict[str, Any] = {}
    relationships: List[RelationshipSpec] = []
    children: List["AggregateSpec"] = []
    ensure: List[NodeRef] = []


class AggregatePatch(BaseModel):
    """
    Partial update of an existing aggregate.

    Only keys present in `attributes` change; a None value removes the
    attribute. A relationship type present in `relationships` is reconciled
    to exactly the given targets; None, "" or [] removes every edge of that
    type. Types that are absent are left untouched. `children`, when not
    None, replaces the owned children of the given relationship type.
    """
    attributes: Dict[str, Any] = {}
    relationships: Dict[RelType, Union[List[str], str, None]] = {}
    children: Optional[Dict[RelType, List[AggregateSpec]]] = None


class Aggregate(BaseModel):
    root: Node
    relationships: List[RelRef] = []
    children: List["Aggregate"] = []

    def targets(self, rel_type: RelType) -> List[str]:
        return [r.target_id for r in self.relationships if r.type == rel_type]

    def target(self, rel_type: RelType) -> Optional[str]:
        ids = self.targets(rel_type)
        return ids[0] if ids else None


class TreeNode(BaseModel):
    id: str
    kind: NodeKind = NodeKind.CONCEPT
    attributes: Dict[str, Any] = {}
    children: List["TreeNode"] = Field(default_factory=list)

    @property
    def name(self) -> str:
        return str(self.attributes.get("name") or "")

    @property
    def type(self) -> str:
        return str(self.attributes.get("type") or "")


AggregateSpec.model_rebuild()
Aggregate.model_rebuild()
TreeNode.model_rebuild()
