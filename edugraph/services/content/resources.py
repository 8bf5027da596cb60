from typing import Dict, List, Optional

from edugraph.core.errors import BadRequestError, NotFoundError
from edugraph.schemas.content import ResourceCreate, ResourceUpdate
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


class ResourceService:
    def __init__(self, writer: AggregateWriter, reader: Optional[GraphReader] = None):
        self.writer = writer
        self.reader = reader or GraphReader(writer.store)

    def create(self, payload: ResourceCreate, actor_id: Optional[str] = None) -> Aggregate:
        rels = [RelationshipSpec(type=RelType.EXPLAINS, target_id=payload.concept_id)]
        ensure: List[NodeRef] = []
        if actor_id:
            rels.append(RelationshipSpec(type=RelType.CREATED, target_id=actor_id))
            ensure.append(NodeRef(kind=NodeKind.USER, id=actor_id))
        attrs = to_attributes(payload, exclude=("resource_id", "concept_id"))
        attrs["createdAt"] = attrs["updatedAt"] = now_iso()
        spec = AggregateSpec(
            kind=NodeKind.RESOURCE, id=payload.resource_id or new_id(), attributes=attrs, relationships=rels,
            ensure=ensure,
        )
        return self.writer.create(spec, actor_id=actor_id)

    def update(self, resource_id: str, payload: ResourceUpdate, actor_id: Optional[str] = None) -> Aggregate:
        if not payload.model_fields_set:
            raise BadRequestError("Update data cannot be empty", [resource_id])
        attrs = to_attributes(payload, exclude=("concept_id",), only_set=True)
        rels: Dict[RelType, object] = {}
        if "concept_id" in payload.model_fields_set:
            rels[RelType.EXPLAINS] = payload.concept_id
        attrs["updatedAt"] = now_iso()
        patch = AggregatePatch(attributes=attrs, relationships=rels)
        return self.writer.update(NodeKind.RESOURCE, resource_id, patch, actor_id=actor_id)

    def delete(self, resource_id: str, actor_id: Optional[str] = None) -> None:
        self.writer.delete(NodeKind.RESOURCE, resource_id, actor_id=actor_id)

    def get(self, resource_id: str) -> Aggregate:
        return self.writer.get(NodeKind.RESOURCE, resource_id)

    def by_concept(self, concept_id: str) -> List[Node]:
        if self.reader.node(NodeKind.CONCEPT, concept_id) is None:
            raise NotFoundError(f"Concept with ID {concept_id} not found", [concept_id])
        nodes = self.reader.related(NodeKind.CONCEPT, concept_id, RelType.EXPLAINS, Direction.OUT, NodeKind.RESOURCE)
        return sorted(nodes, key=lambda n: str(n.attributes.get("name") or ""))
