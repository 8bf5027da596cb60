from typing import Dict, List, Optional

from edugraph.core.errors import BadRequestError, NotFoundError
from edugraph.core.logging import logger
from edugraph.schemas.content import ConceptCreate, ConceptUpdate
from edugraph.schemas.graph import Aggregate, AggregatePatch, AggregateSpec, NodeKind, RelRef, RelationshipSpec, RelType
from edugraph.services.content.common import new_id, now_iso, to_attributes
from edugraph.services.graph.reader import GraphReader
from edugraph.services.graph.writer import AggregateWriter
from edugraph.services.integrity import would_create_cycle


class ConceptService:
    def __init__(self, writer: AggregateWriter, reader: Optional[GraphReader] = None):
        self.writer = writer
        self.reader = reader or GraphReader(writer.store)

    def create(self, payload: ConceptCreate, actor_id: Optional[str] = None) -> Aggregate:
        concept_id = payload.concept_id or new_id()
        attrs = to_attributes(payload, exclude=("concept_id", "parent_id", "prerequisite_ids"))
        attrs["createdAt"] = attrs["updatedAt"] = now_iso()
        rels: List[RelationshipSpec] = []
        if payload.parent_id:
            rels.append(RelationshipSpec(type=RelType.CONTAINS, target_id=payload.parent_id))
        for pid in dict.fromkeys(payload.prerequisite_ids):
            rels.append(RelationshipSpec(type=RelType.HAS_PREREQUISITE, target_id=pid))
        spec = AggregateSpec(kind=NodeKind.CONCEPT, id=concept_id, attributes=attrs, relationships=rels)
        return self.writer.create(spec, actor_id=actor_id)

    def update(self, concept_id: str, payload: ConceptUpdate, actor_id: Optional[str] = None) -> Aggregate:
        if not payload.model_fields_set:
            raise BadRequestError("Update data cannot be empty", [concept_id])
        attrs = to_attributes(payload, exclude=("parent_id",), only_set=True)
        rels: Dict[RelType, Optional[str]] = {}
        if "parent_id" in payload.model_fields_set:
            if payload.parent_id:
                self._check_containment(concept_id, payload.parent_id)
            rels[RelType.CONTAINS] = payload.parent_id
        if attrs:
            attrs["updatedAt"] = now_iso()
        return self.writer.update(
            NodeKind.CONCEPT, concept_id, AggregatePatch(attributes=attrs, relationships=rels), actor_id=actor_id
        )

    def delete(self, concept_id: str, actor_id: Optional[str] = None, cascade: bool = True) -> None:
        refuse = None if cascade else RelType.CONTAINS
        self.writer.delete(NodeKind.CONCEPT, concept_id, actor_id=actor_id, refuse_if_children=refuse)

    def get(self, concept_id: str) -> Aggregate:
        return self.writer.get(NodeKind.CONCEPT, concept_id)

    def add_prerequisite(self, concept_id: str, prerequisite_id: str, actor_id: Optional[str] = None) -> Aggregate:
        edges = self.reader.edges(NodeKind.CONCEPT, RelType.HAS_PREREQUISITE, NodeKind.CONCEPT)
        if prerequisite_id != concept_id and would_create_cycle(edges, concept_id, prerequisite_id):
            logger.warning("prerequisite_cycle_rejected", concept_id=concept_id, prerequisite_id=prerequisite_id)
            raise BadRequestError(
                f"Adding {prerequisite_id} as prerequisite of {concept_id} would create a cycle",
                [concept_id, prerequisite_id],
            )
        return self.writer.link(
            NodeKind.CONCEPT, concept_id, RelRef(RelType.HAS_PREREQUISITE, prerequisite_id), actor_id=actor_id
        )

    def remove_prerequisite(self, concept_id: str, prerequisite_id: str, actor_id: Optional[str] = None) -> Aggregate:
        return self.writer.unlink(
            NodeKind.CONCEPT, concept_id, RelRef(RelType.HAS_PREREQUISITE, prerequisite_id), actor_id=actor_id
        )

    def prerequisites(self, concept_id: str):
        if self.reader.node(NodeKind.CONCEPT, concept_id) is None:
            raise NotFoundError(f"Concept with ID {concept_id} not found", [concept_id])
        return self.reader.related(NodeKind.CONCEPT, concept_id, RelType.HAS_PREREQUISITE)

    def _check_containment(self, concept_id: str, parent_id: str) -> None:
        if parent_id == concept_id:
            return
        edges = self.reader.edges(NodeKind.CONCEPT, RelType.CONTAINS, NodeKind.CONCEPT)
        if would_create_cycle(edges, parent_id, concept_id):
            raise BadRequestError(
                f"Concept {parent_id} is a descendant of {concept_id} and cannot become its parent",
                [concept_id, parent_id],
            )
