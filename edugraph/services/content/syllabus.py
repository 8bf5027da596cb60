from typing import List

from pydantic import BaseModel

from edugraph.core.errors import NotFoundError
from edugraph.core.logging import logger
from edugraph.schemas.graph import NodeKind, RelType, TreeNode
from edugraph.services.graph.reader import GraphReader
from edugraph.services.hierarchy import assemble, assemble_subtree, count_nodes


class Syllabus(BaseModel):
    concepts: List[TreeNode]
    total_concepts: int


class SyllabusService:
    def __init__(self, reader: GraphReader):
        self.reader = reader

    def _load(self):
        nodes = self.reader.nodes(NodeKind.CONCEPT)
        edges = self.reader.edges(NodeKind.CONCEPT, RelType.CONTAINS, NodeKind.CONCEPT)
        return nodes, edges

    def syllabus(self) -> Syllabus:
        nodes, edges = self._load()
        roots = assemble(nodes, edges)
        total = count_nodes(roots)
        logger.info("syllabus_assembled", roots=len(roots), concepts=total, edges=len(edges))
        return Syllabus(concepts=roots, total_concepts=total)

    def concept_tree(self, concept_id: str) -> TreeNode:
        nodes, edges = self._load()
        tree = assemble_subtree(concept_id, nodes, edges)
        if tree is None:
            raise NotFoundError(f"Concept with ID {concept_id} not found", [concept_id])
        return tree
