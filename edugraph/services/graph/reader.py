from typing import Any, Dict, List, Optional

from edugraph.schemas.aggregates import definition, id_key
from edugraph.schemas.graph import Direction, Node, NodeKind, RelType
from edugraph.services.graph import cypher


def node_from_props(kind: NodeKind, props: Dict[str, Any]) -> Node:
    key = id_key(kind)
    attrs = {k: v for k, v in (props or {}).items() if k != key}
    return Node(id=str(props[key]), kind=NodeKind(kind), attributes=attrs)


class GraphReader:
    """Read-side helpers over the statement catalog."""

    def __init__(self, store):
        self.store = store

    def node(self, kind: NodeKind, node_id: str) -> Optional[Node]:
        rows = self.store.read(cypher.get_node(kind), {"id": node_id})
        if not rows:
            return None
        return node_from_props(kind, rows[0]["props"])

    def nodes(self, kind: NodeKind) -> List[Node]:
        rows = self.store.read(cypher.list_nodes(kind), {})
        return [node_from_props(kind, r["props"]) for r in rows]

    def related(self, kind: NodeKind, node_id: str, rel_type: RelType,
                direction: Optional[Direction] = None, target_kind: Optional[NodeKind] = None) -> List[Node]:
        """Nodes on the other end of `rel_type`; direction and kind default to the aggregate's slot."""
        if direction is None or target_kind is None:
            slot = definition(kind).slot(rel_type)
            if slot is None:
                raise ValueError(f"{RelType(rel_type).value} is not a slot of {NodeKind(kind).value}")
            direction = direction or slot.direction
            target_kind = target_kind or slot.target_kind
        rows = self.store.read(cypher.related_nodes(kind, rel_type, direction, target_kind), {"id": node_id})
        return [node_from_props(target_kind, r["props"]) for r in rows]

    def edges(self, from_kind: NodeKind, rel_type: RelType, to_kind: NodeKind) -> List[Dict[str, str]]:
        rows = self.store.read(cypher.relationship_pairs(from_kind, rel_type, to_kind), {})
        return [{"parent_id": r["parent_id"], "child_id": r["child_id"]} for r in rows]
