"""
Statement catalog for the content graph.

Every Cypher statement the engine can issue is built here from the closed
NodeKind / RelType / Direction enums, so labels, relationship types and id
keys never come from caller input; values always travel as parameters.
Each statement is registered on first build and `describe()` maps the text
back to its operation name, which is what the store logs instead of the
query body.
"""
from functools import lru_cache
from typing import Any, Dict, NamedTuple, Optional

from edugraph.schemas.aggregates import definition, id_key, label
from edugraph.schemas.graph import Direction, NodeKind, RelType


class StatementInfo(NamedTuple):
    op: str
    meta: Dict[str, Any]


_CATALOG: Dict[str, StatementInfo] = {}


def _register(op: str, text: str, **meta: Any) -> str:
    _CATALOG[text] = StatementInfo(op, meta)
    return text


def describe(query: str) -> Optional[StatementInfo]:
    return _CATALOG.get(query)


def _match_root(kind: NodeKind, var: str = "n", param: str = "id") -> str:
    return f"({var}:{label(kind)} {{{id_key(kind)}: ${param}}})"


def _arrow(rel_type: RelType, direction: Direction, var: str = "r") -> str:
    if Direction(direction) == Direction.OUT:
        return f"-[{var}:{RelType(rel_type).value}]->"
    return f"<-[{var}:{RelType(rel_type).value}]-"


# ─── Reads ──────────────────────────────────────────────

@lru_cache(maxsize=None)
def find_ids(kind: NodeKind) -> str:
    k = id_key(kind)
    return _register(
        "find_ids",
        f"MATCH (n:{label(kind)}) WHERE n.{k} IN $ids RETURN n.{k} AS id",
        kind=NodeKind(kind),
    )


@lru_cache(maxsize=None)
def get_node(kind: NodeKind) -> str:
    return _register(
        "get_node",
        f"MATCH {_match_root(kind)} RETURN properties(n) AS props",
        kind=NodeKind(kind),
    )


@lru_cache(maxsize=None)
def list_nodes(kind: NodeKind) -> str:
    return _register(
        "list_nodes",
        f"MATCH (n:{label(kind)}) RETURN properties(n) AS props",
        kind=NodeKind(kind),
    )


@lru_cache(maxsize=None)
def related_ids(kind: NodeKind, rel_type: RelType, direction: Direction, target_kind: NodeKind) -> str:
    return _register(
        "related_ids",
        f"MATCH {_match_root(kind)}{_arrow(rel_type, direction)}(m:{label(target_kind)}) "
        f"RETURN m.{id_key(target_kind)} AS id",
        kind=NodeKind(kind), rel_type=RelType(rel_type), direction=Direction(direction), target_kind=NodeKind(target_kind),
    )


@lru_cache(maxsize=None)
def related_nodes(kind: NodeKind, rel_type: RelType, direction: Direction, target_kind: NodeKind) -> str:
    return _register(
        "related_nodes",
        f"MATCH {_match_root(kind)}{_arrow(rel_type, direction)}(m:{label(target_kind)}) "
        f"RETURN properties(m) AS props",
        kind=NodeKind(kind), rel_type=RelType(rel_type), direction=Direction(direction), target_kind=NodeKind(target_kind),
    )


@lru_cache(maxsize=None)
def count_related(kind: NodeKind, rel_type: RelType, direction: Direction, target_kind: NodeKind) -> str:
    return _register(
        "count_related",
        f"MATCH {_match_root(kind)}{_arrow(rel_type, direction)}(m:{label(target_kind)}) "
        f"RETURN count(m) AS count",
        kind=NodeKind(kind), rel_type=RelType(rel_type), direction=Direction(direction), target_kind=NodeKind(target_kind),
    )


@lru_cache(maxsize=None)
def count_rel(from_kind: NodeKind, rel_type: RelType, to_kind: NodeKind) -> str:
    return _register(
        "count_rel",
        f"MATCH {_match_root(from_kind, 'a', 'from_id')}{_arrow(rel_type, Direction.OUT)}"
        f"{_match_root(to_kind, 'b', 'to_id')} RETURN count(r) AS count",
        from_kind=NodeKind(from_kind), rel_type=RelType(rel_type), to_kind=NodeKind(to_kind),
    )


@lru_cache(maxsize=None)
def relationship_pairs(from_kind: NodeKind, rel_type: RelType, to_kind: NodeKind) -> str:
    return _register(
        "relationship_pairs",
        f"MATCH (a:{label(from_kind)})-[:{RelType(rel_type).value}]->(b:{label(to_kind)}) "
        f"RETURN a.{id_key(from_kind)} AS parent_id, b.{id_key(to_kind)} AS child_id",
        from_kind=NodeKind(from_kind), rel_type=RelType(rel_type), to_kind=NodeKind(to_kind),
    )


# ─── Writes ─────────────────────────────────────────────

@lru_cache(maxsize=None)
def create_node(kind: NodeKind) -> str:
    return _register(
        "create_node",
        f"CREATE (n:{label(kind)}) SET n = $props RETURN n.{id_key(kind)} AS id",
        kind=NodeKind(kind),
    )


@lru_cache(maxsize=None)
def merge_node(kind: NodeKind) -> str:
    return _register(
        "merge_node",
        f"MERGE {_match_root(kind)} RETURN n.{id_key(kind)} AS id",
        kind=NodeKind(kind),
    )


@lru_cache(maxsize=None)
def update_node(kind: NodeKind) -> str:
    return _register(
        "update_node",
        f"MATCH {_match_root(kind)} SET n += $props RETURN properties(n) AS props",
        kind=NodeKind(kind),
    )


@lru_cache(maxsize=None)
def create_rel(from_kind: NodeKind, rel_type: RelType, to_kind: NodeKind) -> str:
    return _register(
        "create_rel",
        f"MATCH {_match_root(from_kind, 'a', 'from_id')} MATCH {_match_root(to_kind, 'b', 'to_id')} "
        f"CREATE (a){_arrow(rel_type, Direction.OUT)}(b) SET r = $props RETURN count(r) AS created",
        from_kind=NodeKind(from_kind), rel_type=RelType(rel_type), to_kind=NodeKind(to_kind),
    )


@lru_cache(maxsize=None)
def delete_rel(from_kind: NodeKind, rel_type: RelType, to_kind: NodeKind) -> str:
    return _register(
        "delete_rel",
        f"MATCH {_match_root(from_kind, 'a', 'from_id')}{_arrow(rel_type, Direction.OUT)}"
        f"{_match_root(to_kind, 'b', 'to_id')} DELETE r RETURN count(r) AS deleted",
        from_kind=NodeKind(from_kind), rel_type=RelType(rel_type), to_kind=NodeKind(to_kind),
    )


@lru_cache(maxsize=None)
def delete_owned(kind: NodeKind, rel_type: RelType, child_kind: NodeKind) -> str:
    return _register(
        "delete_owned",
        f"MATCH {_match_root(kind)}{_arrow(rel_type, Direction.OUT)}(c:{label(child_kind)}) "
        f"DETACH DELETE c RETURN count(c) AS deleted",
        kind=NodeKind(kind), rel_type=RelType(rel_type), child_kind=NodeKind(child_kind),
    )


@lru_cache(maxsize=None)
def delete_aggregate(kind: NodeKind) -> str:
    """Detach-delete a root together with its owned children; returns the number of roots removed."""
    owned = definition(kind).owned_slots()
    parts = [f"MATCH {_match_root(kind)}"]
    for i, slot in enumerate(owned):
        parts.append(f"OPTIONAL MATCH (n){_arrow(slot.type, Direction.OUT, f'r{i}')}(o{i}:{label(slot.target_kind)})")
        parts.append(f"WITH n, collect(o{i}) AS owned{i}")
        parts.append(f"FOREACH (x IN owned{i} | DETACH DELETE x)")
        parts.append("WITH n")
    parts.append("DETACH DELETE n RETURN count(n) AS deleted")
    return _register(
        "delete_aggregate",
        " ".join(parts),
        kind=NodeKind(kind), owned=tuple((s.type, s.target_kind) for s in owned),
    )
