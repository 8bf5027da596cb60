"""
Rebuilds the concept forest from flat node and containment-edge lists.

Roots are nodes that never appear as a child. Siblings are ordered by
concept type precedence (broad levels first), then by name.
"""
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from edugraph.core.errors import BadRequestError
from edugraph.schemas.aggregates import CONCEPT_TYPE_ORDER
from edugraph.schemas.graph import Node, TreeNode


def _sort_key(node: TreeNode, precedence: Mapping[str, int]):
    tier = precedence.get(node.type, len(precedence))
    return (tier, node.name.casefold(), node.name, node.id)


def _edge_pair(edge) -> Tuple[str, str]:
    if isinstance(edge, Mapping):
        return str(edge["parent_id"]), str(edge["child_id"])
    return str(edge[0]), str(edge[1])


def _index(nodes: Iterable[Node], edges: Iterable) -> Tuple[Dict[str, Node], Dict[str, List[str]], Set[str]]:
    by_id: Dict[str, Node] = {n.id: n for n in nodes}
    children: Dict[str, List[str]] = {}
    child_ids: Set[str] = set()
    for e in edges:
        parent_id, child_id = _edge_pair(e)
        if parent_id not in by_id:
            continue
        children.setdefault(parent_id, []).append(child_id)
        child_ids.add(child_id)
    return by_id, children, child_ids


def _build(node: Node, by_id: Dict[str, Node], children: Dict[str, List[str]],
           precedence: Mapping[str, int], path: Set[str]) -> TreeNode:
    if node.id in path:
        raise BadRequestError(f"Containment cycle detected at node {node.id}", [node.id])
    path.add(node.id)
    kids: List[TreeNode] = []
    for child_id in dict.fromkeys(children.get(node.id, [])):
        child = by_id.get(child_id)
        if child is None:
            continue
        kids.append(_build(child, by_id, children, precedence, path))
    path.discard(node.id)
    kids.sort(key=lambda t: _sort_key(t, precedence))
    return TreeNode(id=node.id, kind=node.kind, attributes=dict(node.attributes), children=kids)


def _precedence(order: Sequence[str]) -> Dict[str, int]:
    return {t: i for i, t in enumerate(order)}


def assemble(nodes: Iterable[Node], edges: Iterable, type_order: Sequence[str] = CONCEPT_TYPE_ORDER) -> List[TreeNode]:
    """
    edges: iterable of {'parent_id': str, 'child_id': str} or (parent_id, child_id)
    """
    nodes = list(nodes)
    by_id, children, child_ids = _index(nodes, edges)
    precedence = _precedence(type_order)
    roots = [_build(n, by_id, children, precedence, set()) for n in nodes if n.id not in child_ids]
    roots.sort(key=lambda t: _sort_key(t, precedence))
    # nodes that no root reaches sit on (or under) a rootless cycle
    reached = {t.id for t in _walk(roots)}
    stranded = sorted(set(by_id) - reached)
    if stranded:
        raise BadRequestError(f"Containment cycle detected at node {stranded[0]}", stranded)
    return roots


def _walk(trees: Iterable[TreeNode]):
    stack = list(trees)
    while stack:
        t = stack.pop()
        yield t
        stack.extend(t.children)


def assemble_subtree(root_id: str, nodes: Iterable[Node], edges: Iterable,
                     type_order: Sequence[str] = CONCEPT_TYPE_ORDER) -> Optional[TreeNode]:
    by_id, children, _ = _index(nodes, edges)
    root = by_id.get(root_id)
    if root is None:
        return None
    return _build(root, by_id, children, _precedence(type_order), set())


def flatten_edges(trees: Iterable[TreeNode]) -> Set[Tuple[str, str]]:
    return {(t.id, c.id) for t in _walk(trees) for c in t.children}


def count_nodes(trees: Iterable[TreeNode]) -> int:
    return sum(1 for _ in _walk(trees))
