from typing import Dict, Iterable, List, Tuple

import networkx as nx


def _graph(edges: Iterable[Dict]) -> nx.DiGraph:
    g = nx.DiGraph()
    for e in edges:
        a = str(e.get("parent_id") or "")
        b = str(e.get("child_id") or "")
        if a and b:
            g.add_edge(a, b)
    return g


def check_cycles(edges: Iterable[Dict]) -> List[Tuple[str, str]]:
    """
    edges: list of {'parent_id': str, 'child_id': str}
    Returns every edge that lies on a cycle.
    """
    violations: List[Tuple[str, str]] = []
    for cyc in nx.simple_cycles(_graph(edges)):
        if len(cyc) == 1:
            violations.append((cyc[0], cyc[0]))
        else:
            for i in range(len(cyc)):
                violations.append((cyc[i], cyc[(i + 1) % len(cyc)]))
    return violations


def would_create_cycle(edges: Iterable[Dict], source: str, target: str) -> bool:
    """True if adding source -> target closes a cycle, i.e. target already reaches source."""
    if source == target:
        return True
    g = _graph(edges)
    if source not in g or target not in g:
        return False
    return nx.has_path(g, target, source)
