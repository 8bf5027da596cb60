from typing import Iterable, NamedTuple, Set

from edugraph.schemas.graph import RelRef, RelType


class RelationshipDelta(NamedTuple):
    to_add: Set[RelRef]
    to_remove: Set[RelRef]

    @property
    def empty(self) -> bool:
        return not self.to_add and not self.to_remove


def diff(current: Iterable[RelRef], desired: Iterable[RelRef], exclusive: Iterable[RelType] = ()) -> RelationshipDelta:
    """
    Add/remove delta between the current and desired relationship sets,
    keyed by (type, target id).

    For exclusive types any change replaces the whole type: every current
    edge of that type is removed and the desired one added. An unchanged
    exclusive type produces no writes.
    """
    cur = {RelRef(RelType(r[0]), r[1]) for r in current}
    want = {RelRef(RelType(r[0]), r[1]) for r in desired}
    to_add = want - cur
    to_remove = cur - want
    for typ in {RelType(t) for t in exclusive}:
        cur_t = {r for r in cur if r.type == typ}
        want_t = {r for r in want if r.type == typ}
        if cur_t == want_t:
            continue
        to_remove |= cur_t
        to_add = {r for r in to_add if r.type != typ} | want_t
    return RelationshipDelta(to_add, to_remove)
