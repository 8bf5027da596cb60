from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol, Union

from edugraph.core.errors import BadRequestError, ConflictError, NotFoundError
from edugraph.core.logging import logger
from edugraph.schemas.graph import Direction, NodeKind, RelType
from edugraph.services.graph import cypher


class Reader(Protocol):
    def read(self, query: str, params: Dict | None = None) -> List[Dict]: ...


def as_datetime(value: Union[str, datetime], field: str) -> datetime:
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            raise BadRequestError(f"{field} is not a valid ISO-8601 timestamp: {value}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class PreconditionVerifier:
    """
    Checks that must hold before any mutation of an aggregate starts.

    Every check is a read; failures raise domain errors that name the
    offending identifiers and propagate to the caller unwrapped.
    """

    def __init__(self, reader: Reader):
        self.reader = reader

    def exists(self, kind: NodeKind, node_id: str) -> bool:
        rows = self.reader.read(cypher.find_ids(kind), {"ids": [node_id]})
        return len(rows) > 0

    def verify_exists(self, kind: NodeKind, node_id: str) -> None:
        if not self.exists(kind, node_id):
            logger.warning("precondition_not_found", kind=NodeKind(kind).value, id=node_id)
            raise NotFoundError(f"{NodeKind(kind).value} with ID {node_id} not found", [node_id])

    def verify_absent(self, kind: NodeKind, node_id: str) -> None:
        if self.exists(kind, node_id):
            logger.warning("precondition_conflict", kind=NodeKind(kind).value, id=node_id)
            raise ConflictError(f"{NodeKind(kind).value} with ID {node_id} already exists", [node_id])

    def verify_all_exist(self, kind: NodeKind, ids: Iterable[str]) -> None:
        requested = list(dict.fromkeys(ids))
        if not requested:
            return
        rows = self.reader.read(cypher.find_ids(kind), {"ids": requested})
        found = {r["id"] for r in rows}
        missing = [i for i in requested if i not in found]
        if missing:
            logger.warning("precondition_missing_targets", kind=NodeKind(kind).value, missing=missing)
            raise BadRequestError(f"{NodeKind(kind).value} not found: {', '.join(missing)}", missing)

    def verify_no_self_reference(self, node_id: str, parent_id: Optional[str]) -> None:
        if parent_id is not None and parent_id == node_id:
            raise BadRequestError(f"Node {node_id} cannot reference itself", [node_id])

    def verify_ordering(self, start: Union[str, datetime], end: Union[str, datetime]) -> None:
        s = as_datetime(start, "start")
        e = as_datetime(end, "end")
        if s >= e:
            raise BadRequestError("Start date must be before end date")

    def verify_no_children(self, kind: NodeKind, node_id: str, rel_type: RelType) -> None:
        rows = self.reader.read(
            cypher.count_related(kind, rel_type, Direction.OUT, kind), {"id": node_id}
        )
        count = int(rows[0]["count"]) if rows else 0
        if count > 0:
            raise BadRequestError(
                f"{NodeKind(kind).value} {node_id} still has {count} child node(s) via {RelType(rel_type).value}",
                [node_id],
            )

    def verify_relationship_absent(self, from_kind: NodeKind, from_id: str, rel_type: RelType,
                                   to_kind: NodeKind, to_id: str) -> None:
        rows = self.reader.read(
            cypher.count_rel(from_kind, rel_type, to_kind), {"from_id": from_id, "to_id": to_id}
        )
        if rows and int(rows[0]["count"]) > 0:
            raise ConflictError(
                f"{RelType(rel_type).value} relationship already exists between {from_id} and {to_id}",
                [from_id, to_id],
            )
