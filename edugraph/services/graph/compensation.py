from typing import List, Tuple

from prometheus_client import Counter

from edugraph.core.logging import logger
from edugraph.schemas.graph import NodeKind
from edugraph.services.graph import cypher

COMPENSATION_TOTAL = Counter("aggregate_compensation_total", "Compensating cleanups of partial aggregate writes", ["outcome"])


class CompensationManager:
    """Best-effort undo of the nodes created by one non-transactional aggregate write."""

    def __init__(self, store):
        self.store = store
        self.created: List[Tuple[NodeKind, str]] = []

    def track_created(self, kind: NodeKind, node_id: str) -> None:
        self.created.append((NodeKind(kind), node_id))

    def compensate(self) -> bool:
        """Detach-delete every tracked node, newest first. Returns True if all deletes succeeded."""
        ok = True
        for kind, node_id in reversed(self.created):
            try:
                self.store.write(cypher.delete_aggregate(kind), {"id": node_id})
                logger.info("compensation_deleted", kind=kind.value, id=node_id)
            except Exception as e:
                ok = False
                logger.error("compensation_failed", kind=kind.value, id=node_id, error=str(e))
        COMPENSATION_TOTAL.labels(outcome="complete" if ok else "partial").inc()
        self.created.clear()
        return ok
