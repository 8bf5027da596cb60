"""
Contests own their tasks: tasks are created with the contest, replaced
wholesale when an update carries a task list, and removed with it.
"""
from datetime import datetime, timezone
from typing import List, Optional

from edugraph.core.errors import BadRequestError
from edugraph.schemas.content import ContestCreate, ContestUpdate, TaskIn
from edugraph.schemas.graph import Aggregate, AggregatePatch, AggregateSpec, Node, NodeKind, RelType
from edugraph.services.content.common import new_id, now_iso, to_attributes
from edugraph.services.graph.preconditions import PreconditionVerifier, as_datetime
from edugraph.services.graph.reader import GraphReader
from edugraph.services.graph.writer import AggregateWriter


def _task_specs(tasks: List[TaskIn]) -> List[AggregateSpec]:
    return [
        AggregateSpec(kind=NodeKind.TASK, id=t.task_id or new_id(), attributes=to_attributes(t, exclude=("task_id",)))
        for t in tasks
    ]


class ContestService:
    def __init__(self, writer: AggregateWriter, reader: Optional[GraphReader] = None):
        self.writer = writer
        self.reader = reader or GraphReader(writer.store)
        self.verifier = PreconditionVerifier(writer.store)

    def create(self, payload: ContestCreate, actor_id: Optional[str] = None) -> Aggregate:
        self.verifier.verify_ordering(payload.start_date, payload.end_date)
        attrs = to_attributes(payload, exclude=("contest_id", "tasks"))
        attrs["createdAt"] = attrs["updatedAt"] = now_iso()
        spec = AggregateSpec(
            kind=NodeKind.CONTEST,
            id=payload.contest_id or new_id(),
            attributes=attrs,
            children=_task_specs(payload.tasks),
        )
        return self.writer.create(spec, actor_id=actor_id)

    def update(self, contest_id: str, payload: ContestUpdate, actor_id: Optional[str] = None) -> Aggregate:
        if not payload.model_fields_set:
            raise BadRequestError("Update data cannot be empty", [contest_id])
        if payload.start_date is not None or payload.end_date is not None:
            stored = self.writer.get(NodeKind.CONTEST, contest_id).root.attributes
            start = payload.start_date if payload.start_date is not None else stored.get("startDate")
            end = payload.end_date if payload.end_date is not None else stored.get("endDate")
            self.verifier.verify_ordering(start, end)
        attrs = to_attributes(payload, exclude=("tasks",), only_set=True)
        attrs["updatedAt"] = now_iso()
        children = None
        if payload.tasks is not None:
            children = {RelType.HAS_TASK: _task_specs(payload.tasks)}
        patch = AggregatePatch(attributes=attrs, children=children)
        return self.writer.update(NodeKind.CONTEST, contest_id, patch, actor_id=actor_id)

    def delete(self, contest_id: str, actor_id: Optional[str] = None) -> None:
        self.writer.delete(NodeKind.CONTEST, contest_id, actor_id=actor_id)

    def get(self, contest_id: str) -> Aggregate:
        return self.writer.get(NodeKind.CONTEST, contest_id)

    def list(self) -> List[Node]:
        """All contests, latest start first."""
        return sorted(self.reader.nodes(NodeKind.CONTEST), key=self._start, reverse=True)

    def available(self, now: Optional[datetime] = None) -> List[Node]:
        """Contests that have not started yet, soonest first."""
        now = now or datetime.now(timezone.utc)
        upcoming = [c for c in self.reader.nodes(NodeKind.CONTEST) if self._start(c) > now]
        return sorted(upcoming, key=self._start)

    @staticmethod
    def _start(node: Node) -> datetime:
        value = node.attributes.get("startDate")
        if not value:
            return datetime.min.replace(tzinfo=timezone.utc)
        return as_datetime(value, "startDate")

