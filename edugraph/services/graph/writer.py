"""
Generic writer for composite aggregates.

One AggregateWriter serves every node kind: the kind's AggregateDefinition
says which relationship slots it manages, and an AggregateSpec or
AggregatePatch says what the caller wants. The writer runs the whole
sequence inside one explicit transaction when the store offers it, and
otherwise as sequential writes guarded by a CompensationManager.
"""
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Set

from prometheus_client import Counter

from edugraph.core.correlation import ensure_correlation_id
from edugraph.core.errors import BadRequestError, ConflictError, DomainError, InternalError, NotFoundError
from edugraph.core.logging import logger
from edugraph.events.publisher import ContentEvent, Publisher, content_type_for
from edugraph.schemas.aggregates import RelSlot, definition, id_key
from edugraph.schemas.graph import (
    Aggregate,
    AggregatePatch,
    AggregateSpec,
    Direction,
    NodeKind,
    NodeRef,
    RelRef,
    RelType,
)
from edugraph.services.graph import cypher
from edugraph.services.graph.compensation import CompensationManager
from edugraph.services.graph.preconditions import PreconditionVerifier
from edugraph.services.graph.reader import node_from_props
from edugraph.services.graph.reconcile import diff

AGGREGATE_WRITE_TOTAL = Counter("aggregate_write_total", "Aggregate write operations", ["kind", "op", "outcome"])


class _TxSteps:
    def __init__(self, tx):
        self.tx = tx

    def read(self, query: str, params: Dict | None = None) -> List[Dict]:
        return self.tx.run(query, params or {})

    def write(self, query: str, params: Dict | None = None) -> List[Dict]:
        return self.tx.run(query, params or {})

    def track_created(self, kind: NodeKind, node_id: str) -> None:
        pass


class _SequentialSteps:
    def __init__(self, store, compensation: CompensationManager):
        self.store = store
        self.compensation = compensation

    def read(self, query: str, params: Dict | None = None) -> List[Dict]:
        return self.store.read(query, params or {})

    def write(self, query: str, params: Dict | None = None) -> List[Dict]:
        return self.store.write(query, params or {})

    def track_created(self, kind: NodeKind, node_id: str) -> None:
        self.compensation.track_created(kind, node_id)


def _normalize_targets(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return list(dict.fromkeys(v for v in value if v))


def _endpoints(kind: NodeKind, node_id: str, slot: RelSlot, target_id: str):
    if slot.direction == Direction.OUT:
        return (kind, node_id), (slot.target_kind, target_id)
    return (slot.target_kind, target_id), (kind, node_id)


class AggregateWriter:
    def __init__(self, store, publish: Optional[Publisher] = None):
        self.store = store
        self.publish = publish

    # ─── Execution mode ─────────────────────────────────────

    @contextmanager
    def _steps(self, kind: NodeKind, op: str) -> Iterator:
        kind = NodeKind(kind)
        transactional = bool(getattr(self.store, "supports_transactions", False))
        logger.debug("aggregate_steps_begin", kind=kind.value, op=op, transactional=transactional,
                     correlation_id=ensure_correlation_id())
        if transactional:
            with self.store.transaction() as tx:
                try:
                    yield _TxSteps(tx)
                    tx.commit()
                except InternalError:
                    self._rollback(tx, kind, op)
                    AGGREGATE_WRITE_TOTAL.labels(kind=kind.value, op=op, outcome="failed").inc()
                    raise
                except DomainError:
                    self._rollback(tx, kind, op)
                    AGGREGATE_WRITE_TOTAL.labels(kind=kind.value, op=op, outcome="rejected").inc()
                    raise
                except Exception as e:
                    self._rollback(tx, kind, op)
                    AGGREGATE_WRITE_TOTAL.labels(kind=kind.value, op=op, outcome="failed").inc()
                    raise self._internal(e, kind, op) from e
        else:
            compensation = CompensationManager(self.store)
            try:
                yield _SequentialSteps(self.store, compensation)
            except Exception as e:
                if compensation.created:
                    complete = compensation.compensate()
                    logger.warning("aggregate_compensated", kind=kind.value, op=op, complete=complete)
                if isinstance(e, DomainError) and not isinstance(e, InternalError):
                    AGGREGATE_WRITE_TOTAL.labels(kind=kind.value, op=op, outcome="rejected").inc()
                    raise
                AGGREGATE_WRITE_TOTAL.labels(kind=kind.value, op=op, outcome="failed").inc()
                if isinstance(e, InternalError):
                    raise
                raise self._internal(e, kind, op) from e
        AGGREGATE_WRITE_TOTAL.labels(kind=kind.value, op=op, outcome="ok").inc()

    def _rollback(self, tx, kind: NodeKind, op: str) -> None:
        try:
            tx.rollback()
        except Exception as e:
            logger.error("aggregate_rollback_failed", kind=kind.value, op=op, error=str(e))

    def _internal(self, e: Exception, kind: NodeKind, op: str) -> InternalError:
        logger.error("aggregate_write_failed", kind=kind.value, op=op, error=str(e), error_type=type(e).__name__)
        return InternalError(f"Failed to {op} {kind.value.lower()}")

    def _publish(self, event_type: str, kind: NodeKind, node_id: str, actor_id: Optional[str]) -> None:
        if self.publish is None:
            return
        event = ContentEvent(event_type=event_type, content_type=content_type_for(kind), content_id=node_id, user_id=actor_id)
        try:
            self.publish(event)
        except Exception as e:
            logger.error("content_event_publish_failed", topic=event.topic, content_id=node_id, error=str(e))

    # ─── Preconditions ──────────────────────────────────────

    def _slot(self, kind: NodeKind, rel_type: RelType, owned: bool = False) -> RelSlot:
        slot = definition(kind).slot(rel_type)
        if slot is None or slot.owned != owned:
            raise BadRequestError(f"{RelType(rel_type).value} is not a managed relationship of {NodeKind(kind).value}")
        return slot

    def _owned_slot_for(self, kind: NodeKind, child_kind: NodeKind) -> RelSlot:
        for slot in definition(kind).owned_slots():
            if slot.target_kind == child_kind:
                return slot
        raise BadRequestError(f"{NodeKind(kind).value} does not own {NodeKind(child_kind).value} nodes")

    def _verify_targets(self, verifier: PreconditionVerifier, kind: NodeKind, node_id: str,
                        slot: RelSlot, targets: List[str], ensured: Set = frozenset()) -> None:
        if slot.exclusive and len(targets) > 1:
            raise BadRequestError(f"{slot.type.value} allows a single target, got {len(targets)}", targets)
        if slot.target_kind == kind:
            for t in targets:
                verifier.verify_no_self_reference(node_id, t)
        pending = [t for t in targets if (slot.target_kind, t) not in ensured]
        if slot.exclusive:
            for t in pending:
                verifier.verify_exists(slot.target_kind, t)
        else:
            verifier.verify_all_exist(slot.target_kind, pending)

    def _verify_new(self, verifier: PreconditionVerifier, spec: AggregateSpec, seen: Set,
                    replaceable: Set[str] = frozenset(), ensured: Set = frozenset()) -> None:
        kind = NodeKind(spec.kind)
        if (kind, spec.id) in seen:
            raise BadRequestError(f"Duplicate {kind.value} id {spec.id} in request", [spec.id])
        seen.add((kind, spec.id))
        if id_key(kind) in spec.attributes and spec.attributes[id_key(kind)] != spec.id:
            raise BadRequestError(f"Attribute {id_key(kind)} must match the aggregate id", [spec.id])
        if spec.id not in replaceable:
            verifier.verify_absent(kind, spec.id)
        grouped: Dict[RelType, List[str]] = {}
        for rel in spec.relationships:
            self._slot(kind, rel.type)
            grouped.setdefault(RelType(rel.type), []).append(rel.target_id)
        for slot in definition(kind).linked_slots():
            if slot.required and not grouped.get(slot.type):
                raise BadRequestError(f"{kind.value} requires a {slot.type.value} relationship")
        for rel_type, targets in grouped.items():
            self._verify_targets(verifier, kind, spec.id, self._slot(kind, rel_type), list(dict.fromkeys(targets)), ensured)
        for child in spec.children:
            self._owned_slot_for(kind, NodeKind(child.kind))
            self._verify_new(verifier, child, seen, ensured=ensured)

    # ─── Write steps ────────────────────────────────────────

    def _create_edge(self, steps, kind: NodeKind, node_id: str, slot: RelSlot, target_id: str,
                     properties: Optional[Dict] = None) -> None:
        (fk, fid), (tk, tid) = _endpoints(kind, node_id, slot, target_id)
        rows = steps.write(cypher.create_rel(fk, slot.type, tk), {"from_id": fid, "to_id": tid, "props": properties or {}})
        created = int(rows[0]["created"]) if rows else 0
        if created != 1:
            logger.error("relationship_not_created", type=slot.type.value, from_id=fid, to_id=tid)
            raise InternalError(f"Failed to create {slot.type.value} relationship")

    def _delete_edge(self, steps, kind: NodeKind, node_id: str, slot: RelSlot, target_id: str) -> int:
        (fk, fid), (tk, tid) = _endpoints(kind, node_id, slot, target_id)
        rows = steps.write(cypher.delete_rel(fk, slot.type, tk), {"from_id": fid, "to_id": tid})
        deleted = int(rows[0]["deleted"]) if rows else 0
        if deleted == 0:
            logger.warning("relationship_already_absent", type=slot.type.value, from_id=fid, to_id=tid)
        return deleted

    def _ensure_nodes(self, steps, verifier: PreconditionVerifier, refs: List[NodeRef]) -> None:
        for ref in refs:
            kind = NodeKind(ref.kind)
            existed = verifier.exists(kind, ref.id)
            steps.write(cypher.merge_node(kind), {"id": ref.id})
            if not existed:
                steps.track_created(kind, ref.id)

    def _create_tree(self, steps, spec: AggregateSpec) -> None:
        kind = NodeKind(spec.kind)
        props = dict(spec.attributes)
        props[id_key(kind)] = spec.id
        rows = steps.write(cypher.create_node(kind), {"props": props})
        if not rows:
            raise InternalError(f"Failed to create {kind.value.lower()} node")
        steps.track_created(kind, spec.id)
        for child in spec.children:
            self._create_tree(steps, child)
            self._create_edge(steps, kind, spec.id, self._owned_slot_for(kind, NodeKind(child.kind)), child.id)
        done: Set[RelRef] = set()
        for rel in spec.relationships:
            if rel.ref() in done:
                continue
            done.add(rel.ref())
            self._create_edge(steps, kind, spec.id, self._slot(kind, rel.type), rel.target_id, rel.properties)

    def _current_targets(self, reader, kind: NodeKind, node_id: str, slot: RelSlot) -> List[str]:
        rows = reader.read(cypher.related_ids(kind, slot.type, slot.direction, slot.target_kind), {"id": node_id})
        return [str(r["id"]) for r in rows]

    def _load(self, reader, kind: NodeKind, node_id: str) -> Aggregate:
        kind = NodeKind(kind)
        rows = reader.read(cypher.get_node(kind), {"id": node_id})
        if not rows:
            raise NotFoundError(f"{kind.value} with ID {node_id} not found", [node_id])
        root = node_from_props(kind, rows[0]["props"])
        rels: List[RelRef] = []
        for slot in definition(kind).linked_slots():
            rels.extend(RelRef(slot.type, t) for t in self._current_targets(reader, kind, node_id, slot))
        rels.sort(key=lambda r: (r.type.value, r.target_id))
        children: List[Aggregate] = []
        for slot in definition(kind).owned_slots():
            for child_id in sorted(self._current_targets(reader, kind, node_id, slot)):
                children.append(self._load(reader, slot.target_kind, child_id))
        return Aggregate(root=root, relationships=rels, children=children)

    # ─── Public operations ──────────────────────────────────

    def get(self, kind: NodeKind, node_id: str) -> Aggregate:
        return self._load(self.store, kind, node_id)

    def create(self, spec: AggregateSpec, actor_id: Optional[str] = None) -> Aggregate:
        kind = NodeKind(spec.kind)
        logger.info("aggregate_create", kind=kind.value, id=spec.id, relationships=len(spec.relationships), children=len(spec.children))
        with self._steps(kind, "create") as steps:
            verifier = PreconditionVerifier(steps)
            ensured = {(NodeKind(r.kind), r.id) for r in spec.ensure}
            self._verify_new(verifier, spec, set(), ensured=ensured)
            self._ensure_nodes(steps, verifier, spec.ensure)
            self._create_tree(steps, spec)
            result = self._load(steps, kind, spec.id)
        logger.info("aggregate_created", kind=kind.value, id=spec.id)
        self._publish("created", kind, spec.id, actor_id)
        return result

    def update(self, kind: NodeKind, node_id: str, patch: AggregatePatch, actor_id: Optional[str] = None) -> Aggregate:
        kind = NodeKind(kind)
        if not patch.attributes and not patch.relationships and patch.children is None:
            raise BadRequestError("Update data cannot be empty", [node_id])
        key = id_key(kind)
        if key in patch.attributes and patch.attributes[key] != node_id:
            raise BadRequestError(f"{key} is immutable", [node_id])
        logger.info("aggregate_update", kind=kind.value, id=node_id,
                    attributes=sorted(patch.attributes), relationships=sorted(t.value for t in patch.relationships))
        with self._steps(kind, "update") as steps:
            verifier = PreconditionVerifier(steps)
            verifier.verify_exists(kind, node_id)
            desired: Dict[RelType, List[str]] = {}
            for rel_type, value in patch.relationships.items():
                slot = self._slot(kind, rel_type)
                targets = _normalize_targets(value)
                if slot.required and not targets:
                    raise BadRequestError(f"{kind.value} requires a {slot.type.value} relationship", [node_id])
                self._verify_targets(verifier, kind, node_id, slot, targets)
                desired[slot.type] = targets
            seen: Set = {(kind, node_id)}
            for rel_type, kids in (patch.children or {}).items():
                slot = self._slot(kind, rel_type, owned=True)
                # current children are deleted first, so their ids may be reused
                replaceable = set(self._current_targets(steps, kind, node_id, slot))
                for child in kids:
                    if NodeKind(child.kind) != slot.target_kind:
                        raise BadRequestError(f"{slot.type.value} expects {slot.target_kind.value} children")
                    self._verify_new(verifier, child, seen, replaceable)

            current: List[RelRef] = []
            for rel_type in desired:
                slot = self._slot(kind, rel_type)
                current.extend(RelRef(rel_type, t) for t in self._current_targets(steps, kind, node_id, slot))
            wanted = [RelRef(t, x) for t, xs in desired.items() for x in xs]
            exclusive = [t for t in desired if self._slot(kind, t).exclusive]
            delta = diff(current, wanted, exclusive)

            if patch.attributes:
                steps.write(cypher.update_node(kind), {"id": node_id, "props": dict(patch.attributes)})
            for ref in sorted(delta.to_remove):
                self._delete_edge(steps, kind, node_id, self._slot(kind, ref.type), ref.target_id)
            for ref in sorted(delta.to_add):
                self._create_edge(steps, kind, node_id, self._slot(kind, ref.type), ref.target_id)
            for rel_type, kids in (patch.children or {}).items():
                slot = self._slot(kind, rel_type, owned=True)
                steps.write(cypher.delete_owned(kind, slot.type, slot.target_kind), {"id": node_id})
                for child in kids:
                    self._create_tree(steps, child)
                    self._create_edge(steps, kind, node_id, slot, child.id)
            result = self._load(steps, kind, node_id)
        logger.info("aggregate_updated", kind=kind.value, id=node_id, added=len(delta.to_add), removed=len(delta.to_remove))
        self._publish("updated", kind, node_id, actor_id)
        return result

    def delete(self, kind: NodeKind, node_id: str, actor_id: Optional[str] = None,
               refuse_if_children: Optional[RelType] = None) -> None:
        kind = NodeKind(kind)
        logger.info("aggregate_delete", kind=kind.value, id=node_id)
        with self._steps(kind, "delete") as steps:
            if refuse_if_children is not None:
                PreconditionVerifier(steps).verify_no_children(kind, node_id, refuse_if_children)
            rows = steps.write(cypher.delete_aggregate(kind), {"id": node_id})
            deleted = int(rows[0]["deleted"]) if rows else 0
            if deleted == 0:
                raise NotFoundError(f"{kind.value} with ID {node_id} not found", [node_id])
        logger.info("aggregate_deleted", kind=kind.value, id=node_id)
        self._publish("deleted", kind, node_id, actor_id)

    def link(self, kind: NodeKind, node_id: str, ref: RelRef, properties: Optional[Dict] = None,
             actor_id: Optional[str] = None) -> Aggregate:
        kind = NodeKind(kind)
        slot = self._slot(kind, ref.type)
        with self._steps(kind, "link") as steps:
            verifier = PreconditionVerifier(steps)
            verifier.verify_exists(kind, node_id)
            if slot.target_kind == kind:
                verifier.verify_no_self_reference(node_id, ref.target_id)
            verifier.verify_exists(slot.target_kind, ref.target_id)
            (fk, fid), (tk, tid) = _endpoints(kind, node_id, slot, ref.target_id)
            verifier.verify_relationship_absent(fk, fid, slot.type, tk, tid)
            if slot.exclusive and self._current_targets(steps, kind, node_id, slot):
                raise ConflictError(f"{kind.value} {node_id} already has a {slot.type.value} relationship", [node_id])
            self._create_edge(steps, kind, node_id, slot, ref.target_id, properties)
            result = self._load(steps, kind, node_id)
        logger.info("aggregate_linked", kind=kind.value, id=node_id, type=slot.type.value, target_id=ref.target_id)
        self._publish("updated", kind, node_id, actor_id)
        return result

    def unlink(self, kind: NodeKind, node_id: str, ref: RelRef, actor_id: Optional[str] = None) -> Aggregate:
        kind = NodeKind(kind)
        slot = self._slot(kind, ref.type)
        if slot.required:
            raise BadRequestError(f"{kind.value} requires a {slot.type.value} relationship", [node_id])
        with self._steps(kind, "unlink") as steps:
            PreconditionVerifier(steps).verify_exists(kind, node_id)
            if self._delete_edge(steps, kind, node_id, slot, ref.target_id) == 0:
                raise NotFoundError(
                    f"{slot.type.value} relationship between {node_id} and {ref.target_id} not found",
                    [node_id, ref.target_id],
                )
            result = self._load(steps, kind, node_id)
        self._publish("updated", kind, node_id, actor_id)
        return result
