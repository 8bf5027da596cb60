import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable

from pydantic import BaseModel


def camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p[:1].upper() + p[1:] for p in rest)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return iso(value)
    return value


def to_attributes(model: BaseModel, exclude: Iterable[str] = (), only_set: bool = False) -> Dict[str, Any]:
    """Model fields as graph properties: camelCase keys, enums and datetimes flattened."""
    skip = set(exclude)
    fields = model.model_fields_set if only_set else type(model).model_fields.keys()
    out: Dict[str, Any] = {}
    for name in fields:
        if name in skip:
            continue
        value = getattr(model, name)
        if not only_set and value is None:
            continue
        out[camel(name)] = _plain(value)
    return out


def iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def now_iso() -> str:
    return iso(datetime.now(timezone.utc))


def new_id() -> str:
    return str(uuid.uuid4())

