import json
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Literal, Optional

import redis
from pydantic import BaseModel, Field

from edugraph.config.settings import get_settings
from edugraph.core.logging import logger
from edugraph.schemas.graph import NodeKind

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def content_type_for(kind: NodeKind) -> str:
    return _CAMEL_RE.sub("_", NodeKind(kind).value).lower()


class ContentEvent(BaseModel):
    event_type: Literal["created", "updated", "deleted"]
    content_type: str
    content_id: str
    user_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = {}

    @property
    def topic(self) -> str:
        return f"content.{self.content_type}.{self.event_type}"


Publisher = Callable[[ContentEvent], None]


def get_redis():
    return redis.Redis.from_url(get_settings().redis_url)


class RedisEventPublisher:
    def __init__(self, client=None):
        self.client = client or get_redis()

    def __call__(self, event: ContentEvent) -> None:
        key = f"events:{event.topic}"
        self.client.lpush(key, event.model_dump_json())
        logger.info("content_event_published", topic=event.topic, content_id=event.content_id)


class RecordingPublisher:
    """Keeps events in memory; used when the event bus is disabled."""

    def __init__(self):
        self.events = []

    def __call__(self, event: ContentEvent) -> None:
        self.events.append(event)


def build_publisher() -> Publisher:
    if get_settings().events_enabled:
        return RedisEventPublisher()
    return RecordingPublisher()


def decode_event(raw: bytes | str) -> ContentEvent:
    return ContentEvent.model_validate(json.loads(raw))
