import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from datetime import UTC, datetime
from typing import Any

import redis

from homecare.core.config import settings
from homecare.core.metrics import DOMAIN_EVENTS

logger = logging.getLogger(__name__)


class EventPublisher(ABC):
    """Pushes record state changes to interested actors.

    Publishing happens after the owning transaction commits; subscribers that
    miss an event can always fall back to polling the API.
    """

    @abstractmethod
    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def reset(self) -> None:
        raise NotImplementedError


def _envelope(event_type: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": event_type,
        "occurred_at": datetime.now(UTC).isoformat(),
        "payload": payload,
    }


class InMemoryEventPublisher(EventPublisher):
    def __init__(self, max_events: int = 1000) -> None:
        self._events: deque[dict[str, Any]] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        with self._lock:
            self._events.append(_envelope(event_type, payload))

    def recent(self, event_type: str | None = None) -> list[dict[str, Any]]:
        with self._lock:
            events = list(self._events)
        if event_type is None:
            return events
        return [event for event in events if event["type"] == event_type]

    def reset(self) -> None:
        with self._lock:
            self._events.clear()


class RedisEventPublisher(EventPublisher):
    def __init__(self, redis_url: str, channel: str) -> None:
        self._client = redis.Redis.from_url(
            redis_url,
            socket_connect_timeout=0.2,
            socket_timeout=0.2,
        )
        self._channel = channel

    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        message = json.dumps(_envelope(event_type, payload), default=str)
        self._client.publish(self._channel, message)

    def reset(self) -> None:
        return None


class FallbackEventPublisher(EventPublisher):
    def __init__(self, primary: EventPublisher, fallback: EventPublisher) -> None:
        self._primary = primary
        self._fallback = fallback

    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            self._primary.publish(event_type, payload)
        except redis.RedisError:
            logger.warning("event_publish_fallback event_type=%s", event_type)
            self._fallback.publish(event_type, payload)

    def reset(self) -> None:
        self._primary.reset()
        self._fallback.reset()


class _CountingPublisher(EventPublisher):
    def __init__(self, inner: EventPublisher) -> None:
        self.inner = inner

    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        self.inner.publish(event_type, payload)
        DOMAIN_EVENTS.labels(event_type=event_type).inc()

    def reset(self) -> None:
        self.inner.reset()

    def recent(self, event_type: str | None = None) -> list[dict[str, Any]]:
        if isinstance(self.inner, InMemoryEventPublisher):
            return self.inner.recent(event_type)
        if isinstance(self.inner, FallbackEventPublisher) and isinstance(
            self.inner._fallback, InMemoryEventPublisher
        ):
            return self.inner._fallback.recent(event_type)
        return []


def _build_event_publisher() -> _CountingPublisher:
    backend = settings.event_backend.strip().lower()
    memory = InMemoryEventPublisher()
    if backend == "redis":
        redis_publisher = RedisEventPublisher(redis_url=settings.event_redis_url, channel=settings.event_channel)
        return _CountingPublisher(FallbackEventPublisher(primary=redis_publisher, fallback=memory))
    return _CountingPublisher(memory)


event_publisher = _build_event_publisher()
