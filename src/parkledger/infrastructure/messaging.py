# File: src/parkledger/infrastructure/messaging.py
"""
Messaging Infrastructure for the Parking Ledger

Event sinks receive ledger notifications after a state change has been
committed. Delivery is best effort: a sink logs its own failures and never
raises back into the ledger, so a broken subscriber or broker cannot undo
a lot creation, entry or exit.

Sinks:
1. EventBus - in-process publish/subscribe keyed by event type
2. RedisEventSink - JSON messages on a Redis Pub/Sub channel
3. CompositeEventSink - fan-out to several sinks
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import json
import logging

import redis

from ..domain.models import DomainEvent


class EventType(str, Enum):
    """Ledger event types"""
    PARKING_LOT_CREATED = "parking_lot.created"
    ENTERED = "parking.entered"
    LEFT = "parking.left"


# ============================================================================
# EVENT HANDLERS
# ============================================================================

class EventHandler(ABC):
    """Abstract base class for event handlers"""

    @abstractmethod
    def handle(self, event: DomainEvent) -> None:
        """Handle a domain event"""
        pass

    def can_handle(self, event: DomainEvent) -> bool:
        """Check if this handler can handle the event"""
        return True


class CallbackEventHandler(EventHandler):
    """Adapts a plain callable to the handler interface"""

    def __init__(self, callback: Callable[[DomainEvent], None]):
        self.callback = callback

    def handle(self, event: DomainEvent) -> None:
        self.callback(event)


class RecordingEventHandler(EventHandler):
    """Keeps every event it receives, useful for audits and tests"""

    def __init__(self):
        self.events: List[DomainEvent] = []

    def handle(self, event: DomainEvent) -> None:
        self.events.append(event)


# ============================================================================
# EVENT BUS (In-memory)
# ============================================================================

class EventBus:
    """
    In-memory event bus for intra-process event publishing

    Handler errors are logged and do not stop delivery to the remaining
    handlers.
    """

    def __init__(self):
        self._subscribers: Dict[EventType, List[EventHandler]] = {}
        self._logger = logging.getLogger(self.__class__.__name__)

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe to events of a specific type"""
        handlers = self._subscribers.setdefault(EventType(event_type), [])
        if handler not in handlers:
            handlers.append(handler)
            self._logger.debug(f"Subscribed {handler.__class__.__name__} to {event_type}")

    def subscribe_all(self, handler: EventHandler) -> None:
        for event_type in EventType:
            self.subscribe(event_type, handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Unsubscribe handler from events"""
        handlers = self._subscribers.get(EventType(event_type), [])
        if handler in handlers:
            handlers.remove(handler)
            self._logger.debug(f"Unsubscribed {handler.__class__.__name__} from {event_type}")

    def publish(self, event: DomainEvent) -> None:
        """Publish an event to all subscribers"""
        self._logger.info(f"Publishing event: {event.event_type} (ID: {event.event_id})")

        try:
            event_type = EventType(event.event_type)
        except ValueError:
            self._logger.warning(f"Dropping event of unknown type {event.event_type}")
            return

        for handler in list(self._subscribers.get(event_type, [])):
            if not handler.can_handle(event):
                continue
            try:
                handler.handle(event)
                self._logger.debug(f"Event handled by {handler.__class__.__name__}")
            except Exception as e:
                self._logger.error(
                    f"Error handling event {event.event_type} with {handler.__class__.__name__}: {e}"
                )

    def clear_subscribers(self) -> None:
        """Clear all subscribers (for testing)"""
        self._subscribers.clear()


# ============================================================================
# REDIS EVENT SINK
# ============================================================================

class RedisEventSink:
    """Publishes ledger events as JSON on a Redis Pub/Sub channel"""

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        channel: str = "parkledger.events",
        client: Optional[Any] = None,
        **kwargs
    ):
        self.redis_url = redis_url
        self.channel = channel
        self._logger = logging.getLogger(self.__class__.__name__)
        self.redis_client = client if client is not None else redis.Redis.from_url(redis_url, **kwargs)

    def publish(self, event: DomainEvent) -> None:
        try:
            message_json = json.dumps(event.to_dict(), default=str)
            receivers = self.redis_client.publish(self.channel, message_json)
            self._logger.debug(f"Published {event.event_type} to {self.channel} ({receivers} receivers)")
        except (redis.RedisError, TypeError, ValueError) as e:
            self._logger.error(f"Error publishing {event.event_type} to Redis: {e}")

    def close(self) -> None:
        try:
            self.redis_client.close()
        except redis.RedisError as e:
            self._logger.error(f"Error closing Redis connection: {e}")


class CompositeEventSink:
    """Forwards each event to every configured sink"""

    def __init__(self, sinks: Optional[List[Any]] = None):
        self.sinks: List[Any] = list(sinks or [])
        self._logger = logging.getLogger(self.__class__.__name__)

    def add(self, sink: Any) -> None:
        self.sinks.append(sink)

    def publish(self, event: DomainEvent) -> None:
        for sink in self.sinks:
            try:
                sink.publish(event)
            except Exception as e:
                self._logger.error(f"Event sink {sink.__class__.__name__} failed: {e}")
