"""
Event bus boundary.

The engine publishes notifications and consumes request topics through any
object satisfying the EventBus protocol. InProcessEventBus is a synchronous
implementation for in-process wiring and tests.
"""

import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol

from knowledge_engine.logger import get_logger


logger = get_logger(__name__)


# Topics consumed by the engine
KNOWLEDGE_CREATED = "knowledge_created"
RELATIONSHIP_DISCOVERED = "relationship_discovered"
SEMANTIC_ANALYSIS_REQUESTED = "semantic_analysis_requested"
INFERENCE_REQUESTED = "inference_requested"
CONTEXT_UPDATE = "context_update"

# Topics published by the engine
NODE_CREATED = "knowledge_node_created"
RELATIONSHIP_CREATED = "knowledge_relationship_created"
ANALYSIS_COMPLETED = "semantic_analysis_completed"
INFERENCES_GENERATED = "inferences_generated"
ENGINE_INITIALIZED = "knowledge_graph_initialized"
ANALYSIS_RESULT = "semantic_analysis_result"
INFERENCE_RESULT = "inference_result"


@dataclass
class Event:
    """A message on the bus."""

    type: str
    source: str
    data: Dict[str, Any] = field(default_factory=dict)
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    id: str = field(default_factory=lambda: f"event_{uuid.uuid4().hex}")
    priority: str = "medium"  # low, medium, high, critical


EventHandler = Callable[[Event], Any]


@dataclass
class Subscription:
    id: str
    event_type: str
    handler: EventHandler
    active: bool = True


class EventBus(Protocol):
    """Publish/subscribe interface the engine depends on."""

    def subscribe(self, event_type: str, handler: EventHandler) -> Subscription: ...

    def unsubscribe(self, subscription_id: str) -> bool: ...

    def publish(self, event: Event) -> None: ...


class InProcessEventBus:
    """
    Synchronous event bus.

    Handlers run on the publishing thread in subscription order. A handler
    that raises is logged and deactivated; the remaining handlers still run.
    Recent events are kept in a bounded history.
    """

    def __init__(self, max_history: int = 1000):
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._history: Deque[Event] = deque(maxlen=max_history)
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, handler: EventHandler) -> Subscription:
        subscription = Subscription(
            id=f"sub_{uuid.uuid4().hex}", event_type=event_type, handler=handler
        )
        with self._lock:
            self._subscriptions.setdefault(event_type, []).append(subscription)
        logger.debug("Subscribed to event type", event_type=event_type,
                     subscription_id=subscription.id)
        return subscription

    def unsubscribe(self, subscription_id: str) -> bool:
        with self._lock:
            for event_type, subscriptions in list(self._subscriptions.items()):
                for index, sub in enumerate(subscriptions):
                    if sub.id == subscription_id:
                        del subscriptions[index]
                        if not subscriptions:
                            del self._subscriptions[event_type]
                        return True
        return False

    def publish(self, event: Event) -> None:
        with self._lock:
            self._history.append(event)
            targets = [s for s in self._subscriptions.get(event.type, []) if s.active]

        for subscription in targets:
            try:
                subscription.handler(event)
            except Exception as e:
                subscription.active = False
                logger.error(
                    "Event handler failed; subscription deactivated",
                    event_type=event.type,
                    subscription_id=subscription.id,
                    error_type=type(e).__name__,
                    error_message=str(e),
                )

    def create_event(
        self,
        event_type: str,
        source: str,
        data: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
        priority: str = "medium",
    ) -> Event:
        return Event(
            type=event_type,
            source=source,
            data=data or {},
            context=context or {},
            priority=priority,
        )

    def publish_simple(
        self,
        event_type: str,
        source: str,
        data: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
        priority: str = "medium",
    ) -> Event:
        event = self.create_event(event_type, source, data, context, priority)
        self.publish(event)
        return event

    def get_event_history(self, event_type: Optional[str] = None) -> List[Event]:
        with self._lock:
            if event_type is None:
                return list(self._history)
            return [e for e in self._history if e.type == event_type]

    def get_subscription_count(self, event_type: str) -> int:
        with self._lock:
            return sum(1 for s in self._subscriptions.get(event_type, []) if s.active)

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()
