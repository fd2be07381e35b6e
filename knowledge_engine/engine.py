"""
Knowledge Graph Engine facade.

KnowledgeGraphEngine composes the graph store, semantic analyzer, inference
engine and graph maintainer behind one object with an explicit lifetime:

    engine = KnowledgeGraphEngine(config, event_bus=bus)
    engine.initialize()
    ...
    engine.destroy()

Mutations go straight to the store; the facade then publishes a best-effort
notification. Request topics on the bus are delegated to the same public
operations and answered with a response event tagged with the request id.
"""

import threading
import time
from typing import Any, Callable, Dict, List, Optional, Union

from knowledge_engine import events
from knowledge_engine.config import EngineConfig
from knowledge_engine.error_handler import ErrorHandler, get_error_handler
from knowledge_engine.events import Event, EventBus, EventHandler
from knowledge_engine.exceptions import ConfigurationError, EventBusError
from knowledge_engine.graph.models import (
    KnowledgeContext,
    KnowledgeGraphStats,
    KnowledgeNode,
    KnowledgeRelationship,
    NodeKind,
    RelatedNode,
    RelationshipMetadata,
    RelationshipType,
)
from knowledge_engine.graph.store import GraphStore
from knowledge_engine.inference.engine import InferenceEngine, InferenceResult
from knowledge_engine.logger import get_logger
from knowledge_engine.maintenance.maintainer import GraphMaintainer, SweepReport
from knowledge_engine.semantic.analyzer import SemanticAnalyzer
from knowledge_engine.semantic.models import SemanticResult


logger = get_logger(__name__)

EVENT_SOURCE = "knowledge_graph_engine"


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present key among snake_case / camelCase spellings."""
    for key in keys:
        if key in data:
            return data[key]
    return default


def _unwrap(data: Dict[str, Any], envelope: str) -> Dict[str, Any]:
    """The mapping nested under ``envelope`` if there is one, else ``data``."""
    inner = data.get(envelope)
    return inner if isinstance(inner, dict) else data


class KnowledgeGraphEngine:
    """
    Knowledge graph engine.

    Responsibilities:
    - Own the store, analyzer, inference engine and maintainer
    - Expose the public synchronous API
    - Bridge request topics on the event bus to that API
    - Start and stop the background maintainer with the engine lifetime
    """

    def __init__(
        self,
        config: Optional[Union[EngineConfig, Dict[str, Any]]] = None,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], float] = time.time,
        error_handler: Optional[ErrorHandler] = None,
    ):
        """
        Args:
            config: EngineConfig, or a partial mapping merged over the defaults.
            event_bus: Bus used for notifications and request topics.
            clock: Wall clock for node timestamps and sweep ages.
            error_handler: Handler for swallowed internal faults.
        """
        if config is None:
            config = EngineConfig()
        elif isinstance(config, dict):
            config = EngineConfig.from_dict(config)
        elif not isinstance(config, EngineConfig):
            raise ConfigurationError("config must be an EngineConfig or a mapping",
                                     {"value": config})

        self.config = config
        self.event_bus = event_bus
        self.error_handler = error_handler or get_error_handler()

        self.store = GraphStore(config, clock=clock)
        self.analyzer = SemanticAnalyzer(
            self.store,
            config,
            error_handler=self.error_handler,
            on_analysis=self._on_analysis,
        )
        self.inference = InferenceEngine(
            self.store,
            analyzer=self.analyzer,
            config=config,
            error_handler=self.error_handler,
            on_inference=self._on_inference,
        )
        self.maintainer = GraphMaintainer(
            self.store, config, clock=clock, error_handler=self.error_handler
        )

        self._lifecycle_lock = threading.Lock()
        self._config_lock = threading.Lock()
        self._initialized = False
        self._subscription_ids: List[str] = []
        self._current_context: Dict[str, Any] = {}

        get_logger(level=config.log_level)

    # ==================== Lifecycle ====================

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Subscribe to request topics and start the maintainer. No-op if already initialized."""
        with self._lifecycle_lock:
            if self._initialized:
                return

            if self.event_bus is not None:
                handlers: Dict[str, EventHandler] = {
                    events.KNOWLEDGE_CREATED: self._handle_knowledge_created,
                    events.RELATIONSHIP_DISCOVERED: self._handle_relationship_discovered,
                    events.SEMANTIC_ANALYSIS_REQUESTED: self._handle_analysis_requested,
                    events.INFERENCE_REQUESTED: self._handle_inference_requested,
                    events.CONTEXT_UPDATE: self._handle_context_update,
                }
                for topic, handler in handlers.items():
                    subscription = self.event_bus.subscribe(topic, self._guarded(topic, handler))
                    self._subscription_ids.append(subscription.id)

            if self.config.graph_optimization.enabled:
                self.maintainer.start()

            self._initialized = True

        logger.info("Knowledge graph engine initialized",
                    subscriptions=len(self._subscription_ids))
        self._publish(events.ENGINE_INITIALIZED, {
            "config": self.config.to_dict(),
            "stats": self.get_stats().to_dict(),
        })

    def destroy(self) -> None:
        """Stop the maintainer, release subscriptions and drop cached results."""
        with self._lifecycle_lock:
            self.maintainer.stop()

            if self.event_bus is not None:
                for subscription_id in self._subscription_ids:
                    self.event_bus.unsubscribe(subscription_id)
            self._subscription_ids = []

            self.analyzer.clear_cache()
            self.inference.clear_cache()
            self._initialized = False

        logger.info("Knowledge graph engine destroyed")

    def __enter__(self) -> "KnowledgeGraphEngine":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.destroy()

    # ==================== Nodes & Relationships ====================

    def add_node(
        self,
        kind: Union[NodeKind, str],
        content: Any,
        source: str,
        confidence: float = 0.5,
        context: Optional[Union[KnowledgeContext, Dict[str, Any]]] = None,
    ) -> KnowledgeNode:
        node = self.store.add_node(kind, content, source, confidence, context)
        logger.debug("Knowledge node added", node_id=node.node_id, kind=node.kind.value)
        self._publish(events.NODE_CREATED, {"node": node.to_dict()})
        return node

    def create_relationship(
        self,
        source_id: str,
        target_id: str,
        relationship_type: Union[RelationshipType, str],
        strength: float = 0.5,
        confidence: float = 0.5,
        metadata: Optional[Union[RelationshipMetadata, Dict[str, Any]]] = None,
    ) -> Optional[KnowledgeRelationship]:
        """Connect two nodes; returns None when either endpoint is unknown."""
        relationship = self.store.create_relationship(
            source_id, target_id, relationship_type, strength, confidence, metadata
        )
        if relationship is None:
            logger.debug("Relationship endpoints not found",
                         source_id=source_id, target_id=target_id)
            return None
        self._publish(events.RELATIONSHIP_CREATED, {"relationship": relationship.to_dict()})
        return relationship

    def get_node(self, node_id: str) -> Optional[KnowledgeNode]:
        return self.store.get_node(node_id, record_usage=True)

    def delete_node(self, node_id: str) -> bool:
        return self.store.delete_node(node_id)

    def delete_relationship(self, relationship_id: str) -> bool:
        return self.store.delete_relationship(relationship_id)

    def get_all_nodes(self) -> List[KnowledgeNode]:
        return self.store.get_all_nodes()

    def get_all_relationships(self) -> List[KnowledgeRelationship]:
        return self.store.get_all_relationships()

    def find_related_nodes(
        self,
        node_id: str,
        relationship_type: Optional[Union[RelationshipType, str]] = None,
        max_depth: Optional[int] = None,
    ) -> List[RelatedNode]:
        return self.store.find_related_nodes(node_id, relationship_type, max_depth)

    def search_nodes(
        self, query: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[KnowledgeNode]:
        return self.store.search_nodes(query, filters)

    # ==================== Analysis & Inference ====================

    def analyze(self, content: Any, context: Optional[Dict[str, Any]] = None) -> SemanticResult:
        return self.analyzer.analyze(content, context)

    def infer(
        self,
        query: str,
        context: Optional[Dict[str, Any]] = None,
        max_results: Optional[int] = None,
    ) -> List[InferenceResult]:
        return self.inference.infer(query, context, max_results)

    def _on_analysis(self, result: SemanticResult) -> None:
        self._publish(events.ANALYSIS_COMPLETED, result.summary())

    def _on_inference(self, query: str, results: List[InferenceResult]) -> None:
        average = sum(r.confidence for r in results) / len(results) if results else 0.0
        self._publish(events.INFERENCES_GENERATED, {
            "query": query,
            "inference_count": len(results),
            "average_confidence": average,
        })

    # ==================== Maintenance, Stats & Config ====================

    def sweep(self) -> Optional[SweepReport]:
        """Run one maintenance sweep now; None if one is already running."""
        return self.maintainer.sweep()

    def get_stats(self) -> KnowledgeGraphStats:
        stats = self.store.compute_stats()
        stats.inference_count = self.inference.inference_count
        stats.semantic_analysis_count = self.analyzer.analysis_count
        stats.graph_optimization = self.maintainer.get_stats()
        return stats

    def validate_integrity(self) -> Dict[str, Any]:
        return self.store.validate_integrity()

    @property
    def current_context(self) -> Dict[str, Any]:
        return dict(self._current_context)

    def update_config(self, partial: Dict[str, Any]) -> EngineConfig:
        """
        Merge ``partial`` into the current configuration.

        Unspecified fields keep their values. Caches are cleared, the log
        level is applied, and the maintainer timer is started or stopped to
        match ``graph_optimization.enabled``.

        Raises:
            ConfigurationError: If ``partial`` is malformed.
        """
        with self._config_lock:
            new_config = self.config.merged(partial)
            self.config = new_config
            self.store.config = new_config
            self.maintainer.config = new_config
            self.analyzer.apply_config(new_config)
            self.inference.apply_config(new_config)
            get_logger(level=new_config.log_level)

        if self._initialized:
            if new_config.graph_optimization.enabled:
                self.maintainer.start()
            else:
                self.maintainer.stop()

        logger.info("Configuration updated", keys=sorted(partial, key=str))
        return new_config

    # ==================== Events ====================

    def _publish(self, event_type: str, data: Dict[str, Any]) -> None:
        """Fire-and-forget publish; failures are logged, never raised."""
        if self.event_bus is None:
            return
        try:
            self.event_bus.publish(Event(type=event_type, source=EVENT_SOURCE, data=data))
        except Exception as e:
            self.error_handler.handle_error(
                EventBusError(f"Failed to publish {event_type}: {e}"),
                {"operation": "publish", "event_type": event_type},
            )

    def _guarded(self, topic: str, handler: EventHandler) -> EventHandler:
        def run(event: Event) -> None:
            try:
                handler(event)
            except Exception as e:
                self.error_handler.handle_error(
                    EventBusError(f"Handler for {topic} failed: {e}"),
                    {"operation": "handle_event", "event_type": topic, "event_id": event.id},
                )

        return run

    def _handle_knowledge_created(self, event: Event) -> None:
        data = _unwrap(event.data, "knowledge")
        content = data.get("content")
        if content is None:
            logger.debug("Skipping knowledge_created without content", event_id=event.id)
            return
        self.add_node(
            kind=_pick(data, "kind", "type", default=NodeKind.CONCEPT),
            content=content,
            source=_pick(data, "source", default=event.source),
            confidence=data.get("confidence", 0.5),
            context=data.get("context"),
        )

    def _handle_relationship_discovered(self, event: Event) -> None:
        data = _unwrap(event.data, "relationship")
        source_id = _pick(data, "source_id", "sourceId")
        target_id = _pick(data, "target_id", "targetId")
        if source_id is None or target_id is None:
            logger.debug("Skipping relationship_discovered without endpoints",
                         event_id=event.id)
            return
        self.create_relationship(
            source_id=source_id,
            target_id=target_id,
            relationship_type=_pick(data, "relationship_type", "type",
                                    default=RelationshipType.RELATED_TO),
            strength=data.get("strength", 0.5),
            confidence=data.get("confidence", 0.5),
            metadata=data.get("metadata"),
        )

    def _handle_analysis_requested(self, event: Event) -> None:
        data = event.data
        if data.get("content") is None:
            logger.debug("Skipping analysis request without content", event_id=event.id)
            return
        result = self.analyze(data["content"], data.get("context"))
        self._publish(events.ANALYSIS_RESULT, {
            "requestId": _pick(data, "requestId", "request_id", default=event.id),
            "result": result.to_dict(),
        })

    def _handle_inference_requested(self, event: Event) -> None:
        data = event.data
        query = data.get("query")
        if not isinstance(query, str) or not query:
            logger.debug("Skipping inference request without query", event_id=event.id)
            return
        results = self.infer(query, data.get("context"), _pick(data, "max_results", "maxResults"))
        self._publish(events.INFERENCE_RESULT, {
            "requestId": _pick(data, "requestId", "request_id", default=event.id),
            "inferences": [r.to_dict() for r in results],
        })

    def _handle_context_update(self, event: Event) -> None:
        self._current_context = dict(event.data)
        logger.info("Context updated", context=self._current_context)
