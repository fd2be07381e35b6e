"""
Knowledge Graph Engine.

An in-memory typed knowledge graph with semantic analysis, confidence-ranked
inference and a background maintenance sweep.
"""

from knowledge_engine.config import ConfigLoader, EngineConfig
from knowledge_engine.engine import KnowledgeGraphEngine
from knowledge_engine.events import Event, InProcessEventBus
from knowledge_engine.exceptions import (
    AnalysisError,
    ConfigurationError,
    EventBusError,
    InferenceError,
    KnowledgeEngineError,
    MaintenanceError,
    ValidationError,
)
from knowledge_engine.graph import (
    GraphStore,
    KnowledgeGraphStats,
    KnowledgeNode,
    KnowledgeRelationship,
    NodeKind,
    RelatedNode,
    RelationshipType,
)
from knowledge_engine.inference import InferenceEngine, InferenceResult
from knowledge_engine.maintenance import GraphMaintainer, SweepReport
from knowledge_engine.semantic import SemanticAnalyzer, SemanticResult
from knowledge_engine.version import __version__

__all__ = [
    "AnalysisError",
    "ConfigLoader",
    "ConfigurationError",
    "EngineConfig",
    "Event",
    "EventBusError",
    "GraphMaintainer",
    "GraphStore",
    "InProcessEventBus",
    "InferenceEngine",
    "InferenceError",
    "InferenceResult",
    "KnowledgeEngineError",
    "KnowledgeGraphEngine",
    "KnowledgeGraphStats",
    "KnowledgeNode",
    "KnowledgeRelationship",
    "MaintenanceError",
    "NodeKind",
    "RelatedNode",
    "RelationshipType",
    "SemanticAnalyzer",
    "SemanticResult",
    "SweepReport",
    "ValidationError",
    "__version__",
]
