"""
Graph store: knowledge nodes, typed weighted relationships, traversal and search.
"""

from knowledge_engine.graph.models import (
    BIDIRECTIONAL_TYPES,
    GraphOptimizationStats,
    KnowledgeContext,
    KnowledgeGraphStats,
    KnowledgeNode,
    KnowledgeRelationship,
    NodeKind,
    NodeMetadata,
    RelatedNode,
    RelationshipMetadata,
    RelationshipType,
)
from knowledge_engine.graph.store import GraphStore

__all__ = [
    "BIDIRECTIONAL_TYPES",
    "GraphOptimizationStats",
    "GraphStore",
    "KnowledgeContext",
    "KnowledgeGraphStats",
    "KnowledgeNode",
    "KnowledgeRelationship",
    "NodeKind",
    "NodeMetadata",
    "RelatedNode",
    "RelationshipMetadata",
    "RelationshipType",
]
