"""
Data model for the knowledge graph.

Nodes and relationships live in flat id-indexed tables inside the GraphStore;
a node never holds its own relationship list. The per-node relationship view
is computed from the store's adjacency index on demand.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union
import time

from knowledge_engine.exceptions import ValidationError


class NodeKind(Enum):
    """Closed set of knowledge node kinds."""

    CONCEPT = "concept"
    ENTITY = "entity"
    RELATIONSHIP = "relationship"  # a relationship stored as content
    ATTRIBUTE = "attribute"
    CONTEXT = "context"

    @classmethod
    def parse(cls, value: Union["NodeKind", str]) -> "NodeKind":
        """Accept an enum member or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower().replace("-", "_"))
        except ValueError:
            raise ValidationError(
                f"Unknown node kind '{value}'",
                {"valid": [k.value for k in cls]},
            )


class RelationshipType(Enum):
    """Closed set of relationship types."""

    IS_A = "is_a"
    PART_OF = "part_of"
    RELATED_TO = "related_to"
    CAUSES = "causes"
    INFLUENCES = "influences"
    SIMILAR_TO = "similar_to"
    OPPOSITE_OF = "opposite_of"
    DEPENDS_ON = "depends_on"

    @classmethod
    def parse(cls, value: Union["RelationshipType", str]) -> "RelationshipType":
        """Accept an enum member or a string such as "is_a" or "is-a"."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower().replace("-", "_"))
        except ValueError:
            raise ValidationError(
                f"Unknown relationship type '{value}'",
                {"valid": [t.value for t in cls]},
            )

    @property
    def bidirectional(self) -> bool:
        return self in BIDIRECTIONAL_TYPES


BIDIRECTIONAL_TYPES = frozenset(
    {RelationshipType.RELATED_TO, RelationshipType.SIMILAR_TO, RelationshipType.OPPOSITE_OF}
)


def check_unit_interval(name: str, value: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number")
    if not (0.0 <= value <= 1.0):
        raise ValidationError(f"{name} must be between 0.0 and 1.0", {name: value})
    return float(value)


@dataclass
class NodeMetadata:
    """Scores attached to a node."""

    importance: float = 0.5
    relevance: float = 0.5
    freshness: float = 1.0
    usage_count: int = 0
    trustworthiness: float = 0.6
    complexity: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return {
            "importance": self.importance,
            "relevance": self.relevance,
            "freshness": self.freshness,
            "usage_count": self.usage_count,
            "trustworthiness": self.trustworthiness,
            "complexity": self.complexity,
        }


# camelCase keys as sent by event publishers
_CONTEXT_ALIASES = {
    "userContext": "user_context",
    "temporalContext": "temporal_context",
    "spatialContext": "spatial_context",
    "interactionContext": "interaction_context",
}


@dataclass
class KnowledgeContext:
    """Where a piece of knowledge applies."""

    domain: str = "general"
    subdomain: Optional[str] = None
    user_context: Optional[Dict[str, Any]] = None
    temporal_context: Optional[Dict[str, Any]] = None
    spatial_context: Optional[Dict[str, Any]] = None
    interaction_context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "subdomain": self.subdomain,
            "user_context": self.user_context,
            "temporal_context": self.temporal_context,
            "spatial_context": self.spatial_context,
            "interaction_context": self.interaction_context,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "KnowledgeContext":
        """Build a context from a partial mapping; missing domain means "general"."""
        if not data:
            return cls()
        values = {_CONTEXT_ALIASES.get(k, k): v for k, v in data.items()}
        return cls(
            domain=values.get("domain") or "general",
            subdomain=values.get("subdomain"),
            user_context=values.get("user_context"),
            temporal_context=values.get("temporal_context"),
            spatial_context=values.get("spatial_context"),
            interaction_context=values.get("interaction_context"),
        )


@dataclass
class KnowledgeNode:
    """
    Atomic unit of knowledge in the graph.

    Attributes:
        node_id: Unique identifier, stable for the node's lifetime.
        kind: One of the NodeKind values.
        content: Opaque payload, typically text.
        confidence: Certainty in [0, 1].
        source: Free-form provenance string.
        created_at: Creation timestamp (seconds).
        metadata: Importance, relevance, freshness, usage and other scores.
        semantic_tags: Unordered set of tags.
        context: Domain and optional sub-contexts.
    """

    node_id: str
    kind: NodeKind
    content: Any
    confidence: float = 0.5
    source: str = ""
    created_at: float = field(default_factory=time.time)
    metadata: NodeMetadata = field(default_factory=NodeMetadata)
    semantic_tags: Set[str] = field(default_factory=set)
    context: KnowledgeContext = field(default_factory=KnowledgeContext)

    def __post_init__(self) -> None:
        if not self.node_id:
            raise ValidationError("node_id cannot be empty")
        self.kind = NodeKind.parse(self.kind)
        self.confidence = check_unit_interval("confidence", self.confidence)
        self.semantic_tags = set(self.semantic_tags)

    @property
    def text(self) -> Optional[str]:
        """The content if it is textual, otherwise None."""
        return self.content if isinstance(self.content, str) else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "kind": self.kind.value,
            "content": self.content,
            "confidence": self.confidence,
            "source": self.source,
            "created_at": self.created_at,
            "metadata": self.metadata.to_dict(),
            "semantic_tags": sorted(self.semantic_tags),
            "context": self.context.to_dict(),
        }


@dataclass
class RelationshipMetadata:
    """Supporting information attached to a relationship."""

    evidence: List[str] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)
    temporal: Dict[str, float] = field(default_factory=dict)  # start_time, end_time, duration
    spatial: Optional[Dict[str, Any]] = None  # location, coordinates

    def to_dict(self) -> Dict[str, Any]:
        return {
            "evidence": list(self.evidence),
            "context": dict(self.context),
            "temporal": dict(self.temporal),
            "spatial": dict(self.spatial) if self.spatial is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RelationshipMetadata":
        if not data:
            return cls()
        return cls(
            evidence=list(data.get("evidence") or []),
            context=dict(data.get("context") or {}),
            temporal=dict(data.get("temporal") or {}),
            spatial=data.get("spatial"),
        )


@dataclass
class KnowledgeRelationship:
    """
    Typed, weighted edge between two nodes.

    A bidirectional relationship is stored once and is traversable from
    either endpoint with the same strength and confidence.
    """

    relationship_id: str
    source_id: str
    target_id: str
    relationship_type: RelationshipType
    strength: float = 0.5
    confidence: float = 0.5
    metadata: RelationshipMetadata = field(default_factory=RelationshipMetadata)
    created_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if not self.relationship_id:
            raise ValidationError("relationship_id cannot be empty")
        if not self.source_id or not self.target_id:
            raise ValidationError("source_id and target_id cannot be empty")
        self.relationship_type = RelationshipType.parse(self.relationship_type)
        self.strength = check_unit_interval("strength", self.strength)
        self.confidence = check_unit_interval("confidence", self.confidence)

    @property
    def bidirectional(self) -> bool:
        return self.relationship_type.bidirectional

    def touches(self, node_id: str) -> bool:
        return self.source_id == node_id or self.target_id == node_id

    def other_end(self, node_id: str) -> str:
        """The endpoint opposite ``node_id``."""
        return self.target_id if self.source_id == node_id else self.source_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "relationship_id": self.relationship_id,
            "source_id": self.source_id,
            "target_id": self.target_id,
            "relationship_type": self.relationship_type.value,
            "strength": self.strength,
            "confidence": self.confidence,
            "bidirectional": self.bidirectional,
            "metadata": self.metadata.to_dict(),
            "created_at": self.created_at,
        }


@dataclass
class RelatedNode:
    """One traversal result: node reached, relationship ids walked, decayed strength."""

    node: KnowledgeNode
    path: List[str]
    strength: float

    @property
    def depth(self) -> int:
        return len(self.path)


@dataclass
class GraphOptimizationStats:
    """Maintainer counters."""

    compression_ratio: float = 1.0
    cleanup_count: int = 0
    performance: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "compression_ratio": self.compression_ratio,
            "cleanup_count": self.cleanup_count,
            "performance": self.performance,
        }


@dataclass
class KnowledgeGraphStats:
    """Aggregate statistics, derived from store contents and engine counters."""

    total_nodes: int = 0
    total_relationships: int = 0
    average_confidence: float = 0.0
    average_connectivity: float = 0.0
    inference_count: int = 0
    semantic_analysis_count: int = 0
    graph_optimization: GraphOptimizationStats = field(default_factory=GraphOptimizationStats)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_nodes": self.total_nodes,
            "total_relationships": self.total_relationships,
            "average_confidence": self.average_confidence,
            "average_connectivity": self.average_connectivity,
            "inference_count": self.inference_count,
            "semantic_analysis_count": self.semantic_analysis_count,
            "graph_optimization": self.graph_optimization.to_dict(),
        }
