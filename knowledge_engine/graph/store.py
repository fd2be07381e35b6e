"""
In-memory graph store.

Nodes and relationships are kept in flat id-indexed tables with outgoing and
incoming adjacency indexes. Every structural mutation runs under the write
side of a reader/writer lock; reads share the read side. Deleting a node
removes every relationship that touches it in the same critical section, so
no reader ever sees a relationship whose endpoint is gone.
"""

import time
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from knowledge_engine.config import EngineConfig
from knowledge_engine.exceptions import ValidationError
from knowledge_engine.graph.locking import ReadWriteLock
from knowledge_engine.graph.models import (
    KnowledgeContext,
    KnowledgeGraphStats,
    KnowledgeNode,
    KnowledgeRelationship,
    NodeKind,
    NodeMetadata,
    RelatedNode,
    RelationshipMetadata,
    RelationshipType,
    check_unit_interval,
)
from knowledge_engine.graph.scoring import (
    calculate_complexity,
    calculate_importance,
    calculate_trustworthiness,
    extract_semantic_tags,
)

RELEVANCE_GAIN_PER_STRENGTH = 0.1

_FILTER_ALIASES = {"type": "kind", "minConfidence": "min_confidence"}
_FILTER_KEYS = {"kind", "min_confidence", "domain", "tags"}


class GraphStore:
    """
    Owns the knowledge nodes and relationships.

    Supports:
    - Node creation with deterministic metadata scoring
    - Relationship creation (returns None for unknown endpoints)
    - Cascading node deletion
    - Bounded depth-first traversal with per-hop strength decay
    - Filtered content search
    - Aggregate statistics recomputed on demand
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or EngineConfig()
        self._clock = clock
        self._lock = ReadWriteLock()

        # node_id -> KnowledgeNode
        self._nodes: Dict[str, KnowledgeNode] = {}
        # relationship_id -> KnowledgeRelationship
        self._relationships: Dict[str, KnowledgeRelationship] = {}
        # node_id -> relationship ids where the node is the source
        self._outgoing: Dict[str, List[str]] = {}
        # node_id -> relationship ids where the node is the target
        self._incoming: Dict[str, List[str]] = {}

        self._revision = 0

    @property
    def revision(self) -> int:
        """Counter bumped by every structural mutation."""
        return self._revision

    # ==================== Nodes ====================

    def add_node(
        self,
        kind: Union[NodeKind, str],
        content: Any,
        source: str,
        confidence: float = 0.5,
        context: Optional[Union[KnowledgeContext, Dict[str, Any]]] = None,
    ) -> KnowledgeNode:
        """
        Create a node and add it to the graph.

        Args:
            kind: Node kind (enum member or string value).
            content: Payload, typically text.
            source: Provenance string; trusted sources score higher.
            confidence: Certainty in [0, 1].
            context: Optional KnowledgeContext or partial mapping.

        Returns:
            The created node.

        Raises:
            ValidationError: If kind is unknown or confidence is out of range.
        """
        kind = NodeKind.parse(kind)
        if not isinstance(context, KnowledgeContext):
            context = KnowledgeContext.from_dict(context)

        node = KnowledgeNode(
            node_id=str(uuid.uuid4()),
            kind=kind,
            content=content,
            confidence=confidence,
            source=source,
            created_at=self._clock(),
            metadata=NodeMetadata(
                importance=calculate_importance(content, kind),
                trustworthiness=calculate_trustworthiness(source, self.config.trusted_sources),
                complexity=calculate_complexity(content),
            ),
            semantic_tags=extract_semantic_tags(
                content, self.config.semantic_understanding.tag_vocabulary
            ),
            context=context,
        )

        with self._lock.write():
            self._nodes[node.node_id] = node
            self._outgoing[node.node_id] = []
            self._incoming[node.node_id] = []
            self._revision += 1

        return node

    def get_node(self, node_id: str, record_usage: bool = False) -> Optional[KnowledgeNode]:
        if record_usage:
            with self._lock.write():
                node = self._nodes.get(node_id)
                if node is not None:
                    node.metadata.usage_count += 1
                return node
        with self._lock.read():
            return self._nodes.get(node_id)

    def contains_node(self, node_id: str) -> bool:
        with self._lock.read():
            return node_id in self._nodes

    def get_all_nodes(self) -> List[KnowledgeNode]:
        with self._lock.read():
            return list(self._nodes.values())

    def node_count(self) -> int:
        with self._lock.read():
            return len(self._nodes)

    def delete_node(self, node_id: str) -> bool:
        """
        Remove a node and every relationship that references it.

        Returns:
            True if the node was removed, False if it doesn't exist.
        """
        with self._lock.write():
            if node_id not in self._nodes:
                return False

            for rel_id in list(self._outgoing.get(node_id, [])):
                self._remove_relationship_locked(rel_id)
            for rel_id in list(self._incoming.get(node_id, [])):
                self._remove_relationship_locked(rel_id)

            del self._outgoing[node_id]
            del self._incoming[node_id]
            del self._nodes[node_id]
            self._revision += 1
            return True

    def record_usage(self, node_ids: Iterable[str]) -> None:
        """Increment usage_count for each existing node in ``node_ids``."""
        with self._lock.write():
            for node_id in node_ids:
                node = self._nodes.get(node_id)
                if node is not None:
                    node.metadata.usage_count += 1

    def refresh_freshness(self, now: float, retention_window: float) -> int:
        """
        Recompute freshness as 1 - age / retention_window, floored at 0.

        Returns:
            Number of nodes updated.
        """
        with self._lock.write():
            for node in self._nodes.values():
                age = max(0.0, now - node.created_at)
                node.metadata.freshness = max(0.0, 1.0 - age / retention_window)
            return len(self._nodes)

    # ==================== Relationships ====================

    def create_relationship(
        self,
        source_id: str,
        target_id: str,
        relationship_type: Union[RelationshipType, str],
        strength: float = 0.5,
        confidence: float = 0.5,
        metadata: Optional[Union[RelationshipMetadata, Dict[str, Any]]] = None,
    ) -> Optional[KnowledgeRelationship]:
        """
        Connect two existing nodes.

        Returns:
            The relationship, or None if either endpoint is unknown.

        Raises:
            ValidationError: If the type is unknown or strength/confidence are out of range.
        """
        relationship_type = RelationshipType.parse(relationship_type)
        strength = check_unit_interval("strength", strength)
        confidence = check_unit_interval("confidence", confidence)
        if not isinstance(metadata, RelationshipMetadata):
            metadata = RelationshipMetadata.from_dict(metadata)

        with self._lock.write():
            source = self._nodes.get(source_id)
            target = self._nodes.get(target_id)
            if source is None or target is None:
                return None

            relationship = KnowledgeRelationship(
                relationship_id=str(uuid.uuid4()),
                source_id=source_id,
                target_id=target_id,
                relationship_type=relationship_type,
                strength=strength,
                confidence=confidence,
                metadata=metadata,
                created_at=self._clock(),
            )

            self._relationships[relationship.relationship_id] = relationship
            self._outgoing[source_id].append(relationship.relationship_id)
            self._incoming[target_id].append(relationship.relationship_id)

            gain = RELEVANCE_GAIN_PER_STRENGTH * strength
            for node in {source_id: source, target_id: target}.values():
                node.metadata.relevance = min(1.0, node.metadata.relevance + gain)

            self._revision += 1
            return relationship

    def get_relationship(self, relationship_id: str) -> Optional[KnowledgeRelationship]:
        with self._lock.read():
            return self._relationships.get(relationship_id)

    def get_all_relationships(self) -> List[KnowledgeRelationship]:
        with self._lock.read():
            return list(self._relationships.values())

    def relationship_count(self) -> int:
        with self._lock.read():
            return len(self._relationships)

    def get_relationships(
        self,
        node_id: str,
        direction: str = "traversable",
        relationship_type: Optional[Union[RelationshipType, str]] = None,
    ) -> List[KnowledgeRelationship]:
        """
        Relationships attached to a node.

        Args:
            node_id: ID of the node.
            direction: "traversable" (outgoing plus bidirectional incoming),
                "outgoing", "incoming" or "both".
            relationship_type: Optional type filter.

        Returns:
            Matching relationships; empty for unknown nodes.
        """
        if direction not in ("traversable", "outgoing", "incoming", "both"):
            raise ValidationError(f"Unknown direction '{direction}'")
        rel_type = (
            RelationshipType.parse(relationship_type) if relationship_type is not None else None
        )
        with self._lock.read():
            if node_id not in self._nodes:
                return []
            if direction == "traversable":
                rels = self._traversable_locked(node_id)
            else:
                rels = []
                if direction in ("outgoing", "both"):
                    rels.extend(self._relationships[r] for r in self._outgoing[node_id])
                if direction in ("incoming", "both"):
                    for rel_id in self._incoming[node_id]:
                        rel = self._relationships[rel_id]
                        if rel not in rels:
                            rels.append(rel)
            if rel_type is not None:
                rels = [r for r in rels if r.relationship_type == rel_type]
            return rels

    def delete_relationship(self, relationship_id: str) -> bool:
        with self._lock.write():
            removed = self._remove_relationship_locked(relationship_id)
            if removed:
                self._revision += 1
            return removed

    def _remove_relationship_locked(self, relationship_id: str) -> bool:
        rel = self._relationships.pop(relationship_id, None)
        if rel is None:
            return False
        outgoing = self._outgoing.get(rel.source_id)
        if outgoing is not None and relationship_id in outgoing:
            outgoing.remove(relationship_id)
        incoming = self._incoming.get(rel.target_id)
        if incoming is not None and relationship_id in incoming:
            incoming.remove(relationship_id)
        return True

    def _traversable_locked(self, node_id: str) -> List[KnowledgeRelationship]:
        rels = [self._relationships[r] for r in self._outgoing[node_id]]
        for rel_id in self._incoming[node_id]:
            rel = self._relationships[rel_id]
            # self-loops are already listed as outgoing
            if rel.bidirectional and rel.source_id != node_id:
                rels.append(rel)
        return rels

    # ==================== Traversal & Search ====================

    def find_related_nodes(
        self,
        node_id: str,
        relationship_type: Optional[Union[RelationshipType, str]] = None,
        max_depth: Optional[int] = None,
    ) -> List[RelatedNode]:
        """
        Depth-first traversal from ``node_id``.

        A node reached over relationship ``r`` at hop index ``d`` (0 for a
        direct neighbour) gets strength ``r.strength * decay ** d``. Each node
        is visited at most once per call and paths never exceed ``max_depth``
        relationships.

        Returns:
            Results sorted by strength descending; ties keep discovery order.
            Empty when relationship mapping is disabled.
        """
        mapping = self.config.relationship_mapping
        if not mapping.enabled:
            return []
        if max_depth is None:
            max_depth = mapping.max_depth
        decay = mapping.decay_factor
        rel_type = (
            RelationshipType.parse(relationship_type) if relationship_type is not None else None
        )

        results: List[RelatedNode] = []
        with self._lock.read():
            if node_id not in self._nodes:
                return []

            visited = {node_id}

            def dfs(current_id: str, path: List[str], depth: int) -> None:
                if depth >= max_depth:
                    return
                for rel in self._traversable_locked(current_id):
                    if rel_type is not None and rel.relationship_type != rel_type:
                        continue
                    next_id = rel.other_end(current_id)
                    next_node = self._nodes.get(next_id)
                    if next_node is None or next_id in visited:
                        continue
                    visited.add(next_id)
                    next_path = path + [rel.relationship_id]
                    results.append(
                        RelatedNode(
                            node=next_node,
                            path=next_path,
                            strength=rel.strength * (decay ** depth),
                        )
                    )
                    dfs(next_id, next_path, depth + 1)

            dfs(node_id, [], 0)

        results.sort(key=lambda r: -r.strength)
        return results

    def search_nodes(
        self, query: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[KnowledgeNode]:
        """
        Filter nodes, then substring-match their text content.

        Args:
            query: Case-insensitive substring; "" matches every text node.
            filters: Optional ``kind``, ``min_confidence``, ``domain`` and
                ``tags`` (any overlap) criteria.

        Returns:
            Matching nodes sorted by importance descending.
        """
        criteria = {_FILTER_ALIASES.get(k, k): v for k, v in (filters or {}).items()}
        unknown = set(criteria) - _FILTER_KEYS
        if unknown:
            names = ", ".join(sorted(map(str, unknown)))
            raise ValidationError(f"Unknown search filter(s): {names}")

        kind = NodeKind.parse(criteria["kind"]) if criteria.get("kind") is not None else None
        min_confidence = criteria.get("min_confidence")
        domain = criteria.get("domain")
        tags = set(criteria["tags"]) if criteria.get("tags") else None
        needle = query.lower()

        with self._lock.read():
            matches = []
            for node in self._nodes.values():
                if kind is not None and node.kind != kind:
                    continue
                if min_confidence is not None and node.confidence < min_confidence:
                    continue
                if domain is not None and node.context.domain != domain:
                    continue
                if tags is not None and not (tags & node.semantic_tags):
                    continue
                if node.text is None or needle not in node.text.lower():
                    continue
                matches.append(node)

        matches.sort(key=lambda n: -n.metadata.importance)
        return matches

    # ==================== Statistics & Integrity ====================

    def compute_stats(self) -> KnowledgeGraphStats:
        """Node/relationship totals, mean confidence and relationships per node."""
        with self._lock.read():
            node_count = len(self._nodes)
            rel_count = len(self._relationships)
            if node_count == 0:
                return KnowledgeGraphStats(total_relationships=rel_count)
            total_confidence = sum(node.confidence for node in self._nodes.values())
            return KnowledgeGraphStats(
                total_nodes=node_count,
                total_relationships=rel_count,
                average_confidence=total_confidence / node_count,
                average_connectivity=rel_count / node_count,
            )

    def validate_integrity(self) -> Dict[str, Any]:
        """
        Check that every relationship references live nodes and that the
        adjacency indexes agree with the relationship table.
        """
        issues = []
        with self._lock.read():
            for rel_id, rel in self._relationships.items():
                if rel.source_id not in self._nodes:
                    issues.append(
                        f"Relationship {rel_id} references missing source {rel.source_id}"
                    )
                if rel.target_id not in self._nodes:
                    issues.append(
                        f"Relationship {rel_id} references missing target {rel.target_id}"
                    )
                if rel_id not in self._outgoing.get(rel.source_id, []):
                    issues.append(f"Relationship {rel_id} missing from outgoing index")
                if rel_id not in self._incoming.get(rel.target_id, []):
                    issues.append(f"Relationship {rel_id} missing from incoming index")

            for index_name, index in (("outgoing", self._outgoing), ("incoming", self._incoming)):
                for node_id, rel_ids in index.items():
                    if node_id not in self._nodes:
                        issues.append(f"{index_name} index holds deleted node {node_id}")
                    for rel_id in rel_ids:
                        if rel_id not in self._relationships:
                            issues.append(
                                f"{index_name} index for {node_id} references "
                                f"missing relationship {rel_id}"
                            )

            return {
                "valid": not issues,
                "issues": issues,
                "node_count": len(self._nodes),
                "relationship_count": len(self._relationships),
            }

    def clear(self) -> None:
        with self._lock.write():
            self._nodes.clear()
            self._relationships.clear()
            self._outgoing.clear()
            self._incoming.clear()
            self._revision += 1

    def __len__(self) -> int:
        return self.node_count()

    def __contains__(self, node_id: str) -> bool:
        return self.contains_node(node_id)
