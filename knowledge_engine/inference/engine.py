"""
Inference engine.

Answers free-text queries from the knowledge graph with ranked, explainable
conclusions:
1. Relevance selection: nodes whose content tokens or semantic tags overlap
   the query tokens (substring either way), ordered by importance.
2. Per-node inference for the top ``max_results`` relevant nodes, confidence
   damped and filtered by the confidence threshold.
3. One corroboration inference when two or more nodes are relevant.
4. A weak fallback inference when nothing survived but evidence exists.
5. Ranking by confidence, truncated to ``max_results``.
"""

import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from knowledge_engine.cache import BoundedCache, make_cache_key
from knowledge_engine.config import EngineConfig
from knowledge_engine.error_handler import ErrorHandler, get_error_handler
from knowledge_engine.exceptions import InferenceError
from knowledge_engine.graph.models import KnowledgeNode, RelationshipType
from knowledge_engine.graph.scoring import tokenize
from knowledge_engine.graph.store import GraphStore
from knowledge_engine.logger import get_logger
from knowledge_engine.semantic.analyzer import SemanticAnalyzer


logger = get_logger(__name__)

MIN_TOKEN_LENGTH = 2  # tokens must be longer than this to count


@dataclass
class InferenceResult:
    """A conclusion with its confidence, justification and supporting node ids."""

    id: str
    conclusion: str
    confidence: float
    reasoning: List[str] = field(default_factory=list)
    evidence: List[str] = field(default_factory=list)
    assumptions: List[str] = field(default_factory=list)
    alternatives: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "conclusion": self.conclusion,
            "confidence": self.confidence,
            "reasoning": list(self.reasoning),
            "evidence": list(self.evidence),
            "assumptions": list(self.assumptions),
            "alternatives": list(self.alternatives),
        }


def _overlaps(query_tokens: List[str], candidates: List[str]) -> bool:
    for q in query_tokens:
        for c in candidates:
            if q in c or c in q:
                return True
    return False


class InferenceEngine:
    """Confidence-ranked inference over the graph store."""

    def __init__(
        self,
        store: GraphStore,
        analyzer: Optional[SemanticAnalyzer] = None,
        config: Optional[EngineConfig] = None,
        error_handler: Optional[ErrorHandler] = None,
        on_inference: Optional[Callable[[str, List[InferenceResult]], None]] = None,
    ):
        self.store = store
        self.analyzer = analyzer
        self.config = config or store.config
        self.error_handler = error_handler or get_error_handler()
        self.on_inference = on_inference

        settings = self.config.inference_engine
        self._cache = BoundedCache(max_size=settings.cache_size, ttl=settings.cache_ttl)
        self._count_lock = threading.Lock()
        self._inference_count = 0

    @property
    def inference_count(self) -> int:
        return self._inference_count

    def apply_config(self, config: EngineConfig) -> None:
        """Adopt a new configuration; the cache is resized and cleared."""
        self.config = config
        settings = config.inference_engine
        self._cache.resize(settings.cache_size, settings.cache_ttl)
        self._cache.clear()

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self):
        return self._cache.stats()

    def infer(
        self,
        query: str,
        context: Optional[Dict[str, Any]] = None,
        max_results: Optional[int] = None,
    ) -> List[InferenceResult]:
        """
        Generate inferences for ``query``.

        Returns:
            Inferences sorted by confidence descending, at most ``max_results``;
            an empty list when nothing in the graph is relevant or the engine
            is disabled.
        """
        settings = self.config.inference_engine
        if not settings.enabled:
            return []
        if max_results is None:
            max_results = settings.max_inferences

        payload_key = make_cache_key(
            {"query": query, "context": context, "max_results": max_results}
        )
        key = None if payload_key is None else (payload_key, self.store.revision)
        if key is not None:
            hit, cached = self._cache.get(key)
            if hit:
                return cached

        try:
            results = self._generate(query, context, max_results)
        except Exception as e:
            error = InferenceError(f"Inference failed: {e}", query=query)
            self.error_handler.handle_error(error, {"operation": "infer"})
            return []

        if key is not None:
            self._cache.put(key, results)
        with self._count_lock:
            self._inference_count += 1

        evidence_ids = {node_id for result in results for node_id in result.evidence}
        if evidence_ids:
            self.store.record_usage(evidence_ids)

        logger.debug("Inferences generated", query=query, inference_count=len(results))
        if self.on_inference is not None:
            self.on_inference(query, results)
        return results

    def find_relevant_nodes(self, query: str) -> List[KnowledgeNode]:
        """Nodes overlapping the query by content token or tag, most important first."""
        query_tokens = tokenize(query, MIN_TOKEN_LENGTH)
        if not query_tokens:
            return []

        relevant = []
        for node in self.store.get_all_nodes():
            if node.text is None:
                continue
            content_tokens = tokenize(node.text, MIN_TOKEN_LENGTH)
            tags = [tag.lower() for tag in node.semantic_tags]
            if _overlaps(query_tokens, content_tokens) or _overlaps(query_tokens, tags):
                relevant.append(node)

        relevant.sort(key=lambda n: -n.metadata.importance)
        return relevant

    def _generate(
        self, query: str, context: Optional[Dict[str, Any]], max_results: int
    ) -> List[InferenceResult]:
        settings = self.config.inference_engine
        relevant = self.find_relevant_nodes(query)
        if not relevant:
            return []

        relevant_ids = {node.node_id for node in relevant}
        inferences: List[InferenceResult] = []

        for node in relevant[:max_results]:
            inference = self._infer_from_node(node, relevant_ids)
            if inference.confidence >= settings.confidence_threshold:
                inferences.append(inference)

        query_notes = self._describe_query(query, context)

        if len(relevant) >= 2:
            inferences.append(
                InferenceResult(
                    id=f"chain_{uuid.uuid4().hex}",
                    conclusion=f"Multiple sources support the query: {query}",
                    confidence=settings.chain_confidence,
                    reasoning=["Multiple relevant nodes found", "Cross-referencing information"]
                    + query_notes,
                    evidence=[node.node_id for node in relevant],
                    assumptions=["Nodes are independent", "Information is consistent"],
                )
            )

        if not inferences:
            inferences.append(
                InferenceResult(
                    id=f"general_{uuid.uuid4().hex}",
                    conclusion=f"Based on available knowledge: {query}",
                    confidence=settings.fallback_confidence,
                    reasoning=["General knowledge analysis", "Pattern recognition"] + query_notes,
                    evidence=[node.node_id for node in relevant],
                    assumptions=["Information is relevant", "Patterns are consistent"],
                )
            )

        inferences.sort(key=lambda inf: -inf.confidence)
        return inferences[:max_results]

    def _follows_relationships(self) -> bool:
        mapping = self.config.relationship_mapping
        return mapping.enabled and mapping.inference_enabled

    def _infer_from_node(self, node: KnowledgeNode, relevant_ids: set) -> InferenceResult:
        """
        Per-node inference, explained by the node's relationships to other
        relevant nodes. At most ``reasoning_depth`` relationships are cited, and
        ``similar_to`` links weaker than ``similarity_threshold`` are not cited.
        """
        settings = self.config.inference_engine
        similarity_threshold = self.config.relationship_mapping.similarity_threshold
        reasoning = [f"Node {node.node_id} contains relevant information"]
        evidence = [node.node_id]
        alternatives = []

        relationships = []
        if self._follows_relationships():
            relationships = self.store.get_relationships(node.node_id, direction="both")

        cited = 0
        for rel in relationships:
            other_id = rel.other_end(node.node_id)
            other = self.store.get_node(other_id)
            if other is None:
                continue
            if rel.relationship_type == RelationshipType.OPPOSITE_OF:
                alternatives.append(str(other.content))
            elif (
                rel.relationship_type == RelationshipType.SIMILAR_TO
                and rel.strength < similarity_threshold
            ):
                continue
            elif other_id in relevant_ids and cited < settings.reasoning_depth:
                cited += 1
                source = node if rel.source_id == node.node_id else other
                target = other if source is node else node
                reasoning.append(
                    f"{source.content} {rel.relationship_type.value.replace('_', ' ')} "
                    f"{target.content} (strength {rel.strength:.2f})"
                )
                if other_id not in evidence:
                    evidence.append(other_id)

        return InferenceResult(
            id=f"inference_{uuid.uuid4().hex}",
            conclusion=f"Based on {node.kind.value}: {node.content}",
            confidence=node.confidence * settings.damping_factor,
            reasoning=reasoning,
            evidence=evidence,
            assumptions=["Information is current and accurate"],
            alternatives=alternatives,
        )

    def _describe_query(self, query: str, context: Optional[Dict[str, Any]]) -> List[str]:
        if self.analyzer is None:
            return []
        summary = self.analyzer.summarize(query, context)
        return [f"Query intent: {summary.intent}", f"Query topic: {summary.topic}"]
