"""
Semantic analyzer.

Runs the extraction pipeline (entities, concepts, relationships, sentiment,
context) over a content/context pair and memoizes the result by that pair.
Entity enrichment reads the graph, so each cache entry remembers the store
revision it was linked at and is relinked on a hit after the graph changes.
"""

import threading
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

from knowledge_engine.cache import BoundedCache, make_cache_key
from knowledge_engine.config import EngineConfig
from knowledge_engine.error_handler import ErrorHandler, get_error_handler
from knowledge_engine.exceptions import AnalysisError
from knowledge_engine.graph.store import GraphStore
from knowledge_engine.logger import get_logger
from knowledge_engine.semantic.models import (
    Entity,
    SemanticContext,
    SemanticResult,
    SentimentAnalysis,
)
from knowledge_engine.semantic.stages import (
    CapitalizedEntityExtractor,
    ConceptExtractor,
    ContextSummarizer,
    CrossProductRelationshipExtractor,
    DefaultContextSummarizer,
    EntityExtractor,
    LexiconSentimentAnalyzer,
    RelationshipExtractor,
    SentimentAnalyzer,
    VocabularyConceptExtractor,
)


logger = get_logger(__name__)

MAX_ENRICHED_NODES = 10


class SemanticAnalyzer:
    """
    Memoized semantic analysis pipeline.

    Stage failures are caught per call: the failing stage contributes its
    empty default, the error is logged, and the degraded result is returned
    without being cached or counted.
    """

    def __init__(
        self,
        store: GraphStore,
        config: Optional[EngineConfig] = None,
        entity_extractor: Optional[EntityExtractor] = None,
        concept_extractor: Optional[ConceptExtractor] = None,
        relationship_extractor: Optional[RelationshipExtractor] = None,
        sentiment_analyzer: Optional[SentimentAnalyzer] = None,
        context_summarizer: Optional[ContextSummarizer] = None,
        error_handler: Optional[ErrorHandler] = None,
        on_analysis: Optional[Callable[[SemanticResult], None]] = None,
    ):
        self.store = store
        self.config = config or store.config
        settings = self.config.semantic_understanding

        self.entity_extractor = entity_extractor or CapitalizedEntityExtractor()
        self.concept_extractor = concept_extractor or VocabularyConceptExtractor(
            vocabulary=list(settings.concept_vocabulary)
        )
        self.relationship_extractor = relationship_extractor or CrossProductRelationshipExtractor()
        self.sentiment_analyzer = sentiment_analyzer or LexiconSentimentAnalyzer()
        self.context_summarizer = context_summarizer or DefaultContextSummarizer(
            context_awareness=settings.context_awareness
        )
        self.error_handler = error_handler or get_error_handler()
        self.on_analysis = on_analysis

        self._cache = BoundedCache(max_size=settings.cache_size, ttl=settings.cache_ttl)
        self._count_lock = threading.Lock()
        self._analysis_count = 0

    @property
    def analysis_count(self) -> int:
        return self._analysis_count

    def apply_config(self, config: EngineConfig) -> None:
        """Adopt a new configuration; the cache is resized and cleared."""
        self.config = config
        settings = config.semantic_understanding
        if isinstance(self.concept_extractor, VocabularyConceptExtractor):
            self.concept_extractor.vocabulary = list(settings.concept_vocabulary)
        if isinstance(self.context_summarizer, DefaultContextSummarizer):
            self.context_summarizer.context_awareness = settings.context_awareness
        self._cache.resize(settings.cache_size, settings.cache_ttl)
        self._cache.clear()

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self):
        return self._cache.stats()

    def analyze(self, content: Any, context: Optional[Dict[str, Any]] = None) -> SemanticResult:
        """
        Analyze ``content`` in ``context``.

        Returns:
            The SemanticResult; identical arguments return the same cached
            object, whose entity links are refreshed if the graph has changed
            since they were computed.
        """
        settings = self.config.semantic_understanding
        if not settings.enabled:
            return SemanticResult()

        key = make_cache_key({"content": content, "context": context})
        if key is not None:
            hit, cached = self._cache.get(key)
            if hit:
                result, revision = cached
                if revision != self.store.revision:
                    self._relink(key, result)
                return result

        revision = self.store.revision
        result, degraded = self._run_pipeline(content, context)
        if degraded:
            return result

        if key is not None:
            self._cache.put(key, (result, revision))
        with self._count_lock:
            self._analysis_count += 1

        logger.debug("Semantic analysis completed", **result.summary())
        if self.on_analysis is not None:
            self.on_analysis(result)
        return result

    def _relink(self, key: Hashable, result: SemanticResult) -> None:
        """Re-run entity enrichment on a cached result against the current graph."""
        revision = self.store.revision
        if self.config.semantic_understanding.entity_recognition and result.entities:
            try:
                self._enrich_entities(result.entities)
            except Exception as e:
                error = AnalysisError(f"Stage 'enrichment' failed: {e}", stage="enrichment")
                self.error_handler.handle_error(error, {"operation": "analyze"})
                return
        self._cache.replace(key, (result, revision))

    def summarize(self, content: Any, context: Optional[Dict[str, Any]] = None) -> SemanticContext:
        """Context summary only; not cached and not counted."""
        result, _ = self._run_pipeline(content, context, enrich=False)
        return result.context

    def _run_pipeline(
        self, content: Any, context: Optional[Dict[str, Any]], enrich: bool = True
    ) -> Tuple[SemanticResult, bool]:
        settings = self.config.semantic_understanding
        degraded = False

        def run(stage: str, call: Callable[[], Any], default: Any) -> Any:
            nonlocal degraded
            try:
                return call()
            except Exception as e:
                degraded = True
                error = AnalysisError(f"Stage '{stage}' failed: {e}", stage=stage)
                self.error_handler.handle_error(error, {"operation": "analyze"})
                return default

        entities: List[Entity] = []
        if settings.entity_recognition:
            entities = run("entities", lambda: self.entity_extractor.extract(content), [])
            if enrich and entities:
                run("enrichment", lambda: self._enrich_entities(entities), None)

        concepts = run("concepts", lambda: self.concept_extractor.extract(content), [])
        relationships = run(
            "relationships",
            lambda: self.relationship_extractor.extract(content, entities, concepts),
            [],
        )

        sentiment = SentimentAnalysis()
        if settings.sentiment_analysis:
            sentiment = run(
                "sentiment", lambda: self.sentiment_analyzer.analyze(content), SentimentAnalysis()
            )

        semantic_context = run(
            "context",
            lambda: self.context_summarizer.summarize(
                content, context, entities, concepts, sentiment
            ),
            SemanticContext(),
        )

        result = SemanticResult(
            entities=entities,
            concepts=concepts,
            relationships=relationships,
            sentiment=sentiment,
            context=semantic_context,
        )
        return result, degraded

    def _enrich_entities(self, entities: List[Entity]) -> None:
        """Attach ids of graph nodes whose content mentions each entity."""
        for entity in entities:
            matches = self.store.search_nodes(entity.name)
            entity.relationships = [node.node_id for node in matches[:MAX_ENRICHED_NODES]]
