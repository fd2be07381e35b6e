"""
Semantic analysis pipeline stages.

Each stage is a small object behind a Protocol so it can be swapped for a
smarter implementation (spaCy, an LLM, ...) without touching the analyzer.
The defaults here are cheap, deterministic heuristics.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from knowledge_engine.config import DEFAULT_CONCEPT_VOCABULARY
from knowledge_engine.graph.scoring import calculate_complexity, tokenize
from knowledge_engine.semantic.models import (
    Concept,
    Entity,
    SemanticContext,
    SemanticRelationship,
    SentimentAnalysis,
)


class EntityExtractor(Protocol):
    def extract(self, content: Any) -> List[Entity]: ...


class ConceptExtractor(Protocol):
    def extract(self, content: Any) -> List[Concept]: ...


class RelationshipExtractor(Protocol):
    def extract(
        self, content: Any, entities: List[Entity], concepts: List[Concept]
    ) -> List[SemanticRelationship]: ...


class SentimentAnalyzer(Protocol):
    def analyze(self, content: Any) -> SentimentAnalysis: ...


class ContextSummarizer(Protocol):
    def summarize(
        self,
        content: Any,
        context: Optional[Dict[str, Any]],
        entities: List[Entity],
        concepts: List[Concept],
        sentiment: SentimentAnalysis,
    ) -> SemanticContext: ...


@dataclass
class CapitalizedEntityExtractor:
    """Words longer than ``min_length`` that start with a capital letter."""

    min_length: int = 3
    confidence: float = 0.7

    def extract(self, content: Any) -> List[Entity]:
        if not isinstance(content, str):
            return []
        entities: Dict[str, Entity] = {}
        for raw in content.split():
            word = raw.strip(".,;:!?\"'()[]{}")
            if len(word) > self.min_length and word[0].isupper():
                entity_id = f"entity_{word.lower()}"
                entities.setdefault(
                    entity_id,
                    Entity(id=entity_id, name=word, confidence=self.confidence),
                )
        return list(entities.values())


@dataclass
class VocabularyConceptExtractor:
    """Concepts whose keyword appears anywhere in the text."""

    vocabulary: List[str] = field(default_factory=lambda: list(DEFAULT_CONCEPT_VOCABULARY))
    confidence: float = 0.8

    def extract(self, content: Any) -> List[Concept]:
        if not isinstance(content, str):
            return []
        lowered = content.lower()
        return [
            Concept(
                id=f"concept_{keyword}",
                name=keyword,
                definition=f"Related to {keyword}",
                confidence=self.confidence,
            )
            for keyword in self.vocabulary
            if keyword.lower() in lowered
        ]


@dataclass
class CrossProductRelationshipExtractor:
    """One generic related_to link per (entity, concept) pair."""

    strength: float = 0.6
    confidence: float = 0.7

    def extract(
        self, content: Any, entities: List[Entity], concepts: List[Concept]
    ) -> List[SemanticRelationship]:
        return [
            SemanticRelationship(
                source=entity.id,
                target=concept.id,
                type="related_to",
                strength=self.strength,
                confidence=self.confidence,
            )
            for entity in entities
            for concept in concepts
        ]


POSITIVE_WORDS = frozenset({
    "good", "great", "excellent", "love", "like", "clean", "clear", "beautiful",
    "intuitive", "happy", "easy", "helpful", "improve", "improved", "elegant",
    "consistent", "nice", "enjoy",
})
NEGATIVE_WORDS = frozenset({
    "bad", "poor", "hate", "confusing", "cluttered", "ugly", "difficult", "hard",
    "broken", "slow", "inconsistent", "frustrating", "error", "fail", "failed",
    "annoying",
})
EMOTION_WORDS = {
    "joy": frozenset({"love", "happy", "delight", "enjoy", "great", "beautiful"}),
    "trust": frozenset({"reliable", "consistent", "trust", "clear", "secure", "safe"}),
    "anticipation": frozenset({"expect", "soon", "plan", "will", "next", "upcoming"}),
    "anger": frozenset({"hate", "angry", "frustrating", "annoying"}),
    "fear": frozenset({"afraid", "worry", "risk", "unsafe"}),
    "sadness": frozenset({"sad", "disappointed", "unhappy"}),
}


class LexiconSentimentAnalyzer:
    """Word-list sentiment; identical input always yields identical scores."""

    def analyze(self, content: Any) -> SentimentAnalysis:
        if not isinstance(content, str):
            return SentimentAnalysis()
        tokens = tokenize(content)
        if not tokens:
            return SentimentAnalysis()

        total = len(tokens)
        positive = sum(1 for t in tokens if t in POSITIVE_WORDS)
        negative = sum(1 for t in tokens if t in NEGATIVE_WORDS)
        polar = positive + negative

        emotions = {}
        for emotion, words in EMOTION_WORDS.items():
            hits = sum(1 for t in tokens if t in words)
            if hits:
                emotions[emotion] = hits / total

        return SentimentAnalysis(
            overall=(positive - negative) / polar if polar else 0.0,
            positive=positive / total,
            negative=negative / total,
            neutral=(total - polar) / total,
            emotions=emotions,
        )


QUESTION_WORDS = frozenset({"how", "what", "why", "when", "where", "which", "who", "does",
                            "do", "is", "are", "can", "should"})
REQUEST_WORDS = frozenset({"create", "add", "make", "design", "build", "show", "find",
                           "help", "suggest", "generate", "please"})
TONE_MARGIN = 0.1


@dataclass
class DefaultContextSummarizer:
    """Derives topic/intent/tone/complexity and lets caller context override them."""

    context_awareness: bool = True

    def summarize(
        self,
        content: Any,
        context: Optional[Dict[str, Any]],
        entities: List[Entity],
        concepts: List[Concept],
        sentiment: SentimentAnalysis,
    ) -> SemanticContext:
        caller = context if (self.context_awareness and isinstance(context, dict)) else {}

        if concepts:
            topic = concepts[0].name
        elif entities:
            topic = entities[0].name.lower()
        else:
            topic = "general"

        intent = "unknown"
        if isinstance(content, str):
            tokens = tokenize(content)
            if content.strip().endswith("?") or (tokens and tokens[0] in QUESTION_WORDS):
                intent = "question"
            elif tokens and tokens[0] in REQUEST_WORDS:
                intent = "request"
            elif tokens:
                intent = "statement"

        if sentiment.overall > TONE_MARGIN:
            tone = "positive"
        elif sentiment.overall < -TONE_MARGIN:
            tone = "negative"
        else:
            tone = "neutral"

        return SemanticContext(
            domain=str(caller.get("domain") or "general"),
            topic=str(caller.get("topic") or topic),
            intent=str(caller.get("intent") or intent),
            tone=str(caller.get("tone") or tone),
            complexity=calculate_complexity(content),
        )
