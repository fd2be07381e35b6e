"""
Records produced by semantic analysis.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class Entity:
    """An entity candidate found in text."""

    id: str
    name: str
    type: str = "concept"
    confidence: float = 0.7
    attributes: Dict[str, Any] = field(default_factory=dict)
    relationships: List[str] = field(default_factory=list)  # ids of graph nodes mentioning it

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "confidence": self.confidence,
            "attributes": dict(self.attributes),
            "relationships": list(self.relationships),
        }


@dataclass
class Concept:
    """A vocabulary concept found in text."""

    id: str
    name: str
    definition: str = ""
    category: str = "general"
    confidence: float = 0.8
    related_concepts: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "definition": self.definition,
            "category": self.category,
            "confidence": self.confidence,
            "related_concepts": list(self.related_concepts),
        }


@dataclass
class SemanticRelationship:
    source: str
    target: str
    type: str = "related_to"
    strength: float = 0.6
    confidence: float = 0.7

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "type": self.type,
            "strength": self.strength,
            "confidence": self.confidence,
        }


@dataclass
class SentimentAnalysis:
    """Overall score in [-1, 1], mass per polarity, and per-emotion weights."""

    overall: float = 0.0
    positive: float = 0.0
    negative: float = 0.0
    neutral: float = 1.0
    emotions: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "positive": self.positive,
            "negative": self.negative,
            "neutral": self.neutral,
            "emotions": dict(self.emotions),
        }


@dataclass
class SemanticContext:
    domain: str = "general"
    topic: str = "unknown"
    intent: str = "unknown"
    tone: str = "neutral"
    complexity: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "topic": self.topic,
            "intent": self.intent,
            "tone": self.tone,
            "complexity": self.complexity,
        }


@dataclass
class SemanticResult:
    entities: List[Entity] = field(default_factory=list)
    concepts: List[Concept] = field(default_factory=list)
    relationships: List[SemanticRelationship] = field(default_factory=list)
    sentiment: SentimentAnalysis = field(default_factory=SentimentAnalysis)
    context: SemanticContext = field(default_factory=SemanticContext)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entities": [e.to_dict() for e in self.entities],
            "concepts": [c.to_dict() for c in self.concepts],
            "relationships": [r.to_dict() for r in self.relationships],
            "sentiment": self.sentiment.to_dict(),
            "context": self.context.to_dict(),
        }

    def summary(self) -> Dict[str, Any]:
        """Counts and overall sentiment, for event payloads."""
        return {
            "entity_count": len(self.entities),
            "concept_count": len(self.concepts),
            "relationship_count": len(self.relationships),
            "sentiment": self.sentiment.overall,
        }
