"""
Semantic analysis: entity, concept, relationship, sentiment and context extraction.
"""

from knowledge_engine.semantic.analyzer import SemanticAnalyzer
from knowledge_engine.semantic.models import (
    Concept,
    Entity,
    SemanticContext,
    SemanticRelationship,
    SemanticResult,
    SentimentAnalysis,
)
from knowledge_engine.semantic.stages import (
    CapitalizedEntityExtractor,
    CrossProductRelationshipExtractor,
    DefaultContextSummarizer,
    LexiconSentimentAnalyzer,
    VocabularyConceptExtractor,
)

__all__ = [
    "CapitalizedEntityExtractor",
    "Concept",
    "CrossProductRelationshipExtractor",
    "DefaultContextSummarizer",
    "Entity",
    "LexiconSentimentAnalyzer",
    "SemanticAnalyzer",
    "SemanticContext",
    "SemanticRelationship",
    "SemanticResult",
    "SentimentAnalysis",
    "VocabularyConceptExtractor",
]
