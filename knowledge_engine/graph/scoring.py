"""
Deterministic metadata scoring for new nodes.
"""

import re
from typing import Any, Iterable, Set

from knowledge_engine.graph.models import NodeKind

BASE_IMPORTANCE = 0.5
KIND_IMPORTANCE_BONUS = {
    NodeKind.CONCEPT: 0.2,
    NodeKind.ENTITY: 0.1,
}
LONG_CONTENT_LENGTH = 50
LONG_CONTENT_BONUS = 0.1

TRUSTED_SOURCE_SCORE = 0.9
UNTRUSTED_SOURCE_SCORE = 0.6

_TOKEN_STRIP = re.compile(r"^\W+|\W+$")


def tokenize(text: str, min_length: int = 0) -> list:
    """Lowercase whitespace tokens with surrounding punctuation removed."""
    tokens = []
    for raw in text.lower().split():
        token = _TOKEN_STRIP.sub("", raw)
        if token and len(token) > min_length:
            tokens.append(token)
    return tokens


def calculate_importance(content: Any, kind: NodeKind) -> float:
    """Base 0.5, plus 0.2 for concepts, 0.1 for entities, 0.1 for text over 50 chars."""
    importance = BASE_IMPORTANCE + KIND_IMPORTANCE_BONUS.get(kind, 0.0)
    if isinstance(content, str) and len(content) > LONG_CONTENT_LENGTH:
        importance += LONG_CONTENT_BONUS
    return min(importance, 1.0)


def calculate_trustworthiness(source: str, trusted_sources: Iterable[str]) -> float:
    return TRUSTED_SOURCE_SCORE if source in set(trusted_sources) else UNTRUSTED_SOURCE_SCORE


def calculate_complexity(content: Any) -> float:
    """Text length / 100, capped at 1.0; 0.5 for non-text content."""
    if isinstance(content, str):
        return min(len(content) / 100.0, 1.0)
    return 0.5


def extract_semantic_tags(content: Any, vocabulary: Iterable[str]) -> Set[str]:
    if not isinstance(content, str):
        return set()
    known = {word.lower() for word in vocabulary}
    return {token for token in tokenize(content) if token in known}
