"""
Exception hierarchy for the Knowledge Graph Engine.

Expected-empty outcomes (unknown endpoints, no matches) are not errors and
never raise; everything below is either a caller mistake or an internal fault.
"""

from typing import Any, Dict, Optional


class KnowledgeEngineError(Exception):
    """Base exception for the engine."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(KnowledgeEngineError, ValueError):
    """Invalid argument: unknown node kind or relationship type, value out of range."""

    pass


class ConfigurationError(KnowledgeEngineError, ValueError):
    """Malformed configuration file or partial configuration update."""

    pass


class AnalysisError(KnowledgeEngineError):
    """A semantic analysis stage failed."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.stage = stage
        if stage:
            self.context["stage"] = stage


class InferenceError(KnowledgeEngineError):
    """Inference generation failed."""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.query = query
        if query:
            self.context["query"] = query


class MaintenanceError(KnowledgeEngineError):
    """A maintenance action (eviction, freshness refresh) failed."""

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.node_id = node_id
        if node_id:
            self.context["node_id"] = node_id


class EventBusError(KnowledgeEngineError):
    """Publishing or subscribing on the event bus failed."""

    pass
