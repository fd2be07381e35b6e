"""
Error handling.

Internal faults raised inside analysis, inference, maintenance or event
handlers are routed here: they are logged with their context and turned into
an ErrorResponse so the caller can carry on.
"""

import traceback
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from knowledge_engine.exceptions import (
    AnalysisError,
    ConfigurationError,
    EventBusError,
    InferenceError,
    MaintenanceError,
    ValidationError,
)
from knowledge_engine.logger import get_logger


logger = get_logger(__name__)


@dataclass
class ErrorResponse:
    """Structured description of a handled error."""

    error_type: str
    error_message: str
    context: Dict[str, Any] = field(default_factory=dict)
    recoverable: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.error_type,
            "error_message": self.error_message,
            "context": dict(self.context),
            "recoverable": self.recoverable,
        }


class ErrorHandler:
    """Unified handler for internal engine faults."""

    def handle_error(
        self, error: Exception, context: Optional[Dict[str, Any]] = None
    ) -> ErrorResponse:
        """
        Log an error and classify it.

        Args:
            error: The caught exception
            context: Where the error happened (operation, ids, ...)

        Returns:
            ErrorResponse describing the error
        """
        context = dict(context or {})
        error_context = getattr(error, "context", None)
        if isinstance(error_context, dict):
            for key, value in error_context.items():
                context.setdefault(key, value)

        recoverable = not isinstance(error, (ConfigurationError, ValidationError))
        level = "warning" if isinstance(
            error, (AnalysisError, InferenceError, MaintenanceError, EventBusError)
        ) else "error"

        getattr(logger, level)(
            "Error occurred",
            context=context,
            error_type=type(error).__name__,
            error_message=str(error),
            stack_trace=traceback.format_exc(),
        )

        return ErrorResponse(
            error_type=type(error).__name__,
            error_message=str(error),
            context=context,
            recoverable=recoverable,
        )


# Global error handler instance
_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get the global error handler (singleton)."""
    global _error_handler
    if _error_handler is None:
        _error_handler = ErrorHandler()
    return _error_handler
