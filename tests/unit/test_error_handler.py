"""
Unit tests for the exception hierarchy and error handler.
"""

import io
import json

import pytest

import knowledge_engine.error_handler as error_handler_module
from knowledge_engine.error_handler import ErrorHandler, ErrorResponse, get_error_handler
from knowledge_engine.exceptions import (
    AnalysisError,
    ConfigurationError,
    EventBusError,
    InferenceError,
    KnowledgeEngineError,
    MaintenanceError,
    ValidationError,
)
from knowledge_engine.logger import StructuredLogger


@pytest.fixture
def log_output(monkeypatch):
    output = io.StringIO()
    monkeypatch.setattr(
        error_handler_module, "logger", StructuredLogger(level="DEBUG", output_stream=output)
    )
    return output


def last_entry(output):
    return json.loads(output.getvalue().strip().split("\n")[-1])


class TestExceptions:
    def test_hierarchy(self):
        for cls in (ValidationError, ConfigurationError, AnalysisError, InferenceError,
                    MaintenanceError, EventBusError):
            assert issubclass(cls, KnowledgeEngineError)
        assert issubclass(ValidationError, ValueError)
        assert issubclass(ConfigurationError, ValueError)

    def test_context_carries_details(self):
        assert AnalysisError("x", stage="sentiment").context == {"stage": "sentiment"}
        assert InferenceError("x", query="why?").context == {"query": "why?"}
        assert MaintenanceError("x", node_id="n1", context={"a": 1}).context == {
            "a": 1, "node_id": "n1"
        }
        assert KnowledgeEngineError("plain").context == {}


class TestErrorHandler:
    """Tests for ErrorHandler."""

    def test_internal_fault_is_recoverable_warning(self, log_output):
        response = ErrorHandler().handle_error(
            AnalysisError("stage blew up", stage="entities"), {"operation": "analyze"}
        )

        assert response.error_type == "AnalysisError"
        assert response.error_message == "stage blew up"
        assert response.recoverable is True
        assert response.context == {"operation": "analyze", "stage": "entities"}

        entry = last_entry(log_output)
        assert entry["level"] == "WARNING"
        assert entry["error_type"] == "AnalysisError"
        assert entry["context"]["stage"] == "entities"

    @pytest.mark.parametrize("error", [ValidationError("bad"), ConfigurationError("bad")])
    def test_caller_mistakes_not_recoverable(self, log_output, error):
        response = ErrorHandler().handle_error(error)

        assert response.recoverable is False
        assert last_entry(log_output)["level"] == "ERROR"

    def test_unknown_error_logged_as_error(self, log_output):
        response = ErrorHandler().handle_error(RuntimeError("boom"))

        assert response.error_type == "RuntimeError"
        assert response.recoverable is True
        assert last_entry(log_output)["level"] == "ERROR"

    def test_caller_context_wins(self, log_output):
        response = ErrorHandler().handle_error(
            MaintenanceError("x", node_id="n1"), {"node_id": "override"}
        )
        assert response.context["node_id"] == "override"

    def test_response_to_dict(self):
        response = ErrorResponse("InferenceError", "no data", {"query": "q"}, True)
        assert response.to_dict() == {
            "error_type": "InferenceError",
            "error_message": "no data",
            "context": {"query": "q"},
            "recoverable": True,
        }

    def test_get_error_handler_singleton(self):
        assert get_error_handler() is get_error_handler()
