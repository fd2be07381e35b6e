"""
Pytest configuration and fixtures for the test suite.
"""
import io

import pytest
from hypothesis import settings, Verbosity

import knowledge_engine.error_handler as error_handler_module
from knowledge_engine.config import EngineConfig
from knowledge_engine.engine import KnowledgeGraphEngine
from knowledge_engine.events import InProcessEventBus
from knowledge_engine.graph.store import GraphStore
from knowledge_engine.logger import configure_logger

# Configure Hypothesis for property-based testing
settings.register_profile("default", max_examples=100, verbosity=Verbosity.normal)
settings.register_profile("ci", max_examples=200, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=50, verbosity=Verbosity.normal)
settings.register_profile("debug", max_examples=10, verbosity=Verbosity.verbose)

# Load the default profile
settings.load_profile("default")


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def reset_singletons():
    """Keep log output out of stdout and give every test a fresh error handler."""
    configure_logger(level="DEBUG", output_stream=io.StringIO())
    error_handler_module._error_handler = None
    yield
    error_handler_module._error_handler = None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return GraphStore(EngineConfig(), clock=clock)


@pytest.fixture
def event_bus():
    return InProcessEventBus()


@pytest.fixture
def engine(event_bus, clock):
    engine = KnowledgeGraphEngine(event_bus=event_bus, clock=clock)
    yield engine
    engine.destroy()


@pytest.fixture
def chain(store):
    """A -causes(0.8)-> B -causes(0.7)-> C."""
    a = store.add_node("concept", "Alpha", "system", 0.9)
    b = store.add_node("concept", "Beta", "system", 0.8)
    c = store.add_node("concept", "Gamma", "system", 0.7)
    ab = store.create_relationship(a.node_id, b.node_id, "causes", strength=0.8)
    bc = store.create_relationship(b.node_id, c.node_id, "causes", strength=0.7)
    return a, b, c, ab, bc
