"""
End-to-end tests for the Knowledge Graph Engine.

Drives the public facade through the event bus and directly, including
concurrent writers and the background maintainer.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from knowledge_engine import InProcessEventBus, KnowledgeGraphEngine, events


@pytest.fixture
def running_engine(clock):
    bus = InProcessEventBus()
    engine = KnowledgeGraphEngine(
        {"graph_optimization": {"cleanup_interval": 0.05}}, event_bus=bus, clock=clock
    )
    engine.initialize()
    yield engine, bus
    engine.destroy()


class TestEndToEnd:
    def test_causal_chain_inference(self, running_engine):
        engine, bus = running_engine
        x = engine.add_node("concept", "Contrast affects readability", "system", 0.9)
        m = engine.add_node("concept", "Readability affects comprehension", "system", 0.8)
        y = engine.add_node("concept", "Comprehension affects retention", "system", 0.7)
        engine.create_relationship(x.node_id, m.node_id, "causes", strength=0.8)
        engine.create_relationship(m.node_id, y.node_id, "causes", strength=0.7)

        results = engine.infer("How do X affect Y?")

        assert results
        assert results[0].confidence > 0.5
        confidences = [r.confidence for r in results]
        assert confidences == sorted(confidences, reverse=True)
        evidence = {node_id for r in results for node_id in r.evidence}
        assert evidence <= {x.node_id, m.node_id, y.node_id}

        related = engine.find_related_nodes(x.node_id)
        assert [r.node.node_id for r in related] == [m.node_id, y.node_id]
        assert related[1].strength == pytest.approx(0.7 * 0.8)

    def test_concurrent_add_node(self, running_engine):
        engine, bus = running_engine

        with ThreadPoolExecutor(max_workers=100) as pool:
            nodes = list(pool.map(
                lambda i: engine.add_node("concept", f"Concurrent {i}", "test"), range(100)
            ))

        assert engine.get_stats().total_nodes == 100
        assert len({n.node_id for n in nodes}) == 100
        assert len(bus.get_event_history(events.NODE_CREATED)) == 100

    def test_concurrent_mixed_readers_and_writers(self, running_engine):
        engine, bus = running_engine
        hub = engine.add_node("concept", "Hub", "system")
        errors = []
        start = threading.Barrier(20, timeout=10)

        def writer(i):
            start.wait()
            node = engine.add_node("entity", f"Spoke {i}", "test")
            engine.create_relationship(hub.node_id, node.node_id, "related_to", 0.5)
            if i % 3 == 0:
                engine.delete_node(node.node_id)

        def reader(i):
            start.wait()
            for _ in range(20):
                for result in engine.find_related_nodes(hub.node_id):
                    for rel_id in result.path:
                        if engine.store.get_relationship(rel_id) is None and \
                                engine.store.contains_node(result.node.node_id):
                            errors.append(rel_id)
                engine.search_nodes("spoke")
                engine.get_stats()

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(10)]
        threads += [threading.Thread(target=reader, args=(i,)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        assert engine.validate_integrity()["valid"] is True
        # spokes 0, 3, 6, 9 were deleted along with their relationships
        assert engine.get_stats().total_nodes == 1 + 6
        assert engine.get_stats().total_relationships == 6

    def test_background_sweep_evicts_and_cascades(self, clock):
        engine = KnowledgeGraphEngine(
            {"graph_optimization": {"cleanup_interval": 0.02, "stale_importance_threshold": 0.65}},
            clock=clock,
        )
        keep = engine.add_node("concept", "Palette", "system")
        stale = engine.add_node("attribute", "Old swatch", "user")
        engine.create_relationship(stale.node_id, keep.node_id, "part_of", 0.9)
        clock.advance(86400 + 60)

        swept = threading.Event()
        engine.maintainer.start()
        try:
            for _ in range(250):
                if engine.maintainer.sweep_count:
                    swept.set()
                    break
                swept.wait(0.02)
        finally:
            engine.destroy()

        assert swept.is_set()
        assert engine.get_node(stale.node_id) is None
        assert engine.get_node(keep.node_id) is keep
        assert engine.find_related_nodes(keep.node_id) == []
        assert engine.get_all_relationships() == []
        assert engine.get_stats().graph_optimization.cleanup_count == 1

    def test_request_response_round_trip(self, running_engine):
        engine, bus = running_engine
        answers = {}
        bus.subscribe(events.INFERENCE_RESULT,
                      lambda e: answers.setdefault(e.data["requestId"], e.data["inferences"]))

        bus.publish_simple(events.KNOWLEDGE_CREATED, "chat", {
            "type": "concept", "content": "Whitespace improves focus", "confidence": 0.9,
        })
        bus.publish_simple(events.KNOWLEDGE_CREATED, "chat", {
            "type": "concept", "content": "Focus improves task completion", "confidence": 0.85,
        })
        first, second = engine.get_all_nodes()
        bus.publish_simple(events.RELATIONSHIP_DISCOVERED, "chat", {
            "sourceId": first.node_id, "targetId": second.node_id, "type": "influences",
        })
        bus.publish_simple(events.INFERENCE_REQUESTED, "chat", {
            "query": "What improves focus?", "requestId": "r-42",
        })

        assert "r-42" in answers
        assert answers["r-42"][0]["confidence"] == pytest.approx(0.72)
        assert engine.get_stats().inference_count == 1
