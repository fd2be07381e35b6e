"""
Knowledge Graph Engine Demo

This example builds a small design-knowledge graph, walks it, runs semantic
analysis and inference, and finishes with a maintenance sweep.
"""

from knowledge_engine import InProcessEventBus, KnowledgeGraphEngine
from knowledge_engine.events import INFERENCES_GENERATED, NODE_CREATED


def main():
    print("=" * 70)
    print("Knowledge Graph Engine Demo")
    print("=" * 70)

    bus = InProcessEventBus()
    bus.subscribe(NODE_CREATED, lambda e: print(f"  [EVENT] node created: {e.data['node']['content']}"))
    bus.subscribe(
        INFERENCES_GENERATED,
        lambda e: print(f"  [EVENT] {e.data['inference_count']} inferences "
                        f"(mean confidence {e.data['average_confidence']:.2f})"),
    )

    engine = KnowledgeGraphEngine(
        {"graph_optimization": {"importance_threshold": 0.55}},
        event_bus=bus,
    )
    engine.initialize()

    print("\n1. Adding knowledge...")
    contrast = engine.add_node("concept", "Color contrast affects readability", "system", 0.9)
    reading = engine.add_node("concept", "Readability affects user engagement", "system", 0.8)
    retention = engine.add_node("entity", "User engagement affects retention", "analytics", 0.7)
    clutter = engine.add_node("attribute", "Clutter", "user", 0.4)

    print("\n2. Connecting nodes...")
    engine.create_relationship(contrast.node_id, reading.node_id, "causes", strength=0.8)
    engine.create_relationship(reading.node_id, retention.node_id, "causes", strength=0.7)
    engine.create_relationship(contrast.node_id, clutter.node_id, "opposite_of", strength=0.5)
    missing = engine.create_relationship(contrast.node_id, "no-such-node", "causes")
    print(f"   Relationship to unknown node: {missing}")

    print("\n3. Traversing from the contrast node...")
    for related in engine.find_related_nodes(contrast.node_id):
        print(f"   depth {related.depth}  strength {related.strength:.3f}  {related.node.content}")

    print("\n4. Semantic analysis...")
    result = engine.analyze("How should the Dashboard interface handle user errors?")
    print(f"   Entities: {[e.name for e in result.entities]}")
    print(f"   Concepts: {[c.name for c in result.concepts]}")
    print(f"   Intent: {result.context.intent}, tone: {result.context.tone}")

    print("\n5. Inference...")
    for inference in engine.infer("How does contrast affect engagement?"):
        print(f"   {inference.confidence:.2f}  {inference.conclusion}")
        for line in inference.reasoning:
            print(f"         - {line}")

    print("\n6. Maintenance sweep...")
    report = engine.sweep()
    print(f"   Evicted: {len(report.evicted)} of {report.nodes_before} nodes")

    print("\n7. Statistics...")
    for key, value in engine.get_stats().to_dict().items():
        print(f"   {key}: {value}")

    engine.destroy()
    print("\nDone.")


if __name__ == "__main__":
    main()
