"""
Unit tests for the graph store.

Tests node and relationship creation, cascading deletion, traversal,
search and statistics.
"""

import pytest

from knowledge_engine.config import EngineConfig
from knowledge_engine.exceptions import ValidationError
from knowledge_engine.graph.models import NodeKind, RelationshipType
from knowledge_engine.graph.store import GraphStore


class TestAddNode:
    """Tests for node creation and metadata scoring."""

    def test_add_node_assigns_id_and_fields(self, store, clock):
        node = store.add_node("concept", "Grid layout", "system", 0.9)

        assert node.node_id
        assert node.kind == NodeKind.CONCEPT
        assert node.content == "Grid layout"
        assert node.confidence == 0.9
        assert node.source == "system"
        assert node.created_at == clock.now
        assert store.get_node(node.node_id) is node

    def test_ids_are_unique(self, store):
        ids = {store.add_node("entity", f"Item {i}", "user").node_id for i in range(50)}
        assert len(ids) == 50

    def test_default_confidence(self, store):
        node = store.add_node("attribute", "Blue", "user")
        assert node.confidence == 0.5

    @pytest.mark.parametrize(
        "kind,content,expected",
        [
            ("concept", "Short", 0.7),
            ("entity", "Short", 0.6),
            ("attribute", "Short", 0.5),
            ("context", "Short", 0.5),
            ("concept", "x" * 60, 0.8),
            ("attribute", "x" * 60, 0.6),
        ],
    )
    def test_importance_scoring(self, store, kind, content, expected):
        node = store.add_node(kind, content, "user")
        assert node.metadata.importance == pytest.approx(expected)

    def test_trustworthiness_scoring(self, store):
        assert store.add_node("concept", "a", "system").metadata.trustworthiness == 0.9
        assert store.add_node("concept", "b", "verified").metadata.trustworthiness == 0.9
        assert store.add_node("concept", "c", "official").metadata.trustworthiness == 0.9
        assert store.add_node("concept", "d", "forum").metadata.trustworthiness == 0.6

    def test_complexity_scoring(self, store):
        assert store.add_node("concept", "x" * 50, "user").metadata.complexity == pytest.approx(0.5)
        assert store.add_node("concept", "x" * 500, "user").metadata.complexity == 1.0
        assert store.add_node("concept", {"shape": "circle"}, "user").metadata.complexity == 0.5

    def test_semantic_tags(self, store):
        node = store.add_node("concept", "User interface design patterns", "user")
        assert node.semantic_tags == {"user", "interface", "design"}

    def test_context_from_mapping(self, store):
        node = store.add_node(
            "concept", "Tabs", "user", context={"domain": "ux", "userContext": {"id": "u1"}}
        )
        assert node.context.domain == "ux"
        assert node.context.user_context == {"id": "u1"}

    def test_unknown_kind_raises(self, store):
        with pytest.raises(ValidationError):
            store.add_node("opinion", "Nope", "user")
        assert store.node_count() == 0

    @pytest.mark.parametrize("confidence", [-0.1, 1.5])
    def test_confidence_out_of_range_raises(self, store, confidence):
        with pytest.raises(ValidationError):
            store.add_node("concept", "Nope", "user", confidence)
        assert store.node_count() == 0

    def test_revision_bumped(self, store):
        before = store.revision
        store.add_node("concept", "Rev", "user")
        assert store.revision == before + 1


class TestCreateRelationship:
    """Tests for relationship creation."""

    def test_create_relationship(self, store):
        a = store.add_node("concept", "A", "user")
        b = store.add_node("concept", "B", "user")

        rel = store.create_relationship(
            a.node_id, b.node_id, "depends-on", 0.9, 0.8, {"evidence": ["doc"]}
        )

        assert rel.source_id == a.node_id
        assert rel.target_id == b.node_id
        assert rel.relationship_type == RelationshipType.DEPENDS_ON
        assert rel.strength == 0.9
        assert rel.confidence == 0.8
        assert rel.metadata.evidence == ["doc"]
        assert rel.bidirectional is False
        assert store.get_relationship(rel.relationship_id) is rel

    @pytest.mark.parametrize("rel_type", ["related_to", "similar_to", "opposite_of"])
    def test_bidirectional_types(self, store, rel_type):
        a = store.add_node("concept", "A", "user")
        b = store.add_node("concept", "B", "user")
        rel = store.create_relationship(a.node_id, b.node_id, rel_type)
        assert rel.bidirectional is True

    def test_unknown_endpoint_returns_none(self, store):
        a = store.add_node("concept", "A", "user")
        revision = store.revision

        assert store.create_relationship(a.node_id, "missing", "causes") is None
        assert store.create_relationship("missing", a.node_id, "causes") is None

        assert store.node_count() == 1
        assert store.relationship_count() == 0
        assert store.revision == revision

    def test_invalid_type_raises(self, store):
        a = store.add_node("concept", "A", "user")
        b = store.add_node("concept", "B", "user")
        with pytest.raises(ValidationError):
            store.create_relationship(a.node_id, b.node_id, "friends_with")

    @pytest.mark.parametrize("field", ["strength", "confidence"])
    def test_out_of_range_values_raise(self, store, field):
        a = store.add_node("concept", "A", "user")
        b = store.add_node("concept", "B", "user")
        with pytest.raises(ValidationError):
            store.create_relationship(a.node_id, b.node_id, "causes", **{field: 1.2})
        assert store.relationship_count() == 0

    def test_relevance_gain_on_both_endpoints(self, store):
        a = store.add_node("concept", "A", "user")
        b = store.add_node("concept", "B", "user")

        store.create_relationship(a.node_id, b.node_id, "causes", strength=0.5)

        assert a.metadata.relevance == pytest.approx(0.55)
        assert b.metadata.relevance == pytest.approx(0.55)

    def test_relevance_capped(self, store):
        a = store.add_node("concept", "A", "user")
        b = store.add_node("concept", "B", "user")
        for _ in range(10):
            store.create_relationship(a.node_id, b.node_id, "causes", strength=1.0)
        assert a.metadata.relevance == 1.0


class TestGetRelationships:
    """Tests for the per-node relationship view."""

    def test_directions(self, store, chain):
        a, b, c, ab, bc = chain

        assert store.get_relationships(b.node_id, "outgoing") == [bc]
        assert store.get_relationships(b.node_id, "incoming") == [ab]
        assert store.get_relationships(b.node_id, "both") == [bc, ab]
        assert store.get_relationships(b.node_id) == [bc]

    def test_traversable_includes_incoming_bidirectional(self, store):
        a = store.add_node("concept", "A", "user")
        b = store.add_node("concept", "B", "user")
        rel = store.create_relationship(a.node_id, b.node_id, "similar_to")

        assert store.get_relationships(b.node_id) == [rel]

    def test_type_filter(self, store, chain):
        a, b, c, ab, bc = chain
        d = store.add_node("concept", "Delta", "user")
        store.create_relationship(b.node_id, d.node_id, "part_of")

        assert store.get_relationships(b.node_id, "outgoing", "causes") == [bc]

    def test_unknown_node_is_empty(self, store):
        assert store.get_relationships("missing") == []

    def test_invalid_direction_raises(self, store, chain):
        with pytest.raises(ValidationError):
            store.get_relationships(chain[0].node_id, "sideways")


class TestDeletion:
    """Tests for cascading deletion."""

    def test_delete_node_cascades(self, store, chain):
        a, b, c, ab, bc = chain

        assert store.delete_node(b.node_id) is True

        assert store.get_node(b.node_id) is None
        assert store.relationship_count() == 0
        assert store.get_relationship(ab.relationship_id) is None
        assert store.get_relationships(a.node_id, "both") == []
        assert store.get_relationships(c.node_id, "both") == []
        assert store.find_related_nodes(a.node_id) == []
        assert store.validate_integrity()["valid"] is True

    def test_delete_missing_node(self, store):
        assert store.delete_node("missing") is False

    def test_delete_node_with_self_loop(self, store):
        a = store.add_node("concept", "A", "user")
        store.create_relationship(a.node_id, a.node_id, "related_to")

        assert store.delete_node(a.node_id) is True
        assert store.relationship_count() == 0
        assert store.validate_integrity()["valid"] is True

    def test_delete_relationship(self, store, chain):
        a, b, c, ab, bc = chain

        assert store.delete_relationship(ab.relationship_id) is True
        assert store.delete_relationship(ab.relationship_id) is False

        assert store.get_relationships(a.node_id, "both") == []
        assert store.get_relationships(b.node_id, "both") == [bc]
        assert store.validate_integrity()["valid"] is True

    def test_clear(self, store, chain):
        store.clear()
        assert len(store) == 0
        assert store.relationship_count() == 0


class TestFindRelatedNodes:
    """Tests for bounded depth-first traversal."""

    def test_chain_strength_decay(self, store, chain):
        a, b, c, ab, bc = chain

        related = store.find_related_nodes(a.node_id)

        assert [r.node.node_id for r in related] == [b.node_id, c.node_id]
        assert related[0].strength == pytest.approx(0.8)
        assert related[1].strength == pytest.approx(0.7 * 0.8)
        assert related[0].path == [ab.relationship_id]
        assert related[1].path == [ab.relationship_id, bc.relationship_id]
        assert related[1].depth == 2

    def test_max_depth_limits_paths(self, store, chain):
        a, b, c, ab, bc = chain

        related = store.find_related_nodes(a.node_id, max_depth=1)

        assert [r.node.node_id for r in related] == [b.node_id]

    def test_directed_edges_not_followed_backwards(self, store, chain):
        a, b, c, ab, bc = chain
        assert store.find_related_nodes(c.node_id) == []

    def test_bidirectional_edge_from_both_ends(self, store):
        a = store.add_node("concept", "A", "user")
        b = store.add_node("concept", "B", "user")
        store.create_relationship(a.node_id, b.node_id, "related_to", strength=0.6, confidence=0.4)

        from_a = store.find_related_nodes(a.node_id)
        from_b = store.find_related_nodes(b.node_id)

        assert [r.node.node_id for r in from_a] == [b.node_id]
        assert [r.node.node_id for r in from_b] == [a.node_id]
        assert from_a[0].strength == pytest.approx(from_b[0].strength)

    def test_cycle_visits_each_node_once(self, store):
        a = store.add_node("concept", "A", "user")
        b = store.add_node("concept", "B", "user")
        c = store.add_node("concept", "C", "user")
        store.create_relationship(a.node_id, b.node_id, "causes", 0.9)
        store.create_relationship(b.node_id, c.node_id, "causes", 0.9)
        store.create_relationship(c.node_id, a.node_id, "causes", 0.9)

        related = store.find_related_nodes(a.node_id)

        ids = [r.node.node_id for r in related]
        assert sorted(ids) == sorted([b.node_id, c.node_id])
        assert a.node_id not in ids

    def test_type_filter(self, store, chain):
        a, b, c, ab, bc = chain
        d = store.add_node("concept", "Delta", "user")
        store.create_relationship(a.node_id, d.node_id, "part_of", strength=0.95)

        causes = store.find_related_nodes(a.node_id, relationship_type="causes")
        part_of = store.find_related_nodes(a.node_id, relationship_type=RelationshipType.PART_OF)

        assert [r.node.node_id for r in causes] == [b.node_id, c.node_id]
        assert [r.node.node_id for r in part_of] == [d.node_id]

    def test_sorted_by_strength_ties_keep_discovery_order(self, store):
        root = store.add_node("concept", "Root", "user")
        first = store.add_node("concept", "First", "user")
        second = store.add_node("concept", "Second", "user")
        strong = store.add_node("concept", "Strong", "user")
        store.create_relationship(root.node_id, first.node_id, "causes", 0.5)
        store.create_relationship(root.node_id, second.node_id, "causes", 0.5)
        store.create_relationship(root.node_id, strong.node_id, "causes", 0.9)

        related = store.find_related_nodes(root.node_id)

        assert [r.node.node_id for r in related] == [
            strong.node_id, first.node_id, second.node_id
        ]

    def test_decay_factor_from_config(self, clock):
        config = EngineConfig.from_dict({"relationship_mapping": {"decay_factor": 0.5}})
        store = GraphStore(config, clock=clock)
        a = store.add_node("concept", "A", "user")
        b = store.add_node("concept", "B", "user")
        c = store.add_node("concept", "C", "user")
        store.create_relationship(a.node_id, b.node_id, "causes", 1.0)
        store.create_relationship(b.node_id, c.node_id, "causes", 1.0)

        related = store.find_related_nodes(a.node_id)

        assert related[1].strength == pytest.approx(0.5)

    def test_unknown_start_node(self, store):
        assert store.find_related_nodes("missing") == []


class TestSearchNodes:
    """Tests for filtered search."""

    @pytest.fixture
    def populated(self, store):
        concept = store.add_node("concept", "Color contrast guidelines", "system", 0.9,
                                 context={"domain": "accessibility"})
        attribute = store.add_node("attribute", "High contrast", "user", 0.4)
        design = store.add_node("entity", "Design tokens for user interface", "user", 0.7)
        store.add_node("concept", {"not": "text"}, "user")
        return concept, attribute, design

    def test_substring_case_insensitive(self, store, populated):
        concept, attribute, design = populated

        results = store.search_nodes("CONTRAST")

        assert results == [concept, attribute]

    def test_empty_query_matches_all_text_nodes(self, store, populated):
        assert len(store.search_nodes("")) == 3

    def test_kind_filter(self, store, populated):
        concept, attribute, design = populated
        assert store.search_nodes("contrast", {"kind": "attribute"}) == [attribute]
        assert store.search_nodes("contrast", {"type": NodeKind.CONCEPT}) == [concept]

    def test_min_confidence_filter(self, store, populated):
        concept, attribute, design = populated
        assert store.search_nodes("contrast", {"min_confidence": 0.5}) == [concept]
        assert store.search_nodes("contrast", {"minConfidence": 0.5}) == [concept]

    def test_domain_filter(self, store, populated):
        concept, attribute, design = populated
        assert store.search_nodes("", {"domain": "accessibility"}) == [concept]

    def test_tags_filter(self, store, populated):
        concept, attribute, design = populated
        assert store.search_nodes("", {"tags": ["interface", "unrelated"]}) == [design]

    def test_no_match_is_empty(self, store, populated):
        assert store.search_nodes("typography") == []

    def test_unknown_filter_raises(self, store):
        with pytest.raises(ValidationError):
            store.search_nodes("x", {"colour": "red"})


class TestUsageAndFreshness:
    def test_get_node_records_usage(self, store):
        node = store.add_node("concept", "A", "user")

        store.get_node(node.node_id)
        store.get_node(node.node_id, record_usage=True)

        assert node.metadata.usage_count == 1

    def test_record_usage_skips_missing(self, store):
        node = store.add_node("concept", "A", "user")
        store.record_usage([node.node_id, "missing", node.node_id])
        assert node.metadata.usage_count == 2

    def test_refresh_freshness(self, store, clock):
        old = store.add_node("concept", "Old", "user")
        clock.advance(43200)
        new = store.add_node("concept", "New", "user")
        clock.advance(100000)

        store.refresh_freshness(clock.now - 100000, 86400)
        assert old.metadata.freshness == pytest.approx(0.5)
        assert new.metadata.freshness == pytest.approx(1.0)

        store.refresh_freshness(clock.now, 86400)
        assert new.metadata.freshness == 0.0


class TestStats:
    def test_empty_stats(self, store):
        stats = store.compute_stats()
        assert stats.total_nodes == 0
        assert stats.average_confidence == 0.0
        assert stats.average_connectivity == 0.0

    def test_stats(self, store, chain):
        stats = store.compute_stats()

        assert stats.total_nodes == 3
        assert stats.total_relationships == 2
        assert stats.average_confidence == pytest.approx(0.8)
        assert stats.average_connectivity == pytest.approx(2 / 3)

    def test_validate_integrity(self, store, chain):
        report = store.validate_integrity()
        assert report["valid"] is True
        assert report["issues"] == []
        assert report["node_count"] == 3
        assert report["relationship_count"] == 2

    def test_container_protocol(self, store, chain):
        a = chain[0]
        assert len(store) == 3
        assert a.node_id in store
        assert "missing" not in store
