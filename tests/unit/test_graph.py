"""
Tests for the graph module.
"""

import pytest

from image_flow.core.graph import (
    Attribute,
    AttributeKind,
    Edge,
    ModelConfig,
    Node,
    NodeKind,
    WorkflowGraph,
    is_valid_connection,
)


class TestNodeKind:
    """Tests for NodeKind tag parsing."""

    def test_editor_tags(self):
        assert NodeKind.from_tag("inputNode") == NodeKind.INPUT
        assert NodeKind.from_tag("promptNode") == NodeKind.PROMPT
        assert NodeKind.from_tag("modelNode") == NodeKind.MODEL
        assert NodeKind.from_tag("outputNode") == NodeKind.OUTPUT

    def test_plain_values(self):
        assert NodeKind.from_tag("model") == NodeKind.MODEL

    def test_type_tag_round_trip(self):
        for kind in NodeKind:
            assert NodeKind.from_tag(kind.type_tag) == kind

    def test_unknown_tag(self):
        with pytest.raises(ValueError):
            NodeKind.from_tag("filterNode")


class TestConnectionRule:

    def test_adjacent_stages_allowed(self):
        assert is_valid_connection(NodeKind.INPUT, NodeKind.PROMPT)
        assert is_valid_connection(NodeKind.PROMPT, NodeKind.MODEL)
        assert is_valid_connection(NodeKind.MODEL, NodeKind.OUTPUT)

    def test_skipping_or_reversing_rejected(self):
        assert not is_valid_connection(NodeKind.INPUT, NodeKind.MODEL)
        assert not is_valid_connection(NodeKind.MODEL, NodeKind.PROMPT)
        assert not is_valid_connection(NodeKind.OUTPUT, NodeKind.INPUT)


class TestPayloads:
    """Tests for typed payload accessors."""

    def test_attribute_from_editor_dict(self):
        attr = Attribute.from_dict(
            {"id": "a1", "type": "image", "label": "Photo", "value": "data:image/png;base64,AA"}
        )
        assert attr.kind == AttributeKind.IMAGE
        assert attr.label == "Photo"

    def test_attribute_defaults(self):
        attr = Attribute.from_dict({"id": "a1", "label": None, "value": None})
        assert attr.kind == AttributeKind.TEXT
        assert attr.label == ""
        assert attr.value == ""

    def test_model_config_defaults(self):
        config = ModelConfig.from_dict({})
        assert config.model == "dall-e-3"
        assert config.n == 1

    def test_model_config_bad_count(self):
        assert ModelConfig.from_dict({"n": "lots"}).n == 1
        assert ModelConfig.from_dict({"n": 0}).n == 1
        assert ModelConfig.from_dict({"n": None}).n == 1
        assert ModelConfig.from_dict({"n": -2}).n == 1

    def test_model_config_count_clamped(self):
        assert ModelConfig.from_dict({"n": 9}).n == 4
        assert ModelConfig.from_dict({"n": "3"}).n == 3
        assert ModelConfig.from_dict({"n": "1e9"}).n == 4
        assert ModelConfig.from_dict({"n": float("inf")}).n == 4
        assert ModelConfig.from_dict({"n": float("-inf")}).n == 1
        assert ModelConfig.from_dict({"n": float("nan")}).n == 1
        assert ModelConfig.from_dict({"n": 2.7}).n == 2

    def test_node_accessors(self):
        node = Node.create(NodeKind.PROMPT, {"template": "{{A}} cat"})
        assert node.template == "{{A}} cat"
        assert Node.create(NodeKind.PROMPT).template == ""
        assert Node.create(NodeKind.INPUT).attributes == []


class TestWorkflowGraph:
    """Tests for WorkflowGraph class."""

    def _nodes(self):
        return (
            Node.create(NodeKind.INPUT, node_id="i"),
            Node.create(NodeKind.PROMPT, node_id="p"),
            Node.create(NodeKind.MODEL, node_id="m"),
            Node.create(NodeKind.OUTPUT, node_id="o"),
        )

    def test_add_valid_edges(self):
        i, p, m, o = self._nodes()
        graph = WorkflowGraph([i, p, m, o])

        assert graph.connect(i, p)
        assert graph.connect(p, m)
        assert graph.connect(m, o)
        assert len(graph.edges) == 3

    def test_add_invalid_edge(self):
        i, p, m, o = self._nodes()
        graph = WorkflowGraph([i, p, m, o])

        assert not graph.connect(i, o)
        assert not graph.add_edge(Edge.create("p", "missing"))
        assert graph.edges == []

    def test_incoming_edges_keep_order(self):
        graph = WorkflowGraph(
            [Node.create(NodeKind.INPUT, node_id=x) for x in ("a", "b")]
            + [Node.create(NodeKind.PROMPT, node_id="p")],
            [Edge.create("b", "p"), Edge.create("a", "p")],
        )
        assert [e.source for e in graph.get_incoming_edges("p")] == ["b", "a"]
        assert graph.get_input_edge("p").source == "b"
        assert graph.get_input_edge("a") is None

    def test_output_nodes(self):
        graph = WorkflowGraph([
            Node.create(NodeKind.OUTPUT, node_id="o2"),
            Node.create(NodeKind.MODEL, node_id="m"),
            Node.create(NodeKind.OUTPUT, node_id="o1"),
        ])
        assert [n.id for n in graph.get_output_nodes()] == ["o2", "o1"]

    def test_from_dict(self):
        graph = WorkflowGraph.from_dict({
            "nodes": [
                {"id": "1", "type": "promptNode", "position": {"x": 5, "y": 6},
                 "data": {"template": "hi"}},
                {"id": "2", "type": "modelNode", "data": {"model": "dall-e-2", "n": 2}},
            ],
            "edges": [{"id": "e1", "source": "1", "target": "2"}],
        })

        assert len(graph) == 2
        assert "1" in graph
        assert graph.get_node("1").position.x == 5
        assert graph.get_node("2").model_config == ModelConfig("dall-e-2", 2)
        assert graph.edges[0].source == "1"

    def test_to_dict_uses_editor_tags(self):
        graph = WorkflowGraph([Node.create(NodeKind.OUTPUT, node_id="o")])
        assert graph.to_dict()["nodes"][0]["type"] == "outputNode"
