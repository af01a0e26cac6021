# tests/test_graph_builder.py

import networkx as nx

from kg_docgraph.graph.builder import build_graph, dangling_relationships
from kg_docgraph.graph.combine import combine_graphs
from kg_docgraph.models.document import Node, Relationship


def test_build_graph_basic():
    nodes = [
        Node(id="n1", label="Graph neural networks", type="Method", paper_id="p1"),
        Node(id="n2", label="Cora", type="Dataset", paper_id="p1"),
    ]
    rels = [Relationship(id="r1", source_id="n1", target_id="n2", type="EVALUATES_ON", paper_id="p1")]

    G = build_graph(nodes, rels)

    assert isinstance(G, nx.MultiDiGraph)
    assert set(G.nodes) == {"n1", "n2"}
    assert G.nodes["n1"]["label"] == "Graph neural networks"
    assert G.nodes["n2"]["type"] == "Dataset"

    (u, v, key, data) = next(iter(G.edges(keys=True, data=True)))
    assert (u, v, key) == ("n1", "n2", "r1")
    assert data["type"] == "EVALUATES_ON"
    assert data["paper_id"] == "p1"


def test_shared_ids_collapse_and_missing_endpoints_are_dangling():
    nodes = [
        Node(id="n1", label="first", paper_id="p1"),
        Node(id="n1", label="second", paper_id="p2"),
    ]
    rels = [Relationship(source_id="n1", target_id="ghost")]

    G = build_graph(nodes, rels)

    assert G.nodes["n1"]["label"] == "first"
    assert G.nodes["ghost"]["dangling"] is True
    assert G.degree("n1") == 1


def test_build_graph_updates_existing_graph():
    G = nx.MultiDiGraph()
    G.add_node("x")

    out = build_graph([Node(id="y", label="y")], [], existing_graph=G)

    assert out is G
    assert set(G.nodes) == {"x", "y"}


def test_dangling_relationships_after_combining_duplicates():
    docs = [
        {"id": "A", "title": "A", "knowledge_graph": {"nodes": [{"id": "a1", "label": "x"}]}},
        {
            "id": "B",
            "title": "B",
            "knowledge_graph": {
                "nodes": [{"id": "b1", "label": "X"}, {"id": "b2", "label": "y"}],
                "relationships": [{"id": "rb", "source_id": "b1", "target_id": "b2"}],
            },
        },
    ]

    assert [r.id for r in dangling_relationships(combine_graphs(docs))] == ["rb"]
    assert dangling_relationships(combine_graphs(docs, relink_duplicates=True)) == []
