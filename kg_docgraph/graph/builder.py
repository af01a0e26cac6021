# kg_docgraph/graph/builder.py

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import networkx as nx

from kg_docgraph.models.document import KnowledgeGraph, Node, Relationship


def _node_attrs(node: Node) -> Dict[str, Any]:
    return {
        "label": node.label,
        "type": node.type,
        "paper_id": node.paper_id,
        "paper_title": node.paper_title,
        "papers": list(node.papers or []),
        "passages": len(node.source_passages),
    }


def build_graph(
    nodes: Iterable[Node],
    relationships: Iterable[Relationship],
    existing_graph: Optional[nx.MultiDiGraph] = None,
) -> nx.MultiDiGraph:
    """
    Project nodes/relationships into a MultiDiGraph keyed on node id.

    Ids are not globally unique across documents, so nodes that share an
    id collapse onto one graph node (the first one's attributes win).
    Relationship endpoints that are not in `nodes` are still added, as
    bare nodes flagged `dangling=True`.

    Parameters
    ----------
    existing_graph:
        If provided, the graph is updated in-place and returned.
    """
    G = existing_graph if existing_graph is not None else nx.MultiDiGraph()

    for node in nodes:
        if node.id is None or node.id in G:
            continue
        G.add_node(node.id, **_node_attrs(node))

    for rel in relationships:
        for endpoint in (rel.source_id, rel.target_id):
            if endpoint not in G:
                G.add_node(endpoint, dangling=True)
        G.add_edge(
            rel.source_id,
            rel.target_id,
            key=rel.id,
            type=rel.type,
            paper_id=rel.paper_id,
        )

    return G


def dangling_relationships(graph: KnowledgeGraph) -> list:
    """Relationships whose source or target is not among the graph's nodes."""
    node_ids = {n.id for n in graph.nodes}
    return [
        r for r in graph.relationships
        if r.source_id not in node_ids or r.target_id not in node_ids
    ]
