# kg_docgraph/graph/export.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from kg_docgraph.models.document import KnowledgeGraph, load_documents

EXPORT_VERSION = "1.0"


def filter_graph(graph: KnowledgeGraph, query: Optional[str]) -> KnowledgeGraph:
    """
    Search filter: keep nodes whose label or type contains `query`
    (case-insensitive), and the relationships whose both endpoints survive.
    An empty query returns the graph unchanged.
    """
    if not query:
        return graph

    needle = query.lower()
    nodes = [
        n for n in graph.nodes
        if needle in (n.label or "").lower() or needle in (n.type or "").lower()
    ]
    kept = {n.id for n in nodes}
    relationships = [
        r for r in graph.relationships
        if r.source_id in kept and r.target_id in kept
    ]
    return KnowledgeGraph(nodes=nodes, relationships=relationships)


def _distinct(values: Iterable[Optional[str]]) -> List[str]:
    seen: Dict[str, None] = {}
    for v in values:
        if v is not None and v not in seen:
            seen[v] = None
    return list(seen)


def _count(values: Iterable[Optional[str]]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for v in values:
        if v is None:
            continue
        counts[v] = counts.get(v, 0) + 1
    return counts


def graph_statistics(graph: KnowledgeGraph) -> Dict[str, Any]:
    """Node / relationship counts, overall and per type."""
    return {
        "total_nodes": len(graph.nodes),
        "total_relationships": len(graph.relationships),
        "node_type_counts": _count(n.type for n in graph.nodes),
        "relationship_type_counts": _count(r.type for r in graph.relationships),
    }


def export_graph(
    documents: Iterable[Any],
    graph: KnowledgeGraph,
    timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build a portable snapshot of the combined graph.

    Only `id`, `title` and `authors` are kept for each document. Apart from
    `timestamp` the result depends only on the inputs, which are never
    mutated.
    """
    ts = timestamp or datetime.now(timezone.utc)

    return {
        "version": EXPORT_VERSION,
        "timestamp": ts.isoformat(),
        "papers": [
            {"id": d.id, "title": d.title, "authors": list(d.authors)}
            for d in load_documents(documents)
        ],
        "graph": {
            "nodes": [n.model_dump(mode="json", exclude_none=True) for n in graph.nodes],
            "relationships": [
                r.model_dump(mode="json", exclude_none=True) for r in graph.relationships
            ],
        },
        "metadata": {
            "total_nodes": len(graph.nodes),
            "total_relationships": len(graph.relationships),
            "node_types": _distinct(n.type for n in graph.nodes),
            "relationship_types": _distinct(r.type for r in graph.relationships),
        },
    }


def default_export_name(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"knowledge-graph-{now.date().isoformat()}.json"
