# kg_docgraph/graph/combine.py

"""
Consolidate per-document knowledge graphs into a single combined view.

Nodes are deduplicated by normalized label ("first occurrence wins", in
the order of the document list handed in). Relationships are *not*
deduplicated and keep pointing at the original per-document node ids,
unless `relink_duplicates=True` is requested.
"""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from kg_docgraph.errors import DataIntegrityWarning
from kg_docgraph.models.document import (
    Document,
    KnowledgeGraph,
    Node,
    Relationship,
    load_documents,
)

logger = logging.getLogger(__name__)

DEFAULT_CENTER: Tuple[float, float] = (400.0, 300.0)
DEFAULT_RADIUS: float = 250.0


@dataclass
class CombineStats:
    """Counters collected while combining; handy for reporting and tests."""

    documents_used: int = 0
    nodes_seen: int = 0
    merged_nodes: int = 0
    dropped_unlabeled: int = 0


def normalize_label(label: Optional[str]) -> str:
    """Lowercase + trim. Returns "" for a missing label."""
    if label is None:
        return ""
    return str(label).strip().lower()


def warn_unlabeled(node: Node, paper_id: Optional[str]) -> None:
    message = (
        f"Skipping node {node.id!r} from document {paper_id!r}: "
        "no label to group on"
    )
    logger.warning(message)
    warnings.warn(message, DataIntegrityWarning, stacklevel=3)


def select_documents(
    documents: Iterable[Any],
    selected_ids: Optional[Iterable[str]] = None,
) -> List[Document]:
    """
    Validate `documents` and keep those in `selected_ids` (all of them when
    `selected_ids` is None), preserving the caller's list order.
    """
    docs = load_documents(documents)
    if selected_ids is None:
        return docs
    wanted: Set[str] = set(selected_ids)
    return [d for d in docs if d.id in wanted]


def _node_id(node: Node, doc: Document, index: int) -> str:
    return node.id or f"node-{doc.id}-{index}"


def _relationship_id(rel: Relationship, doc: Document, index: int) -> str:
    return rel.id or f"rel-{doc.id}-{index}"


def flatten_nodes(
    documents: Iterable[Any],
    selected_ids: Optional[Iterable[str]] = None,
) -> List[Node]:
    """
    Copy every node of the selected documents, tagged with its owning
    `paper_id` / `paper_title`. No deduplication.
    """
    out: List[Node] = []
    for doc in select_documents(documents, selected_ids):
        if doc.knowledge_graph is None:
            continue
        for idx, node in enumerate(doc.knowledge_graph.nodes):
            out.append(
                node.model_copy(
                    deep=True,
                    update={
                        "id": _node_id(node, doc, idx),
                        "paper_id": doc.id,
                        "paper_title": doc.title,
                    },
                )
            )
    return out


def flatten_relationships(
    documents: Iterable[Any],
    selected_ids: Optional[Iterable[str]] = None,
) -> List[Relationship]:
    """Copy every relationship of the selected documents, tagged like nodes."""
    out: List[Relationship] = []
    for doc in select_documents(documents, selected_ids):
        if doc.knowledge_graph is None:
            continue
        for idx, rel in enumerate(doc.knowledge_graph.relationships):
            out.append(
                rel.model_copy(
                    deep=True,
                    update={
                        "id": _relationship_id(rel, doc, idx),
                        "paper_id": doc.id,
                        "paper_title": doc.title,
                    },
                )
            )
    return out


def assign_layout(
    nodes: Sequence[Node],
    center: Tuple[float, float] = DEFAULT_CENTER,
    radius: float = DEFAULT_RADIUS,
) -> None:
    """
    Give every node an (x, y) in place.

    An explicit `position` wins, then pre-set x/y. Anything else goes on a
    circle: node i of n sits at angle 2*pi*i/n.
    """
    n = len(nodes)
    cx, cy = center
    for i, node in enumerate(nodes):
        if node.position is not None:
            node.x = node.position.x
            node.y = node.position.y
            continue
        if node.x is not None and node.y is not None:
            continue
        angle = 2 * math.pi * i / n
        node.x = cx + radius * math.cos(angle)
        node.y = cy + radius * math.sin(angle)


def combine_graphs(
    documents: Iterable[Any],
    selected_ids: Optional[Iterable[str]] = None,
    *,
    center: Tuple[float, float] = DEFAULT_CENTER,
    radius: float = DEFAULT_RADIUS,
    relink_duplicates: bool = False,
    stats: Optional[CombineStats] = None,
) -> KnowledgeGraph:
    """
    Build the combined graph for the selected documents.

    Parameters
    ----------
    documents:
        Documents (models or raw store dicts) in the order that decides
        which duplicate survives.
    selected_ids:
        Ids of the documents to include; None includes all of them.
    relink_duplicates:
        If True, relationship endpoints that point at a node absorbed into
        another document's primary are rewritten to the primary's id.
        Off by default: edges keep their original per-document ids.
    stats:
        Optional CombineStats filled in while combining.

    Returns
    -------
    KnowledgeGraph
        Deep copies of nodes/relationships; the inputs are not mutated.
    """
    stats = stats if stats is not None else CombineStats()

    nodes: List[Node] = []
    relationships: List[Relationship] = []
    primaries: Dict[str, Node] = {}
    # (paper_id, original node id) -> surviving node id
    id_map: Dict[Tuple[str, str], str] = {}

    for doc in select_documents(documents, selected_ids):
        if doc.knowledge_graph is None:
            continue
        stats.documents_used += 1

        for idx, node in enumerate(doc.knowledge_graph.nodes):
            stats.nodes_seen += 1
            node_id = _node_id(node, doc, idx)
            key = normalize_label(node.label)
            if not key:
                stats.dropped_unlabeled += 1
                warn_unlabeled(node, doc.id)
                continue

            existing = primaries.get(key)
            if existing is not None:
                existing.source_passages.extend(
                    p.model_copy(deep=True) for p in node.source_passages
                )
                if doc.title not in existing.papers:
                    existing.papers.append(doc.title)
                id_map[(doc.id, node_id)] = existing.id
                stats.merged_nodes += 1
                continue

            graph_node = node.model_copy(
                deep=True,
                update={
                    "id": node_id,
                    "paper_id": doc.id,
                    "paper_title": doc.title,
                    "papers": [doc.title],
                },
            )
            nodes.append(graph_node)
            primaries[key] = graph_node
            id_map[(doc.id, node_id)] = node_id

        for idx, rel in enumerate(doc.knowledge_graph.relationships):
            update: Dict[str, Any] = {
                "id": _relationship_id(rel, doc, idx),
                "paper_id": doc.id,
                "paper_title": doc.title,
            }
            if relink_duplicates:
                update["source_id"] = id_map.get((doc.id, rel.source_id), rel.source_id)
                update["target_id"] = id_map.get((doc.id, rel.target_id), rel.target_id)
            relationships.append(rel.model_copy(deep=True, update=update))

    assign_layout(nodes, center=center, radius=radius)

    if stats.dropped_unlabeled:
        logger.info(
            "Combined %d documents: %d nodes, %d relationships (%d unlabeled dropped)",
            stats.documents_used,
            len(nodes),
            len(relationships),
            stats.dropped_unlabeled,
        )

    return KnowledgeGraph(nodes=nodes, relationships=relationships)
