# kg_docgraph/graph/enhance.py

"""
Graph clean-up tools: duplicate detection + merge, orphan detection +
deletion, and single-node edits.

Every mutating operation is split in two:

- a pure `plan_*` function that validates its input and computes the new
  `knowledge_graph` for each affected document, and
- a thin wrapper that pushes those graphs to the entity store, one update
  per document, and reports the outcome per document.

Updates are not transactional: if one document fails, the others are
still written and the failure is reported in the MutationReport.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

import networkx as nx

from kg_docgraph.config.settings import settings
from kg_docgraph.errors import CollaboratorError, DataIntegrityWarning, ValidationError
from kg_docgraph.graph.builder import build_graph
from kg_docgraph.graph.combine import (
    CombineStats,
    flatten_relationships,
    normalize_label,
    warn_unlabeled,
)
from kg_docgraph.graph.policy import PrimaryPolicy, choose_primary_index, coerce_policy
from kg_docgraph.models.document import (
    Document,
    KnowledgeGraph,
    Node,
    Relationship,
    SourcePassage,
    load_documents,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class DuplicateGroup:
    """Nodes sharing one normalized label, in order of appearance."""

    label: str
    nodes: List[Node] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.nodes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "count": self.count,
            "nodes": [n.model_dump(exclude_none=True) for n in self.nodes],
        }


@dataclass
class MutationReport:
    """
    Per-document outcome of a merge / delete / edit.

    `failed` holds (document_id, error message) pairs so callers can say
    e.g. "merged in 2 of 3 documents".
    """

    action: str
    attempted: List[str] = field(default_factory=list)
    succeeded: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def partial(self) -> bool:
        return bool(self.failed) and bool(self.succeeded)

    def summary(self) -> str:
        return f"{self.action} in {len(self.succeeded)} of {len(self.attempted)} documents"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "attempted": list(self.attempted),
            "succeeded": list(self.succeeded),
            "failed": [{"document_id": d, "error": e} for d, e in self.failed],
            "summary": self.summary(),
        }


@dataclass
class MergePlan:
    primary: Node
    removed: Dict[str, List[str]]
    updates: Dict[str, KnowledgeGraph]


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def apply_graph_updates(
    store: Any,
    updates: Dict[str, KnowledgeGraph],
    action: str,
    entity_type: Optional[str] = None,
) -> MutationReport:
    """
    Push one partial `knowledge_graph` update per document.

    A CollaboratorError for one document is recorded and does not stop
    the remaining updates; already-applied updates are not rolled back.
    """
    entity_type = entity_type or settings.DOCUMENT_ENTITY
    report = MutationReport(action=action)

    for paper_id, graph in updates.items():
        report.attempted.append(paper_id)
        try:
            store.update(entity_type, paper_id, {"knowledge_graph": graph.to_store_payload()})
        except CollaboratorError as exc:
            logger.warning("Failed to update knowledge graph of %s: %s", paper_id, exc)
            report.failed.append((paper_id, str(exc)))
            continue
        report.succeeded.append(paper_id)

    if report.partial:
        logger.warning("Partially applied: %s", report.summary())
    return report


def _documents_by_id(documents: Iterable[Any]) -> Dict[str, Document]:
    return {d.id: d for d in load_documents(documents)}


# ---------------------------------------------------------------------------
# Duplicates
# ---------------------------------------------------------------------------


def find_duplicate_groups(
    nodes: Iterable[Node],
    stats: Optional[CombineStats] = None,
) -> List[DuplicateGroup]:
    """
    Group nodes by normalized label and return the groups with more than
    one member, ordered by the first appearance of each label.

    Unlabeled nodes are skipped (and counted in `stats.dropped_unlabeled`).
    """
    groups: Dict[str, DuplicateGroup] = {}
    for node in nodes:
        key = normalize_label(node.label)
        if not key:
            if stats is not None:
                stats.dropped_unlabeled += 1
            warn_unlabeled(node, node.paper_id)
            continue
        groups.setdefault(key, DuplicateGroup(label=key)).nodes.append(node)

    return [g for g in groups.values() if g.count > 1]


def _group_nodes(group: Any) -> List[Node]:
    if isinstance(group, DuplicateGroup):
        return list(group.nodes)
    return [n if isinstance(n, Node) else Node.model_validate(n) for n in group]


def _warn_id_clash(paper_id: str, node: Node, primary: Node) -> None:
    message = (
        f"Edges rewritten to {primary.id!r} ({primary.label!r}) in document "
        f"{paper_id!r} now resolve to its own node {node.label!r}"
    )
    logger.warning(message)
    warnings.warn(message, DataIntegrityWarning, stacklevel=3)


def plan_merge(
    group: Any,
    documents: Iterable[Any],
    policy: "PrimaryPolicy | str | None" = PrimaryPolicy.FIRST_OCCURRENCE,
    relationships: Optional[Sequence[Relationship]] = None,
) -> MergePlan:
    """
    Compute the per-document graphs resulting from collapsing `group`.

    - The surviving node is chosen by `policy` (first occurrence by default).
    - Its source_passages become the concatenation of every member's, in
      group order.
    - In each owning document, the other members are removed and every
      relationship endpoint pointing at them is rewritten to the survivor's id.
      If another document already uses that id for an unrelated node, the
      rewritten edges attach to it and a DataIntegrityWarning is emitted.

    Raises ValidationError (nothing is planned) if the group has fewer than
    two nodes or a member cannot be located in its owning document.
    """
    nodes = _group_nodes(group)
    if len(nodes) < 2:
        raise ValidationError(
            f"A merge needs at least 2 nodes, got {len(nodes)}"
        )

    docs = _documents_by_id(documents)
    owners: List[str] = []
    for node in nodes:
        if not node.paper_id or not node.id:
            raise ValidationError(
                f"Node {node.id!r} ({node.label!r}) has no owning document or id"
            )
        doc = docs.get(node.paper_id)
        if doc is None or doc.knowledge_graph is None:
            raise ValidationError(
                f"Document {node.paper_id!r} owning node {node.id!r} has no knowledge graph"
            )
        if not any(n.id == node.id for n in doc.knowledge_graph.nodes):
            raise ValidationError(
                f"Node {node.id!r} not found in document {node.paper_id!r}"
            )
        if node.paper_id not in owners:
            owners.append(node.paper_id)

    policy = coerce_policy(policy)
    if relationships is None and policy == PrimaryPolicy.MOST_CONNECTED:
        relationships = flatten_relationships(docs.values(), owners)

    primary_idx = choose_primary_index(nodes, policy, relationships)
    primary = nodes[primary_idx]
    passages: List[SourcePassage] = [
        p.model_copy(deep=True) for n in nodes for p in n.source_passages
    ]

    removed: Dict[str, List[str]] = {}
    updates: Dict[str, KnowledgeGraph] = {}

    for paper_id in owners:
        graph = docs[paper_id].knowledge_graph.model_copy(deep=True)
        drop = [
            n.id for i, n in enumerate(nodes)
            if i != primary_idx and n.paper_id == paper_id
            and not (paper_id == primary.paper_id and n.id == primary.id)
        ]
        drop_set = set(drop)

        new_nodes: List[Node] = []
        for node in graph.nodes:
            if paper_id == primary.paper_id and node.id == primary.id:
                node.source_passages = [p.model_copy(deep=True) for p in passages]
                new_nodes.append(node)
            elif node.id not in drop_set:
                new_nodes.append(node)
                if drop_set and paper_id != primary.paper_id and node.id == primary.id:
                    _warn_id_clash(paper_id, node, primary)

        new_rels: List[Relationship] = []
        for rel in graph.relationships:
            if rel.source_id in drop_set:
                rel.source_id = primary.id
            if rel.target_id in drop_set:
                rel.target_id = primary.id
            new_rels.append(rel)

        removed[paper_id] = drop
        updates[paper_id] = KnowledgeGraph(nodes=new_nodes, relationships=new_rels)

    merged_primary = primary.model_copy(deep=True, update={"source_passages": passages})
    return MergePlan(primary=merged_primary, removed=removed, updates=updates)


def merge_duplicate_group(
    store: Any,
    group: Any,
    documents: Iterable[Any],
    policy: "PrimaryPolicy | str | None" = PrimaryPolicy.FIRST_OCCURRENCE,
    entity_type: Optional[str] = None,
) -> MutationReport:
    """Plan a merge and write it back, one update per affected document."""
    plan = plan_merge(group, documents, policy=policy)
    logger.info(
        "Merging %d nodes into %r across %d documents",
        sum(len(v) for v in plan.removed.values()) + 1,
        plan.primary.id,
        len(plan.updates),
    )
    return apply_graph_updates(store, plan.updates, action="merged", entity_type=entity_type)


# ---------------------------------------------------------------------------
# Orphans
# ---------------------------------------------------------------------------


def _is_isolated(G: nx.MultiDiGraph, node_id: Optional[str]) -> bool:
    return node_id not in G or G.degree(node_id) == 0


def find_disconnected_nodes(
    nodes: Sequence[Node],
    relationships: Sequence[Relationship],
    per_document: bool = False,
) -> List[Node]:
    """
    Return the nodes no relationship points to or from.

    By default the check runs against the whole relationship set handed
    in, so a node can count as connected through another document's edge
    that reuses its id. With `per_document=True` only relationships of the
    node's own document (or untagged ones) are considered.
    """
    if not per_document:
        G = build_graph(nodes, relationships)
        return [n for n in nodes if _is_isolated(G, n.id)]

    graphs: Dict[Optional[str], nx.MultiDiGraph] = {}
    orphans: List[Node] = []
    for node in nodes:
        G = graphs.get(node.paper_id)
        if G is None:
            scoped = [
                r for r in relationships
                if r.paper_id is None or r.paper_id == node.paper_id
            ]
            G = build_graph([], scoped)
            graphs[node.paper_id] = G
        if _is_isolated(G, node.id):
            orphans.append(node)
    return orphans


def group_node_targets(targets: Any) -> Dict[str, Set[str]]:
    """
    Group the nodes to delete by owning document.

    Accepts a {paper_id: node_ids} mapping, or an iterable of tagged Nodes
    and (paper_id, node_id) pairs. Node ids may repeat across documents,
    so a bare id without its document is rejected.
    """
    if isinstance(targets, Mapping):
        pairs: Iterable[Tuple[Any, Any]] = (
            (paper_id, node_id)
            for paper_id, node_ids in targets.items()
            for node_id in node_ids
        )
    else:
        pairs = (
            (t.paper_id, t.id) if isinstance(t, Node) else _as_pair(t)
            for t in targets
        )

    grouped: Dict[str, Set[str]] = {}
    for paper_id, node_id in pairs:
        if not paper_id or not node_id:
            raise ValidationError(
                f"Node {node_id!r} has no owning document or id"
            )
        grouped.setdefault(paper_id, set()).add(node_id)
    return grouped


def _as_pair(target: Any) -> Tuple[Any, Any]:
    if isinstance(target, str) or len(target) != 2:
        raise ValidationError(
            f"Expected a (paper_id, node_id) pair, got {target!r}"
        )
    return target[0], target[1]


def plan_node_deletion(
    documents: Iterable[Any],
    targets: Any,
) -> Dict[str, KnowledgeGraph]:
    """
    Compute new graphs with each target node removed from its own document.
    Relationships of that document touching a deleted id are removed as
    well. Same-id nodes in other documents are left alone. Returns {} when
    there is nothing to delete.
    """
    grouped = group_node_targets(targets)
    if not grouped:
        return {}

    updates: Dict[str, KnowledgeGraph] = {}

    for doc in load_documents(documents):
        ids = grouped.get(doc.id)
        if not ids or doc.knowledge_graph is None:
            continue

        graph = doc.knowledge_graph
        kept_nodes = [n for n in graph.nodes if n.id not in ids]
        kept_rels = [
            r for r in graph.relationships
            if r.source_id not in ids and r.target_id not in ids
        ]
        if len(kept_nodes) == len(graph.nodes) and len(kept_rels) == len(graph.relationships):
            continue

        updates[doc.id] = KnowledgeGraph(
            nodes=[n.model_copy(deep=True) for n in kept_nodes],
            relationships=[r.model_copy(deep=True) for r in kept_rels],
        )

    return updates


def delete_nodes(
    store: Any,
    documents: Iterable[Any],
    targets: Any,
    entity_type: Optional[str] = None,
) -> MutationReport:
    """Delete nodes (typically orphans) and write back each affected document."""
    updates = plan_node_deletion(documents, targets)
    if not updates:
        return MutationReport(action="deleted")
    return apply_graph_updates(store, updates, action="deleted", entity_type=entity_type)


# ---------------------------------------------------------------------------
# Single node edits
# ---------------------------------------------------------------------------


def plan_node_update(document: Any, node: Node) -> KnowledgeGraph:
    """Replace the node with the same id inside `document`'s graph."""
    (doc,) = load_documents([document])
    if doc.knowledge_graph is None:
        raise ValidationError(f"Document {doc.id!r} has no knowledge graph")

    replaced = False
    new_nodes: List[Node] = []
    for existing in doc.knowledge_graph.nodes:
        if existing.id == node.id:
            new_nodes.append(node.model_copy(deep=True))
            replaced = True
        else:
            new_nodes.append(existing.model_copy(deep=True))

    if not replaced:
        raise ValidationError(f"Node {node.id!r} not found in document {doc.id!r}")

    return KnowledgeGraph(
        nodes=new_nodes,
        relationships=[r.model_copy(deep=True) for r in doc.knowledge_graph.relationships],
    )


def update_node(
    store: Any,
    document: Any,
    node: Node,
    entity_type: Optional[str] = None,
) -> MutationReport:
    (doc,) = load_documents([document])
    graph = plan_node_update(doc, node)
    return apply_graph_updates(store, {doc.id: graph}, action="updated", entity_type=entity_type)


def delete_node(
    store: Any,
    document: Any,
    node_id: str,
    entity_type: Optional[str] = None,
) -> MutationReport:
    (doc,) = load_documents([document])
    return delete_nodes(store, [doc], {doc.id: [node_id]}, entity_type=entity_type)
