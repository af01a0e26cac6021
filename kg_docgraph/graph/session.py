# kg_docgraph/graph/session.py

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from kg_docgraph.config.settings import settings
from kg_docgraph.errors import ValidationError
from kg_docgraph.graph.builder import dangling_relationships
from kg_docgraph.graph.combine import (
    CombineStats,
    combine_graphs,
    flatten_nodes,
    flatten_relationships,
    normalize_label,
)
from kg_docgraph.graph.enhance import (
    DuplicateGroup,
    MutationReport,
    delete_nodes,
    find_disconnected_nodes,
    find_duplicate_groups,
    merge_duplicate_group,
)
from kg_docgraph.graph.export import export_graph, filter_graph, graph_statistics
from kg_docgraph.graph.policy import PrimaryPolicy, coerce_policy
from kg_docgraph.models.document import Document, KnowledgeGraph, Node, load_documents

logger = logging.getLogger(__name__)


class ViewSession:
    """
    Everything one graph view works on: the completed documents, the
    ordered selection, the merge policy and layout options.

    Callers own its lifecycle (one session per view). After a merge or
    delete the session reloads its documents from the store, so the next
    combined() reflects the new per-document graphs.
    """

    def __init__(
        self,
        documents: Iterable[Any],
        selected_ids: Optional[Sequence[str]] = None,
        *,
        policy: "PrimaryPolicy | str | None" = None,
        center: Optional[Tuple[float, float]] = None,
        radius: Optional[float] = None,
        relink_duplicates: bool = False,
        entity_type: Optional[str] = None,
    ) -> None:
        self.entity_type = entity_type or settings.DOCUMENT_ENTITY
        self.policy = coerce_policy(policy or settings.PRIMARY_POLICY)
        self.center = center or (settings.LAYOUT_CENTER_X, settings.LAYOUT_CENTER_Y)
        self.radius = radius if radius is not None else settings.LAYOUT_RADIUS
        self.relink_duplicates = relink_duplicates
        self.stats = CombineStats()
        self.documents: List[Document] = []
        self.selected_ids: List[str] = []
        self._set_documents(documents, selected_ids)

    @classmethod
    def from_store(
        cls,
        store: Any,
        selected_ids: Optional[Sequence[str]] = None,
        **kwargs: Any,
    ) -> "ViewSession":
        entity_type = kwargs.get("entity_type") or settings.DOCUMENT_ENTITY
        records = store.list(entity_type, sort="-created_date")
        return cls(records, selected_ids, **kwargs)

    def _set_documents(
        self,
        documents: Iterable[Any],
        selected_ids: Optional[Sequence[str]],
    ) -> None:
        self.documents = [d for d in load_documents(documents) if d.is_completed]
        known = {d.id for d in self.documents}
        if selected_ids is None:
            self.selected_ids = [d.id for d in self.documents]
        else:
            missing = [i for i in selected_ids if i not in known]
            if missing:
                logger.warning("Ignoring unknown or unfinished documents: %s", ", ".join(missing))
            self.selected_ids = [i for i in dict.fromkeys(selected_ids) if i in known]

    def refresh(self, store: Any) -> None:
        records = store.list(self.entity_type, sort="-created_date")
        self._set_documents(records, self.selected_ids)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    @property
    def selected_documents(self) -> List[Document]:
        wanted = set(self.selected_ids)
        return [d for d in self.documents if d.id in wanted]

    def combined(self, query: Optional[str] = None) -> KnowledgeGraph:
        self.stats = CombineStats()
        graph = combine_graphs(
            self.documents,
            self.selected_ids,
            center=self.center,
            radius=self.radius,
            relink_duplicates=self.relink_duplicates,
            stats=self.stats,
        )
        return filter_graph(graph, query)

    def nodes(self) -> List[Node]:
        return flatten_nodes(self.documents, self.selected_ids)

    def duplicates(self) -> List[DuplicateGroup]:
        return find_duplicate_groups(self.nodes())

    def find_group(self, label: str) -> DuplicateGroup:
        key = normalize_label(label)
        for group in self.duplicates():
            if group.label == key:
                return group
        raise ValidationError(f"No duplicate group for label {label!r}")

    def orphans(self, per_document: bool = False) -> List[Node]:
        return find_disconnected_nodes(
            self.nodes(),
            flatten_relationships(self.documents, self.selected_ids),
            per_document=per_document,
        )

    def statistics(self) -> Dict[str, Any]:
        graph = self.combined()
        stats = graph_statistics(graph)
        stats["documents"] = len(self.selected_ids)
        stats["duplicate_groups"] = len(self.duplicates())
        stats["disconnected_nodes"] = len(self.orphans())
        stats["dropped_unlabeled"] = self.stats.dropped_unlabeled
        stats["dangling_relationships"] = len(dangling_relationships(graph))
        return stats

    def export(self, query: Optional[str] = None) -> Dict[str, Any]:
        return export_graph(self.selected_documents, self.combined(query))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def merge(
        self,
        store: Any,
        group: "DuplicateGroup | str",
        policy: "PrimaryPolicy | str | None" = None,
    ) -> MutationReport:
        if isinstance(group, str):
            group = self.find_group(group)
        report = merge_duplicate_group(
            store,
            group,
            self.selected_documents,
            policy=policy or self.policy,
            entity_type=self.entity_type,
        )
        if report.succeeded:
            self.refresh(store)
        return report

    def delete(self, store: Any, targets: Any) -> MutationReport:
        """
        Delete nodes from their own documents. `targets` holds tagged
        Nodes, (paper_id, node_id) pairs or a {paper_id: node_ids} mapping.
        """
        report = delete_nodes(
            store,
            self.selected_documents,
            targets,
            entity_type=self.entity_type,
        )
        if report.succeeded:
            self.refresh(store)
        return report

    def delete_orphans(
        self,
        store: Any,
        node_ids: Optional[Iterable[str]] = None,
        per_document: bool = False,
    ) -> MutationReport:
        """Delete the detected orphans, optionally only those with the given ids."""
        orphans = self.orphans(per_document=per_document)
        if node_ids is not None:
            wanted = set(node_ids)
            orphans = [n for n in orphans if n.id in wanted]
        return self.delete(store, orphans)
