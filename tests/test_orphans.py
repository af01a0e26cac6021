import pytest

from kg_docgraph.config.settings import settings
from kg_docgraph.errors import ValidationError
from kg_docgraph.graph.combine import flatten_nodes, flatten_relationships
from kg_docgraph.graph.enhance import (
    delete_node,
    delete_nodes,
    find_disconnected_nodes,
    plan_node_deletion,
)
from kg_docgraph.models.document import load_documents
from kg_docgraph.store import LocalEntityStore


def make_doc(doc_id, nodes, relationships=None):
    return {
        "id": doc_id,
        "title": f"{doc_id} title",
        "processing_status": "completed",
        "knowledge_graph": {"nodes": nodes, "relationships": relationships or []},
    }


def three_nodes_doc():
    return make_doc(
        "A",
        [{"id": "n1", "label": "one"}, {"id": "n2", "label": "two"}, {"id": "n3", "label": "three"}],
        [{"id": "r1", "source_id": "n1", "target_id": "n2", "type": "RELATED_TO"}],
    )


def _orphans(docs, per_document=False):
    return find_disconnected_nodes(
        flatten_nodes(docs),
        flatten_relationships(docs),
        per_document=per_document,
    )


def test_node_without_relationships_is_an_orphan():
    assert [n.id for n in _orphans([three_nodes_doc()])] == ["n3"]


def test_edge_from_another_document_counts_by_default():
    other = make_doc(
        "B",
        [{"id": "x", "label": "x"}],
        [{"id": "rb", "source_id": "x", "target_id": "n3"}],
    )
    docs = [three_nodes_doc(), other]

    assert _orphans(docs) == []
    assert [(n.paper_id, n.id) for n in _orphans(docs, per_document=True)] == [("A", "n3")]


def test_plan_node_deletion_drops_touching_relationships():
    updates = plan_node_deletion([three_nodes_doc()], [("A", "n2")])

    graph = updates["A"]
    assert [n.id for n in graph.nodes] == ["n1", "n3"]
    assert graph.relationships == []


def test_plan_node_deletion_skips_unaffected_documents():
    docs = [three_nodes_doc(), make_doc("B", [{"id": "b1", "label": "b"}])]

    assert list(plan_node_deletion(docs, {"A": ["n3"], "B": ["gone"]})) == ["A"]
    assert plan_node_deletion(docs, []) == {}


def test_delete_then_detect_finds_no_orphans(tmp_path):
    store = LocalEntityStore(tmp_path)
    store.create(settings.DOCUMENT_ENTITY, three_nodes_doc())

    docs = store.list(settings.DOCUMENT_ENTITY)
    report = delete_nodes(store, docs, _orphans(docs))

    assert report.summary() == "deleted in 1 of 1 documents"
    assert _orphans(store.list(settings.DOCUMENT_ENTITY)) == []


def test_delete_with_nothing_to_do_reports_empty():
    report = delete_nodes(None, [three_nodes_doc()], [])

    assert report.ok
    assert report.attempted == []


def test_delete_node_in_single_document(tmp_path):
    store = LocalEntityStore(tmp_path)
    store.create(settings.DOCUMENT_ENTITY, three_nodes_doc())

    report = delete_node(store, store.get(settings.DOCUMENT_ENTITY, "A"), "n1")

    assert report.succeeded == ["A"]
    (doc,) = load_documents([store.get(settings.DOCUMENT_ENTITY, "A")])
    assert [n.id for n in doc.knowledge_graph.nodes] == ["n2", "n3"]
    assert doc.knowledge_graph.relationships == []


def test_deleting_orphans_keeps_same_id_nodes_in_other_documents(tmp_path):
    store = LocalEntityStore(tmp_path)
    store.create(settings.DOCUMENT_ENTITY, make_doc("A", [{"id": "n1", "label": "lonely"}]))
    store.create(
        settings.DOCUMENT_ENTITY,
        make_doc(
            "B",
            [
                {"id": "n1", "label": "source"},
                {"id": "n2", "label": "target"},
                {"id": "n9", "label": "stray"},
            ],
            [{"id": "r1", "source_id": "n1", "target_id": "n2"}],
        ),
    )

    docs = store.list(settings.DOCUMENT_ENTITY)
    orphans = _orphans(docs, per_document=True)
    assert sorted((n.paper_id, n.id) for n in orphans) == [("A", "n1"), ("B", "n9")]

    report = delete_nodes(store, docs, orphans)

    assert sorted(report.succeeded) == ["A", "B"]
    (doc_b,) = load_documents([store.get(settings.DOCUMENT_ENTITY, "B")])
    assert [n.id for n in doc_b.knowledge_graph.nodes] == ["n1", "n2"]
    assert [r.id for r in doc_b.knowledge_graph.relationships] == ["r1"]


@pytest.mark.parametrize("targets", [["n1"], [("A",)], [(None, "n1")]])
def test_targets_without_owning_document_are_rejected(targets):
    with pytest.raises(ValidationError):
        plan_node_deletion([three_nodes_doc()], targets)
