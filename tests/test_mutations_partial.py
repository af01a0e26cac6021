# tests/test_mutations_partial.py

import pytest

from kg_docgraph.config.settings import settings
from kg_docgraph.errors import EntityStoreError, ValidationError
from kg_docgraph.graph.combine import flatten_nodes
from kg_docgraph.graph.enhance import find_duplicate_groups, merge_duplicate_group, update_node
from kg_docgraph.models.document import Node
from kg_docgraph.store import LocalEntityStore


class FlakyStore:
    """Wraps a LocalEntityStore and fails updates for selected documents."""

    def __init__(self, inner, failing_ids):
        self.inner = inner
        self.failing_ids = set(failing_ids)
        self.updates = []

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def update(self, entity_type, entity_id, data):
        self.updates.append(entity_id)
        if entity_id in self.failing_ids:
            raise EntityStoreError(f"boom for {entity_id}", status_code=500)
        return self.inner.update(entity_type, entity_id, data)


def _docs():
    return [
        {
            "id": "A",
            "title": "A title",
            "processing_status": "completed",
            "knowledge_graph": {"nodes": [{"id": "a1", "label": "GPT"}], "relationships": []},
        },
        {
            "id": "B",
            "title": "B title",
            "processing_status": "completed",
            "knowledge_graph": {"nodes": [{"id": "b1", "label": "gpt"}], "relationships": []},
        },
    ]


def test_merge_reports_partial_success(tmp_path):
    inner = LocalEntityStore(tmp_path)
    docs = _docs()
    for doc in docs:
        inner.create(settings.DOCUMENT_ENTITY, doc)
    store = FlakyStore(inner, failing_ids=["A"])
    (group,) = find_duplicate_groups(flatten_nodes(docs))

    report = merge_duplicate_group(store, group, docs)

    # every document is attempted even after a failure
    assert store.updates == ["A", "B"]
    assert report.partial
    assert not report.ok
    assert report.succeeded == ["B"]
    assert report.failed[0][0] == "A"
    assert "boom" in report.failed[0][1]
    assert report.summary() == "merged in 1 of 2 documents"

    assert inner.get(settings.DOCUMENT_ENTITY, "B")["knowledge_graph"]["nodes"] == []
    assert inner.get(settings.DOCUMENT_ENTITY, "A")["knowledge_graph"]["nodes"][0]["id"] == "a1"


def test_update_node_replaces_by_id(tmp_path):
    store = LocalEntityStore(tmp_path)
    store.create(settings.DOCUMENT_ENTITY, _docs()[0])

    report = update_node(
        store,
        store.get(settings.DOCUMENT_ENTITY, "A"),
        Node(id="a1", label="GPT-4", type="Model", properties={"params": "1.8T"}),
    )

    assert report.ok
    stored = store.get(settings.DOCUMENT_ENTITY, "A")["knowledge_graph"]["nodes"]
    assert stored == [{"id": "a1", "label": "GPT-4", "type": "Model",
                       "properties": {"params": "1.8T"}, "source_passages": []}]


def test_update_unknown_node_raises_before_writing(tmp_path):
    inner = LocalEntityStore(tmp_path)
    inner.create(settings.DOCUMENT_ENTITY, _docs()[0])
    store = FlakyStore(inner, failing_ids=[])

    with pytest.raises(ValidationError):
        update_node(store, inner.get(settings.DOCUMENT_ENTITY, "A"), Node(id="zzz", label="x"))

    assert store.updates == []
