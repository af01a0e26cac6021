# tests/test_web_app.py

import pytest
from fastapi.testclient import TestClient

from kg_docgraph.config.settings import settings
from kg_docgraph.errors import EntityStoreError
from kg_docgraph.store import LocalEntityStore
from kg_docgraph.web.app import app


class FakeLLM:
    def __init__(self, reply=None):
        self.reply = reply or {"answer": "Skip connections.", "citations": []}
        self.prompts = []

    def invoke(self, prompt, response_json_schema):
        self.prompts.append(prompt)
        return self.reply

    def extract_data_from_file(self, file_url, json_schema):
        return {"status": "success", "output": {"title": "Uploaded", "full_text": "Text"}}


class FailingUpdateStore(LocalEntityStore):
    def update(self, entity_type, entity_id, data):
        raise EntityStoreError("store offline", status_code=503)


def _seed(store):
    store.create(
        settings.DOCUMENT_ENTITY,
        {
            "id": "A",
            "title": "A title",
            "authors": ["Ada"],
            "processing_status": "completed",
            "extracted_content": {"full_text": "ResNets use skip connections."},
            "knowledge_graph": {
                "nodes": [
                    {"id": "a1", "label": "ResNet", "type": "Method"},
                    {"id": "a2", "label": "ImageNet", "type": "Dataset"},
                    {"id": "a3", "label": "resnet "},
                    {"id": "a4", "label": "Lonely"},
                ],
                "relationships": [{"id": "ra", "source_id": "a3", "target_id": "a2", "type": "EVALUATES_ON"}],
            },
        },
    )
    store.create(
        settings.DOCUMENT_ENTITY,
        {"id": "P", "title": "pending", "processing_status": "processing"},
    )


@pytest.fixture
def client(tmp_path):
    store = LocalEntityStore(tmp_path / "store")
    _seed(store)
    app.state.store = store
    app.state.llm = FakeLLM()
    yield TestClient(app)
    app.state.store = None
    app.state.llm = None


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_list_documents_with_status_filter(client):
    r = client.get("/documents")
    assert r.status_code == 200
    assert {d["id"] for d in r.json()} == {"A", "P"}
    assert "knowledge_graph" not in r.json()[0]

    r = client.get("/documents", params={"status": "completed"})
    assert [d["id"] for d in r.json()] == ["A"]


def test_graph_defaults_to_first_completed_document(client):
    r = client.get("/graph")
    assert r.status_code == 200
    data = r.json()

    assert data["selected_ids"] == ["A"]
    assert [n["id"] for n in data["nodes"]] == ["a1", "a2", "a4"]
    assert data["nodes"][0]["papers"] == ["A title"]
    assert len(data["relationships"]) == 1


def test_graph_relink_and_search(client):
    r = client.get("/graph", params={"ids": ["A"], "relink": "true"})
    assert r.json()["relationships"][0]["source_id"] == "a1"

    r = client.get("/graph", params={"q": "dataset"})
    assert [n["label"] for n in r.json()["nodes"]] == ["ImageNet"]


def test_stats_and_duplicates(client):
    stats = client.get("/graph/stats").json()
    assert stats["total_nodes"] == 3
    assert stats["duplicate_groups"] == 1
    assert stats["disconnected_nodes"] == 2

    groups = client.get("/graph/duplicates").json()
    assert groups[0]["label"] == "resnet"
    assert groups[0]["count"] == 2


def test_merge_duplicates(client):
    r = client.post("/graph/duplicates/merge", json={"label": "ResNet", "ids": ["A"]})
    assert r.status_code == 200
    assert r.json()["summary"] == "merged in 1 of 1 documents"

    assert client.get("/graph/duplicates").json() == []
    rels = client.get("/graph").json()["relationships"]
    assert rels[0]["source_id"] == "a1"


def test_merge_unknown_label_is_400(client):
    r = client.post("/graph/duplicates/merge", json={"label": "nothing"})
    assert r.status_code == 400


def test_merge_failure_is_502(client, tmp_path):
    store = FailingUpdateStore(tmp_path / "failing")
    _seed(store)
    app.state.store = store

    r = client.post("/graph/duplicates/merge", json={"label": "resnet"})
    assert r.status_code == 502
    assert r.json()["failed"][0]["document_id"] == "A"


def test_orphans_and_delete(client):
    orphans = client.get("/graph/orphans").json()
    assert [n["id"] for n in orphans] == ["a1", "a4"]

    r = client.post("/graph/orphans/delete", json={"node_ids": ["a4"]})
    assert r.status_code == 200
    assert r.json()["succeeded"] == ["A"]

    assert [n["id"] for n in client.get("/graph/orphans").json()] == ["a1"]


def test_edit_and_delete_single_node(client):
    r = client.put("/documents/A/nodes/a4", json={"label": "Not lonely", "type": "Concept"})
    assert r.status_code == 200

    labels = [n["label"] for n in client.get("/graph").json()["nodes"]]
    assert "Not lonely" in labels

    r = client.delete("/documents/A/nodes/a2")
    assert r.status_code == 200
    assert client.get("/graph").json()["relationships"] == []

    assert client.delete("/documents/A/nodes/zzz").status_code == 404
    assert client.delete("/documents/missing/nodes/a1").status_code == 404
    assert client.put("/documents/A/nodes/zzz", json={"label": "x"}).status_code == 400


def test_export(client):
    r = client.get("/graph/export", params={"ids": ["A"]})
    assert r.status_code == 200
    data = r.json()
    assert data["version"] == "1.0"
    assert data["papers"] == [{"id": "A", "title": "A title", "authors": ["Ada"]}]
    assert data["metadata"]["total_nodes"] == 3


def test_chat(client):
    r = client.post("/chat", json={"question": "What do ResNets use?", "ids": ["A"]})
    assert r.status_code == 200
    assert r.json()["answer"] == "Skip connections."
    assert "ResNets use skip connections." in app.state.llm.prompts[0]


def test_upload_document(client, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "DATA_DIR", tmp_path / "data")

    r = client.post(
        "/documents/upload",
        files={"file": ("notes.txt", b"Some notes", "text/plain")},
        data={"schema": "general"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "completed"
    assert body["file_name"] == "notes.txt"


def test_upload_unsupported_file_is_400(client, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "DATA_DIR", tmp_path / "data")

    r = client.post("/documents/upload", files={"file": ("virus.exe", b"MZ", "application/octet-stream")})
    assert r.status_code == 400



def test_delete_explicit_nodes(client):
    r = client.post("/graph/orphans/delete", json={"nodes": [{"paper_id": "A", "id": "a2"}]})
    assert r.status_code == 200

    graph = client.get("/graph").json()
    assert "ImageNet" not in [n["label"] for n in graph["nodes"]]
    assert graph["relationships"] == []


def test_delete_without_targets_is_a_no_op(client):
    r = client.post("/graph/orphans/delete", json={})
    assert r.status_code == 200
    assert r.json()["attempted"] == []


def test_upload_keeps_files_inside_uploads_dir(client, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "DATA_DIR", tmp_path / "data")

    r = client.post(
        "/documents/upload",
        files={"file": ("../../escaped.txt", b"Some notes", "text/plain")},
    )

    assert r.status_code == 200
    assert r.json()["file_name"] == "escaped.txt"
    assert not (tmp_path / "escaped.txt").exists()
    assert not (tmp_path / "data" / "escaped.txt").exists()
    (stored,) = settings.uploads_dir.glob("*/escaped.txt")
    assert stored.read_bytes() == b"Some notes"
