# tests/test_entity_store.py

import pytest
import requests

from kg_docgraph.config.settings import Settings, StoreBackend
from kg_docgraph.errors import EntityStoreError
from kg_docgraph.store import (
    EntityStoreClient,
    EntityStoreConfig,
    LocalEntityStore,
    get_entity_store,
)


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text=""):
        self.status_code = status_code
        self._json = json_data
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._json is None:
            raise ValueError("no json")
        return self._json


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.response


def _client(session):
    config = EntityStoreConfig(base_url="https://store.test/api", app_id="app1", api_key="secret")
    return EntityStoreClient(config, session=session)


# ---------------------------------------------------------------------------
# LocalEntityStore
# ---------------------------------------------------------------------------

def test_local_store_crud(tmp_path):
    store = LocalEntityStore(tmp_path)

    created = store.create("ResearchPaper", {"title": "First"})
    assert created["id"]
    assert created["created_date"]

    updated = store.update("ResearchPaper", created["id"], {"processing_status": "completed"})
    assert updated["title"] == "First"
    assert updated["processing_status"] == "completed"

    assert store.get("ResearchPaper", created["id"])["processing_status"] == "completed"
    assert [r["id"] for r in store.list("ResearchPaper")] == [created["id"]]
    assert store.list("ChatSession") == []


def test_local_store_sort_and_limit(tmp_path):
    store = LocalEntityStore(tmp_path)
    for title, year in [("b", 2020), ("a", 2022), ("c", None)]:
        store.create("ResearchPaper", {"title": title, "publication_year": year})

    titles = [r["title"] for r in store.list("ResearchPaper", sort="-publication_year")]
    assert titles == ["a", "b", "c"]
    assert len(store.list("ResearchPaper", sort="title", limit=2)) == 2


def test_local_store_missing_entity_is_404(tmp_path):
    store = LocalEntityStore(tmp_path)

    with pytest.raises(EntityStoreError) as excinfo:
        store.get("ResearchPaper", "nope")
    assert excinfo.value.status_code == 404


def test_local_store_upload_file(tmp_path):
    src = tmp_path / "paper.txt"
    src.write_text("hello", encoding="utf-8")
    store = LocalEntityStore(tmp_path / "store")

    url = store.upload_file(src)

    assert url.startswith("file://")
    assert url.endswith("paper.txt")


# ---------------------------------------------------------------------------
# EntityStoreClient
# ---------------------------------------------------------------------------

def test_client_list_builds_url_and_params():
    session = FakeSession(FakeResponse(json_data=[{"id": "1"}]))

    records = _client(session).list("ResearchPaper", sort="-created_date", limit=5)

    assert records == [{"id": "1"}]
    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url == "https://store.test/api/apps/app1/entities/ResearchPaper"
    assert kwargs["params"] == {"sort": "-created_date", "limit": 5}
    assert kwargs["headers"]["api_key"] == "secret"


def test_client_update_puts_partial_payload():
    session = FakeSession(FakeResponse(json_data={"id": "p1", "title": "x"}))

    _client(session).update("ResearchPaper", "p1", {"title": "x"})

    method, url, kwargs = session.calls[0]
    assert method == "PUT"
    assert url.endswith("/entities/ResearchPaper/p1")
    assert kwargs["json"] == {"title": "x"}


def test_client_http_error_is_wrapped():
    session = FakeSession(FakeResponse(status_code=500, text="server exploded"))

    with pytest.raises(EntityStoreError) as excinfo:
        _client(session).get("ResearchPaper", "p1")

    assert excinfo.value.status_code == 500
    assert "server exploded" in str(excinfo.value)


def test_client_transport_error_is_wrapped():
    session = FakeSession(exc=requests.exceptions.ConnectionError("down"))

    with pytest.raises(EntityStoreError):
        _client(session).create("ResearchPaper", {"title": "x"})


def test_client_upload_requires_file_url(tmp_path):
    path = tmp_path / "a.pdf"
    path.write_bytes(b"%PDF")
    session = FakeSession(FakeResponse(json_data={"file_url": "https://files.test/a.pdf"}))

    assert _client(session).upload_file(path) == "https://files.test/a.pdf"
    assert session.calls[0][1].endswith("/integrations/Core/UploadFile")

    session.response = FakeResponse(json_data={})
    with pytest.raises(EntityStoreError):
        _client(session).upload_file(path)


def test_get_entity_store_follows_backend(tmp_path):
    local = get_entity_store(Settings(DATA_DIR=tmp_path))
    assert isinstance(local, LocalEntityStore)

    remote = get_entity_store(Settings(DATA_DIR=tmp_path, STORE_BACKEND=StoreBackend.REMOTE, APP_ID="x"))
    assert isinstance(remote, EntityStoreClient)
    assert remote.app_url.endswith("/apps/x")
