# tests/test_settings.py

import pytest

from kg_docgraph.config.settings import Settings, StoreBackend, get_settings


def test_settings_paths_exist():
    settings = get_settings()

    assert settings.DATA_DIR.exists()
    assert settings.store_dir.exists()
    assert settings.uploads_dir.exists()
    assert settings.exports_dir.exists()


def test_defaults():
    """
    Out of the box: local store, gemini-pro, the ResearchPaper entity and
    a 250px layout circle centred at (400, 300).
    """
    settings = Settings()

    assert settings.STORE_BACKEND == StoreBackend.LOCAL
    assert settings.LLM_MODEL_NAME == "gemini-pro"
    assert settings.DOCUMENT_ENTITY == "ResearchPaper"
    assert (settings.LAYOUT_CENTER_X, settings.LAYOUT_CENTER_Y) == (400.0, 300.0)
    assert settings.LAYOUT_RADIUS == 250.0
    assert settings.EXTRACTION_MAX_CHARS == 4000


def test_env_override(monkeypatch, tmp_path):
    monkeypatch.setenv("DOCGRAPH_STORE_BACKEND", "remote")
    monkeypatch.setenv("DOCGRAPH_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("DOCGRAPH_ENTITY_STORE_API_KEY", "s3cret")

    settings = Settings()

    assert settings.STORE_BACKEND == StoreBackend.REMOTE
    assert settings.store_dir == tmp_path / "store"
    assert settings.ENTITY_STORE_API_KEY.get_secret_value() == "s3cret"
    assert "s3cret" not in repr(settings)


def test_invalid_backend_rejected(monkeypatch):
    monkeypatch.setenv("DOCGRAPH_STORE_BACKEND", "ftp")

    with pytest.raises(ValueError):
        Settings()
