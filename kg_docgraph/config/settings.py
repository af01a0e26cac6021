from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreBackend(str, Enum):
    """
    Where documents and their knowledge graphs live.

    LOCAL  - JSON files under DATA_DIR/store (offline / development).
    REMOTE - the hosted entity store reached over HTTP.
    """
    LOCAL = "local"
    REMOTE = "remote"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
        env_prefix="DOCGRAPH_"
    )


    # ------------------------------------------------------------------
    # Core paths / services
    # ------------------------------------------------------------------
    DATA_DIR: Path = Field(
        default=Path("data"),
        description="Base data directory for the local store, uploads and exports.",
    )

    STORE_BACKEND: StoreBackend = Field(
        default=StoreBackend.LOCAL,
        description="Entity store backend: 'local' (JSON files) or 'remote' (HTTP).",
    )

    ENTITY_STORE_URL: str = Field(
        default="https://app.base44.com/api",
        description="Base URL of the hosted entity store.",
    )

    APP_ID: str = Field(
        default="",
        description="Application id used to namespace entities in the hosted store.",
    )

    ENTITY_STORE_API_KEY: Optional[SecretStr] = Field(
        default=None,
        description="API key sent as the `api_key` header to the hosted store.",
    )

    DOCUMENT_ENTITY: str = Field(
        default="ResearchPaper",
        description="Entity type name used for uploaded documents.",
    )

    CHAT_SESSION_ENTITY: str = Field(
        default="ChatSession",
        description="Entity type name used for chat sessions.",
    )

    # ------------------------------------------------------------------
    # LLM / extraction
    # ------------------------------------------------------------------
    LLM_URL: str = Field(
        default="https://app.base44.com/api/integrations/Core/InvokeLLM",
        description="Endpoint accepting {prompt, response_json_schema}.",
    )

    FILE_EXTRACTION_URL: str = Field(
        default="https://app.base44.com/api/integrations/Core/ExtractDataFromUploadedFile",
        description="Endpoint accepting {file_url, json_schema}.",
    )

    LLM_MODEL_NAME: str = Field(
        default="gemini-pro",
        description="Model name mentioned in the extraction prompt and stored in metadata.",
    )

    REQUEST_TIMEOUT: int = Field(
        default=120,
        description="Timeout in seconds for entity store and LLM requests.",
    )

    EXTRACTION_MAX_CHARS: int = Field(
        default=4000,
        description=(
            "Maximum number of characters of document text sent to the LLM "
            "for knowledge graph extraction."
        ),
    )

    CHAT_CONTEXT_CHARS: int = Field(
        default=2000,
        description="Characters of each document's text included in the chat context.",
    )

    # ------------------------------------------------------------------
    # Graph consolidation
    # ------------------------------------------------------------------
    LAYOUT_CENTER_X: float = Field(
        default=400.0,
        description="X coordinate of the circle used to place nodes without a position.",
    )

    LAYOUT_CENTER_Y: float = Field(
        default=300.0,
        description="Y coordinate of the circle used to place nodes without a position.",
    )

    LAYOUT_RADIUS: float = Field(
        default=250.0,
        description="Radius of the layout circle.",
    )

    PRIMARY_POLICY: str = Field(
        default="first_occurrence",
        description=(
            "Which node survives a merge: 'first_occurrence', "
            "'most_connected' or 'highest_confidence'."
        ),
    )

    # ------------------------------------------------------------------
    # Convenience derived paths
    # ------------------------------------------------------------------
    @property
    def store_dir(self) -> Path:
        return self.DATA_DIR / "store"

    @property
    def uploads_dir(self) -> Path:
        return self.DATA_DIR / "uploads"

    @property
    def exports_dir(self) -> Path:
        return self.DATA_DIR / "exports"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Singleton-style accessor so we only construct Settings once and
    ensure directories exist on first access.
    """
    global _settings
    if _settings is None:
        _settings = Settings()

        _settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
        _settings.store_dir.mkdir(parents=True, exist_ok=True)
        _settings.uploads_dir.mkdir(parents=True, exist_ok=True)
        _settings.exports_dir.mkdir(parents=True, exist_ok=True)

    return _settings


settings = get_settings()
