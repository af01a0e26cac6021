from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from kg_docgraph.config.settings import settings
from kg_docgraph.errors import CollaboratorError, LLMError, ValidationError
from kg_docgraph.graph.schema import STATUS_PROGRESS, ProcessingStatus
from kg_docgraph.llm.prompts import (
    DOCUMENT_EXTRACTION_SCHEMA,
    GRAPH_RESPONSE_SCHEMA,
    ExtractionSchema,
    build_graph_prompt,
    get_schema,
)
from kg_docgraph.models.document import KnowledgeGraph

logger = logging.getLogger(__name__)


# File suffix -> file_type stored on the document
SUPPORTED_TYPES: Dict[str, str] = {
    ".pdf": "pdf",
    ".docx": "docx",
    ".pptx": "pptx",
    ".txt": "txt",
    ".md": "md",
    ".jpg": "jpg",
    ".jpeg": "jpg",
    ".png": "png",
    ".gif": "gif",
}

# Extracted fields copied onto the document once processing completes
_METADATA_FIELDS = ("title", "authors", "abstract", "keywords", "publication_year", "journal")


# -----------------------------------------------------------------------------
# Public result type
# -----------------------------------------------------------------------------

@dataclass
class IngestOutcome:
    """
    Result of processing one file.

    - document_id: id assigned by the store (None if creation itself failed)
    - status: final ProcessingStatus ("completed" or "failed")
    - error: message for failed documents
    - document: final store record for completed documents
    """
    file_name: str
    status: ProcessingStatus
    document_id: Optional[str] = None
    error: Optional[str] = None
    document: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == ProcessingStatus.COMPLETED


def detect_file_type(path: Path) -> str:
    file_type = SUPPORTED_TYPES.get(path.suffix.lower())
    if file_type is None:
        raise ValidationError(
            f"Unsupported file {path.name!r}. Please upload PDF, DOCX, PPTX, TXT, MD, or image files."
        )
    return file_type


# -----------------------------------------------------------------------------
# Stages
# -----------------------------------------------------------------------------

def _set_status(
    store: Any,
    entity_type: str,
    document_id: str,
    status: ProcessingStatus,
    **fields: Any,
) -> Dict[str, Any]:
    logger.info("Document %s -> %s", document_id, status.value)
    return store.update(
        entity_type,
        document_id,
        {
            "processing_status": status.value,
            "processing_progress": STATUS_PROGRESS[status],
            **fields,
        },
    )


def _mark_failed(store: Any, entity_type: str, document_id: str, error: str) -> None:
    """Best-effort: the original error is what gets reported either way."""
    try:
        _set_status(store, entity_type, document_id, ProcessingStatus.FAILED, processing_error=error)
    except CollaboratorError as exc:
        logger.warning("Could not mark document %s as failed: %s", document_id, exc)


def extract_knowledge_graph(
    llm: Any,
    text: str,
    schema: "str | ExtractionSchema" = "general",
    model_name: Optional[str] = None,
    max_chars: Optional[int] = None,
) -> KnowledgeGraph:
    """
    Ask the LLM for a knowledge graph of `text` and validate the response.

    A response that does not fit the Node/Relationship model (e.g. a
    relationship without endpoints) is raised as LLMError.
    """
    prompt = build_graph_prompt(
        text,
        schema,
        model_name or settings.LLM_MODEL_NAME,
        max_chars=max_chars or settings.EXTRACTION_MAX_CHARS,
    )
    raw = llm.invoke(prompt, GRAPH_RESPONSE_SCHEMA)
    try:
        return KnowledgeGraph.model_validate(
            {"nodes": raw.get("nodes") or [], "relationships": raw.get("relationships") or []}
        )
    except ValueError as exc:
        raise LLMError(f"LLM returned a malformed knowledge graph: {exc}") from exc


def process_file(
    store: Any,
    llm: Any,
    path: Union[str, Path],
    schema: "str | ExtractionSchema" = "general",
    model_name: Optional[str] = None,
    entity_type: Optional[str] = None,
) -> IngestOutcome:
    """
    Upload one file and take it through the full processing sequence:

      1. create the document (uploading)
      2. upload the file (uploaded)
      3. extract content (processing -> post_processing)
      4. extract the knowledge graph with the LLM
      5. store metadata + graph (completed)

    Every status change is persisted. A collaborator failure marks the
    document failed and is returned in the outcome rather than raised.
    Unsupported files raise ValidationError before anything is created.
    """
    path = Path(path)
    file_type = detect_file_type(path)
    schema_cfg = get_schema(schema)
    model_name = model_name or settings.LLM_MODEL_NAME
    entity_type = entity_type or settings.DOCUMENT_ENTITY
    started = time.time()

    document_id: Optional[str] = None
    try:
        created = store.create(
            entity_type,
            {
                "title": path.stem,
                "file_name": path.name,
                "file_type": file_type,
                "file_size": path.stat().st_size,
                "processing_status": ProcessingStatus.UPLOADING.value,
                "processing_progress": STATUS_PROGRESS[ProcessingStatus.UPLOADING],
            },
        )
        document_id = created["id"]
        logger.info("Created document %s for %s", document_id, path.name)

        file_url = store.upload_file(path)
        _set_status(store, entity_type, document_id, ProcessingStatus.UPLOADED, file_url=file_url)

        _set_status(store, entity_type, document_id, ProcessingStatus.PROCESSING)
        extraction = llm.extract_data_from_file(file_url, DOCUMENT_EXTRACTION_SCHEMA)
        if extraction.get("status") != "success":
            raise LLMError(f"Failed to extract document content: {extraction.get('details') or extraction.get('status')!r}")
        output: Dict[str, Any] = extraction.get("output") or {}

        _set_status(
            store,
            entity_type,
            document_id,
            ProcessingStatus.POST_PROCESSING,
            extracted_content=output,
        )

        graph = extract_knowledge_graph(
            llm,
            output.get("full_text") or "",
            schema_cfg,
            model_name=model_name,
        )

        metadata = {k: output[k] for k in _METADATA_FIELDS if output.get(k) is not None}
        final = _set_status(
            store,
            entity_type,
            document_id,
            ProcessingStatus.COMPLETED,
            **metadata,
            knowledge_graph=graph.to_store_payload(),
            metadata={
                "llm_model": model_name,
                "schema": schema_cfg.id,
                "processing_time": round(time.time() - started, 3),
            },
        )
    except CollaboratorError as exc:
        logger.warning("Processing failed for %s: %s", path.name, exc)
        if document_id is not None:
            _mark_failed(store, entity_type, document_id, str(exc))
        return IngestOutcome(
            file_name=path.name,
            status=ProcessingStatus.FAILED,
            document_id=document_id,
            error=str(exc),
        )

    return IngestOutcome(
        file_name=path.name,
        status=ProcessingStatus.COMPLETED,
        document_id=document_id,
        document=final,
    )


def process_files(
    store: Any,
    llm: Any,
    paths: Sequence[Union[str, Path]],
    schema: "str | ExtractionSchema" = "general",
    model_name: Optional[str] = None,
    entity_type: Optional[str] = None,
) -> List[IngestOutcome]:
    """
    Process files one after the other. Each document advances through its
    own status sequence; one failing file never stops the rest.
    """
    outcomes: List[IngestOutcome] = []
    for path in paths:
        try:
            outcome = process_file(
                store,
                llm,
                path,
                schema=schema,
                model_name=model_name,
                entity_type=entity_type,
            )
        except ValidationError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            outcome = IngestOutcome(
                file_name=Path(path).name,
                status=ProcessingStatus.FAILED,
                error=str(exc),
            )
        outcomes.append(outcome)
    return outcomes
