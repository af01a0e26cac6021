# kg_docgraph/models/document.py

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from kg_docgraph.errors import ValidationError
from kg_docgraph.graph.schema import ProcessingStatus


class SourcePassage(BaseModel):
    """
    An evidence snippet backing a node or relationship.

    Fields
    ------
    text:
        The passage text as returned by the extraction model.
    page:
        Page number in the source document, if known.
    confidence:
        Model confidence in [0, 1], if reported.
    """

    model_config = ConfigDict(extra="allow")

    text: str = ""
    page: Optional[int] = None
    confidence: Optional[float] = None


class Position(BaseModel):
    x: float
    y: float


class Node(BaseModel):
    """
    An entity extracted from one document.

    `id` is only unique inside its owning document. The `paper_id`,
    `paper_title`, `papers`, `x` and `y` fields are filled in for the
    combined view and are not part of the persisted document graph.
    """

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    label: Optional[str] = None
    type: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)
    source_passages: List[SourcePassage] = Field(default_factory=list)
    confidence: Optional[float] = None
    position: Optional[Position] = None

    # combined-view only
    paper_id: Optional[str] = None
    paper_title: Optional[str] = None
    papers: Optional[List[str]] = None
    x: Optional[float] = None
    y: Optional[float] = None


class Relationship(BaseModel):
    """A directed, typed edge between two node ids of the same document."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    source_id: str
    target_id: str
    type: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)
    source_passages: List[SourcePassage] = Field(default_factory=list)
    confidence: Optional[float] = None

    # combined-view only
    paper_id: Optional[str] = None
    paper_title: Optional[str] = None


# Fields that only exist in the combined view and must not leak back into
# a persisted per-document graph.
VIEW_ONLY_NODE_FIELDS = {"paper_id", "paper_title", "papers", "x", "y"}
VIEW_ONLY_RELATIONSHIP_FIELDS = {"paper_id", "paper_title"}


class KnowledgeGraph(BaseModel):
    model_config = ConfigDict(extra="allow")

    nodes: List[Node] = Field(default_factory=list)
    relationships: List[Relationship] = Field(default_factory=list)

    def to_store_payload(self) -> Dict[str, Any]:
        """
        Serialize for a `knowledge_graph` partial update, dropping
        combined-view fields and unset optionals.
        """
        return {
            "nodes": [
                n.model_dump(exclude=VIEW_ONLY_NODE_FIELDS, exclude_none=True)
                for n in self.nodes
            ],
            "relationships": [
                r.model_dump(exclude=VIEW_ONLY_RELATIONSHIP_FIELDS, exclude_none=True)
                for r in self.relationships
            ],
        }


class ExtractedContent(BaseModel):
    model_config = ConfigDict(extra="allow")

    full_text: Optional[str] = None
    pages: List[Dict[str, Any]] = Field(default_factory=list)


class Document(BaseModel):
    """
    A research document as stored in the entity store.

    The model is open: fields the store returns that are not listed here
    are kept, so a document can be round-tripped without loss.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    title: str = ""
    authors: List[str] = Field(default_factory=list)
    abstract: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    publication_year: Optional[int] = None
    journal: Optional[str] = None

    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None

    processing_status: ProcessingStatus = ProcessingStatus.UPLOADING
    processing_progress: int = 0

    extracted_content: Optional[ExtractedContent] = None
    knowledge_graph: Optional[KnowledgeGraph] = None

    @property
    def is_completed(self) -> bool:
        return self.processing_status == ProcessingStatus.COMPLETED

    @property
    def full_text(self) -> str:
        if self.extracted_content is None:
            return ""
        return self.extracted_content.full_text or ""


def load_documents(raw_documents: Iterable[Any]) -> List[Document]:
    """
    Validate store records into Documents, preserving order.

    Already-validated Documents are passed through. Malformed records
    (no id, relationships without endpoints, ...) fail fast with a
    kg_docgraph ValidationError naming the offending record.
    """
    documents: List[Document] = []
    for idx, raw in enumerate(raw_documents):
        if isinstance(raw, Document):
            documents.append(raw)
            continue
        try:
            documents.append(Document.model_validate(raw))
        except PydanticValidationError as exc:
            ident = raw.get("id") if isinstance(raw, dict) else None
            raise ValidationError(
                f"Malformed document at position {idx} (id={ident!r}): {exc}"
            ) from exc
    return documents
