# kg_docgraph/llm/prompts.py

from __future__ import annotations

import json
import textwrap
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from kg_docgraph.errors import ValidationError
from kg_docgraph.graph.schema import NodeType


@dataclass(frozen=True)
class ExtractionSchema:
    """Node labels and relationship types suggested to the extraction model."""

    id: str
    name: str
    node_labels: List[str] = field(default_factory=list)
    relationship_types: List[str] = field(default_factory=list)


PREDEFINED_SCHEMAS: Dict[str, ExtractionSchema] = {
    "general": ExtractionSchema(
        id="general",
        name="General Knowledge",
        node_labels=["Person", "Organization", "Location", "Concept", "Event"],
        relationship_types=["RELATED_TO", "PART_OF", "LOCATED_IN", "PARTICIPATED_IN"],
    ),
    "research": ExtractionSchema(
        id="research",
        name="Research Paper",
        node_labels=["Author", "Method", "Dataset", "Algorithm", "Concept", "Metric"],
        relationship_types=["AUTHORED_BY", "USES_METHOD", "EVALUATES_ON", "RELATED_TO"],
    ),
    "business": ExtractionSchema(
        id="business",
        name="Business Document",
        node_labels=["Company", "Person", "Product", "Market", "Technology"],
        relationship_types=["WORKS_FOR", "COMPETES_WITH", "PRODUCES", "PARTNERS_WITH"],
    ),
}


def get_schema(schema: "str | ExtractionSchema") -> ExtractionSchema:
    if isinstance(schema, ExtractionSchema):
        return schema
    try:
        return PREDEFINED_SCHEMAS[schema]
    except KeyError as exc:
        raise ValidationError(
            f"Unknown extraction schema {schema!r}; expected one of: "
            + ", ".join(PREDEFINED_SCHEMAS)
        ) from exc


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

_PASSAGES_SCHEMA: Dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "text": {"type": "string"},
            "page": {"type": "integer"},
            "confidence": {"type": "number"},
        },
    },
}

GRAPH_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "nodes": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "label": {"type": "string"},
                    "type": {"type": "string", "examples": [t.value for t in NodeType]},
                    "properties": {"type": "object"},
                    "source_passages": _PASSAGES_SCHEMA,
                    "confidence": {"type": "number"},
                },
            },
        },
        "relationships": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "source_id": {"type": "string"},
                    "target_id": {"type": "string"},
                    "type": {"type": "string"},
                    "properties": {"type": "object"},
                    "source_passages": _PASSAGES_SCHEMA,
                    "confidence": {"type": "number"},
                },
            },
        },
    },
}

DOCUMENT_EXTRACTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "authors": {"type": "array", "items": {"type": "string"}},
        "abstract": {"type": "string"},
        "keywords": {"type": "array", "items": {"type": "string"}},
        "publication_year": {"type": "number"},
        "journal": {"type": "string"},
        "full_text": {"type": "string"},
        "pages": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "page_number": {"type": "number"},
                    "content": {"type": "string"},
                },
            },
        },
    },
}

CHAT_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "answer": {"type": "string"},
        "citations": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "paper_id": {"type": "string"},
                    "paper_title": {"type": "string"},
                    "text_snippet": {"type": "string"},
                    "page": {"type": "integer"},
                    "confidence": {"type": "number"},
                    "file_url": {"type": "string"},
                },
            },
        },
    },
}


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


def build_graph_prompt(
    text: str,
    schema: "str | ExtractionSchema",
    model_name: str,
    max_chars: int = 4000,
) -> str:
    schema = get_schema(schema)
    return textwrap.dedent(
        f"""
        Extract a comprehensive knowledge graph from this document using {model_name}.

        Document content: {json.dumps(text[:max_chars])}

        Schema Guidelines:
        - Node Labels: {", ".join(schema.node_labels)}
        - Relationship Types: {", ".join(schema.relationship_types)}

        Extract:
        1. Key entities matching the schema node labels
        2. Relationships between entities using the defined relationship types
        3. Source text passages for each node and relationship

        Return a detailed knowledge graph.
        """
    ).strip()


def build_chat_prompt(
    question: str,
    contexts: Sequence[Dict[str, str]],
    max_chars: int = 2000,
) -> str:
    """
    `contexts` holds one {"title", "content"} dict per document; each
    document's content is truncated to `max_chars`.
    """
    context_text = "\n\n".join(
        f"Document: {c['title']}\nContent: {c['content'][:max_chars]}..."
        for c in contexts
    )
    return textwrap.dedent(
        """
        You are a research assistant with access to uploaded documents. Answer the user's question based on the provided context.

        Context from uploaded documents:
        {context}

        User question: {question}

        Instructions:
        1. Provide a comprehensive answer based on the documents
        2. Include inline citations in the format [Citation X] where X is a number
        3. For each citation, provide the source document title, relevant text snippet, and page number if available
        4. Be precise and reference specific information from the documents
        """
    ).strip().format(context=context_text, question=question)
