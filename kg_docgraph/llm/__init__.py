# kg_docgraph/llm/__init__.py

"""
LLM service client plus the prompts and JSON response schemas used for
knowledge graph extraction and chat.
"""

from .client import LLMClient, LLMClientConfig
from .prompts import (
    CHAT_RESPONSE_SCHEMA,
    DOCUMENT_EXTRACTION_SCHEMA,
    GRAPH_RESPONSE_SCHEMA,
    PREDEFINED_SCHEMAS,
    ExtractionSchema,
    build_chat_prompt,
    build_graph_prompt,
    get_schema,
)

__all__ = [
    "LLMClient",
    "LLMClientConfig",
    "CHAT_RESPONSE_SCHEMA",
    "DOCUMENT_EXTRACTION_SCHEMA",
    "GRAPH_RESPONSE_SCHEMA",
    "PREDEFINED_SCHEMAS",
    "ExtractionSchema",
    "build_chat_prompt",
    "build_graph_prompt",
    "get_schema",
]
