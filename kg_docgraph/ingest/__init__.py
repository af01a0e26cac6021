# kg_docgraph/ingest/__init__.py

"""
Ingestion pipeline for going from an uploaded file -> extracted content
-> LLM knowledge graph, persisting each status change in the entity store.
"""

from .pipeline import IngestOutcome, SUPPORTED_TYPES, process_file, process_files

__all__ = ["IngestOutcome", "SUPPORTED_TYPES", "process_file", "process_files"]
