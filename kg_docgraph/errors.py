# kg_docgraph/errors.py

from __future__ import annotations

from typing import Optional


class DocGraphError(Exception):
    """Base class for every error raised by kg_docgraph."""


class ValidationError(DocGraphError, ValueError):
    """
    A precondition was violated (e.g. merging fewer than two nodes, or a
    relationship without endpoints). Raised before anything is written.
    """


class CollaboratorError(DocGraphError):
    """
    An external collaborator (entity store, LLM service) failed.

    The failure is scoped to a single document or chat message; callers
    record it and keep going.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class EntityStoreError(CollaboratorError):
    """Error raised when an entity store request fails."""


class LLMError(CollaboratorError):
    """Error raised when an LLM or extraction request fails."""


class DataIntegrityWarning(UserWarning):
    """
    Non-fatal: a node could not take part in label-based grouping
    (missing or blank label) and was skipped.
    """
