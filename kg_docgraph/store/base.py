# kg_docgraph/store/base.py

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union


class EntityStore(Protocol):
    """
    CRUD surface of the backend holding documents, chat sessions and files.

    `update` is a partial merge: only the given fields change, so updating
    `knowledge_graph` leaves every other document field untouched.
    """

    def create(self, entity_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def list(
        self,
        entity_type: str,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        ...

    def get(self, entity_type: str, entity_id: str) -> Dict[str, Any]:
        ...

    def update(
        self,
        entity_type: str,
        entity_id: str,
        data: Dict[str, Any],
    ) -> Dict[str, Any]:
        ...

    def upload_file(self, path: Union[str, Path]) -> str:
        ...


def sort_entities(
    entities: List[Dict[str, Any]],
    sort: Optional[str],
) -> List[Dict[str, Any]]:
    """
    Sort like the hosted store: "field" ascending, "-field" descending.
    Entities missing the field sort last.
    """
    if not sort:
        return list(entities)

    descending = sort.startswith("-")
    key = sort.lstrip("-")
    present = [e for e in entities if e.get(key) is not None]
    missing = [e for e in entities if e.get(key) is None]
    present.sort(key=lambda e: e[key], reverse=descending)
    return present + missing
