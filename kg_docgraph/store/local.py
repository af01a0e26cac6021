# kg_docgraph/store/local.py

"""
File-backed entity store for offline use and tests.

Each entity type is one JSON file (a list of records) in the target
directory; uploaded files are copied into a `files/` subdirectory and
addressed with file:// URLs. Semantics follow the hosted store:
`create` assigns `id` / `created_date`, `update` is a partial merge.
"""

from __future__ import annotations

import json
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from kg_docgraph.errors import EntityStoreError
from kg_docgraph.store.base import sort_entities


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LocalEntityStore:
    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _path(self, entity_type: str) -> Path:
        return self.directory / f"{entity_type}.json"

    def _load(self, entity_type: str) -> List[Dict[str, Any]]:
        path = self._path(entity_type)
        if not path.exists():
            return []
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise EntityStoreError(f"Cannot read {path}: {exc}") from exc

    def _save(self, entity_type: str, records: List[Dict[str, Any]]) -> None:
        path = self._path(entity_type)
        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_text(json.dumps(records, indent=2), encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            raise EntityStoreError(f"Cannot write {path}: {exc}") from exc

    def _find(self, records: List[Dict[str, Any]], entity_type: str, entity_id: str) -> int:
        for idx, record in enumerate(records):
            if record.get("id") == entity_id:
                return idx
        raise EntityStoreError(
            f"{entity_type} {entity_id!r} not found",
            status_code=404,
        )

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    def create(self, entity_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        records = self._load(entity_type)
        now = _now()
        record = {
            **data,
            "id": data.get("id") or uuid.uuid4().hex,
            "created_date": now,
            "updated_date": now,
        }
        records.append(record)
        self._save(entity_type, records)
        return dict(record)

    def list(
        self,
        entity_type: str,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        records = sort_entities(self._load(entity_type), sort)
        if limit is not None:
            records = records[:limit]
        return records

    def get(self, entity_type: str, entity_id: str) -> Dict[str, Any]:
        records = self._load(entity_type)
        return dict(records[self._find(records, entity_type, entity_id)])

    def update(
        self,
        entity_type: str,
        entity_id: str,
        data: Dict[str, Any],
    ) -> Dict[str, Any]:
        records = self._load(entity_type)
        idx = self._find(records, entity_type, entity_id)
        records[idx] = {**records[idx], **data, "id": entity_id, "updated_date": _now()}
        self._save(entity_type, records)
        return dict(records[idx])

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------
    def upload_file(self, path: Union[str, Path]) -> str:
        src = Path(path)
        if not src.exists():
            raise FileNotFoundError(f"File not found: {src}")

        files_dir = self.directory / "files"
        files_dir.mkdir(parents=True, exist_ok=True)
        dest = files_dir / f"{uuid.uuid4().hex}-{src.name}"
        try:
            shutil.copy2(src, dest)
        except OSError as exc:
            raise EntityStoreError(f"Cannot store uploaded file {src}: {exc}") from exc
        return dest.resolve().as_uri()
