# kg_docgraph/graph/io.py

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Union

from kg_docgraph.errors import ValidationError
from kg_docgraph.graph.export import EXPORT_VERSION
from kg_docgraph.models.document import KnowledgeGraph

PathLike = Union[str, Path]


def save_snapshot(
    snapshot: Dict[str, Any],
    path: PathLike,
    overwrite: bool = True,
) -> Path:
    """
    Write an export snapshot to disk as indented JSON.

    - If `path` has no suffix, `.json` is appended.
    - Creates parent directories if needed.
    - If `overwrite` is False and the file already exists, raises FileExistsError.
    """
    output_path = Path(path)

    if output_path.suffix == "":
        output_path = output_path.with_suffix(".json")

    output_path.parent.mkdir(parents=True, exist_ok=True)

    if output_path.exists() and not overwrite:
        raise FileExistsError(f"Snapshot file already exists and overwrite=False: {output_path}")

    output_path.write_text(json.dumps(snapshot, indent=2), encoding="utf-8")
    return output_path


def load_snapshot(path: PathLike) -> Dict[str, Any]:
    """
    Load an export snapshot and validate its graph.

    The returned dict is the parsed JSON with `graph` replaced by a
    KnowledgeGraph. Raises ValidationError for invalid JSON, an unknown
    version or a malformed graph.
    """
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Snapshot {p} is not valid JSON: {exc}") from exc

    if not isinstance(data, dict) or data.get("version") != EXPORT_VERSION:
        version = data.get("version") if isinstance(data, dict) else None
        raise ValidationError(f"Unsupported snapshot version {version!r} in {p}")

    try:
        data["graph"] = KnowledgeGraph.model_validate(data.get("graph") or {})
    except ValueError as exc:
        raise ValidationError(f"Malformed graph in snapshot {p}: {exc}") from exc

    return data
