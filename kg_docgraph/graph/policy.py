# kg_docgraph/graph/policy.py

from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Optional, Sequence

from kg_docgraph.errors import ValidationError
from kg_docgraph.models.document import Node, Relationship


class PrimaryPolicy(str, Enum):
    """
    Rule deciding which node of a duplicate group survives a merge.

    FIRST_OCCURRENCE   - the first node in the group's stable order.
    MOST_CONNECTED     - the node referenced by the most relationships of
                         its own document.
    HIGHEST_CONFIDENCE - the node with the best node- or passage-level
                         confidence.

    Ties always go to the earliest node, so every policy is deterministic.
    """
    FIRST_OCCURRENCE = "first_occurrence"
    MOST_CONNECTED = "most_connected"
    HIGHEST_CONFIDENCE = "highest_confidence"


def coerce_policy(value: "PrimaryPolicy | str | None") -> PrimaryPolicy:
    if value is None:
        return PrimaryPolicy.FIRST_OCCURRENCE
    if isinstance(value, PrimaryPolicy):
        return value
    try:
        return PrimaryPolicy(str(value).strip().lower())
    except ValueError as exc:
        choices = ", ".join(p.value for p in PrimaryPolicy)
        raise ValidationError(
            f"Unknown primary policy {value!r}; expected one of: {choices}"
        ) from exc


def _node_confidence(node: Node) -> float:
    scores = [p.confidence for p in node.source_passages if p.confidence is not None]
    if node.confidence is not None:
        scores.append(node.confidence)
    return max(scores) if scores else 0.0


def _degree(node: Node, relationships: Iterable[Relationship]) -> int:
    return sum(
        1
        for rel in relationships
        if (rel.paper_id is None or rel.paper_id == node.paper_id)
        and (rel.source_id == node.id or rel.target_id == node.id)
    )


def choose_primary_index(
    nodes: Sequence[Node],
    policy: "PrimaryPolicy | str | None" = PrimaryPolicy.FIRST_OCCURRENCE,
    relationships: Optional[Sequence[Relationship]] = None,
) -> int:
    """
    Return the index of the surviving node within `nodes`.

    `relationships` is only consulted by MOST_CONNECTED; relationships
    tagged with a `paper_id` only count for nodes of that same document.
    """
    if not nodes:
        raise ValidationError("Cannot choose a primary node from an empty group")

    policy = coerce_policy(policy)

    if policy == PrimaryPolicy.FIRST_OCCURRENCE:
        return 0

    if policy == PrimaryPolicy.MOST_CONNECTED:
        rels: List[Relationship] = list(relationships or [])
        scores = [_degree(n, rels) for n in nodes]
    else:
        scores = [_node_confidence(n) for n in nodes]

    best = 0
    for idx, score in enumerate(scores):
        if score > scores[best]:
            best = idx
    return best
