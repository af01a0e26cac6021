import pytest

from kg_docgraph.errors import ValidationError
from kg_docgraph.graph.policy import PrimaryPolicy, choose_primary_index, coerce_policy
from kg_docgraph.models.document import Node, Relationship


def _nodes():
    return [
        Node(id="n1", label="x", paper_id="A", confidence=0.2),
        Node(id="n2", label="x", paper_id="B",
             source_passages=[{"text": "t", "confidence": 0.9}]),
        Node(id="n3", label="x", paper_id="C", confidence=0.9),
    ]


def test_coerce_policy_accepts_strings_and_enums():
    assert coerce_policy(None) == PrimaryPolicy.FIRST_OCCURRENCE
    assert coerce_policy(" Most_Connected ") == PrimaryPolicy.MOST_CONNECTED
    assert coerce_policy(PrimaryPolicy.HIGHEST_CONFIDENCE) == PrimaryPolicy.HIGHEST_CONFIDENCE


def test_coerce_policy_rejects_unknown():
    with pytest.raises(ValidationError):
        coerce_policy("random")


def test_first_occurrence():
    assert choose_primary_index(_nodes(), "first_occurrence") == 0


def test_highest_confidence_ties_go_to_earliest():
    # n2 (passage 0.9) and n3 (node 0.9) tie
    assert choose_primary_index(_nodes(), PrimaryPolicy.HIGHEST_CONFIDENCE) == 1


def test_most_connected_counts_only_own_document():
    rels = [
        Relationship(source_id="n3", target_id="z", paper_id="C"),
        Relationship(source_id="y", target_id="n3", paper_id="C"),
        # same id in another document does not count for n3
        Relationship(source_id="n1", target_id="n3", paper_id="A"),
    ]

    assert choose_primary_index(_nodes(), PrimaryPolicy.MOST_CONNECTED, rels) == 2


def test_empty_group_raises():
    with pytest.raises(ValidationError):
        choose_primary_index([], PrimaryPolicy.FIRST_OCCURRENCE)
