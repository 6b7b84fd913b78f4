"""Tests for parsing and validating model cluster output.

Covers:
- Envelope errors raise ValueError (caller aborts)
- Per-cluster recovery: bad ids dropped, small clusters rejected
- Name and selection acceptability checks
"""

import json

import pytest

from app.services.cluster_validation import (
    RawCluster,
    index_batch,
    is_acceptable_cluster,
    is_acceptable_name,
    parse_cluster_response,
    resolve_cluster,
)
from tests.conftest import make_query_record


@pytest.fixture
def batch():
    return [make_query_record(query_text=f"query {i}") for i in range(5)]


class TestParseClusterResponse:
    """Tests for parse_cluster_response."""

    def test_parses_clusters(self) -> None:
        content = json.dumps(
            {"clusters": [{"name": "Pricing", "queryIds": ["a", "b"]}, {"name": "Docs", "queryIds": []}]}
        )

        clusters = parse_cluster_response(content)

        assert clusters == [
            RawCluster(name="Pricing", query_ids=["a", "b"]),
            RawCluster(name="Docs", query_ids=[]),
        ]

    def test_empty_cluster_list(self) -> None:
        assert parse_cluster_response('{"clusters": []}') == []

    @pytest.mark.parametrize("content", [None, "", "   "])
    def test_empty_content(self, content) -> None:
        with pytest.raises(ValueError, match="Empty response"):
            parse_cluster_response(content)

    def test_invalid_json(self) -> None:
        with pytest.raises(ValueError, match="Invalid JSON"):
            parse_cluster_response("{clusters: [")

    @pytest.mark.parametrize(
        "content",
        ['[]', '{"groups": []}', '{"clusters": {}}', '"clusters"'],
    )
    def test_missing_clusters_array(self, content) -> None:
        with pytest.raises(ValueError, match="clusters"):
            parse_cluster_response(content)

    @pytest.mark.parametrize(
        "cluster",
        [
            "Pricing",
            {"queryIds": []},
            {"name": 5, "queryIds": []},
            {"name": "Pricing"},
            {"name": "Pricing", "queryIds": "a,b"},
        ],
    )
    def test_malformed_cluster_element(self, cluster) -> None:
        with pytest.raises(ValueError, match="cluster 0"):
            parse_cluster_response(json.dumps({"clusters": [cluster]}))


class TestResolveCluster:
    """Tests for resolve_cluster."""

    def test_all_members_resolved(self, batch) -> None:
        raw = RawCluster(name="  Pricing  ", query_ids=[q.id for q in batch[:3]])

        resolution = resolve_cluster(raw, index_batch(batch))

        assert resolution.accepted is True
        assert resolution.name == "  Pricing  "
        assert resolution.queries == batch[:3]

    def test_drops_unknown_and_malformed_ids(self, batch) -> None:
        foreign = str(make_query_record().id)
        raw = RawCluster(
            name="Pricing",
            query_ids=[batch[0].id, "nope", foreign, batch[1].id, 42, batch[2].id],
        )

        resolution = resolve_cluster(raw, index_batch(batch))

        assert resolution.accepted is True
        assert [q.id for q in resolution.queries] == [batch[0].id, batch[1].id, batch[2].id]
        assert resolution.invalid_id_count == 2
        assert resolution.unresolved_id_count == 1

    def test_rejects_when_below_min_size(self, batch) -> None:
        raw = RawCluster(name="Pricing", query_ids=[batch[0].id, batch[1].id, "bad"])

        resolution = resolve_cluster(raw, index_batch(batch))

        assert resolution.accepted is False
        assert resolution.rejected_reason == "below_min_size"

    def test_repeated_ids_count_once(self, batch) -> None:
        raw = RawCluster(
            name="Pricing",
            query_ids=[batch[0].id, batch[0].id, batch[1].id, batch[1].id],
        )

        resolution = resolve_cluster(raw, index_batch(batch))

        assert resolution.duplicate_id_count == 2
        assert resolution.rejected_reason == "below_min_size"

    def test_ids_matched_case_insensitively(self, batch) -> None:
        raw = RawCluster(name="Pricing", query_ids=[q.id.upper() for q in batch[:3]])

        resolution = resolve_cluster(raw, index_batch(batch))

        assert resolution.accepted is True
        assert [q.id for q in resolution.queries] == [q.id for q in batch[:3]]

    def test_custom_min_size(self, batch) -> None:
        raw = RawCluster(name="Pricing", query_ids=[batch[0].id])

        assert resolve_cluster(raw, index_batch(batch), min_size=1).accepted is True

    @pytest.mark.parametrize("name", ["", "   "])
    def test_rejects_blank_name(self, batch, name) -> None:
        raw = RawCluster(name=name, query_ids=[q.id for q in batch])

        resolution = resolve_cluster(raw, index_batch(batch))

        assert resolution.rejected_reason == "invalid_name"
        assert resolution.queries == []


class TestAcceptability:
    """Tests for is_acceptable_name and is_acceptable_cluster."""

    def test_name_length_bounds(self) -> None:
        assert is_acceptable_name("a") is True
        assert is_acceptable_name("a" * 120) is True
        assert is_acceptable_name("  " + "a" * 120 + "  ") is True
        assert is_acceptable_name("a" * 121) is False
        assert is_acceptable_name(" ") is False

    def test_cluster_needs_members(self) -> None:
        assert is_acceptable_cluster("Pricing", ["x"]) is True
        assert is_acceptable_cluster("Pricing", []) is False
        assert is_acceptable_cluster("", ["x"]) is False
