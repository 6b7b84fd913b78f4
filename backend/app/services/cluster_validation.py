"""Parse and validate untrusted clustering output.

Completion output crosses into the typed domain only through here:
1. parse_cluster_response: the top-level envelope must be
   {"clusters": [{"name": str, "queryIds": [...]}, ...]}; anything else
   raises ValueError and the caller aborts the generation.
2. resolve_cluster: per proposed cluster, drop ids that are not UUID-shaped,
   drop ids not present in the batch, and reject the cluster entirely when
   fewer than min_size members remain. These are recovered locally.
"""

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from app.models.group import GROUP_NAME_MAX_LENGTH
from app.schemas.ai_cluster import QueryRecord
from app.utils.validation import is_valid_uuid, validate_cluster_name

MIN_CLUSTER_SIZE = 3


@dataclass(frozen=True)
class RawCluster:
    """A cluster as proposed by the model, before any checks."""

    name: Any
    query_ids: list[Any]


@dataclass
class ClusterResolution:
    """Outcome of validating one proposed cluster."""

    name: str
    queries: list[QueryRecord] = field(default_factory=list)
    invalid_id_count: int = 0
    unresolved_id_count: int = 0
    duplicate_id_count: int = 0
    rejected_reason: str | None = None

    @property
    def accepted(self) -> bool:
        return self.rejected_reason is None


def parse_cluster_response(content: str | None) -> list[RawCluster]:
    """Parse the completion text into raw clusters.

    Raises:
        ValueError: If the text is not JSON or not the declared shape.
    """
    if not content or not content.strip():
        raise ValueError("Empty response from AI")

    try:
        payload = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValueError("Invalid JSON response from AI") from e

    if not isinstance(payload, dict) or not isinstance(payload.get("clusters"), list):
        raise ValueError("AI response is missing the 'clusters' array")

    clusters: list[RawCluster] = []
    for index, item in enumerate(payload["clusters"]):
        if not isinstance(item, dict):
            raise ValueError(f"AI response cluster {index} is not an object")
        name = item.get("name")
        query_ids = item.get("queryIds")
        if not isinstance(name, str):
            raise ValueError(f"AI response cluster {index} has no string 'name'")
        if not isinstance(query_ids, list):
            raise ValueError(f"AI response cluster {index} has no 'queryIds' array")
        clusters.append(RawCluster(name=name, query_ids=query_ids))
    return clusters


def resolve_cluster(
    raw: RawCluster,
    batch_index: Mapping[str, QueryRecord],
    min_size: int = MIN_CLUSTER_SIZE,
) -> ClusterResolution:
    """Validate one proposed cluster against the batch it was generated from.

    The name is kept as the model returned it; a blank name rejects the
    cluster. Ids are matched case-insensitively against the batch; members
    keep the order the model returned them in, with repeats removed.
    """
    if not validate_cluster_name(raw.name):
        return ClusterResolution(name="", rejected_reason="invalid_name")

    resolution = ClusterResolution(name=raw.name)
    seen: set[str] = set()

    for query_id in raw.query_ids:
        if not is_valid_uuid(query_id):
            resolution.invalid_id_count += 1
            continue
        query = batch_index.get(query_id.lower())
        if query is None:
            resolution.unresolved_id_count += 1
            continue
        if query.id in seen:
            resolution.duplicate_id_count += 1
            continue
        seen.add(query.id)
        resolution.queries.append(query)

    if len(resolution.queries) < min_size:
        resolution.rejected_reason = "below_min_size"
    return resolution


def index_batch(batch: Sequence[QueryRecord]) -> dict[str, QueryRecord]:
    """Lookup of batch queries by lower-cased id."""
    return {q.id.lower(): q for q in batch}


def is_acceptable_name(name: Any) -> bool:
    """Trimmed name between 1 and GROUP_NAME_MAX_LENGTH characters."""
    return validate_cluster_name(name) and len(name.strip()) <= GROUP_NAME_MAX_LENGTH


def is_acceptable_cluster(name: Any, query_ids: Sequence[str]) -> bool:
    """Check a suggestion can be turned into a group."""
    return is_acceptable_name(name) and len(query_ids) > 0
