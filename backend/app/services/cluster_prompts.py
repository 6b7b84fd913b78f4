"""Prompts and response contract for AI query clustering.

The user message is a compact JSON document:
    {"queries": [{"id", "q", "imp", "clk", "ctr", "pos", "opp"}],
     "constraints": {"minClusterSize", "minClusters", "maxClusters",
                     "useOnlyProvidedIds": true, "nameStyle"}}
The model must answer with {"clusters": [{"name", "queryIds": [...]}]}.
"""

import json
import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from app.schemas.ai_cluster import QueryRecord

NAME_STYLE = "specific_seo_actionable"

CLUSTER_RESPONSE_FORMAT: dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "cluster_suggestions",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "clusters": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "queryIds": {
                                "type": "array",
                                "items": {"type": "string"},
                            },
                        },
                        "required": ["name", "queryIds"],
                        "additionalProperties": False,
                    },
                },
            },
            "required": ["clusters"],
            "additionalProperties": False,
        },
    },
}


@dataclass(frozen=True)
class ClusteringConstraints:
    """Limits communicated to the model for each batch."""

    min_cluster_size: int = 3
    min_clusters: int = 3
    max_clusters: int = 7
    query_text_max_length: int = 200

    def to_payload(self) -> dict[str, Any]:
        return {
            "minClusterSize": self.min_cluster_size,
            "minClusters": self.min_clusters,
            "maxClusters": self.max_clusters,
            "useOnlyProvidedIds": True,
            "nameStyle": NAME_STYLE,
        }


def build_system_prompt(constraints: ClusteringConstraints | None = None) -> str:
    """Fixed instruction covering coherence, intent and size rules."""
    c = constraints or ClusteringConstraints()
    target = min(max(5, c.min_clusters), c.max_clusters)
    return f"""You are an expert SEO strategist focused on creating actionable query clusters for content optimization.

Your goal is to group search queries that:
1. **Can be optimized together** - queries that share the same core topic and could be addressed with the same or similar content/page
2. **Share strong semantic meaning** - queries must refer to the same subject, entity, or closely related concepts
3. **Have matching search intent** - all queries in a cluster must have the same intent type (informational, navigational, or transactional)
4. **Represent a clear optimization task** - each cluster should represent a specific work item for the SEO team

Clustering Rules (STRICTLY ENFORCE):
- **Semantic Coherence**: Only group queries that are genuinely about the same topic/subject. If queries are loosely related but not about the same core concept, DO NOT cluster them together
- **Intent Alignment**: NEVER mix queries with different search intents in the same cluster (e.g., don't mix "how to" informational queries with "buy" transactional queries)
- **Content Optimization Focus**: Ask yourself: "Could these queries be optimized on the same page or with similar content?" If not, don't cluster them
- **Quality over Quantity**: It is BETTER to leave queries unclustered than to create weak, loosely-related clusters
- **Minimum Cluster Size**: Only create clusters with {c.min_cluster_size}+ queries that are strongly related

Output Guidelines:
- Create {c.min_clusters}-{c.max_clusters} clusters (aim for {target} if data supports it)
- Cluster names should be specific, SEO-focused, and actionable (e.g., "Pricing Plans Comparison" not just "Pricing")
- Each cluster name should clearly describe the optimization opportunity
- Omit queries that don't fit into strong, coherent clusters - unclustered queries will not appear in the response

Remember: Clusters should help SEO teams prioritize optimization work by identifying queries that can be improved together.

Input format:
- The user message is a JSON object with shape:
  {{
    "queries": [{{ "id": string, "q": string, "imp": number, "clk": number, "ctr": number|null, "pos": number|null, "opp": boolean }}],
    "constraints": {{ "minClusterSize": number, "minClusters": number, "maxClusters": number, "useOnlyProvidedIds": true }}
  }}
- Use only values from queries[].id when producing queryIds."""


def _finite_or_none(value: float | None) -> float | None:
    if value is None or not math.isfinite(value):
        return None
    return value


def build_user_payload(
    queries: Sequence[QueryRecord],
    constraints: ClusteringConstraints | None = None,
) -> dict[str, Any]:
    """Compact per-query payload for one batch."""
    c = constraints or ClusteringConstraints()
    return {
        "queries": [
            {
                "id": q.id,
                "q": q.query_text[: c.query_text_max_length],
                "imp": q.impressions,
                "clk": q.clicks,
                "ctr": _finite_or_none(q.ctr),
                "pos": _finite_or_none(q.avg_position),
                "opp": q.is_opportunity,
            }
            for q in queries
        ],
        "constraints": c.to_payload(),
    }


def build_user_prompt(
    queries: Sequence[QueryRecord],
    constraints: ClusteringConstraints | None = None,
) -> str:
    """Serialize the batch payload as the user message."""
    return json.dumps(
        build_user_payload(queries, constraints),
        ensure_ascii=False,
        separators=(",", ":"),
        allow_nan=False,
    )
