"""Schemas layer - Pydantic models for API validation.

Schemas define the shape of data for API requests and responses.
They handle validation, serialization, and documentation.
"""

from app.schemas.ai_cluster import (
    AcceptanceFailureResponse,
    AcceptClusterItem,
    AcceptClustersRequest,
    AcceptClustersResponse,
    AggregatedMetrics,
    ClusterSuggestion,
    GenerateClustersResponse,
    GroupResponse,
    QueryRecord,
    SuggestionViewModel,
)

__all__ = [
    "AcceptanceFailureResponse",
    "AcceptClusterItem",
    "AcceptClustersRequest",
    "AcceptClustersResponse",
    "AggregatedMetrics",
    "ClusterSuggestion",
    "GenerateClustersResponse",
    "GroupResponse",
    "QueryRecord",
    "SuggestionViewModel",
]
