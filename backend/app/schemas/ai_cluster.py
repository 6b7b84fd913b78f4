"""Pydantic v2 schemas for AI query clustering.

Domain values and API payloads share these models. Field names are
snake_case in Python and camelCase on the wire:
- QueryRecord: read-only view of an imported query row
- AggregatedMetrics: summed/derived metrics over a set of queries
- ClusterSuggestion: an ephemeral, unpersisted cluster proposal
- SuggestionViewModel: a suggestion plus client-side identity and dirty flag
- AcceptClusterItem / AcceptClustersRequest: acceptance request body
- GroupResponse / AcceptClustersResponse: acceptance result
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QueryRecord(BaseModel):
    """Immutable view of one query row."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        frozen=True,
    )

    id: str = Field(..., description="Query UUID")
    query_text: str = Field(..., description="Search query text")
    url: str = Field("", description="Landing page URL")
    impressions: int = Field(0, description="Impression count")
    clicks: int = Field(0, description="Click count")
    ctr: float = Field(0.0, description="Click-through rate (fraction)")
    avg_position: float | None = Field(None, description="Mean ranking position")
    is_opportunity: bool = Field(False, description="Optimization opportunity flag")


class AggregatedMetrics(BaseModel):
    """Aggregate metrics over a set of queries."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    impressions: int = Field(0, ge=0, description="Summed impressions")
    clicks: int = Field(0, ge=0, description="Summed clicks")
    ctr: float = Field(0.0, ge=0.0, le=1.0, description="clicks / impressions")
    avg_position: float = Field(0.0, ge=0.0, description="Mean member position")

    @model_validator(mode="after")
    def _clicks_within_impressions(self) -> "AggregatedMetrics":
        if self.clicks > self.impressions:
            raise ValueError("clicks cannot exceed impressions")
        return self


class ClusterSuggestion(BaseModel):
    """A proposed grouping produced by the clustering step."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    name: str = Field(..., min_length=1, description="Suggested group name")
    queries: tuple[QueryRecord, ...] = Field(..., description="Member queries")
    query_count: int = Field(..., ge=0, description="Number of member queries")
    metrics: AggregatedMetrics = Field(..., description="Aggregate member metrics")

    @property
    def query_ids(self) -> list[str]:
        return [q.id for q in self.queries]


class SuggestionViewModel(ClusterSuggestion):
    """A suggestion as held by the suggestion store."""

    id: str = Field(..., description="Content-derived stable identifier")
    is_dirty: bool = Field(False, description="Edited since generation")


class GenerateClustersResponse(BaseModel):
    """Response for a generation request."""

    model_config = _CAMEL

    clusters: list[SuggestionViewModel] = Field(default_factory=list)
    count: int = Field(0, description="Number of suggestions")


class AcceptClusterItem(BaseModel):
    """One suggestion to accept."""

    model_config = _CAMEL

    name: str = Field(..., description="Group name (trimmed, 1-120 chars)")
    query_ids: list[str] = Field(..., description="Member query ids")


class AcceptClustersRequest(BaseModel):
    """Request body for accepting suggestions, in selection order."""

    model_config = _CAMEL

    clusters: list[AcceptClusterItem] = Field(default_factory=list)


class GroupResponse(BaseModel):
    """A persisted group with its metrics snapshot."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: str = Field(..., description="Group UUID")
    name: str = Field(..., description="Group name")
    ai_generated: bool = Field(..., description="Created from an AI suggestion")
    query_count: int = Field(0, description="Number of member queries")
    metrics_impressions: int = Field(0, description="Summed impressions")
    metrics_clicks: int = Field(0, description="Summed clicks")
    metrics_ctr: float = Field(0.0, description="clicks / impressions")
    metrics_avg_position: float = Field(0.0, description="Mean member position")
    created_at: datetime = Field(..., description="Creation timestamp")


class AcceptanceFailureResponse(BaseModel):
    """A suggestion that could not be accepted."""

    model_config = _CAMEL

    name: str
    code: str
    error: str


class AcceptClustersResponse(BaseModel):
    """Result of an acceptance request."""

    model_config = _CAMEL

    groups: list[GroupResponse] = Field(default_factory=list)
    failures: list[AcceptanceFailureResponse] = Field(default_factory=list)
    accepted_count: int = Field(0, description="Number of groups created")
